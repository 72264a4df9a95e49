"""Service Container — wiring production collaborators from Settings."""

import pytest

from cardbox.config import Settings
from cardbox.infrastructure.email_notifier import SendGridNotifier
from cardbox.services import container


def _settings(**overrides) -> Settings:
    fields = {
        "anthropic_api_key": "sk-ant-test",
        "sendgrid_api_key": "   ",
        "staff_token": "",
        "owner_directory": {"132264610": "owner@example.edu", "1": "broken"},
    }
    fields.update(overrides)
    return Settings(**fields)


def test_blank_secrets_mean_unconfigured():
    settings = _settings()
    assert settings.sendgrid_api_key is None
    assert settings.staff_token is None


def test_build_services_wires_engine_and_bridge():
    services = container.build_services(_settings(staff_token="s3cret"))

    assert services.staff_token == "s3cret"
    assert services.engine.list_cards() == []
    assert services.engine._directory.resolve("132264610") == "owner@example.edu"
    assert services.engine._directory.resolve("1") is None
    assert isinstance(services.engine._notifier, SendGridNotifier)
    assert not services.engine._notifier.configured


def test_get_services_before_init_raises(monkeypatch):
    monkeypatch.setattr(container, "services", None)
    with pytest.raises(RuntimeError):
        container.get_services()


def test_init_services_sets_singleton(monkeypatch):
    monkeypatch.setattr(container, "services", None)
    built = container.init_services(_settings())
    assert container.get_services() is built
