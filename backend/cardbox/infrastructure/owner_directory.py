"""Static Owner Directory — identifier → email table loaded once at startup."""

import logging
from collections.abc import Mapping

from cardbox.core.lifecycle_rules import normalize_identifier

logger = logging.getLogger(__name__)


class StaticOwnerDirectory:
    """Pure lookup. Unknown or blank identifiers resolve to None, never raise."""

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self._emails: dict[str, str] = {}
        for identifier, email in (entries or {}).items():
            self.add(identifier, email)

    def add(self, identifier: str, email: str) -> bool:
        key = normalize_identifier(identifier)
        address = (email or "").strip()
        if not key or "@" not in address:
            # skip, keep loading the rest
            logger.warning(f"Skipping malformed owner directory entry for {identifier!r}")
            return False
        self._emails[key] = address
        return True

    def resolve(self, identifier: str | None) -> str | None:
        key = normalize_identifier(identifier)
        if key is None:
            return None
        return self._emails.get(key)

    def __len__(self) -> int:
        return len(self._emails)
