"""Pickup Codes — generation over the keypad alphabet and per-box allocation.

Tests cover:
    - Generated codes are 4 symbols over {1,2,3,4}
    - Allocation avoids codes held by unconsumed cards of the same box
    - Allocation raises once all 256 codes are taken
"""

import random

import pytest

from cardbox.core.errors import PickupCodesExhaustedError
from cardbox.core.pickup_code import (
    CODE_SPACE_SIZE, PICKUP_ALPHABET, PICKUP_CODE_LENGTH,
    all_codes, allocate_pickup_code, generate_pickup_code, is_well_formed_code,
)


def test_generated_code_shape():
    rng = random.Random(1)
    for _ in range(200):
        code = generate_pickup_code(rng)
        assert len(code) == PICKUP_CODE_LENGTH
        assert set(code) <= set(PICKUP_ALPHABET)


def test_generation_without_rng_uses_module_rng():
    assert is_well_formed_code(generate_pickup_code())


def test_code_space_is_256():
    assert CODE_SPACE_SIZE == 256
    assert len(set(all_codes())) == 256


@pytest.mark.parametrize("code, ok", [
    ("1234", True),
    ("4444", True),
    ("1235", False),
    ("123", False),
    ("12345", False),
    ("", False),
    (None, False),
])
def test_is_well_formed_code(code, ok):
    assert is_well_formed_code(code) is ok


def test_allocate_avoids_codes_in_use():
    in_use = set(all_codes()) - {"3141"}
    assert allocate_pickup_code("BOX_1", in_use, random.Random(3)) == "3141"


def test_allocate_with_empty_box_returns_well_formed_code():
    code = allocate_pickup_code("BOX_1", set(), random.Random(5))
    assert is_well_formed_code(code)


def test_allocate_raises_when_exhausted():
    with pytest.raises(PickupCodesExhaustedError) as exc_info:
        allocate_pickup_code("BOX_9", set(all_codes()))
    assert exc_info.value.http_status == 409
    assert exc_info.value.context.box_id == "BOX_9"
