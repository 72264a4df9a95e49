"""Pickup Codes — generation and per-box allocation of 4-symbol keypad codes.

Invariants:
    - Codes are exactly PICKUP_CODE_LENGTH symbols drawn from PICKUP_ALPHABET
    - generate_pickup_code performs no uniqueness check
    - allocate_pickup_code never returns a code held by an unconsumed card of the same box
    - Not cryptographically strong: the box keypad has four buttons

Design Decisions:
    - rng injected (random.Random-compatible) so tests are deterministic
    - Bounded redraws before enumerating the free set: the common case (a few
      cards per box) stays a single draw
"""

import itertools
import random
from collections.abc import Collection

from cardbox.core.errors import PickupCodesExhaustedError


PICKUP_ALPHABET: str = "1234"
PICKUP_CODE_LENGTH: int = 4
CODE_SPACE_SIZE: int = len(PICKUP_ALPHABET) ** PICKUP_CODE_LENGTH   # 256
MAX_REDRAWS: int = 8

_system_rng = random.Random()


def generate_pickup_code(rng: random.Random | None = None) -> str:
    """Draw one code uniformly from the alphabet."""
    r = rng or _system_rng
    return "".join(r.choice(PICKUP_ALPHABET) for _ in range(PICKUP_CODE_LENGTH))


def is_well_formed_code(code: str | None) -> bool:
    return (
        code is not None
        and len(code) == PICKUP_CODE_LENGTH
        and all(c in PICKUP_ALPHABET for c in code)
    )


def all_codes() -> list[str]:
    return [
        "".join(combo)
        for combo in itertools.product(PICKUP_ALPHABET, repeat=PICKUP_CODE_LENGTH)
    ]


def allocate_pickup_code(
    box_id: str,
    codes_in_use: Collection[str],
    rng: random.Random | None = None,
) -> str:
    """Issue a code not held by another unconsumed card in box_id.

    Raises PickupCodesExhaustedError when all CODE_SPACE_SIZE codes are taken.
    """
    in_use = set(codes_in_use)
    if len(in_use) >= CODE_SPACE_SIZE:
        raise PickupCodesExhaustedError(box_id)

    for _ in range(MAX_REDRAWS):
        code = generate_pickup_code(rng)
        if code not in in_use:
            return code

    free = [c for c in all_codes() if c not in in_use]
    if not free:
        raise PickupCodesExhaustedError(box_id)
    return (rng or _system_rng).choice(free)
