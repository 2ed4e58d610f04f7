"""
Deterministic card ordering.

A session carries a seed string; shuffling the same card list with the same
seed always yields the same order, so a reloaded client can rebuild its
session order without fresh randomness. The hash and generator match the
browser client bit for bit.
"""

from __future__ import annotations

import random
from typing import Optional, Sequence, TypeVar


T = TypeVar("T")

# Linear congruential generator: seed' = (seed * 9301 + 49297) mod 233280
LCG_MULTIPLIER = 9301
LCG_INCREMENT = 49297
LCG_MODULUS = 233280


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def hash_seed(seed: str) -> int:
    """
    32-bit string hash: h = h * 31 + code_unit, over UTF-16 code units.

    Returns the absolute value of the signed 32-bit result.
    """
    encoded = seed.encode("utf-16-le")
    h = 0
    for i in range(0, len(encoded), 2):
        code_unit = encoded[i] | (encoded[i + 1] << 8)
        h = _to_int32((h << 5) - h + code_unit)
    return abs(h)


def deterministic_shuffle(items: Sequence[T], seed: str) -> list[T]:
    """
    Fisher-Yates shuffle driven by the seeded LCG.
    """
    shuffled = list(items)
    state = hash_seed(seed)
    for i in range(len(shuffled) - 1, 0, -1):
        state = (state * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS
        j = int((state / LCG_MODULUS) * (i + 1))
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def random_shuffle(items: Sequence[T], rng: Optional[random.Random] = None) -> list[T]:
    """
    Non-deterministic Fisher-Yates shuffle (fallback when there is no seed).
    """
    rng = rng or random.Random()
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def shuffle(items: Sequence[T], seed: Optional[str] = None) -> list[T]:
    """
    Shuffle with the seed when one is given, randomly otherwise.
    """
    if seed:
        return deterministic_shuffle(items, seed)
    return random_shuffle(items)
