"""
Seedable random sources for replayable rolls.

A seeded source is a pure function of its seed: the same seed always yields
the same sequence, in any process. The seed's text is hashed into a 32-bit
state which drives a mulberry32 generator. Without a seed the source falls
back to Python's ``random`` module.
"""
import random
import struct
from typing import Optional, Protocol, Union

Seed = Union[str, int, float]

_MASK = 0xFFFFFFFF
_GOLDEN = 0x6D2B79F5


class RandomSource(Protocol):
    """Anything that yields floats in [0, 1)."""

    def random(self) -> float:
        ...


def _imul(a: int, b: int) -> int:
    """32-bit integer multiply (low word only)."""
    return (a * b) & _MASK


def _seed_text(seed: Seed) -> str:
    # 3.0 and 3 must seed the same stream
    if isinstance(seed, float) and seed.is_integer():
        return str(int(seed))
    return str(seed)


def hash_seed(seed: Seed) -> int:
    """Mix the seed's text into a 32-bit state, one UTF-16 code unit at a time."""
    data = _seed_text(seed).encode("utf-16-le")
    units = struct.unpack(f"<{len(data) // 2}H", data)

    h = (1779033703 ^ len(units)) & _MASK
    for unit in units:
        h = _imul(h ^ unit, 3432918353)
        h = ((h << 13) | (h >> 19)) & _MASK
    return h


class SeededRandom:
    """mulberry32: one 32-bit state word advanced by add/xor/multiply per call."""

    def __init__(self, seed: Seed):
        self.seed = seed
        self._state = hash_seed(seed)

    def random(self) -> float:
        self._state = (self._state + _GOLDEN) & _MASK
        t = self._state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK
        return ((t ^ (t >> 14)) & _MASK) / 4294967296

    def next(self) -> float:
        return self.random()


class SystemRandom:
    """Non-reproducible source backed by the ``random`` module."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng if rng is not None else random.Random()

    def random(self) -> float:
        return self._rng.random()

    def next(self) -> float:
        return self.random()


def make_rng(seed: Optional[Seed] = None) -> Union[SeededRandom, SystemRandom]:
    """
    Build a random source for one resolution call.

    Args:
        seed: Encounter seed. None or "" means non-deterministic.

    Returns:
        A source exposing random() / next() in [0, 1)
    """
    if seed is None or seed == "":
        return SystemRandom()
    return SeededRandom(seed)
