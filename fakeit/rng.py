"""
Seeded linear-congruential generator.

The recurrence is tiny on purpose: the same seed string must reproduce the
same plan on any interpreter, so nothing here depends on the platform
``random`` implementation.
"""

import math
import time
from typing import Iterator, Optional

MULTIPLIER = 9301
INCREMENT = 49297
MODULUS = 233280


def hash_seed(seed: str) -> int:
    """Hash a string into a non-negative 32-bit integer (h = h*31 + c)."""
    h = 0
    for unit in code_units(seed):
        h = _to_int32(h * 31 + unit)
    return abs(h)


def code_units(text: str) -> Iterator[int]:
    """Yield UTF-16 code units, so astral characters count as surrogate pairs."""
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


class SeededRandom:
    """Deterministic pseudo-random source driven by a string seed."""

    def __init__(self, seed: Optional[str] = None, state: Optional[int] = None):
        if state is not None:
            self.state = state
        elif seed:
            self.state = hash_seed(seed)
        else:
            self.state = int(time.time() * 1000)
        self.seed = seed

    def next_float(self) -> float:
        """Return a float in [0, 1)."""
        self.state = (self.state * MULTIPLIER + INCREMENT) % MODULUS
        return self.state / MODULUS

    def next_int(self, low: int, high: int) -> int:
        """Return an integer in [low, high)."""
        return math.floor(self.next_float() * (high - low)) + low

    def next_gaussian(self, mean: float = 0.0, std_dev: float = 1.0) -> float:
        """Sample a normal deviate with the Box-Muller transform."""
        u = 0.0
        while u == 0.0:
            u = self.next_float()
        v = 0.0
        while v == 0.0:
            v = self.next_float()

        z = math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)
        return z * std_dev + mean
