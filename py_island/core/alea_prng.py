"""
Alea PRNG, the single random source for island generation.

Based on Johannes Baagøe's Alea algorithm. Every generation pass draws
from one instance created from a seed string, so two passes with the same
seed and inputs produce identical output.
"""

import math
from typing import List, MutableSequence, Sequence, TypeVar

T = TypeVar("T")

_NORM_32 = 2.3283064365386963e-10  # 2^-32


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & 0xFFFFFFFF


def _mash_factory():
    state = 0xEFC8249D

    def mash(data) -> float:
        nonlocal state
        for char in str(data):
            state += ord(char)
            h = 0.02519603282416938 * state
            state = _uint32(h)
            h -= state
            h *= state
            state = _uint32(h)
            h -= state
            state += h * 0x100000000
        return _uint32(state) * _NORM_32

    return mash


class AleaPRNG:
    """Seedable uniform generator with the helpers generation needs."""

    def __init__(self, seed):
        self.seed = seed
        self.call_count = 0

        if hasattr(seed, "__iter__") and not isinstance(seed, str):
            parts = list(seed)
        else:
            parts = [seed]

        mash = _mash_factory()
        self.s0 = mash(" ")
        self.s1 = mash(" ")
        self.s2 = mash(" ")
        self.c = 1

        for part in parts:
            self.s0 = (self.s0 - mash(part)) % 1.0
            self.s1 = (self.s1 - mash(part)) % 1.0
            self.s2 = (self.s2 - mash(part)) % 1.0

    def random(self) -> float:
        """Generate next random number in [0, 1)."""
        self.call_count += 1
        t = 2091639 * self.s0 + self.c * _NORM_32
        self.s0 = self.s1
        self.s1 = self.s2
        self.c = int(t)
        self.s2 = t - self.c
        return self.s2

    def uniform(self, low: float, high: float) -> float:
        """Random float between low and high."""
        return low + self.random() * (high - low)

    def angle(self) -> float:
        """Random angle in [0, 2*pi)."""
        return self.random() * 2.0 * math.pi

    def choice(self, seq: Sequence[T]) -> T:
        """Choose a random element from a non-empty sequence."""
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        return seq[int(self.random() * len(seq))]

    def shuffle(self, items: MutableSequence[T]) -> MutableSequence[T]:
        """Fisher-Yates shuffle in place; returns the same sequence."""
        for i in range(len(items) - 1, 0, -1):
            j = int(self.random() * (i + 1))
            items[i], items[j] = items[j], items[i]
        return items

    def permutation(self, n: int) -> List[int]:
        """Random permutation of range(n)."""
        return list(self.shuffle(list(range(n))))
