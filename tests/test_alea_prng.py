"""Tests for the Alea PRNG and seeding helpers."""

import pytest

from py_island.core.alea_prng import AleaPRNG
from py_island.utils.random import create_prng, new_seed


class TestAleaPRNG:
    """Test the seedable random source."""

    def test_same_seed_same_sequence(self):
        first = AleaPRNG("seed")
        second = AleaPRNG("seed")
        assert [first.random() for _ in range(20)] == [second.random() for _ in range(20)]

    def test_different_seeds_differ(self):
        assert AleaPRNG("one").random() != AleaPRNG("two").random()

    def test_range(self):
        prng = AleaPRNG("range")
        values = [prng.random() for _ in range(1000)]
        assert all(0.0 <= v < 1.0 for v in values)
        assert prng.call_count == 1000

    def test_uniform_bounds(self):
        prng = AleaPRNG("uniform")
        values = [prng.uniform(-2.0, 5.0) for _ in range(500)]
        assert all(-2.0 <= v < 5.0 for v in values)

    def test_choice(self):
        prng = AleaPRNG("choice")
        items = ["a", "b", "c"]
        picks = {prng.choice(items) for _ in range(100)}
        assert picks == set(items)

    def test_choice_empty(self):
        with pytest.raises(IndexError):
            AleaPRNG("empty").choice([])

    def test_shuffle_is_permutation(self):
        items = list(range(50))
        shuffled = AleaPRNG("shuffle").shuffle(list(items))
        assert sorted(shuffled) == items
        assert shuffled != items

    def test_permutation(self):
        assert sorted(AleaPRNG("perm").permutation(256)) == list(range(256))


class TestCreatePrng:
    def test_string_and_int_seeds_match(self):
        assert create_prng(42).random() == create_prng("42").random()

    def test_random_seed_when_missing(self):
        prng = create_prng()
        assert isinstance(prng.seed, str)
        assert len(prng.seed) == 8

    def test_new_seed_varies(self):
        assert new_seed() != new_seed()
