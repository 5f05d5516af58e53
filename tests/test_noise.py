"""Tests for the noise field."""

import numpy as np
import pytest

from py_island.core.alea_prng import AleaPRNG
from py_island.core.noise import (
    DEFAULT_HARMONICS,
    Harmonic,
    ImprovedNoise,
    TerrainNoise,
    generate_noise,
)


class TestGenerateNoise:
    """Test the harmonic radial noise table."""

    @pytest.mark.parametrize("seed", ["a", "b", "island", "12345"])
    def test_values_bounded(self, seed):
        """Normalized harmonic sum stays within [-1.05, 1.05]."""
        prng = AleaPRNG(seed)
        for phase in (0.0, 1.7, np.pi, 100.0):
            values = generate_noise(256, phase, prng)
            assert values.shape == (256,)
            assert np.all(np.abs(values) <= 1.05)

    def test_same_seed_same_table(self):
        first = generate_noise(75, 0.3, AleaPRNG("repeat"))
        second = generate_noise(75, 0.3, AleaPRNG("repeat"))
        np.testing.assert_array_equal(first, second)

    def test_each_call_draws_new_phases(self):
        prng = AleaPRNG("phases")
        first = generate_noise(64, 0.0, prng)
        second = generate_noise(64, 0.0, prng)
        assert not np.allclose(first, second)

    def test_one_random_draw_per_harmonic(self):
        prng = AleaPRNG("draws")
        generate_noise(10, 0.0, prng)
        assert prng.call_count == len(DEFAULT_HARMONICS)

    def test_empty_count(self):
        assert len(generate_noise(0, 0.0, AleaPRNG("x"))) == 0

    def test_single_harmonic_is_sine(self):
        """With one harmonic of amplitude 1 the table is a pure unit sine."""
        values = generate_noise(360, 0.0, AleaPRNG("sine"), harmonics=[Harmonic(1, 1.0)])
        assert values.max() == pytest.approx(1.0, abs=1e-3)
        assert values.min() == pytest.approx(-1.0, abs=1e-3)


class TestImprovedNoise:
    """Test the gradient noise used for terrain heights."""

    def test_zero_on_lattice(self):
        noise = ImprovedNoise()
        for point in [(0, 0, 0), (3, 7, 0), (-2, 5, 1)]:
            assert noise.noise(*[float(c) for c in point]) == pytest.approx(0.0, abs=1e-12)

    def test_scalar_in_scalar_out(self):
        assert isinstance(ImprovedNoise().noise(0.3, 0.6, 0.0), float)

    def test_array_matches_scalar(self):
        noise = ImprovedNoise()
        xs = np.linspace(-3.0, 3.0, 25)
        zs = np.linspace(1.0, 4.0, 25)
        values = noise.noise(xs, zs, 0.0)
        assert values.shape == (25,)
        for x, z, value in zip(xs, zs, values):
            assert noise.noise(float(x), float(z), 0.0) == pytest.approx(value)

    def test_continuity(self):
        """Nearby inputs give nearby outputs."""
        noise = ImprovedNoise()
        xs = np.linspace(0.0, 10.0, 2001)
        values = noise.noise(xs, 0.37, 0.0)
        assert np.max(np.abs(np.diff(values))) < 0.05

    def test_bounded(self):
        noise = ImprovedNoise()
        grid = np.linspace(-20.0, 20.0, 201)
        xs, zs = np.meshgrid(grid, grid)
        values = noise.noise(xs, zs, 0.0)
        assert np.all(np.abs(values) <= 1.5)
        assert values.std() > 0.05

    def test_permutation_is_deterministic(self):
        np.testing.assert_array_equal(ImprovedNoise()._p, ImprovedNoise()._p)
        assert not np.array_equal(ImprovedNoise()._p, ImprovedNoise("other")._p)


class TestTerrainNoise:
    """Test terrain height evaluation."""

    def test_zero_strength_is_flat(self):
        terrain = TerrainNoise(base_height=2.0, strength=0.0, scale=0.1)
        heights = terrain.heights(np.random.default_rng(1).uniform(-30, 30, size=(50, 2)))
        np.testing.assert_allclose(heights, 2.0)

    def test_height_follows_noise(self):
        noise = ImprovedNoise()
        terrain = TerrainNoise(base_height=1.0, strength=3.0, scale=0.5, noise=noise)
        assert terrain.height(2.2, -1.3) == pytest.approx(1.0 + 3.0 * noise.noise(1.1, -0.65, 0.0))

    def test_empty_points(self):
        assert len(TerrainNoise(1.0, 1.0, 1.0).heights(np.zeros((0, 2)))) == 0
