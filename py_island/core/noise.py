"""
Noise field for island generation.

Two independent sources:
- a harmonic radial noise table used to perturb ring radii and offsets
- improved Perlin gradient noise used for terrain height at any (x, z)
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from .alea_prng import AleaPRNG

ArrayLike = Union[float, np.ndarray]


@dataclass(frozen=True)
class Harmonic:
    """One sine component of the radial noise."""
    frequency: int
    amplitude: float


DEFAULT_HARMONICS: Tuple[Harmonic, ...] = (
    Harmonic(1, 1.0),    # base shape
    Harmonic(2, 0.5),
    Harmonic(5, 0.25),
    Harmonic(9, 0.125),  # very fine detail
)

# Fixed seed for the permutation table so heights never depend on the pass seed
PERMUTATION_SEED = "improved-noise"


def generate_noise(count: int, phase_offset: float, prng: AleaPRNG,
                   harmonics: Sequence[Harmonic] = DEFAULT_HARMONICS) -> np.ndarray:
    """
    Generate a closed-loop noise table for contour irregularity.

    Each harmonic is evaluated at angle 2*pi*i/count with its own phase,
    phase_offset + random()*2*pi, then the sum is divided by the total
    amplitude so values stay near [-1, 1].

    Args:
        count: Number of samples around the loop
        phase_offset: Offset added to every harmonic phase
        prng: Random source for the per-harmonic phases

    Returns:
        Array of `count` noise values
    """
    values = np.zeros(max(count, 0), dtype=np.float64)
    if count <= 0:
        return values

    angles = np.arange(count, dtype=np.float64) / count * 2.0 * math.pi
    total_amplitude = 0.0
    for harmonic in harmonics:
        phase = phase_offset + prng.random() * 2.0 * math.pi
        values += np.sin(angles * harmonic.frequency + phase) * harmonic.amplitude
        total_amplitude += harmonic.amplitude

    return values / total_amplitude


def _fade(t: np.ndarray) -> np.ndarray:
    return t * t * t * (t * (t * 6 - 15) + 10)


def _lerp(t: np.ndarray, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a + t * (b - a)


def _grad(hash_: np.ndarray, x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    h = hash_ & 15
    u = np.where(h < 8, x, y)
    v = np.where(h < 4, y, np.where((h == 12) | (h == 14), x, z))
    return np.where((h & 1) == 0, u, -u) + np.where((h & 2) == 0, v, -v)


class ImprovedNoise:
    """
    Ken Perlin's improved gradient noise in three dimensions.

    The quintic fade curve makes the field C2-continuous, so terrain sampled
    from it shows no faceting. Inputs may be scalars or numpy arrays.
    """

    def __init__(self, seed: Optional[str] = None):
        prng = AleaPRNG(seed or PERMUTATION_SEED)
        permutation = prng.permutation(256)
        self._p = np.array(permutation + permutation, dtype=np.int64)

    def noise(self, x: ArrayLike, y: ArrayLike, z: ArrayLike) -> ArrayLike:
        scalar = np.isscalar(x) and np.isscalar(y) and np.isscalar(z)
        x, y, z = np.broadcast_arrays(
            np.asarray(x, dtype=np.float64),
            np.asarray(y, dtype=np.float64),
            np.asarray(z, dtype=np.float64),
        )

        floor_x = np.floor(x)
        floor_y = np.floor(y)
        floor_z = np.floor(z)
        X = floor_x.astype(np.int64) & 255
        Y = floor_y.astype(np.int64) & 255
        Z = floor_z.astype(np.int64) & 255
        x = x - floor_x
        y = y - floor_y
        z = z - floor_z

        u = _fade(x)
        v = _fade(y)
        w = _fade(z)

        p = self._p
        A = p[X] + Y
        AA = p[A] + Z
        AB = p[A + 1] + Z
        B = p[X + 1] + Y
        BA = p[B] + Z
        BB = p[B + 1] + Z

        result = _lerp(
            w,
            _lerp(
                v,
                _lerp(u, _grad(p[AA], x, y, z), _grad(p[BA], x - 1, y, z)),
                _lerp(u, _grad(p[AB], x, y - 1, z), _grad(p[BB], x - 1, y - 1, z)),
            ),
            _lerp(
                v,
                _lerp(u, _grad(p[AA + 1], x, y, z - 1), _grad(p[BA + 1], x - 1, y, z - 1)),
                _lerp(u, _grad(p[AB + 1], x, y - 1, z - 1), _grad(p[BB + 1], x - 1, y - 1, z - 1)),
            ),
        )

        if scalar:
            return float(result)
        return result


class TerrainNoise:
    """Base terrain height: base_height + noise(x*scale, z*scale, 0) * strength."""

    def __init__(self, base_height: float, strength: float, scale: float,
                 noise: Optional[ImprovedNoise] = None):
        self.base_height = base_height
        self.strength = strength
        self.scale = scale
        self.noise = noise or ImprovedNoise()

    def height(self, x: ArrayLike, z: ArrayLike) -> ArrayLike:
        """Terrain height before lake depressions."""
        value = self.noise.noise(np.multiply(x, self.scale), np.multiply(z, self.scale), 0.0)
        return self.base_height + value * self.strength

    def heights(self, points_xz: np.ndarray) -> np.ndarray:
        """Heights for an (N, 2) array of XZ points."""
        points_xz = np.asarray(points_xz, dtype=np.float64)
        if len(points_xz) == 0:
            return np.zeros(0)
        return np.asarray(self.height(points_xz[:, 0], points_xz[:, 1]), dtype=np.float64)
