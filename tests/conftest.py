"""Shared fixtures for island generation tests."""

import numpy as np
import pytest

from py_island.config import IslandConfig
from py_island.core.contours import RockPrototype
from py_island.core.height_field import TerrainHeightField


def make_grid(size=10.0, divisions=10, height=lambda x, z: np.ones_like(x)):
    """
    Square grid mesh on [0, size] x [0, size] with counter-clockwise faces.

    Returns:
        Tuple of (positions (N, 3), faces (M, 3))
    """
    coords = np.linspace(0.0, size, divisions + 1)
    xs, zs = np.meshgrid(coords, coords, indexing="ij")
    xs = xs.ravel()
    zs = zs.ravel()
    positions = np.stack([xs, height(xs, zs), zs], axis=1)

    def index(i, j):
        return i * (divisions + 1) + j

    faces = []
    for i in range(divisions):
        for j in range(divisions):
            v00, v10 = index(i, j), index(i + 1, j)
            v11, v01 = index(i + 1, j + 1), index(i, j + 1)
            faces.append((v00, v11, v10))
            faces.append((v00, v01, v11))
    return positions, np.array(faces, dtype=np.int64)


def square(size=10.0, inset=0.0):
    """Counter-clockwise square polygon as (4, 3) points."""
    lo, hi = inset, size - inset
    return np.array([[lo, 0.0, lo], [hi, 0.0, lo], [hi, 0.0, hi], [lo, 0.0, hi]])


@pytest.fixture
def flat_grid():
    return make_grid()


@pytest.fixture
def flat_field(flat_grid):
    positions, faces = flat_grid
    return TerrainHeightField(positions, faces)


@pytest.fixture
def rock():
    return RockPrototype(name="rock", size=(2.0, 3.0, 2.0))


@pytest.fixture
def flat_config():
    """Default island without height noise."""
    return IslandConfig(noise_strength=0.0)
