"""Tests for terrain height-field queries."""

import numpy as np
import pytest

from py_island.core.height_field import TerrainHeightField

from conftest import make_grid


class TestTerrainHeightField:
    """Test point-in-triangle height lookup."""

    def test_flat_query(self, flat_field):
        sample = flat_field.query(3.3, 7.1)
        assert sample is not None
        assert sample.height == pytest.approx(1.0)
        np.testing.assert_allclose(sample.normal, [0.0, 1.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(sample.point, [3.3, 1.0, 7.1])

    def test_outside_returns_none(self, flat_field):
        assert flat_field.query(-1.0, 5.0) is None
        assert flat_field.query(5.0, 10.5) is None
        assert flat_field.height(20.0, 20.0) is None

    def test_on_border(self, flat_field):
        assert flat_field.query(10.0, 10.0) is not None
        assert flat_field.query(0.0, 0.0) is not None

    def test_sloped_interpolation(self):
        positions, faces = make_grid(height=lambda x, z: 0.5 * x + 0.25 * z)
        field = TerrainHeightField(positions, faces)
        for x, z in [(0.3, 0.3), (4.7, 8.2), (9.9, 0.1)]:
            assert field.height(x, z) == pytest.approx(0.5 * x + 0.25 * z)

    def test_sloped_normal(self):
        positions, faces = make_grid(height=lambda x, z: x)
        sample = TerrainHeightField(positions, faces).query(5.5, 5.5)
        np.testing.assert_allclose(sample.normal, np.array([-1.0, 1.0, 0.0]) / np.sqrt(2), atol=1e-12)

    def test_highest_layer_wins(self):
        low_positions, low_faces = make_grid(height=lambda x, z: np.full_like(x, 1.0))
        high_positions, high_faces = make_grid(height=lambda x, z: np.full_like(x, 4.0))
        positions = np.vstack([low_positions, high_positions])
        faces = np.vstack([low_faces, high_faces + len(low_positions)])
        assert TerrainHeightField(positions, faces).height(5.0, 5.0) == pytest.approx(4.0)

    def test_downward_faces_ignored(self, flat_grid):
        positions, faces = flat_grid
        field = TerrainHeightField(positions, faces[:, ::-1])
        assert field.query(5.0, 5.0) is None

    def test_face_index(self, flat_grid):
        positions, faces = flat_grid
        sample = TerrainHeightField(positions, faces).query(0.75, 0.25)
        corners = positions[faces[sample.face_index]]
        assert corners[:, 0].min() <= 0.75 <= corners[:, 0].max()
        assert corners[:, 2].min() <= 0.25 <= corners[:, 2].max()

    def test_empty_mesh(self):
        field = TerrainHeightField(np.zeros((0, 3)), np.zeros((0, 3), dtype=np.int64))
        assert field.query(0.0, 0.0) is None
