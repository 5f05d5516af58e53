"""Tests for Bowyer-Watson triangulation."""

import numpy as np
import pytest
from scipy.spatial import ConvexHull, Delaunay

from py_island.core.delaunay import circumcircle, triangulate, unique_edges
from py_island.core.geometry import DegenerateGeometryError


class TestCircumcircle:
    def test_right_triangle(self):
        ux, uy, r2 = circumcircle(np.array([0.0, 0.0]), np.array([2.0, 0.0]), np.array([0.0, 2.0]))
        assert (ux, uy) == pytest.approx((1.0, 1.0))
        assert r2 == pytest.approx(2.0)

    def test_collinear(self):
        _, _, r2 = circumcircle(np.array([0.0, 0.0]), np.array([1.0, 0.0]), np.array([2.0, 0.0]))
        assert r2 == float("inf")


class TestTriangulate:
    """Test Delaunay properties of the triangulation."""

    @pytest.fixture(params=[0, 1, 2])
    def points(self, request):
        return np.random.default_rng(request.param).uniform(-10.0, 10.0, size=(40, 2))

    def test_empty_circumcircle(self, points):
        triangles = triangulate(points)
        assert triangles
        for i, j, k in triangles:
            ux, uy, r2 = circumcircle(points[i], points[j], points[k])
            distances = (points[:, 0] - ux) ** 2 + (points[:, 1] - uy) ** 2
            others = np.ones(len(points), dtype=bool)
            others[[i, j, k]] = False
            assert np.all(distances[others] >= r2 * (1.0 - 1e-9))

    def test_matches_scipy(self, points):
        ours = {tuple(sorted(t)) for t in triangulate(points)}
        reference = {tuple(sorted(s)) for s in Delaunay(points).simplices.tolist()}
        assert ours <= reference
        assert len(ours) >= 0.9 * len(reference)

    def test_missing_triangles_are_hull_slivers(self, points):
        """
        The finite super-triangle may drop true Delaunay triangles near the
        hull. Any such triangle has a circumcircle reaching a super-triangle
        vertex, so its radius is many times the point set's extent.
        """
        ours = {tuple(sorted(t)) for t in triangulate(points)}
        reference = {tuple(sorted(s)) for s in Delaunay(points).simplices.tolist()}
        extent = (points.max(axis=0) - points.min(axis=0)).max()
        for i, j, k in reference - ours:
            _, _, r2 = circumcircle(points[i], points[j], points[k])
            assert r2 >= (5.0 * extent) ** 2

    def test_no_overlap(self, points):
        """Triangle areas sum to at most the convex hull area."""
        triangles = np.array(triangulate(points))
        a, b, c = points[triangles[:, 0]], points[triangles[:, 1]], points[triangles[:, 2]]
        areas = 0.5 * np.abs((b[:, 0] - a[:, 0]) * (c[:, 1] - a[:, 1]) - (c[:, 0] - a[:, 0]) * (b[:, 1] - a[:, 1]))
        hull_area = ConvexHull(points).volume
        assert areas.sum() <= hull_area + 1e-6

    def test_single_triangle(self):
        points = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        triangles = triangulate(points)
        assert [tuple(sorted(t)) for t in triangles] == [(0, 1, 2)]

    def test_square(self):
        points = np.array([[0.0, 0.0], [1.0, 0.1], [1.1, 1.0], [0.0, 0.9]])
        assert len(triangulate(points)) == 2

    def test_too_few_points(self):
        with pytest.raises(DegenerateGeometryError):
            triangulate(np.array([[0.0, 0.0], [1.0, 1.0]]))

    def test_coincident_points(self):
        with pytest.raises(DegenerateGeometryError):
            triangulate(np.array([[1.0, 1.0], [1.0, 1.0], [1.0, 1.0]]))


class TestUniqueEdges:
    def test_shared_edge_once(self):
        edges = unique_edges([(0, 1, 2), (2, 1, 3)])
        assert edges == [(0, 1), (0, 2), (1, 2), (1, 3), (2, 3)]
