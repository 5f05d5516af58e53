"""
Incremental Bowyer-Watson Delaunay triangulation in two dimensions.
"""

from collections import Counter
from typing import List, Tuple

import numpy as np
import structlog

from .geometry import DegenerateGeometryError

logger = structlog.get_logger()

Triangle = Tuple[int, int, int]

# A finite super-triangle drops true Delaunay triangles whose circumcircle
# reaches one of its vertices; these are thin triangles along the hull.
SUPER_TRIANGLE_MARGIN = 20.0


def circumcircle(a: np.ndarray, b: np.ndarray, c: np.ndarray) -> Tuple[float, float, float]:
    """Center x, center y and squared radius; infinite radius for collinear points."""
    d = 2.0 * (a[0] * (b[1] - c[1]) + b[0] * (c[1] - a[1]) + c[0] * (a[1] - b[1]))
    if abs(d) < 1e-15:
        return 0.0, 0.0, float("inf")

    a2 = a[0] * a[0] + a[1] * a[1]
    b2 = b[0] * b[0] + b[1] * b[1]
    c2 = c[0] * c[0] + c[1] * c[1]
    ux = (a2 * (b[1] - c[1]) + b2 * (c[1] - a[1]) + c2 * (a[1] - b[1])) / d
    uy = (a2 * (c[0] - b[0]) + b2 * (a[0] - c[0]) + c2 * (b[0] - a[0])) / d
    return ux, uy, (a[0] - ux) ** 2 + (a[1] - uy) ** 2


def in_circumcircle(point: np.ndarray, circle: Tuple[float, float, float]) -> bool:
    """Strictly inside, with a small relative tolerance."""
    ux, uy, r2 = circle
    if r2 == float("inf"):
        return True
    d2 = (point[0] - ux) ** 2 + (point[1] - uy) ** 2
    return d2 < r2 * (1.0 - 1e-12)


def triangulate(points: np.ndarray) -> List[Triangle]:
    """
    Delaunay triangles of a 2D point set.

    Points are inserted one at a time into a super-triangle enclosing the
    bounding box; every triangle whose circumcircle holds the new point is
    removed and the hole is re-fanned from the point. Triangles touching a
    super-triangle vertex are dropped at the end.

    Args:
        points: (N, 2) coordinates

    Returns:
        List of (i, j, k) index triples into points

    Raises:
        DegenerateGeometryError: fewer than 3 points or a zero-extent bounding box
    """
    points = np.asarray(points, dtype=np.float64)
    n = len(points)
    if n < 3:
        raise DegenerateGeometryError(f"Triangulation needs at least 3 points, got {n}")

    min_x, min_y = points.min(axis=0)
    max_x, max_y = points.max(axis=0)
    delta_max = max(max_x - min_x, max_y - min_y)
    if delta_max <= 0:
        raise DegenerateGeometryError("Points have a zero-extent bounding box")

    mid_x = (min_x + max_x) / 2.0
    mid_y = (min_y + max_y) / 2.0
    margin = SUPER_TRIANGLE_MARGIN * delta_max
    super_vertices = np.array([
        [mid_x - margin, mid_y - delta_max],
        [mid_x, mid_y + margin],
        [mid_x + margin, mid_y - delta_max],
    ])
    vertices = np.vstack([points, super_vertices])

    def make(i: int, j: int, k: int):
        return (i, j, k), circumcircle(vertices[i], vertices[j], vertices[k])

    triangles = [make(n, n + 1, n + 2)]

    for index in range(n):
        point = vertices[index]
        bad = []
        good = []
        for triangle in triangles:
            (bad if in_circumcircle(point, triangle[1]) else good).append(triangle)

        edges = Counter()
        for (i, j, k), _ in bad:
            for edge in ((i, j), (j, k), (k, i)):
                edges[tuple(sorted(edge))] += 1

        triangles = good
        for (i, j, k), _ in bad:
            for u, v in ((i, j), (j, k), (k, i)):
                if edges[tuple(sorted((u, v)))] == 1:
                    triangles.append(make(u, v, index))

    result = [tri for tri, _ in triangles if max(tri) < n]
    logger.debug("Triangulated", points=n, triangles=len(result))
    return result


def unique_edges(triangles: List[Triangle]) -> List[Tuple[int, int]]:
    """Sorted undirected edges shared by a triangle set."""
    edges = set()
    for i, j, k in triangles:
        for u, v in ((i, j), (j, k), (k, i)):
            edges.add((min(u, v), max(u, v)))
    return sorted(edges)
