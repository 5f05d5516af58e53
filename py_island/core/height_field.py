"""
Terrain height-field queries over a tessellated surface.

A query projects a point straight down onto the highest upward-facing
triangle beneath it, the same answer a downward raycast would give,
without any rendering or physics engine.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import structlog
from scipy.spatial import cKDTree

from .geometry import face_normals

logger = structlog.get_logger()


@dataclass
class SurfaceSample:
    """Result of a height-field query."""
    height: float
    normal: np.ndarray
    point: np.ndarray
    face_index: int


class TerrainHeightField:
    """
    Point-in-triangle height lookup over the upward-facing faces of a mesh.

    Face centroids are indexed in a KD-tree on XZ; a query only tests faces
    whose centroid lies within the largest centroid-to-corner distance.
    """

    def __init__(self, positions: np.ndarray, faces: np.ndarray, epsilon: float = 1e-9):
        self.positions = np.asarray(positions, dtype=np.float64)
        self.epsilon = epsilon

        normals, areas = face_normals(self.positions, faces)
        upward = (normals[:, 1] > 1e-6) & (areas > 1e-12)
        self.face_indices = np.nonzero(upward)[0]
        self.faces = np.asarray(faces)[self.face_indices]
        self.normals = normals[self.face_indices]

        self._a = self.positions[self.faces[:, 0]]
        self._b = self.positions[self.faces[:, 1]]
        self._c = self.positions[self.faces[:, 2]]

        if len(self.faces) == 0:
            self._tree = None
            self._reach = 0.0
            logger.warning("Height field has no upward faces")
            return

        centroids = (self._a + self._b + self._c)[:, [0, 2]] / 3.0
        corner_distances = np.stack([
            np.linalg.norm(corner[:, [0, 2]] - centroids, axis=1)
            for corner in (self._a, self._b, self._c)
        ], axis=1)
        self._reach = float(corner_distances.max()) + 1e-6
        self._tree = cKDTree(centroids)

    @classmethod
    def from_surface(cls, surface) -> "TerrainHeightField":
        return cls(surface.positions, surface.indices)

    def query(self, x: float, z: float) -> Optional[SurfaceSample]:
        """
        Height and face normal of the terrain at (x, z).

        Returns:
            SurfaceSample, or None when no terrain lies under the point
        """
        if self._tree is None:
            return None

        candidates = self._tree.query_ball_point([x, z], self._reach)
        if not candidates:
            return None
        candidates = np.asarray(candidates, dtype=np.int64)

        a = self._a[candidates]
        b = self._b[candidates]
        c = self._c[candidates]

        v0x, v0z = b[:, 0] - a[:, 0], b[:, 2] - a[:, 2]
        v1x, v1z = c[:, 0] - a[:, 0], c[:, 2] - a[:, 2]
        v2x, v2z = x - a[:, 0], z - a[:, 2]
        denominator = v0x * v1z - v1x * v0z
        valid = np.abs(denominator) > 1e-15
        denominator = np.where(valid, denominator, 1.0)

        l1 = (v2x * v1z - v1x * v2z) / denominator
        l2 = (v0x * v2z - v2x * v0z) / denominator
        l0 = 1.0 - l1 - l2
        inside = valid & (l0 >= -self.epsilon) & (l1 >= -self.epsilon) & (l2 >= -self.epsilon)
        if not np.any(inside):
            return None

        heights = l0 * a[:, 1] + l1 * b[:, 1] + l2 * c[:, 1]
        heights = np.where(inside, heights, -np.inf)
        best = int(np.argmax(heights))
        height = float(heights[best])
        face = int(candidates[best])

        return SurfaceSample(
            height=height,
            normal=self.normals[face].copy(),
            point=np.array([x, height, z]),
            face_index=int(self.face_indices[face]),
        )

    def height(self, x: float, z: float) -> Optional[float]:
        sample = self.query(x, z)
        return None if sample is None else sample.height
