"""
Area-weighted placement of instances on a triangulated surface.

Faces that are too steep, submerged, outside the inclusion polygon or
inside the exclusion polygon are rejected. The rest form a cumulative
area table from which faces are drawn in proportion to their area.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import structlog

from .alea_prng import AleaPRNG
from .geometry import (
    UP,
    compose_matrix,
    face_normals,
    points_in_polygon,
    quaternion_from_axis_angle,
    quaternion_from_unit_vectors,
    quaternion_multiply,
)

logger = structlog.get_logger()


@dataclass
class PlacementOptions:
    """Constraints and density for one placement pass."""
    max_slope_degrees: float = 30.0
    density: float = 10.0  # instances per 100 square units of valid area
    max_count: Optional[int] = None
    inclusion: Optional[np.ndarray] = None
    exclusion: Optional[np.ndarray] = None
    base_scale: float = 1.0
    scale_jitter: float = 0.2
    y_offset: float = 0.0


@dataclass
class PlacementStats:
    """Face rejection counts and totals of one placement pass."""
    total_faces: int = 0
    rejected_slope: int = 0
    rejected_submerged: int = 0
    rejected_outside: int = 0
    rejected_excluded: int = 0
    accepted_faces: int = 0
    valid_area: float = 0.0
    requested: int = 0
    placed: int = 0

    def to_dict(self) -> Dict[str, float]:
        return dict(self.__dict__)


@dataclass
class InstanceTransform:
    """World transform of one placed instance."""
    prototype: str
    position: np.ndarray
    rotation: np.ndarray  # quaternion [x, y, z, w]
    scale: float
    face_index: int
    pivot: np.ndarray     # sampled surface point before the y offset

    @property
    def matrix(self) -> np.ndarray:
        return compose_matrix(self.position, self.rotation, np.full(3, self.scale))


@dataclass
class PlacementResult:
    """Instances grouped by prototype, ready for instanced rendering."""
    instances: Dict[str, List[InstanceTransform]] = field(default_factory=dict)
    stats: PlacementStats = field(default_factory=PlacementStats)

    @property
    def count(self) -> int:
        return sum(len(group) for group in self.instances.values())

    def all_instances(self) -> List[InstanceTransform]:
        return [instance for group in self.instances.values() for instance in group]


def valid_face_mask(positions: np.ndarray, faces: np.ndarray, options: PlacementOptions,
                    stats: Optional[PlacementStats] = None) -> np.ndarray:
    """
    Faces that pass the slope, submersion, inclusion and exclusion tests.

    Tests run in that order; a face counts toward the first test it fails.
    """
    normals, _ = face_normals(positions, faces)
    corners = positions[faces]
    centroids_xz = corners.mean(axis=1)[:, [0, 2]]

    min_normal_y = math.cos(math.radians(options.max_slope_degrees))
    steep = normals[:, 1] < min_normal_y
    submerged = np.all(corners[:, :, 1] <= 0.0, axis=1)

    outside = np.zeros(len(faces), dtype=bool)
    if options.inclusion is not None:
        outside = ~points_in_polygon(centroids_xz, options.inclusion)

    excluded = np.zeros(len(faces), dtype=bool)
    if options.exclusion is not None:
        excluded = points_in_polygon(centroids_xz, options.exclusion)

    remaining = np.ones(len(faces), dtype=bool)
    counts = []
    for rejected in (steep, submerged, outside, excluded):
        hit = remaining & rejected
        counts.append(int(hit.sum()))
        remaining &= ~rejected

    if stats is not None:
        stats.total_faces = len(faces)
        stats.rejected_slope, stats.rejected_submerged, stats.rejected_outside, stats.rejected_excluded = counts
        stats.accepted_faces = int(remaining.sum())
    return remaining


def instance_count(valid_area: float, density: float, max_count: Optional[int] = None) -> int:
    """floor(valid_area / 100 * density), capped at max_count when given."""
    count = int(math.floor(valid_area / 100.0 * density))
    if max_count is not None:
        count = min(count, max_count)
    return max(count, 0)


def sample_point_in_triangle(a: np.ndarray, b: np.ndarray, c: np.ndarray, prng: AleaPRNG) -> np.ndarray:
    """Uniform point in a triangle; (u, v) beyond the diagonal fold back into it."""
    u = prng.random()
    v = prng.random()
    if u + v > 1.0:
        u = 1.0 - u
        v = 1.0 - v
    return a + (b - a) * u + (c - a) * v


def place_instances(positions: np.ndarray, faces: np.ndarray, prototypes: Sequence[str],
                    options: PlacementOptions, prng: AleaPRNG) -> PlacementResult:
    """
    Scatter instances over the valid faces of a surface.

    Args:
        positions: (N, 3) vertex positions
        faces: (M, 3) triangle indices
        prototypes: Asset names; one is chosen uniformly per instance
        options: Placement constraints and density
        prng: Random source

    Returns:
        PlacementResult; empty when nothing is placeable
    """
    positions = np.asarray(positions, dtype=np.float64)
    faces = np.asarray(faces, dtype=np.int64)
    result = PlacementResult()
    stats = result.stats

    if not prototypes:
        logger.info("Placement skipped, no prototypes")
        return result

    valid = valid_face_mask(positions, faces, options, stats)
    normals, areas = face_normals(positions, faces)
    valid_indices = np.nonzero(valid)[0]
    cumulative = np.cumsum(areas[valid_indices])
    stats.valid_area = float(cumulative[-1]) if len(cumulative) else 0.0
    stats.requested = instance_count(stats.valid_area, options.density, options.max_count)

    if stats.requested == 0 or stats.valid_area <= 0:
        logger.info("No instances to place", **stats.to_dict())
        return result

    for _ in range(stats.requested):
        target = prng.random() * stats.valid_area
        slot = min(int(np.searchsorted(cumulative, target, side="left")), len(valid_indices) - 1)
        face_index = int(valid_indices[slot])
        a, b, c = positions[faces[face_index]]
        point = sample_point_in_triangle(a, b, c, prng)

        align = quaternion_from_unit_vectors(UP, normals[face_index])
        yaw = quaternion_from_axis_angle(UP, prng.angle())
        rotation = quaternion_multiply(align, yaw)
        scale = options.base_scale * (1.0 + prng.uniform(-options.scale_jitter, options.scale_jitter))
        prototype = prng.choice(prototypes)

        position = point + np.array([0.0, options.y_offset, 0.0])
        result.instances.setdefault(prototype, []).append(InstanceTransform(
            prototype=prototype,
            position=position,
            rotation=rotation,
            scale=scale,
            face_index=face_index,
            pivot=point,
        ))

    stats.placed = result.count
    logger.info("Instances placed", placed=stats.placed, valid_area=round(stats.valid_area, 2),
                prototypes=len(result.instances))
    return result
