"""
Contour construction for the island boundary.

This module builds:
- the inner ring of large rocks around the base radius
- the outer ring of small rocks pushed out along the inner ring normals
- the shoreline, cliff edge and foliage-exclusion curves derived from them
"""

import math
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np
import structlog

from .alea_prng import AleaPRNG
from .geometry import (
    moving_average_heights,
    normalize,
    quaternion_from_axis_angle,
    compose_matrix,
    resample_closed_curve,
    UP,
)
from .noise import TerrainNoise, generate_noise

logger = structlog.get_logger()


@dataclass(frozen=True)
class RockPrototype:
    """A rock-like source asset, described by its bounding box."""
    name: str
    size: Tuple[float, float, float]
    min_y: float = 0.0  # bounding box bottom, used to sit the rock on y=0

    @property
    def volume(self) -> float:
        return self.size[0] * self.size[1] * self.size[2]


@dataclass(frozen=True)
class FoliagePrototype:
    """A placeable foliage asset reference."""
    name: str


@dataclass(frozen=True)
class PlacedObject:
    """A source asset placed in the world."""
    prototype: str
    position: Tuple[float, float, float]
    yaw: float
    scale: Tuple[float, float, float]
    size: Tuple[float, float, float]

    @property
    def matrix(self) -> np.ndarray:
        """4x4 world transform."""
        rotation = quaternion_from_axis_angle(UP, self.yaw)
        return compose_matrix(np.array(self.position), rotation, np.array(self.scale))

    @property
    def top(self) -> float:
        """World height of the bounding box top; placed objects rest on y=0."""
        return self.size[1] * self.scale[1]


@dataclass
class ContourPoint:
    """Point of the inner ring with its outward normal and ring angle."""
    position: np.ndarray
    normal: np.ndarray
    angle: float


@dataclass
class RockRing:
    """A ring of rocks and the contour points they sit on."""
    points: List[ContourPoint]
    rocks: List[PlacedObject] = field(default_factory=list)

    @property
    def positions(self) -> np.ndarray:
        if not self.points:
            return np.zeros((0, 3))
        return np.array([p.position for p in self.points])


@dataclass
class ContourSet:
    """All boundary curves of one island."""
    inner_ring: RockRing
    outer_ring: RockRing
    shoreline: np.ndarray         # outer shoreline curve, (N, 3)
    cliff_edge: np.ndarray        # boundary of the terrain surface, (N, 3)
    foliage_boundary: np.ndarray  # foliage-exclusion (sand) polygon, (N, 3)
    center: np.ndarray            # island center [x, y, z]
    max_surface_height: float = 0.0

    @property
    def rocks(self) -> List[PlacedObject]:
        return self.inner_ring.rocks + self.outer_ring.rocks


def object_count(radius: float, base_count: float = 75, base_radius: float = 20,
                 power: float = 1.0) -> int:
    """
    Number of objects on a ring of the given radius.

    numObjects = max(3, round((base_count / base_radius**power) * radius**power)),
    so the base ring of 20 holds exactly 75 objects and small rings never
    degenerate below a triangle.
    """
    coefficient = base_count / math.pow(base_radius, power)
    return max(3, int(math.floor(coefficient * math.pow(max(radius, 0.0), power) + 0.5)))


def partition_rock_prototypes(prototypes: Sequence[RockPrototype],
                              small_percentile: float = 0.4
                              ) -> Tuple[List[RockPrototype], List[RockPrototype]]:
    """
    Split prototypes into small and large sets by bounding-box volume.

    Returns:
        Tuple of (small, large); large falls back to small when empty
    """
    ordered = sorted(prototypes, key=lambda p: p.volume)
    if not ordered:
        return [], []

    split = max(1, int(math.floor(len(ordered) * small_percentile)))
    if len(ordered) < 2:
        split = 1

    small = ordered[:split]
    large = ordered[split:]
    if not large and small:
        large = small
    return small, large


def _ring_slots(prototypes: Sequence[RockPrototype], count: int,
                prng: AleaPRNG) -> List[RockPrototype]:
    """Prototype per ring slot, reused modulo and shuffled."""
    if not prototypes:
        return []
    slots = [prototypes[i % len(prototypes)] for i in range(count)]
    return list(prng.shuffle(slots))


def _place_rock(prototype: RockPrototype, x: float, z: float,
                height_scale: float) -> PlacedObject:
    # Tangential orientation: the rock's local x axis follows the ring
    yaw = -math.atan2(z, x) + math.pi / 2
    return PlacedObject(
        prototype=prototype.name,
        position=(x, -prototype.min_y * height_scale, z),
        yaw=yaw,
        scale=(1.0, height_scale, 1.0),
        size=prototype.size,
    )


def build_inner_ring(prototypes: Sequence[RockPrototype], radius: float, count: int,
                     irregularity: float, height_scale: float,
                     prng: AleaPRNG) -> RockRing:
    """
    Place `count` large rocks at equal angles around a noisy radius.

    Each angle's radius is radius * (1 + noise[i] * irregularity). With no
    prototypes the contour points are still produced, without rocks.
    """
    slots = _ring_slots(prototypes, count, prng)
    noise = generate_noise(count, prng.random(), prng)

    points = []
    rocks = []
    for i in range(count):
        angle = i / count * 2.0 * math.pi
        noisy_radius = radius * (1.0 + noise[i] * irregularity)
        x = math.cos(angle) * noisy_radius
        z = math.sin(angle) * noisy_radius

        position = np.array([x, 0.0, z])
        points.append(ContourPoint(position=position, normal=normalize(position, fallback=np.array([1.0, 0.0, 0.0])),
                                   angle=angle))
        if slots:
            rocks.append(_place_rock(slots[i], x, z, height_scale))

    return RockRing(points=points, rocks=rocks)


def interpolate_ring(ring: Sequence[ContourPoint], progress: float) -> Tuple[np.ndarray, np.ndarray]:
    """Position and unit normal at parametric progress in [0, 1) around a ring."""
    count = len(ring)
    index_float = progress * count
    index1 = int(math.floor(index_float)) % count
    index2 = (index1 + 1) % count
    t = index_float - math.floor(index_float)

    first = ring[index1]
    second = ring[index2]
    position = first.position + (second.position - first.position) * t
    normal = normalize(first.normal + (second.normal - first.normal) * t, fallback=first.normal)
    return position, normal


def _interpolate_table(values: np.ndarray, progress: float) -> float:
    count = len(values)
    index_float = progress * count
    index1 = int(math.floor(index_float)) % count
    index2 = (index1 + 1) % count
    t = index_float - math.floor(index_float)
    return float(values[index1] + (values[index2] - values[index1]) * t)


def build_outer_ring(inner: RockRing, prototypes: Sequence[RockPrototype], count: int,
                     offset: float, irregularity: float, height_scale: float,
                     prng: AleaPRNG) -> Tuple[RockRing, np.ndarray]:
    """
    Place `count` small rocks outside the inner ring.

    Each slot interpolates position and normal between the two nearest inner
    ring points and is pushed out by offset * (1 + noise[i] * irregularity).

    Returns:
        Tuple of (outer ring, its noise table)
    """
    slots = _ring_slots(prototypes, count, prng)
    noise = generate_noise(count, prng.random() + math.pi, prng)

    points = []
    rocks = []
    for i in range(count):
        base_position, base_normal = interpolate_ring(inner.points, i / count)
        noisy_offset = offset * (1.0 + noise[i] * irregularity)
        position = base_position + base_normal * noisy_offset
        x, z = float(position[0]), float(position[2])

        points.append(ContourPoint(position=position, normal=base_normal, angle=math.atan2(z, x)))
        if slots:
            rocks.append(_place_rock(slots[i], x, z, height_scale))

    return RockRing(points=points, rocks=rocks), noise


def rock_top_heights(points_xz: np.ndarray, rocks: Sequence[PlacedObject]) -> np.ndarray:
    """
    Height of the highest rock footprint above each XZ point.

    Rock footprints are their bounding boxes rotated by yaw. Points outside
    every footprint get NaN.
    """
    points_xz = np.asarray(points_xz, dtype=np.float64).reshape(-1, 2)
    heights = np.full(len(points_xz), np.nan)
    for rock in rocks:
        dx = points_xz[:, 0] - rock.position[0]
        dz = points_xz[:, 1] - rock.position[2]
        c = math.cos(rock.yaw)
        s = math.sin(rock.yaw)
        local_x = c * dx - s * dz
        local_z = s * dx + c * dz
        inside = (np.abs(local_x) <= rock.size[0] * rock.scale[0] / 2) & \
                 (np.abs(local_z) <= rock.size[2] * rock.scale[2] / 2)
        if np.any(inside):
            heights[inside] = np.fmax(heights[inside], rock.top)
    return heights


def shoreline_heights(points_xz: np.ndarray, rocks: Sequence[PlacedObject],
                      minimum_height: float) -> np.ndarray:
    """Rock top under each point, never below the shoreline minimum height."""
    tops = rock_top_heights(points_xz, rocks)
    return np.fmax(tops, minimum_height)


def build_shoreline(inner: RockRing, outer_noise: np.ndarray, rocks: Sequence[PlacedObject],
                    offset: float, irregularity: float, minimum_height: float,
                    sample_count: int, resolution: int) -> np.ndarray:
    """Smooth shoreline curve following the outer ring's offset noise."""
    samples = []
    for i in range(sample_count):
        progress = i / sample_count
        base_position, base_normal = interpolate_ring(inner.points, progress)
        noisy_offset = offset * (1.0 + _interpolate_table(outer_noise, progress) * irregularity)
        samples.append(base_position + base_normal * noisy_offset)

    samples = np.array(samples)
    samples[:, 1] = shoreline_heights(samples[:, [0, 2]], rocks, minimum_height)
    return resample_closed_curve(samples, resolution)


def build_foliage_boundary(boundary: np.ndarray, center: np.ndarray, band_width: float) -> np.ndarray:
    """
    Pull each boundary point radially toward the center by band_width.

    Distances clamp at zero so the polygon never crosses the center; heights
    blend toward the center height by the radial shrink factor.
    """
    center_xz = center[[0, 2]]
    offsets = boundary[:, [0, 2]] - center_xz
    distances = np.linalg.norm(offsets, axis=1)
    new_distances = np.maximum(0.0, distances - band_width)

    directions = np.zeros_like(offsets)
    nonzero = distances > 1e-4
    directions[nonzero] = offsets[nonzero] / distances[nonzero, None]
    shrink = np.where(nonzero, new_distances / np.where(nonzero, distances, 1.0), 0.0)

    result = np.empty_like(boundary)
    result[:, 0] = center_xz[0] + directions[:, 0] * new_distances
    result[:, 2] = center_xz[1] + directions[:, 1] * new_distances
    result[:, 1] = center[1] + (boundary[:, 1] - center[1]) * shrink
    return result


def build_contours(rock_prototypes: Sequence[RockPrototype], config, terrain_noise: TerrainNoise,
                   prng: AleaPRNG) -> ContourSet:
    """
    Build every boundary curve of the island.

    Args:
        rock_prototypes: Rock source assets (may be empty)
        config: IslandConfig
        terrain_noise: Height noise used for contour and center heights
        prng: Random source for this pass

    Returns:
        ContourSet with rock rings and smoothed curves
    """
    tuning = config.tuning
    small, large = partition_rock_prototypes(rock_prototypes, tuning.small_rock_percentile)

    inner_count = object_count(config.island_radius, tuning.density_base_count,
                               tuning.density_base_radius, tuning.density_power)
    inner = build_inner_ring(large, config.island_radius, inner_count,
                             tuning.ring_irregularity, config.rock_height_scale, prng)

    # Surface boundary: spline through the rock ring, noise heights, smoothing
    ring_curve = resample_closed_curve(inner.positions, tuning.contour_resolution)
    ring_curve[:, 1] = terrain_noise.heights(ring_curve[:, [0, 2]])
    smoothed = moving_average_heights(ring_curve, config.surface_smoothing)
    cliff_edge = resample_closed_curve(smoothed, tuning.boundary_resolution)

    outer_count = object_count(config.island_radius + config.shoreline_offset,
                               tuning.density_base_count, tuning.density_base_radius,
                               tuning.density_power)
    outer, outer_noise = build_outer_ring(inner, small, outer_count, config.shoreline_offset,
                                          tuning.shoreline_irregularity, config.rock_height_scale,
                                          prng)

    shoreline = build_shoreline(inner, outer_noise, inner.rocks + outer.rocks,
                                config.shoreline_offset, tuning.shoreline_irregularity,
                                config.shoreline_height, tuning.contour_resolution,
                                tuning.boundary_resolution)

    center_xz = smoothed[:, [0, 2]].mean(axis=0)
    center = np.array([center_xz[0], float(terrain_noise.height(center_xz[0], center_xz[1])),
                       center_xz[1]])

    foliage_boundary = build_foliage_boundary(cliff_edge, center, config.foliage_band_width)

    logger.info("Contours built",
                inner_rocks=len(inner.points), outer_rocks=len(outer.points),
                boundary_points=len(cliff_edge))

    return ContourSet(
        inner_ring=inner,
        outer_ring=outer,
        shoreline=shoreline,
        cliff_edge=cliff_edge,
        foliage_boundary=foliage_boundary,
        center=center,
        max_surface_height=float(max(0.0, cliff_edge[:, 1].max())),
    )
