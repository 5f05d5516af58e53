"""
Hydrology for the island surface.

This module implements:
- Lake placement inside the sand region with bounded retries
- Flat lake surface discs at half the depression depth
- River tracing by steepest descent over the terrain height field
- Riverbed and water ribbons that also block path edges
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
import structlog

from .alea_prng import AleaPRNG
from .diagnostics import DEGENERATE_GEOMETRY, EXHAUSTED_RETRY, GenerationDiagnostics
from .geometry import UP, DegenerateGeometryError, point_in_polygon, polygon_bounds, rotate_about_up
from .height_field import TerrainHeightField
from .paths import Ribbon, build_ribbon

logger = structlog.get_logger()

# River descent termination reasons
STOP_NO_SAMPLE = "no_forward_sample"
STOP_LOCAL_MINIMUM = "local_minimum"
STOP_LAKE = "lake"
STOP_STEP_BUDGET = "step_budget"

RIVERBED_Y_OFFSET = 0.01
RIVER_WATER_Y_OFFSET = 0.02


@dataclass
class Lake:
    """A circular depression and its water surface."""
    center: Tuple[float, float]  # (x, z)
    radius: float
    depth: float
    terrain_height: float  # height at the center before the depression
    water_level: float

    @property
    def center_x(self) -> float:
        return self.center[0]

    @property
    def center_z(self) -> float:
        return self.center[1]

    def contains(self, x: float, z: float) -> bool:
        return math.hypot(x - self.center_x, z - self.center_z) < self.radius


@dataclass
class LakeMesh:
    """Flat water disc for one lake."""
    positions: np.ndarray
    normals: np.ndarray
    indices: np.ndarray


@dataclass
class RiverPath:
    """Descent polyline and why the walk ended."""
    points: np.ndarray
    normals: np.ndarray
    stop_reason: str
    bed: Optional[Ribbon] = None
    water: Optional[Ribbon] = None

    @property
    def length(self) -> float:
        if len(self.points) < 2:
            return 0.0
        return float(np.linalg.norm(np.diff(self.points, axis=0), axis=1).sum())


@dataclass
class WaterFeatures:
    """Lakes and rivers of one island."""
    lakes: List[Lake] = field(default_factory=list)
    lake_meshes: List[LakeMesh] = field(default_factory=list)
    rivers: List[RiverPath] = field(default_factory=list)

    @property
    def obstacles(self) -> List[Ribbon]:
        """River ribbons that path edges must not cross."""
        ribbons = []
        for river in self.rivers:
            ribbons.extend(r for r in (river.bed, river.water) if r is not None)
        return ribbons


def water_level(terrain_height: float, depth: float) -> float:
    """Lakes fill to half their depression depth."""
    return terrain_height - depth + depth * 0.5


def place_lakes(polygon: np.ndarray, height_field: TerrainHeightField, count: int,
                radius: float, depth: float, attempts: int,
                prng: AleaPRNG) -> Tuple[List[Lake], int]:
    """
    Place up to `count` lakes inside a polygon.

    The radius is clamped to half the polygon's bounding box so the disc
    always fits; centers are drawn from the box shrunk by the radius and
    must lie inside the polygon on queryable terrain.

    Returns:
        Tuple of (lakes, number of lakes skipped after exhausting attempts)

    Raises:
        DegenerateGeometryError: the polygon has no room for any lake
    """
    min_x, min_z, max_x, max_z = polygon_bounds(polygon)
    radius = min(radius, (max_x - min_x) / 2.0, (max_z - min_z) / 2.0)
    if radius <= 0:
        raise DegenerateGeometryError("Lake region has no area")

    lakes = []
    skipped = 0
    for _ in range(count):
        lake = None
        for _ in range(attempts):
            x = prng.uniform(min_x + radius, max_x - radius)
            z = prng.uniform(min_z + radius, max_z - radius)
            if not point_in_polygon(x, z, polygon):
                continue
            sample = height_field.query(x, z)
            if sample is None:
                continue
            lake = Lake(center=(x, z), radius=radius, depth=depth,
                        terrain_height=sample.height,
                        water_level=water_level(sample.height, depth))
            break

        if lake is None:
            skipped += 1
        else:
            lakes.append(lake)

    return lakes, skipped


def build_lake_mesh(lake: Lake, segments: int) -> LakeMesh:
    """Disc at the lake's water level, center vertex first."""
    angles = np.arange(segments) / segments * 2.0 * math.pi
    ring = np.stack([
        lake.center_x + np.cos(angles) * lake.radius,
        np.full(segments, lake.water_level),
        lake.center_z + np.sin(angles) * lake.radius,
    ], axis=1)
    positions = np.vstack([[lake.center_x, lake.water_level, lake.center_z], ring])

    s = np.arange(segments)
    indices = np.stack([np.zeros(segments, dtype=np.int64), 1 + (s + 1) % segments, 1 + s], axis=1)
    normals = np.tile(UP, (segments + 1, 1))
    return LakeMesh(positions=positions, normals=normals, indices=indices)


def trace_river(start: np.ndarray, direction: np.ndarray, height_field: TerrainHeightField,
                lakes: Sequence[Lake], step_length: float, max_steps: int,
                arc_degrees: float = 60.0, arc_samples: int = 3) -> RiverPath:
    """
    Steepest-descent walk from a start point.

    Each step samples the terrain at angles j/arc_samples * arc_degrees,
    j in -arc_samples..arc_samples, about the current direction and moves
    to the lowest sample. The walk ends when no sample hits terrain, when
    the lowest sample is not below the current point, when it enters a
    lake below its water level, or when the step budget runs out.

    Args:
        start: Surface point [x, y, z] to start from
        direction: Initial heading; only x and z are used
        height_field: Terrain queries
        lakes: Lakes that terminate the walk

    Returns:
        RiverPath with the visited surface points
    """
    current = height_field.query(float(start[0]), float(start[2]))
    if current is None:
        return RiverPath(points=np.zeros((0, 3)), normals=np.zeros((0, 3)), stop_reason=STOP_NO_SAMPLE)

    heading = np.array([direction[0], 0.0, direction[2]], dtype=np.float64)
    heading /= max(np.linalg.norm(heading), 1e-12)
    arc = math.radians(arc_degrees)

    points = [current.point]
    normals = [current.normal]
    stop_reason = STOP_STEP_BUDGET

    for _ in range(max_steps):
        best = None
        for j in range(-arc_samples, arc_samples + 1):
            candidate_direction = rotate_about_up(heading, j / arc_samples * arc)
            x = current.point[0] + candidate_direction[0] * step_length
            z = current.point[2] + candidate_direction[2] * step_length
            sample = height_field.query(x, z)
            if sample is not None and (best is None or sample.height < best.height):
                best = sample

        if best is None:
            stop_reason = STOP_NO_SAMPLE
            break
        if best.height >= current.height:
            stop_reason = STOP_LOCAL_MINIMUM
            break

        move = best.point - current.point
        heading = np.array([move[0], 0.0, move[2]])
        heading /= max(np.linalg.norm(heading), 1e-12)
        current = best
        points.append(current.point)
        normals.append(current.normal)

        if any(lake.contains(current.point[0], current.point[2]) and current.height < lake.water_level
               for lake in lakes):
            stop_reason = STOP_LAKE
            break

    return RiverPath(points=np.array(points), normals=np.array(normals), stop_reason=stop_reason)


def river_start_candidates(vertices: np.ndarray, min_height: float) -> np.ndarray:
    """Vertices high enough to source a river."""
    vertices = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    return vertices[vertices[:, 1] > min_height]


def trace_rivers(candidates: np.ndarray, height_field: TerrainHeightField, lakes: Sequence[Lake],
                 config, prng: AleaPRNG,
                 diagnostics: Optional[GenerationDiagnostics] = None) -> List[RiverPath]:
    """
    Trace `config.river_count` rivers from random start candidates.

    Rivers that never leave their start point are skipped. Each kept river
    gets a riverbed ribbon and a narrower water ribbon above it.
    """
    tuning = config.tuning
    diagnostics = diagnostics if diagnostics is not None else GenerationDiagnostics()
    rivers = []

    if config.river_count > 0 and len(candidates) == 0:
        diagnostics.record("rivers", DEGENERATE_GEOMETRY, "No terrain high enough for a river source",
                           min_height=tuning.river_min_start_height)
        return rivers

    for index in range(config.river_count):
        start = candidates[int(prng.random() * len(candidates))]
        angle = prng.angle()
        direction = np.array([math.cos(angle), 0.0, math.sin(angle)])

        river = trace_river(start, direction, height_field, lakes, tuning.river_step_length,
                            tuning.river_max_steps, tuning.river_arc_degrees, tuning.river_arc_samples)
        if len(river.points) < 2:
            diagnostics.record("rivers", DEGENERATE_GEOMETRY, "River did not descend",
                               river=index, stop_reason=river.stop_reason)
            continue

        river.bed = build_ribbon(river.points, river.normals,
                                 config.river_width * tuning.riverbed_width_factor, RIVERBED_Y_OFFSET)
        river.water = build_ribbon(river.points, river.normals, config.river_width, RIVER_WATER_Y_OFFSET)
        rivers.append(river)

    logger.info("Rivers traced", requested=config.river_count, traced=len(rivers),
                stops=[r.stop_reason for r in rivers])
    return rivers


def generate_lakes(polygon: np.ndarray, height_field: TerrainHeightField, config, prng: AleaPRNG,
                   diagnostics: Optional[GenerationDiagnostics] = None) -> WaterFeatures:
    """Place the configured lakes and build their water discs."""
    tuning = config.tuning
    diagnostics = diagnostics if diagnostics is not None else GenerationDiagnostics()
    water = WaterFeatures()
    if config.lake_count <= 0:
        return water

    try:
        lakes, skipped = place_lakes(polygon, height_field, config.lake_count, config.lake_radius,
                                     config.lake_depth, tuning.lake_attempts, prng)
    except DegenerateGeometryError as e:
        diagnostics.record("lakes", DEGENERATE_GEOMETRY, "Lake region is degenerate", error=str(e))
        return water

    if skipped:
        diagnostics.record("lakes", EXHAUSTED_RETRY, "Lakes skipped after exhausting attempts",
                           skipped=skipped, attempts=tuning.lake_attempts)

    water.lakes = lakes
    water.lake_meshes = [build_lake_mesh(lake, tuning.lake_segments) for lake in lakes]
    logger.info("Lakes placed", placed=len(lakes), skipped=skipped)
    return water
