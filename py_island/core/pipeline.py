"""
Island generation pipeline.

generate_island() is a pure function from (configuration, source
prototypes, seed) to an IslandBundle. The host decides what to do with
the bundle; nothing here keeps state between passes.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import structlog

from ..config.island_config import IslandConfig
from ..utils.random import create_prng
from .contours import ContourSet, FoliagePrototype, PlacedObject, RockPrototype, build_contours
from .diagnostics import INPUT_EMPTY, GenerationDiagnostics
from .height_field import TerrainHeightField
from .hydrology import WaterFeatures, generate_lakes, river_start_candidates, trace_rivers
from .noise import TerrainNoise
from .paths import PathNetwork, generate_paths
from .placement import PlacementOptions, PlacementResult, place_instances
from .tessellation import GROUND_COVER_MATERIAL, TerrainSurface, apply_lakes, build_terrain

logger = structlog.get_logger()

Checkpoint = Callable[[str], None]


@dataclass
class IslandBundle:
    """Everything one generation pass produces."""
    seed: str
    config: IslandConfig
    contours: Optional[ContourSet] = None
    terrain: Optional[TerrainSurface] = None
    height_field: Optional[TerrainHeightField] = None
    rocks: Dict[str, List[PlacedObject]] = field(default_factory=dict)
    foliage: PlacementResult = field(default_factory=PlacementResult)
    water: WaterFeatures = field(default_factory=WaterFeatures)
    paths: Optional[PathNetwork] = None
    diagnostics: GenerationDiagnostics = field(default_factory=GenerationDiagnostics)
    duration_seconds: float = 0.0

    @property
    def is_empty(self) -> bool:
        return self.terrain is None

    def summary(self) -> Dict[str, Any]:
        """Counts describing the bundle, for hosts and logs."""
        terrain = self.terrain
        return {
            "seed": self.seed,
            "empty": self.is_empty,
            "terrain": {
                "vertices": terrain.vertex_count if terrain else 0,
                "faces": terrain.face_count if terrain else 0,
                "groups": [
                    {"material": g.material, "first_face": g.first_face, "face_count": g.face_count}
                    for g in terrain.groups
                ] if terrain else [],
            },
            "contours": {
                "inner_ring": len(self.contours.inner_ring.points) if self.contours else 0,
                "outer_ring": len(self.contours.outer_ring.points) if self.contours else 0,
                "boundary_points": len(self.contours.cliff_edge) if self.contours else 0,
            },
            "rocks": {name: len(group) for name, group in self.rocks.items()},
            "foliage": {name: len(group) for name, group in self.foliage.instances.items()},
            "placement_stats": self.foliage.stats.to_dict(),
            "lakes": [
                {"center": list(lake.center), "radius": lake.radius, "water_level": lake.water_level}
                for lake in self.water.lakes
            ],
            "rivers": [
                {"points": len(river.points), "length": river.length, "stop_reason": river.stop_reason}
                for river in self.water.rivers
            ],
            "paths": {
                "nodes": len(self.paths.nodes) if self.paths else 0,
                "tree_edges": len(self.paths.mst) if self.paths else 0,
                "loop_edges": len(self.paths.loops) if self.paths else 0,
                "ribbons": len(self.paths.ribbons) if self.paths else 0,
            },
            "diagnostics": self.diagnostics.to_dict(),
            "duration_seconds": round(self.duration_seconds, 4),
        }


def _group_rocks(rocks: Sequence[PlacedObject]) -> Dict[str, List[PlacedObject]]:
    grouped: Dict[str, List[PlacedObject]] = {}
    for rock in rocks:
        grouped.setdefault(rock.prototype, []).append(rock)
    return grouped


def _prototype_name(prototype: Union[FoliagePrototype, str]) -> str:
    return prototype.name if isinstance(prototype, FoliagePrototype) else str(prototype)


def generate_island(config: IslandConfig,
                    rock_prototypes: Sequence[RockPrototype],
                    foliage_prototypes: Sequence[Union[FoliagePrototype, str]] = (),
                    seed: Optional[Union[str, int]] = None,
                    checkpoint: Optional[Checkpoint] = None,
                    terrain_noise: Optional[TerrainNoise] = None) -> IslandBundle:
    """
    Run one full generation pass.

    Stages run in order: contours, terrain, lakes, foliage, rivers, paths.
    Feature stages record skipped work in the bundle's diagnostics rather
    than failing the pass.

    Args:
        config: Island options
        rock_prototypes: Rock source assets; none yields an empty bundle
        foliage_prototypes: Foliage source assets or names
        seed: Seed for every random draw of the pass
        checkpoint: Called with a stage name at yield points
        terrain_noise: Height noise override

    Returns:
        IslandBundle
    """
    started = time.perf_counter()
    prng = create_prng(seed)
    bundle = IslandBundle(seed=prng.seed, config=config)
    diagnostics = bundle.diagnostics

    def reach(stage: str):
        if checkpoint is not None:
            checkpoint(stage)

    if not rock_prototypes:
        diagnostics.record("contours", INPUT_EMPTY, "No rock prototypes supplied")
        bundle.duration_seconds = time.perf_counter() - started
        return bundle

    logger.info("Generating island", seed=bundle.seed, radius=config.island_radius,
                rock_prototypes=len(rock_prototypes), foliage_prototypes=len(foliage_prototypes))

    terrain_noise = terrain_noise or TerrainNoise(config.base_height, config.noise_strength,
                                                  config.noise_scale)

    contours = build_contours(rock_prototypes, config, terrain_noise, prng)
    bundle.contours = contours
    bundle.rocks = _group_rocks(contours.rocks)

    terrain = build_terrain(contours, config, terrain_noise)
    height_field = TerrainHeightField.from_surface(terrain)

    has_band = config.foliage_band_width > 0
    sand_polygon = contours.foliage_boundary if has_band else contours.cliff_edge

    if config.water_enabled:
        bundle.water = generate_lakes(sand_polygon, height_field, config, prng, diagnostics)
        if bundle.water.lakes:
            terrain = apply_lakes(terrain, bundle.water.lakes)
            height_field = TerrainHeightField.from_surface(terrain)

    bundle.terrain = terrain
    bundle.height_field = height_field
    reach("terrain")

    tuning = config.tuning
    foliage_names = [_prototype_name(p) for p in foliage_prototypes]
    if not foliage_names:
        diagnostics.record("foliage", INPUT_EMPTY, "No foliage prototypes supplied")
    reach("placement")
    bundle.foliage = place_instances(
        terrain.positions, terrain.indices, foliage_names,
        PlacementOptions(
            max_slope_degrees=config.foliage_max_slope,
            density=config.foliage_density,
            max_count=config.foliage_max_count,
            inclusion=contours.cliff_edge,
            exclusion=contours.foliage_boundary if has_band else None,
            base_scale=config.foliage_scale,
            scale_jitter=tuning.foliage_scale_jitter,
            y_offset=tuning.foliage_y_offset,
        ),
        prng,
    )

    if config.water_enabled and config.river_count > 0:
        if has_band:
            sources = terrain.group_vertices(GROUND_COVER_MATERIAL)
        else:
            sources = terrain.positions[terrain.surface_mask]
        candidates = river_start_candidates(sources, tuning.river_min_start_height)
        bundle.water.rivers = trace_rivers(candidates, height_field, bundle.water.lakes,
                                           config, prng, diagnostics)

    if config.paths_enabled and config.path_node_count > 0:
        bundle.paths = generate_paths(sand_polygon, height_field, config, prng,
                                      bundle.water.obstacles, diagnostics)

    bundle.duration_seconds = time.perf_counter() - started
    logger.info("Island generated",
                seed=bundle.seed,
                vertices=terrain.vertex_count,
                foliage=bundle.foliage.count,
                lakes=len(bundle.water.lakes),
                rivers=len(bundle.water.rivers),
                paths=len(bundle.paths.ribbons) if bundle.paths else 0,
                diagnostics=len(diagnostics),
                duration=round(bundle.duration_seconds, 3))
    return bundle

