"""
Core island generation modules.
"""

from .alea_prng import AleaPRNG
from .contours import ContourSet, FoliagePrototype, PlacedObject, RockPrototype, build_contours
from .diagnostics import GenerationDiagnostics
from .geometry import DegenerateGeometryError
from .height_field import SurfaceSample, TerrainHeightField
from .hydrology import Lake, RiverPath, WaterFeatures
from .noise import ImprovedNoise, TerrainNoise, generate_noise
from .paths import PathNetwork, Ribbon
from .pipeline import IslandBundle, generate_island
from .placement import PlacementOptions, PlacementResult, place_instances
from .session import GenerationInProgressError, GenerationOutcome, IslandSession
from .tessellation import TerrainSurface, build_terrain

__all__ = [
    'AleaPRNG',
    'ContourSet',
    'DegenerateGeometryError',
    'FoliagePrototype',
    'GenerationDiagnostics',
    'GenerationInProgressError',
    'GenerationOutcome',
    'ImprovedNoise',
    'IslandBundle',
    'IslandSession',
    'Lake',
    'PathNetwork',
    'PlacedObject',
    'PlacementOptions',
    'PlacementResult',
    'Ribbon',
    'RiverPath',
    'RockPrototype',
    'SurfaceSample',
    'TerrainHeightField',
    'TerrainNoise',
    'TerrainSurface',
    'WaterFeatures',
    'build_contours',
    'build_terrain',
    'generate_island',
    'generate_noise',
    'place_instances',
]
