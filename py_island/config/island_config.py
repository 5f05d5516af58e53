"""
Generation parameters for an island.

IslandConfig carries the options a host lets users adjust. The constants
the generator historically hard-coded live in GenerationTuning so they can
be overridden without changing code.
"""

from typing import Optional

from pydantic import BaseModel, Field


class GenerationTuning(BaseModel):
    """Fixed generation constants, exposed as defaults."""

    # Contours
    ring_irregularity: float = Field(default=0.25, ge=0, description="Radial noise on the inner rock ring")
    shoreline_irregularity: float = Field(default=0.5, ge=0, description="Noise on the shoreline offset")
    density_base_count: float = Field(default=75, gt=0, description="Rocks on a ring of density_base_radius")
    density_base_radius: float = Field(default=20, gt=0, description="Reference radius for the density law")
    density_power: float = Field(default=1.0, gt=0, description="Exponent of the density law")
    small_rock_percentile: float = Field(default=0.4, ge=0, le=1, description="Volume split between small and large rocks")
    contour_resolution: int = Field(default=128, ge=3, description="Samples on the rock-ring spline")
    boundary_resolution: int = Field(default=256, ge=3, description="Samples on every mesh boundary curve")

    # Tessellation
    sand_ring_count: int = Field(default=60, ge=1, description="Concentric rings of the sand surface")
    ground_cover_ring_count: int = Field(default=32, ge=1, description="Rings across the ground-cover band")
    texture_scale: float = Field(default=20.0, gt=0, description="World units per texture repeat")

    # Foliage
    foliage_scale_jitter: float = Field(default=0.2, ge=0, lt=1, description="Uniform scale variation (+/-)")
    foliage_y_offset: float = Field(default=0.02, description="Lift of foliage above the surface")

    # Paths
    node_retry_factor: int = Field(default=100, ge=1, description="Scatter attempts per requested node")
    path_step_factor: float = Field(default=1.5, gt=0, description="Trace step as a multiple of path width")
    path_point_tolerance: float = Field(default=0.001, ge=0, description="Squared distance for a new path point")
    path_y_offset: float = Field(default=0.01, description="Lift of path ribbons above the surface")

    # Water
    lake_attempts: int = Field(default=100, ge=1, description="Placement attempts per lake")
    lake_segments: int = Field(default=64, ge=3, description="Segments of a lake surface disc")
    river_step_length: float = Field(default=1.0, gt=0, description="Descent walk step length")
    river_max_steps: int = Field(default=200, ge=1, description="Descent walk step budget")
    river_min_start_height: float = Field(default=1.0, description="Minimum height of a river source")
    river_arc_degrees: float = Field(default=60.0, gt=0, le=180, description="Half-angle of the forward sampling arc")
    river_arc_samples: int = Field(default=3, ge=1, description="Samples on each side of the forward direction")
    riverbed_width_factor: float = Field(default=1.2, gt=0, description="Riverbed width relative to water width")


class IslandConfig(BaseModel):
    """User-adjustable island generation options."""

    # Island shape
    island_radius: float = Field(default=20.0, gt=0, description="Base island radius")
    shoreline_offset: float = Field(default=5.0, ge=0, description="Distance from rock ring to shoreline")
    shoreline_height: float = Field(default=0.5, ge=0, description="Minimum shoreline height")
    base_height: float = Field(default=2.0, description="Base terrain height")
    noise_strength: float = Field(default=1.0, ge=0, description="Terrain height noise amplitude")
    noise_scale: float = Field(default=0.1, ge=0, description="Terrain height noise frequency")
    surface_smoothing: int = Field(default=3, ge=0, description="Moving-average half-window on boundary heights")
    rock_height_scale: float = Field(default=1.0, gt=0, description="Vertical scale of placed rocks")

    # Foliage
    foliage_band_width: float = Field(default=5.0, ge=0, description="Width of the foliage band inside the cliff edge")
    foliage_density: float = Field(default=10.0, ge=0, description="Instances per 100 square units")
    foliage_max_count: Optional[int] = Field(default=None, ge=0, description="Hard cap on foliage instances")
    foliage_max_slope: float = Field(default=30.0, ge=0, le=90, description="Steepest face that takes foliage, degrees")
    foliage_scale: float = Field(default=1.0, gt=0, description="Base foliage scale")

    # Paths
    paths_enabled: bool = Field(default=True, description="Generate the path network")
    path_node_count: int = Field(default=12, ge=0, description="Path graph nodes to scatter")
    path_loop_percentage: float = Field(default=20, ge=0, le=100, description="Percent of cycle edges added back")
    path_width: float = Field(default=0.8, gt=0, description="Path ribbon width")

    # Water
    water_enabled: bool = Field(default=True, description="Generate lakes and rivers")
    lake_count: int = Field(default=1, ge=0, description="Lakes to place")
    lake_radius: float = Field(default=3.0, gt=0, description="Lake radius")
    lake_depth: float = Field(default=1.0, ge=0, description="Lake depression depth")
    river_count: int = Field(default=2, ge=0, description="Rivers to trace")
    river_width: float = Field(default=0.6, gt=0, description="River water width")

    tuning: GenerationTuning = Field(default_factory=GenerationTuning)
