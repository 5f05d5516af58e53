"""
Surface tessellation for the island terrain.

The terrain is built from concentric rings of vertices:
- a sand surface fanning out from the island center to its boundary curve
- an optional ground-cover band between the foliage boundary and the cliff edge
- a vertical skirt from the outermost ring down to y=0 that closes the mesh

Both surfaces share their border ring positions exactly and are merged into
one indexed mesh with a material group per surface.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
import structlog

from .contours import rock_top_heights
from .geometry import face_normals, smoothstep, vertex_normals
from .noise import TerrainNoise

logger = structlog.get_logger()

SAND_MATERIAL = "sand"
GROUND_COVER_MATERIAL = "ground_cover"


@dataclass
class MeshData:
    """Positions and triangles of one surface before merging."""
    positions: np.ndarray     # (N, 3)
    faces: np.ndarray         # (M, 3) vertex indices
    surface_mask: np.ndarray  # (N,) False for skirt bottom vertices


@dataclass
class MaterialGroup:
    """A contiguous run of faces drawn with one material."""
    material: str
    first_face: int
    face_count: int
    vertex_start: int
    vertex_count: int


@dataclass
class TerrainSurface:
    """Indexed terrain mesh ready for rendering and height queries."""
    positions: np.ndarray
    indices: np.ndarray
    normals: np.ndarray
    uvs: np.ndarray
    uvs2: np.ndarray
    surface_mask: np.ndarray
    center: np.ndarray
    uv_radius: float
    texture_scale: float
    groups: List[MaterialGroup] = field(default_factory=list)

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def face_count(self) -> int:
        return len(self.indices)

    def group(self, material: str) -> Optional[MaterialGroup]:
        for group in self.groups:
            if group.material == material:
                return group
        return None

    def group_vertices(self, material: str) -> np.ndarray:
        """Vertex positions belonging to a material group."""
        group = self.group(material)
        if group is None:
            return np.zeros((0, 3))
        return self.positions[group.vertex_start:group.vertex_start + group.vertex_count]


def _strip_faces(inner_start: int, outer_start: int, count: int) -> np.ndarray:
    """Two triangles per segment between two rings of equal size."""
    s = np.arange(count)
    s_next = (s + 1) % count
    a, a_next = inner_start + s, inner_start + s_next
    b, b_next = outer_start + s, outer_start + s_next
    first = np.stack([b, a, a_next], axis=1)
    second = np.stack([b, a_next, b_next], axis=1)
    return np.stack([first, second], axis=1).reshape(-1, 3)


def _skirt(positions: np.ndarray, top_start: int, count: int) -> Tuple[np.ndarray, np.ndarray]:
    """Append a y=0 copy of the ring at top_start; returns (bottom vertices, faces)."""
    bottom = np.array(positions[top_start:top_start + count], copy=True)
    bottom[:, 1] = 0.0
    bottom_start = len(positions)

    s = np.arange(count)
    s_next = (s + 1) % count
    t, t_next = top_start + s, top_start + s_next
    b, b_next = bottom_start + s, bottom_start + s_next
    first = np.stack([t, t_next, b_next], axis=1)
    second = np.stack([t, b_next, b], axis=1)
    faces = np.stack([first, second], axis=1).reshape(-1, 3)
    return bottom, faces


def build_sand_surface(boundary: np.ndarray, center: np.ndarray, terrain_noise: TerrainNoise,
                       ring_count: int, skirt: bool = True) -> MeshData:
    """
    Fan of concentric rings from the center vertex out to the boundary curve.

    Ring r sits at t = (r + 1) / (ring_count + 1) eased as 1 - (1 - t)^2.
    Its height is the noise height blended toward the boundary height by
    the square of that easing, so the outermost interior ring already
    follows the boundary and the boundary ring itself matches it exactly.

    Args:
        boundary: (B, 3) closed boundary curve ordered counter-clockwise
        center: Island center [x, y, z]
        terrain_noise: Height noise for interior vertices
        ring_count: Number of interior rings
        skirt: Close the boundary down to y=0

    Returns:
        MeshData for the sand surface
    """
    boundary = np.asarray(boundary, dtype=np.float64)
    count = len(boundary)
    center_xz = center[[0, 2]]
    offsets = boundary[:, [0, 2]] - center_xz

    rings = [np.array([center], dtype=np.float64)]
    for r in range(ring_count):
        t = (r + 1) / (ring_count + 1)
        ring_lerp = 1.0 - (1.0 - t) ** 2
        blend = ring_lerp * ring_lerp

        ring = np.empty((count, 3))
        ring[:, 0] = center_xz[0] + offsets[:, 0] * ring_lerp
        ring[:, 2] = center_xz[1] + offsets[:, 1] * ring_lerp
        noise_heights = terrain_noise.heights(ring[:, [0, 2]])
        ring[:, 1] = noise_heights * (1.0 - blend) + boundary[:, 1] * blend
        rings.append(ring)
    rings.append(boundary.copy())
    positions = np.vstack(rings)

    faces = []
    # Center fan
    s = np.arange(count)
    faces.append(np.stack([np.zeros(count, dtype=np.int64), 1 + (s + 1) % count, 1 + s], axis=1))
    for r in range(ring_count):
        faces.append(_strip_faces(1 + r * count, 1 + (r + 1) * count, count))

    mask = np.ones(len(positions), dtype=bool)
    if skirt:
        bottom, skirt_faces = _skirt(positions, 1 + ring_count * count, count)
        positions = np.vstack([positions, bottom])
        faces.append(skirt_faces)
        mask = np.concatenate([mask, np.zeros(count, dtype=bool)])

    return MeshData(positions=positions, faces=np.vstack(faces).astype(np.int64), surface_mask=mask)


def build_ground_cover(inner: np.ndarray, outer: np.ndarray, ring_count: int) -> MeshData:
    """
    Band of rings between two curves with equal point counts, plus a skirt.

    Ring 0 is the inner curve and ring `ring_count` is the outer curve;
    positions and heights in between are linear blends.
    """
    inner = np.asarray(inner, dtype=np.float64)
    outer = np.asarray(outer, dtype=np.float64)
    if inner.shape != outer.shape:
        raise ValueError(f"Ground cover curves differ in size: {inner.shape} vs {outer.shape}")

    count = len(inner)
    rings = []
    for k in range(ring_count + 1):
        t = k / ring_count
        rings.append(inner + (outer - inner) * t)
    rings[-1] = outer.copy()
    positions = np.vstack(rings)

    faces = [_strip_faces(k * count, (k + 1) * count, count) for k in range(ring_count)]
    bottom, skirt_faces = _skirt(positions, ring_count * count, count)
    faces.append(skirt_faces)

    positions = np.vstack([positions, bottom])
    mask = np.concatenate([np.ones(count * (ring_count + 1), dtype=bool), np.zeros(count, dtype=bool)])
    return MeshData(positions=positions, faces=np.vstack(faces).astype(np.int64), surface_mask=mask)


def lake_depression(positions: np.ndarray, lakes: Sequence, mask: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Lowered copy of positions for every lake whose radius covers a vertex.

    Each lake subtracts depth * (1 - smoothstep(distance, 0, radius)).
    Vertices outside the mask (skirt bottoms) are left untouched.
    """
    result = np.array(positions, dtype=np.float64, copy=True)
    if mask is None:
        mask = np.ones(len(result), dtype=bool)

    for lake in lakes:
        distances = np.hypot(result[:, 0] - lake.center_x, result[:, 2] - lake.center_z)
        affected = mask & (distances < lake.radius)
        if not np.any(affected):
            continue
        result[affected, 1] -= lake.depth * (1.0 - smoothstep(distances[affected], 0.0, lake.radius))
    return result


def blended_uvs(positions: np.ndarray, normals: np.ndarray, center: np.ndarray,
                radius: float, texture_scale: float) -> np.ndarray:
    """
    Planar top-down UVs blended with cylindrical UVs by |normal.y|^4.

    Flat ground takes planar coordinates; cliffs and skirts take the
    cylindrical (angle around center, height) projection so they do not
    stretch. The cylinder repeats 2*pi*radius/texture_scale times.
    """
    planar = np.stack([positions[:, 0] / texture_scale, positions[:, 2] / texture_scale], axis=1)

    angles = np.arctan2(positions[:, 2] - center[2], positions[:, 0] - center[0])
    circumference_repeats = 2.0 * math.pi * radius / texture_scale
    cylindrical = np.stack([
        (angles / (2.0 * math.pi) + 0.5) * circumference_repeats,
        positions[:, 1] / texture_scale,
    ], axis=1)

    weight = np.abs(normals[:, 1]) ** 4
    return planar * weight[:, None] + cylindrical * (1.0 - weight[:, None])


def merge_surfaces(parts: Sequence[Tuple[str, MeshData]]) -> Tuple[MeshData, List[MaterialGroup]]:
    """Concatenate meshes in order, offsetting indices and recording a group per part."""
    positions = []
    faces = []
    masks = []
    groups = []
    vertex_offset = 0
    face_offset = 0
    for material, mesh in parts:
        positions.append(mesh.positions)
        faces.append(mesh.faces + vertex_offset)
        masks.append(mesh.surface_mask)
        groups.append(MaterialGroup(material=material, first_face=face_offset,
                                    face_count=len(mesh.faces), vertex_start=vertex_offset,
                                    vertex_count=len(mesh.positions)))
        vertex_offset += len(mesh.positions)
        face_offset += len(mesh.faces)

    merged = MeshData(positions=np.vstack(positions), faces=np.vstack(faces),
                      surface_mask=np.concatenate(masks))
    return merged, groups


def check_winding(positions: np.ndarray, faces: np.ndarray, center: np.ndarray,
                  epsilon: float = 1e-6) -> np.ndarray:
    """
    Indices of faces that break counter-clockwise winding viewed from above.

    Faces with an upward normal pass. Vertical faces (skirts) pass when
    their normal points away from the center. Zero-area faces are ignored.
    """
    normals, areas = face_normals(positions, faces)
    centroids = positions[faces].mean(axis=1)

    degenerate = areas <= 1e-12
    upward = normals[:, 1] > epsilon
    vertical = np.abs(normals[:, 1]) <= epsilon
    outward = (normals[:, 0] * (centroids[:, 0] - center[0]) +
               normals[:, 2] * (centroids[:, 2] - center[2])) > 0

    valid = degenerate | upward | (vertical & outward)
    return np.nonzero(~valid)[0]


def finish_surface(mesh: MeshData, groups: List[MaterialGroup], center: np.ndarray,
                   uv_radius: float, texture_scale: float) -> TerrainSurface:
    """Compute normals and both UV sets for a merged mesh."""
    normals = vertex_normals(mesh.positions, mesh.faces)
    uvs = blended_uvs(mesh.positions, normals, center, uv_radius, texture_scale)
    return TerrainSurface(
        positions=mesh.positions,
        indices=mesh.faces,
        normals=normals,
        uvs=uvs,
        uvs2=uvs.copy(),
        surface_mask=mesh.surface_mask,
        center=np.asarray(center, dtype=np.float64),
        uv_radius=uv_radius,
        texture_scale=texture_scale,
        groups=groups,
    )


def apply_lakes(surface: TerrainSurface, lakes: Sequence) -> TerrainSurface:
    """Terrain with lake depressions carved in, normals and UVs recomputed."""
    if not lakes:
        return surface
    positions = lake_depression(surface.positions, lakes, surface.surface_mask)
    mesh = MeshData(positions=positions, faces=surface.indices, surface_mask=surface.surface_mask)
    return finish_surface(mesh, surface.groups, surface.center, surface.uv_radius, surface.texture_scale)


def build_terrain(contours, config, terrain_noise: TerrainNoise) -> TerrainSurface:
    """
    Tessellate the island inside its contours.

    With a foliage band the sand surface ends at the foliage boundary and a
    ground-cover band carries the terrain out to the cliff edge, whose
    heights are raised to the rock tops beneath them. Without a band the
    sand surface runs to the cliff edge and carries the skirt itself.

    Args:
        contours: ContourSet from the contour builder
        config: IslandConfig
        terrain_noise: Height noise for interior vertices

    Returns:
        Merged TerrainSurface
    """
    tuning = config.tuning
    center = contours.center
    parts = []

    if config.foliage_band_width > 0:
        outer = contours.cliff_edge.copy()
        rock_tops = rock_top_heights(outer[:, [0, 2]], contours.rocks)
        outer[:, 1] = np.fmax(outer[:, 1], rock_tops)

        ground_cover = build_ground_cover(contours.foliage_boundary, outer,
                                          tuning.ground_cover_ring_count)
        sand = build_sand_surface(contours.foliage_boundary, center, terrain_noise,
                                  tuning.sand_ring_count, skirt=False)
        parts.append((GROUND_COVER_MATERIAL, ground_cover))
        parts.append((SAND_MATERIAL, sand))
    else:
        sand = build_sand_surface(contours.cliff_edge, center, terrain_noise,
                                  tuning.sand_ring_count, skirt=True)
        parts.append((SAND_MATERIAL, sand))

    mesh, groups = merge_surfaces(parts)
    surface = finish_surface(mesh, groups, center, config.island_radius, tuning.texture_scale)

    bad_faces = check_winding(surface.positions, surface.indices, center)
    if len(bad_faces):
        logger.warning("Faces with inverted winding", count=len(bad_faces))

    logger.info("Terrain tessellated",
                vertices=surface.vertex_count, faces=surface.face_count,
                groups=[g.material for g in groups])
    return surface
