"""Tests for surface tessellation."""

import math

import numpy as np
import pytest

from py_island.config import IslandConfig
from py_island.core.alea_prng import AleaPRNG
from py_island.core.contours import RockPrototype, build_contours
from py_island.core.hydrology import Lake
from py_island.core.noise import TerrainNoise
from py_island.core.tessellation import (
    GROUND_COVER_MATERIAL,
    SAND_MATERIAL,
    MeshData,
    apply_lakes,
    blended_uvs,
    build_ground_cover,
    build_sand_surface,
    build_terrain,
    check_winding,
    lake_depression,
    merge_surfaces,
)


def circle(radius, count=32, height=1.0):
    angles = np.arange(count) / count * 2 * np.pi
    return np.stack([np.cos(angles) * radius, np.full(count, height), np.sin(angles) * radius], axis=1)


def build(config, seed):
    """Contours and terrain for one rock prototype."""
    noise = TerrainNoise(config.base_height, config.noise_strength, config.noise_scale)
    rock = RockPrototype("rock", (2.0, 3.0, 2.0))
    contours = build_contours([rock], config, noise, AleaPRNG(seed))
    return contours, build_terrain(contours, config, noise)


class TestSandSurface:
    """Test the center-to-boundary fan."""

    @pytest.fixture
    def noise(self):
        return TerrainNoise(base_height=2.0, strength=1.0, scale=0.1)

    def test_vertex_and_face_counts(self, noise):
        boundary = circle(10.0)
        mesh = build_sand_surface(boundary, np.array([0.0, 2.0, 0.0]), noise, ring_count=5)
        # center + 5 rings + boundary + skirt bottom
        assert len(mesh.positions) == 1 + 6 * 32 + 32
        # fan + 5 strips + skirt
        assert len(mesh.faces) == 32 + 5 * 64 + 64
        assert mesh.surface_mask.sum() == 1 + 6 * 32

    def test_boundary_ring_is_exact(self, noise):
        boundary = circle(10.0)
        mesh = build_sand_surface(boundary, np.array([0.0, 2.0, 0.0]), noise, ring_count=5, skirt=False)
        np.testing.assert_array_equal(mesh.positions[-32:], boundary)

    def test_center_first(self, noise):
        center = np.array([0.5, 2.3, -0.25])
        mesh = build_sand_surface(circle(10.0), center, noise, ring_count=3)
        np.testing.assert_array_equal(mesh.positions[0], center)

    def test_rings_converge_on_boundary_height(self, noise):
        boundary = circle(10.0, height=7.0)
        mesh = build_sand_surface(boundary, np.array([0.0, 2.0, 0.0]), noise, ring_count=20, skirt=False)
        outermost_interior = mesh.positions[1 + 19 * 32:1 + 20 * 32]
        inner = mesh.positions[1:33]
        assert np.abs(outermost_interior[:, 1] - 7.0).max() < np.abs(inner[:, 1] - 7.0).min()

    def test_skirt_reaches_ground(self, noise):
        mesh = build_sand_surface(circle(10.0), np.array([0.0, 2.0, 0.0]), noise, ring_count=3)
        np.testing.assert_array_equal(mesh.positions[~mesh.surface_mask][:, 1], 0.0)

    def test_winding(self, noise):
        center = np.array([0.0, 2.0, 0.0])
        mesh = build_sand_surface(circle(10.0), center, noise, ring_count=8)
        assert len(check_winding(mesh.positions, mesh.faces, center)) == 0


class TestGroundCover:
    """Test the band between the foliage boundary and the cliff edge."""

    def test_shares_inner_ring(self):
        inner = circle(6.0, height=2.0)
        outer = circle(10.0, height=1.0)
        mesh = build_ground_cover(inner, outer, ring_count=4)
        np.testing.assert_array_equal(mesh.positions[:32], inner)
        np.testing.assert_array_equal(mesh.positions[4 * 32:5 * 32], outer)
        assert len(mesh.faces) == 4 * 64 + 64

    def test_winding(self):
        mesh = build_ground_cover(circle(6.0, height=2.0), circle(10.0, height=1.0), ring_count=4)
        assert len(check_winding(mesh.positions, mesh.faces, np.zeros(3))) == 0

    def test_mismatched_curves(self):
        with pytest.raises(ValueError):
            build_ground_cover(circle(6.0, count=16), circle(10.0, count=32), ring_count=2)


class TestWindingCheck:
    """Test detection of inverted faces."""

    def test_detects_flipped_face(self):
        mesh = build_ground_cover(circle(6.0), circle(10.0), ring_count=2)
        faces = mesh.faces.copy()
        faces[5] = faces[5][::-1]
        assert list(check_winding(mesh.positions, faces, np.zeros(3))) == [5]

    def test_detects_inward_skirt(self):
        mesh = build_sand_surface(circle(10.0), np.array([0.0, 1.0, 0.0]),
                                  TerrainNoise(1.0, 0.0, 0.1), ring_count=2)
        faces = mesh.faces.copy()
        faces[-1] = faces[-1][::-1]
        assert len(faces) - 1 in check_winding(mesh.positions, faces, np.zeros(3))

    def test_ignores_degenerate(self):
        positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]])
        assert len(check_winding(positions, np.array([[0, 1, 2]]), np.zeros(3))) == 0


class TestUVs:
    """Test planar/cylindrical UV blending."""

    def test_flat_faces_use_planar(self):
        positions = np.array([[10.0, 3.0, 20.0], [-5.0, 1.0, 4.0]])
        normals = np.array([[0.0, 1.0, 0.0], [0.0, -1.0, 0.0]])
        uvs = blended_uvs(positions, normals, np.zeros(3), 20.0, 20.0)
        np.testing.assert_allclose(uvs, positions[:, [0, 2]] / 20.0)

    def test_vertical_faces_use_cylindrical(self):
        positions = np.array([[-10.0, 4.0, 0.0]])
        normals = np.array([[-1.0, 0.0, 0.0]])
        uvs = blended_uvs(positions, normals, np.zeros(3), 20.0, 20.0)
        # angle pi maps to 1.0 of the way round, 2*pi*20/20 repeats
        assert uvs[0, 0] == pytest.approx(2 * math.pi)
        assert uvs[0, 1] == pytest.approx(0.2)

    def test_blend_weight(self):
        positions = np.array([[10.0, 0.0, 0.0]])
        n_y = math.cos(math.radians(45))
        normals = np.array([[n_y, n_y, 0.0]])
        uvs = blended_uvs(positions, normals, np.zeros(3), 20.0, 20.0)
        weight = n_y ** 4
        planar_u = 0.5
        cylindrical_u = 0.5 * 2 * math.pi
        assert uvs[0, 0] == pytest.approx(planar_u * weight + cylindrical_u * (1 - weight))


class TestLakeDepression:
    """Test carving lakes into vertex heights."""

    @pytest.fixture
    def lake(self):
        return Lake(center=(0.0, 0.0), radius=2.0, depth=1.0, terrain_height=3.0, water_level=2.5)

    def test_center_lowered_by_depth(self, lake):
        positions = np.array([[0.0, 3.0, 0.0], [1.0, 3.0, 0.0], [5.0, 3.0, 0.0]])
        lowered = lake_depression(positions, [lake])
        assert lowered[0, 1] == pytest.approx(2.0)
        assert 2.0 < lowered[1, 1] < 3.0
        assert lowered[2, 1] == 3.0

    def test_mask_protects_vertices(self, lake):
        positions = np.array([[0.0, 0.0, 0.0], [0.5, 3.0, 0.0]])
        lowered = lake_depression(positions, [lake], np.array([False, True]))
        assert lowered[0, 1] == 0.0
        assert lowered[1, 1] < 3.0

    def test_input_untouched(self, lake):
        positions = np.array([[0.0, 3.0, 0.0]])
        lake_depression(positions, [lake])
        assert positions[0, 1] == 3.0


class TestMerge:
    def test_groups_and_offsets(self):
        first = MeshData(np.zeros((3, 3)), np.array([[0, 1, 2]]), np.ones(3, dtype=bool))
        second = MeshData(np.ones((4, 3)), np.array([[0, 1, 2], [0, 2, 3]]), np.ones(4, dtype=bool))
        merged, groups = merge_surfaces([("a", first), ("b", second)])
        assert merged.positions.shape == (7, 3)
        np.testing.assert_array_equal(merged.faces[1:], [[3, 4, 5], [3, 5, 6]])
        assert [(g.material, g.first_face, g.face_count, g.vertex_start) for g in groups] == [
            ("a", 0, 1, 0), ("b", 1, 2, 3)]


class TestBuildTerrain:
    """Test the merged island terrain."""

    @pytest.mark.parametrize("seed", ["terrain-1", "terrain-2", "terrain-3"])
    def test_winding_holds(self, seed):
        contours, terrain = build(IslandConfig(), seed)
        assert len(check_winding(terrain.positions, terrain.indices, terrain.center)) == 0

    def test_groups(self):
        _, terrain = build(IslandConfig(), "groups")
        assert [g.material for g in terrain.groups] == [GROUND_COVER_MATERIAL, SAND_MATERIAL]
        assert sum(g.face_count for g in terrain.groups) == terrain.face_count
        assert terrain.groups[1].first_face == terrain.groups[0].face_count

    def test_seam_is_shared(self):
        config = IslandConfig()
        contours, terrain = build(config, "seam")
        count = config.tuning.boundary_resolution
        rings = config.tuning.sand_ring_count
        ground = terrain.group_vertices(GROUND_COVER_MATERIAL)
        sand = terrain.group_vertices(SAND_MATERIAL)
        sand_border = sand[1 + rings * count:1 + (rings + 1) * count]
        np.testing.assert_array_equal(ground[:count], sand_border)
        np.testing.assert_array_equal(sand_border, contours.foliage_boundary)

    def test_without_band(self):
        config = IslandConfig(foliage_band_width=0.0)
        contours, terrain = build(config, "no-band")
        assert [g.material for g in terrain.groups] == [SAND_MATERIAL]
        assert len(check_winding(terrain.positions, terrain.indices, terrain.center)) == 0

    def test_buffers(self):
        _, terrain = build(IslandConfig(), "buffers")
        n = terrain.vertex_count
        assert terrain.normals.shape == (n, 3)
        assert terrain.uvs.shape == (n, 2)
        np.testing.assert_array_equal(terrain.uvs, terrain.uvs2)
        assert terrain.indices.max() < n
        np.testing.assert_allclose(np.linalg.norm(terrain.normals, axis=1), 1.0, atol=1e-9)

    def test_apply_lakes(self):
        _, terrain = build(IslandConfig(), "lakes")
        lake = Lake(center=(0.0, 0.0), radius=3.0, depth=1.0, terrain_height=2.0, water_level=1.5)
        carved = apply_lakes(terrain, [lake])
        assert carved.positions[:, 1].sum() < terrain.positions[:, 1].sum()
        np.testing.assert_array_equal(carved.positions[:, [0, 2]], terrain.positions[:, [0, 2]])
        assert len(check_winding(carved.positions, carved.indices, carved.center)) == 0
        assert apply_lakes(terrain, []) is terrain
