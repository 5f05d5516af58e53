"""
Path network generation.

This module implements:
- Node scattering by bounded rejection sampling on the terrain
- Candidate edges from a Delaunay triangulation of the nodes
- Kruskal's minimum spanning tree with a pool of cycle-completing edges
- Surface-following tracing of each edge into a ribbon mesh
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
import structlog

from .alea_prng import AleaPRNG
from .delaunay import Triangle, triangulate, unique_edges
from .diagnostics import DEGENERATE_GEOMETRY, EXHAUSTED_RETRY, GenerationDiagnostics
from .geometry import UP, DegenerateGeometryError, normalize, point_in_polygon, polygon_bounds
from .height_field import TerrainHeightField

logger = structlog.get_logger()


@dataclass
class PathEdge:
    """Undirected candidate edge between two path nodes."""
    a: int
    b: int
    weight: float

    @property
    def key(self) -> Tuple[int, int]:
        return (min(self.a, self.b), max(self.a, self.b))


@dataclass
class Ribbon:
    """Flat strip mesh following a polyline."""
    positions: np.ndarray  # (2N, 3), left/right vertex per polyline point
    normals: np.ndarray
    uvs: np.ndarray
    indices: np.ndarray    # (M, 3)

    @property
    def is_empty(self) -> bool:
        return len(self.indices) == 0


@dataclass
class PathNetwork:
    """Nodes, selected edges and their traced ribbons."""
    nodes: np.ndarray
    triangles: List[Triangle] = field(default_factory=list)
    mst: List[PathEdge] = field(default_factory=list)
    loops: List[PathEdge] = field(default_factory=list)
    polylines: List[np.ndarray] = field(default_factory=list)
    ribbons: List[Ribbon] = field(default_factory=list)

    @property
    def edges(self) -> List[PathEdge]:
        return self.mst + self.loops


class UnionFind:
    """Disjoint sets with path compression and union by rank."""

    def __init__(self, size: int):
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, item: int) -> int:
        root = item
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[item] != root:
            self.parent[item], item = root, self.parent[item]
        return root

    def union(self, a: int, b: int) -> bool:
        """Merge the sets of a and b; False when they were already joined."""
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return False
        if self.rank[root_a] < self.rank[root_b]:
            root_a, root_b = root_b, root_a
        self.parent[root_b] = root_a
        if self.rank[root_a] == self.rank[root_b]:
            self.rank[root_a] += 1
        return True


def scatter_nodes(polygon: np.ndarray, height_field: TerrainHeightField, count: int,
                  retry_factor: int, prng: AleaPRNG) -> np.ndarray:
    """
    Rejection-sample up to `count` surface points inside a polygon.

    At most count * retry_factor candidates are drawn from the polygon's
    bounding box; a candidate is kept when it is inside the polygon and the
    terrain answers a height query there.

    Returns:
        (K, 3) accepted points, K <= count
    """
    min_x, min_z, max_x, max_z = polygon_bounds(polygon)
    nodes = []
    attempts = 0
    max_attempts = count * retry_factor

    while len(nodes) < count and attempts < max_attempts:
        attempts += 1
        x = prng.uniform(min_x, max_x)
        z = prng.uniform(min_z, max_z)
        if not point_in_polygon(x, z, polygon):
            continue
        sample = height_field.query(x, z)
        if sample is None:
            continue
        nodes.append(sample.point)

    logger.debug("Nodes scattered", requested=count, accepted=len(nodes), attempts=attempts)
    return np.array(nodes).reshape(-1, 3)


def _segments_intersect(p1, p2, q1, q2, epsilon: float = 1e-9) -> bool:
    """Closed segment test; touching an end point or running along counts."""
    def orient(a, b, c):
        value = (b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0])
        if abs(value) <= epsilon:
            return 0
        return 1 if value > 0 else -1

    def on_segment(a, b, c):
        return (min(a[0], b[0]) - epsilon <= c[0] <= max(a[0], b[0]) + epsilon and
                min(a[1], b[1]) - epsilon <= c[1] <= max(a[1], b[1]) + epsilon)

    d1 = orient(q1, q2, p1)
    d2 = orient(q1, q2, p2)
    d3 = orient(p1, p2, q1)
    d4 = orient(p1, p2, q2)
    if d1 * d2 < 0 and d3 * d4 < 0:
        return True
    return ((d1 == 0 and on_segment(q1, q2, p1)) or
            (d2 == 0 and on_segment(q1, q2, p2)) or
            (d3 == 0 and on_segment(p1, p2, q1)) or
            (d4 == 0 and on_segment(p1, p2, q2)))


def _point_in_triangle(p, a, b, c) -> bool:
    def sign(p1, p2, p3):
        return (p1[0] - p3[0]) * (p2[1] - p3[1]) - (p2[0] - p3[0]) * (p1[1] - p3[1])

    d1 = sign(p, a, b)
    d2 = sign(p, b, c)
    d3 = sign(p, c, a)
    has_negative = d1 < 0 or d2 < 0 or d3 < 0
    has_positive = d1 > 0 or d2 > 0 or d3 > 0
    return not (has_negative and has_positive)


def segment_crosses_ribbon(start: np.ndarray, end: np.ndarray, ribbon: Ribbon) -> bool:
    """Whether the XZ projection of a segment touches any triangle of a ribbon."""
    if ribbon.is_empty:
        return False
    p1 = (float(start[0]), float(start[2]))
    p2 = (float(end[0]), float(end[2]))

    xz = ribbon.positions[:, [0, 2]]
    lo = xz.min(axis=0)
    hi = xz.max(axis=0)
    if max(p1[0], p2[0]) < lo[0] or min(p1[0], p2[0]) > hi[0] or \
            max(p1[1], p2[1]) < lo[1] or min(p1[1], p2[1]) > hi[1]:
        return False

    for face in ribbon.indices:
        a, b, c = (tuple(xz[i]) for i in face)
        if _point_in_triangle(p1, a, b, c) or _point_in_triangle(p2, a, b, c):
            return True
        for u, v in ((a, b), (b, c), (c, a)):
            if _segments_intersect(p1, p2, u, v):
                return True
    return False


def candidate_edges(nodes: np.ndarray, triangles: Sequence[Triangle],
                    obstacles: Sequence[Ribbon] = ()) -> List[PathEdge]:
    """
    Unique triangulation edges weighted by squared 3D distance.

    Edges whose straight segment crosses an obstacle ribbon get an
    infinite weight.
    """
    edges = []
    for a, b in unique_edges(list(triangles)):
        delta = nodes[b] - nodes[a]
        weight = float(np.dot(delta, delta))
        if any(segment_crosses_ribbon(nodes[a], nodes[b], obstacle) for obstacle in obstacles):
            weight = math.inf
        edges.append(PathEdge(a=a, b=b, weight=weight))
    return edges


def kruskal(node_count: int, edges: Sequence[PathEdge]) -> Tuple[List[PathEdge], List[PathEdge]]:
    """
    Minimum spanning forest by Kruskal's algorithm.

    Returns:
        Tuple of (tree edges, finite edges rejected because they close a cycle)
    """
    union_find = UnionFind(node_count)
    tree = []
    pool = []
    for edge in sorted(edges, key=lambda e: e.weight):
        if math.isinf(edge.weight):
            continue
        if union_find.union(edge.a, edge.b):
            tree.append(edge)
        else:
            pool.append(edge)
    return tree, pool


def select_loop_edges(pool: Sequence[PathEdge], loop_percentage: float,
                      prng: AleaPRNG) -> List[PathEdge]:
    """Shuffle the cycle pool and keep floor(percentage% of it)."""
    shuffled = prng.shuffle(list(pool))
    take = int(math.floor(len(shuffled) * loop_percentage / 100.0))
    return shuffled[:take]


def trace_surface_path(start: np.ndarray, end: np.ndarray, height_field: TerrainHeightField,
                       step: float, tolerance: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Walk the straight XZ line from start to end, sampling the terrain.

    A point is kept when its squared distance to the previous kept point
    exceeds `tolerance`. The walk stops at the first failed height query;
    the end point is then appended so the polyline always reaches it.

    Returns:
        Tuple of (points (K, 3), normals (K, 3))
    """
    start_xz = np.array([start[0], start[2]], dtype=np.float64)
    end_xz = np.array([end[0], end[2]], dtype=np.float64)
    distance = float(np.linalg.norm(end_xz - start_xz))
    direction = (end_xz - start_xz) / distance if distance > 0 else np.zeros(2)

    offsets = list(np.arange(0.0, distance, step)) + [distance] if step > 0 else [0.0, distance]

    points = []
    normals = []
    for offset in offsets:
        x, z = start_xz + direction * offset
        sample = height_field.query(x, z)
        if sample is None:
            break
        if points:
            delta = sample.point - points[-1]
            if float(np.dot(delta, delta)) <= tolerance:
                continue
        points.append(sample.point)
        normals.append(sample.normal)

    end_point = np.asarray(end, dtype=np.float64)
    if not points or float(np.sum((end_point - points[-1]) ** 2)) > tolerance:
        sample = height_field.query(float(end_point[0]), float(end_point[2]))
        points.append(end_point.copy())
        normals.append(sample.normal if sample is not None else UP.copy())

    return np.array(points).reshape(-1, 3), np.array(normals).reshape(-1, 3)


def build_ribbon(points: np.ndarray, normals: np.ndarray, width: float, y_offset: float) -> Ribbon:
    """
    Flat strip of the given width along a polyline.

    Each point emits a left and a right vertex offset along
    tangent x normal. V grows with arc length in units of the width; U is
    0 on the left edge and 1 on the right.
    """
    count = len(points)
    if count < 2:
        return Ribbon(positions=np.zeros((0, 3)), normals=np.zeros((0, 3)),
                      uvs=np.zeros((0, 2)), indices=np.zeros((0, 3), dtype=np.int64))

    half_width = width / 2.0
    positions = np.empty((count * 2, 3))
    vertex_normals = np.empty((count * 2, 3))
    uvs = np.empty((count * 2, 2))

    arc_length = 0.0
    for k in range(count):
        if k < count - 1:
            tangent = points[k + 1] - points[k]
        else:
            tangent = points[k] - points[k - 1]
        tangent = normalize(tangent, fallback=np.array([1.0, 0.0, 0.0]))
        right = normalize(np.cross(tangent, normals[k]), fallback=np.array([0.0, 0.0, 1.0]))

        if k > 0:
            arc_length += float(np.linalg.norm(points[k] - points[k - 1]))

        center = points[k] + np.array([0.0, y_offset, 0.0])
        positions[2 * k] = center - right * half_width
        positions[2 * k + 1] = center + right * half_width
        vertex_normals[2 * k] = normals[k]
        vertex_normals[2 * k + 1] = normals[k]
        uvs[2 * k] = (0.0, arc_length / width)
        uvs[2 * k + 1] = (1.0, arc_length / width)

    indices = []
    for k in range(count - 1):
        tl, tr = 2 * k, 2 * k + 1
        bl, br = 2 * (k + 1), 2 * (k + 1) + 1
        indices.append((tl, tr, bl))
        indices.append((tr, br, bl))

    return Ribbon(positions=positions, normals=vertex_normals, uvs=uvs,
                  indices=np.array(indices, dtype=np.int64))


def generate_paths(polygon: np.ndarray, height_field: TerrainHeightField, config,
                   prng: AleaPRNG, obstacles: Sequence[Ribbon] = (),
                   diagnostics: Optional[GenerationDiagnostics] = None) -> Optional[PathNetwork]:
    """
    Build the path network inside a polygon.

    Args:
        polygon: Region to scatter nodes in
        height_field: Terrain queries
        config: IslandConfig
        prng: Random source
        obstacles: Ribbons (rivers) that edges may not cross
        diagnostics: Receives skipped work

    Returns:
        PathNetwork, or None when the network could not be built
    """
    tuning = config.tuning
    diagnostics = diagnostics if diagnostics is not None else GenerationDiagnostics()

    try:
        nodes = scatter_nodes(polygon, height_field, config.path_node_count,
                              tuning.node_retry_factor, prng)
    except DegenerateGeometryError as e:
        diagnostics.record("paths", DEGENERATE_GEOMETRY, "Path region is degenerate", error=str(e))
        return None

    if len(nodes) < config.path_node_count:
        diagnostics.record("paths", EXHAUSTED_RETRY, "Fewer path nodes than requested",
                           requested=config.path_node_count, accepted=len(nodes))
    if len(nodes) < 3:
        diagnostics.record("paths", DEGENERATE_GEOMETRY, "Too few path nodes to triangulate",
                           accepted=len(nodes))
        return None

    try:
        triangles = triangulate(nodes[:, [0, 2]])
    except DegenerateGeometryError as e:
        diagnostics.record("paths", DEGENERATE_GEOMETRY, "Path nodes cannot be triangulated", error=str(e))
        return None

    edges = candidate_edges(nodes, triangles, obstacles)
    tree, pool = kruskal(len(nodes), edges)
    loops = select_loop_edges(pool, config.path_loop_percentage, prng)
    network = PathNetwork(nodes=nodes, triangles=triangles, mst=tree, loops=loops)

    step = config.path_width * tuning.path_step_factor
    for edge in network.edges:
        points, normals = trace_surface_path(nodes[edge.a], nodes[edge.b], height_field,
                                             step, tuning.path_point_tolerance)
        if len(points) < 2:
            diagnostics.record("paths", DEGENERATE_GEOMETRY, "Path edge has no traceable surface",
                               edge=edge.key)
            continue
        network.polylines.append(points)
        network.ribbons.append(build_ribbon(points, normals, config.path_width, tuning.path_y_offset))

    logger.info("Path network built",
                nodes=len(nodes), candidates=len(edges), tree_edges=len(tree),
                loop_edges=len(loops), blocked=sum(1 for e in edges if math.isinf(e.weight)),
                ribbons=len(network.ribbons))
    return network
