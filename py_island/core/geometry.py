"""
Geometry helpers shared by the generation stages.

Points are stored as numpy arrays of [x, y, z] with y up; polygon tests
work on the XZ projection. "Counter-clockwise viewed from above" means a
triangle whose normal (b - a) x (c - a) has a positive y component.
"""

import math
from typing import Tuple

import numpy as np
from scipy.interpolate import CubicSpline

UP = np.array([0.0, 1.0, 0.0])


class DegenerateGeometryError(ValueError):
    """Raised when input geometry cannot support the requested operation."""


def as_xz(points: np.ndarray) -> np.ndarray:
    """Project [x, y, z] points onto XZ; [x, z] input is returned as-is."""
    points = np.asarray(points, dtype=np.float64)
    if points.ndim == 1:
        return points[[0, 2]] if points.shape[0] == 3 else points
    if points.shape[1] == 3:
        return points[:, [0, 2]]
    return points


def point_in_polygon(x: float, z: float, polygon: np.ndarray) -> bool:
    """Crossing-number test for a single point against a closed polygon."""
    return bool(points_in_polygon(np.array([[x, z]]), polygon)[0])


def points_in_polygon(points_xz: np.ndarray, polygon: np.ndarray) -> np.ndarray:
    """
    Crossing-number test for many points.

    Args:
        points_xz: (M, 2) points in the XZ plane
        polygon: (N, 2) or (N, 3) closed polygon, last vertex not repeated

    Returns:
        Boolean array of length M
    """
    polygon_xz = as_xz(polygon)
    if len(polygon_xz) < 3:
        raise DegenerateGeometryError(f"Polygon needs at least 3 points, got {len(polygon_xz)}")

    points_xz = np.asarray(points_xz, dtype=np.float64).reshape(-1, 2)
    px = points_xz[:, 0]
    pz = points_xz[:, 1]
    inside = np.zeros(len(points_xz), dtype=bool)

    n = len(polygon_xz)
    j = n - 1
    for i in range(n):
        xi, zi = polygon_xz[i]
        xj, zj = polygon_xz[j]
        if zi != zj:
            straddles = (zi > pz) != (zj > pz)
            crossing_x = (xj - xi) * (pz - zi) / (zj - zi) + xi
            inside ^= straddles & (px < crossing_x)
        j = i

    return inside


def polygon_bounds(polygon: np.ndarray) -> Tuple[float, float, float, float]:
    """(min_x, min_z, max_x, max_z) of a polygon's XZ projection."""
    polygon_xz = as_xz(polygon)
    if len(polygon_xz) == 0:
        raise DegenerateGeometryError("Cannot bound an empty polygon")
    min_x, min_z = polygon_xz.min(axis=0)
    max_x, max_z = polygon_xz.max(axis=0)
    return float(min_x), float(min_z), float(max_x), float(max_z)


def signed_area_xz(polygon: np.ndarray) -> float:
    """Shoelace area on (x, z); positive when the loop turns from +x toward +z."""
    polygon_xz = as_xz(polygon)
    x = polygon_xz[:, 0]
    z = polygon_xz[:, 1]
    return float(0.5 * np.sum(x * np.roll(z, -1) - np.roll(x, -1) * z))


def resample_closed_curve(points: np.ndarray, count: int) -> np.ndarray:
    """
    Fit a closed interpolating spline through points and resample it.

    A periodic cubic spline is fitted per coordinate over cumulative chord
    length, then evaluated at `count` evenly spaced parameters. The closing
    point is not repeated in the result.

    Args:
        points: (N, D) control points of the loop
        count: Number of output samples

    Returns:
        (count, D) resampled points
    """
    points = np.asarray(points, dtype=np.float64)

    # Consecutive duplicates would give a non-increasing spline parameter
    keep = np.ones(len(points), dtype=bool)
    if len(points) > 1:
        steps = np.linalg.norm(np.diff(points, axis=0), axis=1)
        keep[1:] = steps > 1e-12
    points = points[keep]
    if len(points) > 1 and np.linalg.norm(points[-1] - points[0]) <= 1e-12:
        points = points[:-1]

    if len(points) < 3:
        raise DegenerateGeometryError(f"Closed curve needs at least 3 points, got {len(points)}")

    closed = np.vstack([points, points[:1]])
    chord = np.linalg.norm(np.diff(closed, axis=0), axis=1)
    params = np.concatenate([[0.0], np.cumsum(chord)])

    spline = CubicSpline(params, closed, axis=0, bc_type="periodic")
    samples = np.linspace(0.0, params[-1], count, endpoint=False)
    return spline(samples)


def moving_average_heights(points: np.ndarray, window: int) -> np.ndarray:
    """
    Simple moving average of the y channel over a closed loop.

    Args:
        points: (N, 3) loop points
        window: Neighbours on each side to include; 0 returns a copy

    Returns:
        Copy of points with smoothed heights
    """
    smoothed = np.array(points, dtype=np.float64, copy=True)
    if window <= 0 or len(smoothed) == 0:
        return smoothed

    heights = smoothed[:, 1].copy()
    total = np.zeros_like(heights)
    for offset in range(-window, window + 1):
        total += np.roll(heights, -offset)
    smoothed[:, 1] = total / (2 * window + 1)
    return smoothed


def smoothstep(x, edge0: float, edge1: float):
    """Hermite smoothstep, 0 at edge0 and 1 at edge1."""
    if edge1 == edge0:
        return np.where(np.asarray(x) < edge0, 0.0, 1.0)
    t = np.clip((np.asarray(x, dtype=np.float64) - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def face_normals(positions: np.ndarray, faces: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Unit face normals and areas for an indexed triangle list.

    Degenerate faces get a zero normal.
    """
    a = positions[faces[:, 0]]
    b = positions[faces[:, 1]]
    c = positions[faces[:, 2]]
    cross = np.cross(b - a, c - a)
    lengths = np.linalg.norm(cross, axis=1)
    normals = np.zeros_like(cross)
    nonzero = lengths > 0
    normals[nonzero] = cross[nonzero] / lengths[nonzero, None]
    return normals, 0.5 * lengths


def vertex_normals(positions: np.ndarray, faces: np.ndarray) -> np.ndarray:
    """Area-weighted vertex normals, the usual smooth-shading normals."""
    a = positions[faces[:, 0]]
    b = positions[faces[:, 1]]
    c = positions[faces[:, 2]]
    cross = np.cross(b - a, c - a)

    normals = np.zeros_like(positions, dtype=np.float64)
    for corner in range(3):
        np.add.at(normals, faces[:, corner], cross)

    lengths = np.linalg.norm(normals, axis=1)
    nonzero = lengths > 0
    normals[nonzero] /= lengths[nonzero, None]
    return normals


def normalize(vector: np.ndarray, fallback: np.ndarray = UP) -> np.ndarray:
    length = np.linalg.norm(vector)
    if length < 1e-12:
        return np.array(fallback, dtype=np.float64)
    return vector / length


def rotate_about_up(direction: np.ndarray, angle: float) -> np.ndarray:
    """Rotate a vector about the -y axis by angle, as seen looking down."""
    c = math.cos(angle)
    s = math.sin(angle)
    x, y, z = direction
    return np.array([c * x - s * z, y, s * x + c * z])


# Quaternions are [x, y, z, w]

def quaternion_from_axis_angle(axis: np.ndarray, angle: float) -> np.ndarray:
    half = angle / 2.0
    s = math.sin(half)
    return np.array([axis[0] * s, axis[1] * s, axis[2] * s, math.cos(half)])


def quaternion_from_unit_vectors(v_from: np.ndarray, v_to: np.ndarray) -> np.ndarray:
    """Shortest-arc rotation taking unit vector v_from onto unit vector v_to."""
    r = float(np.dot(v_from, v_to)) + 1.0
    if r < 1e-8:
        # Opposite vectors: rotate half a turn about any perpendicular axis
        if abs(v_from[0]) > abs(v_from[2]):
            q = np.array([-v_from[1], v_from[0], 0.0, 0.0])
        else:
            q = np.array([0.0, -v_from[2], v_from[1], 0.0])
    else:
        axis = np.cross(v_from, v_to)
        q = np.array([axis[0], axis[1], axis[2], r])
    return q / np.linalg.norm(q)


def quaternion_multiply(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Hamilton product a * b (apply b, then a)."""
    ax, ay, az, aw = a
    bx, by, bz, bw = b
    return np.array([
        ax * bw + aw * bx + ay * bz - az * by,
        ay * bw + aw * by + az * bx - ax * bz,
        az * bw + aw * bz + ax * by - ay * bx,
        aw * bw - ax * bx - ay * by - az * bz,
    ])


def quaternion_to_matrix(q: np.ndarray) -> np.ndarray:
    """3x3 rotation matrix for a unit quaternion."""
    x, y, z, w = q
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
        [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
        [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
    ])


def compose_matrix(position: np.ndarray, rotation: np.ndarray, scale: np.ndarray) -> np.ndarray:
    """4x4 transform = translate * rotate * scale."""
    matrix = np.eye(4)
    matrix[:3, :3] = quaternion_to_matrix(rotation) * np.asarray(scale, dtype=np.float64)[None, :]
    matrix[:3, 3] = position
    return matrix
