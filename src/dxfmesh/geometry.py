from __future__ import annotations

import math
from typing import Sequence

from .entity import Point3D, Triangle
from .errors import InvalidGeometryError, MeshVertexCountError, UnsupportedMeshError

FULL_TURN_EPSILON = 0.001
ELLIPSE_STEP = math.pi / 15.0


def rotation_step(segments: int) -> tuple[float, float]:
    """Cosine and sine of one ``2*pi/segments`` step."""
    delta = 2.0 * math.pi / segments
    return math.cos(delta), math.sin(delta)


def circle_points(center: Point3D, radius: float, segments: int) -> list[Point3D]:
    cos_d, sin_d = rotation_step(segments)
    x, y = radius, 0.0
    points: list[Point3D] = []
    for _ in range(segments):
        points.append((center[0] + x, center[1] + y, center[2]))
        x, y = x * cos_d - y * sin_d, y * cos_d + x * sin_d
    return points


def reduce_sweep(start: float, end: float, full_turn: float) -> tuple[float, float]:
    """Start angle reduced to one turn and the counterclockwise sweep to ``end``.

    The sweep lies in (0, full_turn], or is 0 when both angles are equal.
    """
    if not (math.isfinite(start) and math.isfinite(end)):
        raise InvalidGeometryError(f"angles out of range (start={start}, end={end})")
    sweep = end - start
    if sweep != 0.0 and not 0.0 < sweep <= full_turn:
        sweep = math.fmod(sweep, full_turn)
        if sweep <= 0.0:
            sweep += full_turn
    return math.fmod(start, full_turn), sweep


def arc_points(
    center: Point3D,
    radius: float,
    start_angle: float,
    end_angle: float,
    segments_per_circle: int,
) -> list[Point3D]:
    """Points of a counterclockwise arc, angles in degrees.

    The arc gets a share of ``segments_per_circle`` proportional to its sweep,
    at least one segment, and ends exactly on the end angle.
    """
    start_angle, sweep = reduce_sweep(start_angle, end_angle, 360.0)
    end_angle = start_angle + sweep
    segments = max(int(sweep / 360.0 * segments_per_circle), 1)
    delta = math.radians(sweep) / segments
    cos_d, sin_d = math.cos(delta), math.sin(delta)

    start = math.radians(start_angle)
    x, y = radius * math.cos(start), radius * math.sin(start)
    points: list[Point3D] = []
    for _ in range(segments):
        points.append((center[0] + x, center[1] + y, center[2]))
        x, y = x * cos_d - y * sin_d, y * cos_d + x * sin_d
    end = math.radians(end_angle)
    points.append((center[0] + radius * math.cos(end), center[1] + radius * math.sin(end), center[2]))
    return points


def ellipse_points(
    center: Point3D,
    major_axis: Point3D,
    ratio: float,
    start_param: float,
    end_param: float,
) -> tuple[list[Point3D], bool]:
    """Sample an elliptical arc; returns the points and whether it is closed."""
    major = math.sqrt(major_axis[0] ** 2 + major_axis[1] ** 2 + major_axis[2] ** 2)
    if major == 0.0:
        return [], False
    xdir = (major_axis[0] / major, major_axis[1] / major, major_axis[2] / major)
    # z cross xdir
    ydir = (-xdir[1], xdir[0], 0.0)
    minor = ratio * major

    if abs(end_param - start_param) < FULL_TURN_EPSILON:
        end_param = start_param + 2.0 * math.pi
    start_param, sweep = reduce_sweep(start_param, end_param, 2.0 * math.pi)
    end_param = start_param + sweep
    closed = sweep >= 2.0 * math.pi - FULL_TURN_EPSILON

    def at(param: float) -> Point3D:
        c = major * math.cos(param)
        s = minor * math.sin(param)
        return (
            center[0] + c * xdir[0] + s * ydir[0],
            center[1] + c * xdir[1] + s * ydir[1],
            center[2] + c * xdir[2] + s * ydir[2],
        )

    delta = ELLIPSE_STEP
    if (end_param - start_param) / delta < 4.0:
        delta = (end_param - start_param) / 5.0

    points = [at(start_param)]
    param = start_param
    while True:
        param += delta
        if param >= end_param - 1.0e-12:
            points.append(at(end_param))
            break
        points.append(at(param))
    if closed:
        points.pop()
    return points, closed


def face_triangles(v0: int, v1: int, v2: int, v3: int) -> list[Triangle]:
    """Split a quad along the v0-v2 diagonal."""
    return [(v0, v1, v2), (v2, v3, v0)]


def mesh_triangles(
    indices: Sequence[int],
    m: int,
    n: int,
    *,
    closed_m: bool = False,
    closed_n: bool = False,
) -> list[Triangle]:
    """Triangulate an m x n vertex grid stored row by row (``row * n + col``)."""
    if len(indices) != m * n:
        raise MeshVertexCountError(m * n, len(indices))

    if m < 2:
        if n > 4:
            raise UnsupportedMeshError(f"cannot handle polyline mesh with m={m} and n={n}")
        if n < 3:
            return []
        triangles = [(indices[0], indices[1], indices[2])]
        if n == 4:
            triangles.append((indices[2], indices[3], indices[0]))
        return triangles

    rows = list(range(1, m)) + ([m] if closed_m else [])
    columns = list(range(1, n)) + ([n] if closed_n and n > 1 else [])
    triangles = []
    for i in rows:
        for j in columns:
            a = indices[(i - 1) * n + (j - 1)]
            b = indices[(i - 1) * n + (j % n)]
            c = indices[(i % m) * n + (j - 1)]
            d = indices[(i % m) * n + (j % n)]
            triangles.append((a, b, d))
            triangles.append((a, d, c))
    return triangles


def solid_outline(points: Sequence[Point3D]) -> list[Point3D]:
    """Corners of a SOLID/TRACE in drawing order (the third and fourth corners are swapped)."""
    if len(points) >= 4:
        return [points[0], points[1], points[3], points[2]]
    return list(points)
