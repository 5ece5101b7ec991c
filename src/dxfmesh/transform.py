from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from ezdxf.math import Matrix44

from .entity import Point3D


@dataclass(frozen=True)
class StackFrame:
    """Parent state saved when a block instance is entered."""

    return_offset: int
    saved_transform: Matrix44
    block: str


def instance_matrix(
    insert: Point3D,
    rotation_degrees: float = 0.0,
    scale: Point3D = (1.0, 1.0, 1.0),
    offset: Point3D = (0.0, 0.0, 0.0),
) -> Matrix44:
    """translate(insert) . rotate_z(rotation) . translate(offset) . scale, in
    ezdxf's row-vector order (first matrix is applied first)."""
    return Matrix44.chain(
        Matrix44.scale(scale[0], scale[1], scale[2]),
        Matrix44.translate(offset[0], offset[1], offset[2]),
        z_rotation(rotation_degrees),
        Matrix44.translate(insert[0], insert[1], insert[2]),
    )


def compose(instance: Matrix44, parent: Matrix44) -> Matrix44:
    return Matrix44.chain(instance, parent)


def apply(matrix: Matrix44, point: Point3D) -> Point3D:
    v = matrix.transform(point)
    return (v.x, v.y, v.z)


def apply_all(matrix: Matrix44, points: Iterable[Point3D]) -> list[Point3D]:
    return [apply(matrix, point) for point in points]


def apply_direction(matrix: Matrix44, vector: Point3D) -> Point3D:
    v = matrix.transform_direction(vector)
    return (v.x, v.y, v.z)


def rotate_angle(matrix: Matrix44, degrees: float) -> float:
    """Angle in degrees of the x-axis direction ``degrees`` after ``matrix``."""
    radians = math.radians(degrees)
    x, y, _ = apply_direction(matrix, (math.cos(radians), math.sin(radians), 0.0))
    if x == 0.0 and y == 0.0:
        return degrees
    return math.degrees(math.atan2(y, x))


class TransformStack:
    """Frames of nested block instances, kept in a list indexed by depth."""

    def __init__(self) -> None:
        self.current = Matrix44()
        self.frames: list[StackFrame] = []

    @property
    def depth(self) -> int:
        return len(self.frames)

    def active_blocks(self) -> list[str]:
        return [frame.block for frame in self.frames]

    def push(self, transform: Matrix44, *, block: str, return_offset: int) -> int:
        self.frames.append(StackFrame(return_offset, self.current, block))
        self.current = transform
        return self.depth

    def pop(self) -> StackFrame | None:
        if not self.frames:
            return None
        frame = self.frames.pop()
        self.current = frame.saved_transform
        return frame


def z_rotation(degrees: float) -> Matrix44:
    """Rotation about z; quarter turns get exact 0/1 sine and cosine."""
    quarter, remainder = divmod(degrees, 90.0)
    if remainder == 0.0:
        cos_a, sin_a = _QUARTER_TURNS[int(quarter) % 4]
    else:
        radians = math.radians(degrees)
        cos_a, sin_a = math.cos(radians), math.sin(radians)
    return Matrix44(
        [
            cos_a, sin_a, 0.0, 0.0,
            -sin_a, cos_a, 0.0, 0.0,
            0.0, 0.0, 1.0, 0.0,
            0.0, 0.0, 0.0, 1.0,
        ]
    )


_QUARTER_TURNS = ((1.0, 0.0), (0.0, 1.0), (-1.0, 0.0), (0.0, -1.0))
