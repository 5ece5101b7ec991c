from __future__ import annotations

from dataclasses import dataclass

Point3D = tuple[float, float, float]
Triangle = tuple[int, int, int]


@dataclass(frozen=True)
class WireChain:
    points: tuple[Point3D, ...]
    closed: bool = False


@dataclass(frozen=True)
class TextLine:
    text: str
    insert: Point3D
    height: float
    rotation: float = 0.0


@dataclass(frozen=True)
class MeshPayload:
    layer: str
    color: int
    vertices: tuple[Point3D, ...]
    triangles: tuple[Triangle, ...]


@dataclass(frozen=True)
class WirePayload:
    layer: str
    color: int
    chains: tuple[WireChain, ...]
    points: tuple[Point3D, ...] = ()
    texts: tuple[TextLine, ...] = ()
