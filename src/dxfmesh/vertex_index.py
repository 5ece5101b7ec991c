from __future__ import annotations

from dataclasses import dataclass

from .entity import Point3D


@dataclass(frozen=True)
class Leaf:
    index: int


@dataclass(frozen=True)
class Internal:
    axis: int
    cut: float
    lower: int
    higher: int


Node = Leaf | Internal


class VertexIndex:
    """Binary spatial tree that maps points to stable indices under a tolerance.

    Nodes live in an arena (``nodes``) and refer to their children by arena
    position. The first point becomes the root; every later point that is not
    within tolerance of the leaf it reaches splits that leaf in place: the arena
    slot becomes an ``Internal`` node cutting at the midpoint of the axis with
    the largest difference, and both points get fresh leaves.
    """

    def __init__(self, tolerance: float = 0.01) -> None:
        self.tolerance = tolerance
        self.tolerance_sq = tolerance * tolerance
        self.points: list[Point3D] = []
        self.nodes: list[Node] = []

    def __len__(self) -> int:
        return len(self.points)

    def add(self, point: Point3D) -> int:
        point = (float(point[0]), float(point[1]), float(point[2]))
        if not self.nodes:
            self.points.append(point)
            self.nodes.append(Leaf(0))
            return 0

        node_id = 0
        node = self.nodes[0]
        while isinstance(node, Internal):
            node_id = node.higher if point[node.axis] >= node.cut else node.lower
            node = self.nodes[node_id]

        existing = self.points[node.index]
        diff = (
            point[0] - existing[0],
            point[1] - existing[1],
            point[2] - existing[2],
        )
        if diff[0] * diff[0] + diff[1] * diff[1] + diff[2] * diff[2] <= self.tolerance_sq:
            return node.index

        index = len(self.points)
        self.points.append(point)

        axis = _split_axis(diff)
        cut = (point[axis] + existing[axis]) * 0.5
        old_leaf = len(self.nodes)
        self.nodes.append(node)
        new_leaf = len(self.nodes)
        self.nodes.append(Leaf(index))
        if point[axis] >= existing[axis]:
            self.nodes[node_id] = Internal(axis, cut, lower=old_leaf, higher=new_leaf)
        else:
            self.nodes[node_id] = Internal(axis, cut, lower=new_leaf, higher=old_leaf)
        return index

    def depth(self) -> int:
        if not self.nodes:
            return 0
        deepest = 0
        pending = [(0, 1)]
        while pending:
            node_id, level = pending.pop()
            node = self.nodes[node_id]
            if isinstance(node, Internal):
                pending.append((node.lower, level + 1))
                pending.append((node.higher, level + 1))
            else:
                deepest = max(deepest, level)
        return deepest


def _split_axis(diff: tuple[float, float, float]) -> int:
    dx, dy, dz = abs(diff[0]), abs(diff[1]), abs(diff[2])
    if dx >= dy and dx >= dz:
        return 0
    if dy >= dz:
        return 1
    return 2
