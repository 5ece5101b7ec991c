from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from .entity import Point3D, TextLine, Triangle, WireChain
from .vertex_index import VertexIndex

logger = logging.getLogger(__name__)

DEFAULT_LAYER_NAME = "noname"
DEFAULT_COLOR = 7
BY_BLOCK_COLOR = 256

_UNSAFE_NAME_CHARS = re.compile(r"[/\[\]*\s]")


def sanitize_layer_name(name: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("_", name)


@dataclass
class Layer:
    name: str
    color: int
    vertex_index: VertexIndex
    triangles: list[Triangle] = field(default_factory=list)
    wires: list[WireChain] = field(default_factory=list)
    points: list[Point3D] = field(default_factory=list)
    texts: list[TextLine] = field(default_factory=list)
    counts: Counter[str] = field(default_factory=Counter)

    @property
    def vertices(self) -> list[Point3D]:
        return self.vertex_index.points

    def is_empty(self) -> bool:
        return not (self.triangles or self.wires or self.points or self.texts)

    def add_vertex(self, point: Point3D) -> int:
        return self.vertex_index.add(point)

    def add_triangle(self, v1: int, v2: int, v3: int) -> bool:
        if v1 == v2 or v2 == v3 or v1 == v3:
            return False
        self.triangles.append((v1, v2, v3))
        return True

    def add_wire(self, points: Iterable[Point3D], closed: bool = False) -> WireChain | None:
        chain_points = tuple(points)
        if len(chain_points) < 2:
            return None
        chain = WireChain(chain_points, closed=closed)
        self.wires.append(chain)
        return chain


class LayerRegistry:
    """Layers in creation order; index 0 is the default ``noname`` layer.

    Lookup keys on (name, color) unless colors are ignored, color-by-layer is
    on, or the color is the by-block sentinel 256, in which case only the name
    counts.
    """

    def __init__(
        self,
        *,
        tolerance: float = 0.01,
        ignore_colors: bool = False,
        color_by_layer: bool = False,
    ) -> None:
        self.tolerance = tolerance
        self.ignore_colors = ignore_colors
        self.color_by_layer = color_by_layer
        self.layers: list[Layer] = [self._new_layer(DEFAULT_LAYER_NAME, DEFAULT_COLOR)]

    def __iter__(self) -> Iterator[Layer]:
        return iter(self.layers)

    def __len__(self) -> int:
        return len(self.layers)

    @property
    def default(self) -> Layer:
        return self.layers[0]

    def get_or_create(self, name: str, color: int) -> Layer:
        match_color = not self.color_by_layer and not self.ignore_colors and color != BY_BLOCK_COLOR
        for layer in self.layers[1:]:
            if layer.name != name:
                continue
            if match_color and layer.color != color:
                continue
            return layer

        if name == DEFAULT_LAYER_NAME and (not match_color or color == DEFAULT_COLOR):
            return self.default

        layer = self._new_layer(name, color)
        self.layers.append(layer)
        logger.debug("created layer %s (color %d)", name, color)
        return layer

    def _new_layer(self, name: str, color: int) -> Layer:
        return Layer(name=name, color=color, vertex_index=VertexIndex(self.tolerance))
