from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Iterable

from ezdxf.math import Matrix44

from .config import UNIT_FACTORS, Config
from .curves import BSplineEvaluator, CurveEvaluator
from .entity import Point3D
from .layers import BY_BLOCK_COLOR, DEFAULT_LAYER_NAME, Layer, LayerRegistry, sanitize_layer_name
from .records import RecordPair, parse_float, parse_int
from .transform import TransformStack, apply, apply_all

logger = logging.getLogger(__name__)


class Section(enum.Enum):
    UNKNOWN = "UNKNOWN"
    HEADER = "HEADER"
    CLASSES = "CLASSES"
    TABLES = "TABLES"
    BLOCKS = "BLOCKS"
    ENTITIES = "ENTITIES"
    OBJECTS = "OBJECTS"
    THUMBNAIL = "THUMBNAILIMAGE"


class EntityState(enum.Enum):
    UNKNOWN = "UNKNOWN"
    POLYLINE = "POLYLINE"
    POLYLINE_VERTEX = "VERTEX"
    FACE3D = "3DFACE"
    LINE = "LINE"
    INSERT = "INSERT"
    MINSERT = "MINSERT"
    POINT = "POINT"
    CIRCLE = "CIRCLE"
    ARC = "ARC"
    DIMENSION = "DIMENSION"
    TEXT = "TEXT"
    SOLID = "SOLID"
    TRACE = "TRACE"
    LWPOLYLINE = "LWPOLYLINE"
    MTEXT = "MTEXT"
    LEADER = "LEADER"
    ATTRIB = "ATTRIB"
    ATTDEF = "ATTDEF"
    ELLIPSE = "ELLIPSE"
    SPLINE = "SPLINE"
    VIEWPORT = "VIEWPORT"


@dataclass
class ParseState:
    section: Section = Section.UNKNOWN
    entity_state: EntityState = EntityState.UNKNOWN
    layer_name: str = DEFAULT_LAYER_NAME
    color: int = BY_BLOCK_COLOR

    def reset_entity_attributes(self) -> None:
        self.layer_name = DEFAULT_LAYER_NAME
        self.color = BY_BLOCK_COLOR


@dataclass(frozen=True)
class Block:
    name: str
    handle: str | None
    base_point: Point3D
    definition_offset: int
    records: tuple[RecordPair, ...] = field(default=(), repr=False)


class ParseContext:
    """Everything one parse run mutates, shared by reference with every handler."""

    def __init__(self, config: Config | None = None, curve_evaluator: CurveEvaluator | None = None) -> None:
        self.config = config or Config()
        self.state = ParseState()
        self.layers = LayerRegistry(
            tolerance=self.config.tolerance,
            ignore_colors=self.config.ignore_colors,
            color_by_layer=self.config.color_by_layer,
        )
        self.blocks: dict[str, Block] = {}
        self.stack = TransformStack()
        self.curve_evaluator = curve_evaluator or BSplineEvaluator()
        self.units = 0
        self.spline_segments = self.config.spline_segments
        self.header: dict[str, int] = {}
        self.position = 0

    @property
    def transform(self) -> Matrix44:
        return self.stack.current

    @property
    def unit_factor(self) -> float:
        return UNIT_FACTORS[self.units] * self.config.scale_factor

    def scaled(self, value: str) -> float:
        """Coordinate or length value scaled to drawing units."""
        return parse_float(value) * self.unit_factor

    def transform_point(self, point: Point3D) -> Point3D:
        return apply(self.stack.current, point)

    def transform_points(self, points: Iterable[Point3D]) -> list[Point3D]:
        return apply_all(self.stack.current, points)

    def set_layer_name(self, value: str) -> None:
        self.state.layer_name = sanitize_layer_name(value.strip())

    def set_color(self, value: str) -> None:
        self.state.color = parse_int(value)

    def active_layer(self) -> Layer:
        return self.layers.get_or_create(self.state.layer_name, self.state.color)

    def set_header_variable(self, name: str, value: int) -> None:
        self.header[name] = value
        if name == "$INSUNITS":
            if 0 <= value < len(UNIT_FACTORS):
                self.units = value
            else:
                logger.warning("unrecognized unit selector %d, keeping %d", value, self.units)
        elif name == "$SPLINESEGS":
            if value > 0:
                self.spline_segments = value
        elif name == "$CECOLOR":
            self.layers.color_by_layer = self.config.color_by_layer or value == BY_BLOCK_COLOR
