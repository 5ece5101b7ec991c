from __future__ import annotations

import logging
import math

from ezdxf.math import Matrix44

from .context import Block, EntityState, ParseContext, Section
from .entity import Point3D
from .errors import (
    CurveEvaluationError,
    RecoverableSemanticError,
    RecursiveBlockError,
    StructuralAnomaly,
    UnknownBlockError,
)
from .geometry import (
    arc_points,
    circle_points,
    ellipse_points,
    face_triangles,
    mesh_triangles,
    solid_outline,
)
from .layers import Layer
from .records import RecordPair, parse_float, parse_int
from .text import expand_escapes, layout_mtext, layout_text
from .transform import compose, instance_matrix, rotate_angle

logger = logging.getLogger(__name__)

POLYLINE_CLOSED = 1
POLYLINE_3D_MESH = 16
POLYLINE_CLOSED_N = 32
POLYLINE_POLYFACE = 64

VERTEX_SPLINE_FRAME = 16
VERTEX_3D_MESH = 64
VERTEX_FACE = 128

SPLINE_CLOSED = 1

ENTITY_KEYWORDS = {
    state.value: state
    for state in EntityState
    if state not in (EntityState.UNKNOWN, EntityState.POLYLINE_VERTEX)
}

_END_OF_INPUT = RecordPair(0, "SEQEND")


class PointSlots:
    """Fixed set of points addressed by group code: slot = code % 10, axis = code // 10 - 1."""

    def __init__(self, count: int) -> None:
        self.points = [[0.0, 0.0, 0.0] for _ in range(count)]
        self.highest = -1

    def set(self, code: int, value: float) -> bool:
        if not 10 <= code < 40:
            return False
        slot = code % 10
        if slot >= len(self.points):
            return False
        self.points[slot][code // 10 - 1] = value
        self.highest = max(self.highest, slot)
        return True

    def point(self, slot: int) -> Point3D:
        x, y, z = self.points[slot]
        return (x, y, z)

    def used(self) -> list[Point3D]:
        return [self.point(slot) for slot in range(self.highest + 1)]


class EntityHandler:
    kind = ""

    def __init__(self, machine: EntityStateMachine) -> None:
        self.machine = machine
        self.ctx: ParseContext = machine.ctx
        self.begin()

    def begin(self) -> None:
        pass

    def feed(self, record: RecordPair) -> None:
        if record.code == 8:
            self.ctx.set_layer_name(record.value)
        elif record.code == 62:
            self.ctx.set_color(record.value)
        else:
            self.field(record.code, record.value)

    def field(self, code: int, value: str) -> None:
        pass

    def terminate(self, record: RecordPair) -> tuple[EntityState, bool]:
        """Close the entity on a code-0 record.

        Returns the next substate and whether ``record`` must be dispatched
        again from that substate.
        """
        self.finish()
        return EntityState.UNKNOWN, True

    def finish(self) -> None:
        pass

    def counted_layer(self) -> Layer:
        layer = self.ctx.active_layer()
        layer.counts[self.kind] += 1
        return layer


class LineHandler(EntityHandler):
    kind = "LINE"

    def begin(self) -> None:
        self.slots = PointSlots(2)

    def field(self, code: int, value: str) -> None:
        self.slots.set(code, self.ctx.scaled(value))

    def finish(self) -> None:
        layer = self.counted_layer()
        layer.add_wire(self.ctx.transform_points([self.slots.point(0), self.slots.point(1)]))


class FaceHandler(EntityHandler):
    kind = "3DFACE"

    def begin(self) -> None:
        self.slots = PointSlots(4)

    def field(self, code: int, value: str) -> None:
        scaled = self.ctx.scaled(value)
        if self.slots.set(code, scaled) and code % 10 == 2:
            # three-corner faces repeat the third corner
            self.slots.set(code + 1, scaled)

    def finish(self) -> None:
        layer = self.counted_layer()
        corners = self.ctx.transform_points(self.slots.point(slot) for slot in range(4))
        v0, v1, v2, v3 = (layer.add_vertex(corner) for corner in corners)
        for triangle in face_triangles(v0, v1, v2, v3):
            layer.add_triangle(*triangle)


class SolidHandler(EntityHandler):
    def __init__(self, machine: EntityStateMachine, kind: str) -> None:
        self.kind = kind
        super().__init__(machine)

    def begin(self) -> None:
        self.slots = PointSlots(4)

    def field(self, code: int, value: str) -> None:
        self.slots.set(code, self.ctx.scaled(value))

    def finish(self) -> None:
        layer = self.counted_layer()
        outline = solid_outline(self.slots.used())
        layer.add_wire(self.ctx.transform_points(outline), closed=True)


class PointHandler(EntityHandler):
    kind = "POINT"

    def begin(self) -> None:
        self.slots = PointSlots(1)

    def field(self, code: int, value: str) -> None:
        self.slots.set(code, self.ctx.scaled(value))

    def finish(self) -> None:
        layer = self.counted_layer()
        layer.points.append(self.ctx.transform_point(self.slots.point(0)))


class CircleHandler(EntityHandler):
    kind = "CIRCLE"

    def begin(self) -> None:
        self.center = PointSlots(1)
        self.radius = 0.0
        self.start_angle = 0.0
        self.end_angle = 360.0

    def field(self, code: int, value: str) -> None:
        if code == 40:
            self.radius = self.ctx.scaled(value)
        elif code == 50:
            self.start_angle = parse_float(value)
        elif code == 51:
            self.end_angle = parse_float(value)
        else:
            self.center.set(code, self.ctx.scaled(value))

    def finish(self) -> None:
        layer = self.counted_layer()
        if self.radius <= 0.0:
            logger.debug("%s with radius %g skipped", self.kind, self.radius)
            return
        points = circle_points(self.center.point(0), self.radius, self.ctx.config.segments_per_circle)
        layer.add_wire(self.ctx.transform_points(points), closed=True)


class ArcHandler(CircleHandler):
    kind = "ARC"

    def finish(self) -> None:
        layer = self.counted_layer()
        if self.radius <= 0.0:
            logger.debug("%s with radius %g skipped", self.kind, self.radius)
            return
        points = arc_points(
            self.center.point(0),
            self.radius,
            self.start_angle,
            self.end_angle,
            self.ctx.config.segments_per_circle,
        )
        layer.add_wire(self.ctx.transform_points(points))


class EllipseHandler(EntityHandler):
    kind = "ELLIPSE"

    def begin(self) -> None:
        self.slots = PointSlots(2)
        self.ratio = 1.0
        self.start_param = 0.0
        self.end_param = 2.0 * math.pi

    def field(self, code: int, value: str) -> None:
        if code == 40:
            self.ratio = parse_float(value)
        elif code == 41:
            self.start_param = parse_float(value)
        elif code == 42:
            self.end_param = parse_float(value)
        else:
            self.slots.set(code, self.ctx.scaled(value))

    def finish(self) -> None:
        layer = self.counted_layer()
        points, closed = ellipse_points(
            self.slots.point(0),
            self.slots.point(1),
            self.ratio,
            self.start_param,
            self.end_param,
        )
        layer.add_wire(self.ctx.transform_points(points), closed=closed)


class LwPolylineHandler(EntityHandler):
    kind = "LWPOLYLINE"

    def begin(self) -> None:
        self.flag = 0
        self.x = 0.0
        self.points: list[Point3D] = []

    def field(self, code: int, value: str) -> None:
        if code == 70:
            self.flag = parse_int(value)
        elif code == 10:
            self.x = self.ctx.scaled(value)
        elif code == 20:
            self.points.append((self.x, self.ctx.scaled(value), 0.0))

    def finish(self) -> None:
        layer = self.counted_layer()
        layer.add_wire(self.ctx.transform_points(self.points), closed=bool(self.flag & POLYLINE_CLOSED))


class PolylineHandler(EntityHandler):
    """POLYLINE header; its VERTEX records are fed through ``VertexHandler``."""

    kind = "POLYLINE"

    def begin(self) -> None:
        self.flag = 0
        self.m = 0
        self.n = 0
        self.points: list[Point3D] = []
        self.mesh_indices: list[int] = []
        self.layer: Layer | None = None

    def field(self, code: int, value: str) -> None:
        if code == 70:
            self.flag = parse_int(value)
        elif code == 71:
            self.m = parse_int(value)
        elif code == 72:
            self.n = parse_int(value)

    def vertex_layer(self) -> Layer:
        if self.layer is None:
            self.layer = self.ctx.active_layer()
        return self.layer

    def terminate(self, record: RecordPair) -> tuple[EntityState, bool]:
        keyword = record.keyword
        if keyword == "VERTEX":
            self.vertex_layer()
            self.machine.vertex.begin()
            return EntityState.POLYLINE_VERTEX, False
        if keyword == "SEQEND":
            self.finish()
            return EntityState.UNKNOWN, False
        logger.warning("POLYLINE ended by %s without SEQEND", keyword)
        self.finish()
        return EntityState.UNKNOWN, True

    def finish(self) -> None:
        layer = self.vertex_layer()
        if self.flag & POLYLINE_3D_MESH:
            triangles = mesh_triangles(
                self.mesh_indices,
                self.m,
                self.n,
                closed_m=bool(self.flag & POLYLINE_CLOSED),
                closed_n=bool(self.flag & POLYLINE_CLOSED_N),
            )
            for triangle in triangles:
                layer.add_triangle(*triangle)
        elif not self.flag & POLYLINE_POLYFACE:
            layer.add_wire(
                self.ctx.transform_points(self.points),
                closed=bool(self.flag & POLYLINE_CLOSED),
            )
        layer.counts[self.kind] += 1


class VertexHandler(EntityHandler):
    kind = "VERTEX"

    def __init__(self, machine: EntityStateMachine, owner: PolylineHandler) -> None:
        self.owner = owner
        super().__init__(machine)

    def begin(self) -> None:
        self.slots = PointSlots(1)
        self.flag = 0
        self.face = [0, 0, 0, 0]

    def feed(self, record: RecordPair) -> None:
        # vertices belong to the layer of their POLYLINE header
        self.field(record.code, record.value)

    def field(self, code: int, value: str) -> None:
        if code == 70:
            self.flag = parse_int(value)
        elif 71 <= code <= 74:
            self.face[code - 71] = abs(parse_int(value))
        else:
            self.slots.set(code, self.ctx.scaled(value))

    def terminate(self, record: RecordPair) -> tuple[EntityState, bool]:
        self.finish()
        return EntityState.POLYLINE, True

    def finish(self) -> None:
        owner = self.owner
        if self.flag & VERTEX_FACE and not self.flag & VERTEX_3D_MESH:
            self._add_face(owner.vertex_layer(), owner.mesh_indices)
        elif self.flag & VERTEX_3D_MESH:
            point = self.ctx.transform_point(self.slots.point(0))
            owner.mesh_indices.append(owner.vertex_layer().add_vertex(point))
        elif not self.flag & VERTEX_SPLINE_FRAME:
            owner.points.append(self.slots.point(0))

    def _add_face(self, layer: Layer, mesh_indices: list[int]) -> None:
        count = len(mesh_indices)
        used = self.face if self.face[3] else self.face[:3]
        if any(index < 1 or index > count for index in used):
            logger.warning("face %s refers to missing vertices (have %d)", self.face, count)
            return
        v = [mesh_indices[index - 1] for index in used]
        layer.add_triangle(v[0], v[1], v[2])
        if len(v) == 4:
            layer.add_triangle(v[2], v[3], v[0])


class InsertHandler(EntityHandler):
    kind = "INSERT"

    def begin(self) -> None:
        self.block_name: str | None = None
        self.insert = PointSlots(1)
        self.scale = [1.0, 1.0, 1.0]
        self.rotation = 0.0
        self.columns = 1
        self.rows = 1
        self.column_spacing = 0.0
        self.row_spacing = 0.0
        self.extrusion = [0.0, 0.0, 1.0]

    def field(self, code: int, value: str) -> None:
        if code == 2:
            self.block_name = value.strip()
        elif 41 <= code <= 43:
            self.scale[code - 41] = parse_float(value)
        elif code == 44:
            self.column_spacing = self.ctx.scaled(value)
        elif code == 45:
            self.row_spacing = self.ctx.scaled(value)
        elif code == 50:
            self.rotation = parse_float(value)
        elif code == 70:
            self.columns = parse_int(value)
        elif code == 71:
            self.rows = parse_int(value)
        elif code in (210, 220, 230):
            self.extrusion[code // 10 - 21] = parse_float(value)
        else:
            self.insert.set(code, self.ctx.scaled(value))

    def finish(self) -> None:
        if self.block_name is None:
            logger.warning("INSERT without a block name skipped")
            return
        block = self.ctx.blocks.get(self.block_name)
        if block is None:
            raise UnknownBlockError(self.block_name)

        # nested instances reuse this handler, so take a copy first
        insert = self.insert.point(0)
        scale = (self.scale[0], self.scale[1], self.scale[2])
        rotation = self.rotation
        columns, rows = max(self.columns, 1), max(self.rows, 1)
        dx, dy = self.column_spacing, self.row_spacing
        for row in range(rows):
            for column in range(columns):
                instance = instance_matrix(insert, rotation, scale, offset=(column * dx, row * dy, 0.0))
                self.machine.instantiate(block, instance)


class DimensionHandler(EntityHandler):
    kind = "DIMENSION"

    def begin(self) -> None:
        self.block_name: str | None = None

    def field(self, code: int, value: str) -> None:
        if code == 2:
            self.block_name = value.strip()

    def finish(self) -> None:
        if self.block_name is None:
            return
        block = self.ctx.blocks.get(self.block_name)
        if block is None:
            raise UnknownBlockError(self.block_name)
        self.counted_layer()
        self.machine.instantiate(block, Matrix44())


class TextHandler(EntityHandler):
    """TEXT, ATTRIB and ATTDEF; ATTRIB/ATTDEF carry the vertical alignment in group 74."""

    def __init__(self, machine: EntityStateMachine, kind: str, vertical_code: int = 73) -> None:
        self.kind = kind
        self.vertical_code = vertical_code
        super().__init__(machine)

    def begin(self) -> None:
        self.text = ""
        self.slots = PointSlots(2)
        self.height = 0.0
        self.rotation = 0.0
        self.horizontal = 0
        self.vertical = 0

    def field(self, code: int, value: str) -> None:
        if code == 1:
            self.text = value
        elif code == 40:
            self.height = self.ctx.scaled(value)
        elif code == 50:
            self.rotation = parse_float(value)
        elif code == 72:
            self.horizontal = parse_int(value)
        elif code == self.vertical_code:
            self.vertical = parse_int(value)
        else:
            self.slots.set(code, self.ctx.scaled(value))

    def finish(self) -> None:
        if not self.text:
            return
        ctx = self.ctx
        second = ctx.transform_point(self.slots.point(1)) if self.slots.highest >= 1 else None
        lines = layout_text(
            expand_escapes(self.text),
            first=ctx.transform_point(self.slots.point(0)),
            second=second,
            height=self.height,
            rotation=rotate_angle(ctx.transform, self.rotation),
            horizontal=self.horizontal,
            vertical=self.vertical,
        )
        layer = self.counted_layer()
        layer.texts.extend(lines)


class MTextHandler(EntityHandler):
    kind = "MTEXT"

    def begin(self) -> None:
        self.chunks: list[str] = []
        self.insert = PointSlots(1)
        self.direction = [0.0, 0.0, 0.0]
        self.height = 0.0
        self.rect_width = 0.0
        self.char_width = 0.0
        self.entity_height = 0.0
        self.rotation = 0.0
        self.attachment = 1
        self.drawing_direction = 1

    def field(self, code: int, value: str) -> None:
        if code in (1, 3):
            self.chunks.append(value)
        elif code in (11, 21, 31):
            self.direction[code // 10 - 1] = parse_float(value)
        elif code == 40:
            self.height = self.ctx.scaled(value)
        elif code == 41:
            self.rect_width = self.ctx.scaled(value)
        elif code == 42:
            self.char_width = self.ctx.scaled(value)
        elif code == 43:
            self.entity_height = self.ctx.scaled(value)
        elif code == 50:
            self.rotation = parse_float(value)
        elif code == 71:
            self.attachment = parse_int(value)
        elif code == 72:
            self.drawing_direction = parse_int(value)
        else:
            self.insert.set(code, self.ctx.scaled(value))

    def finish(self) -> None:
        layer = self.counted_layer()
        text = "".join(self.chunks)
        if not text:
            return
        rotation = self.rotation
        if self.direction[0] or self.direction[1]:
            rotation = math.degrees(math.atan2(self.direction[1], self.direction[0]))
        attachment = self.attachment
        if not 1 <= attachment <= 9:
            logger.warning("MTEXT attachment point %d unknown, using top left", attachment)
            attachment = 1
        ctx = self.ctx
        layer.texts.extend(
            layout_mtext(
                expand_escapes(text),
                insert=ctx.transform_point(self.insert.point(0)),
                rotation=rotate_angle(ctx.transform, rotation),
                attachment=attachment,
                height=self.height,
                char_width=self.char_width,
                entity_height=self.entity_height,
            )
        )


class LeaderHandler(EntityHandler):
    kind = "LEADER"

    def begin(self) -> None:
        self.arrow_head = 0
        self.pending = [0.0, 0.0, 0.0]
        self.points: list[Point3D] = []

    def field(self, code: int, value: str) -> None:
        if code == 71:
            self.arrow_head = parse_int(value)
        elif code in (10, 20, 30):
            self.pending[code // 10 - 1] = self.ctx.scaled(value)
            if code == 30:
                self.points.append((self.pending[0], self.pending[1], self.pending[2]))

    def finish(self) -> None:
        layer = self.counted_layer()
        layer.add_wire(self.ctx.transform_points(self.points))


class SplineHandler(EntityHandler):
    kind = "SPLINE"

    def begin(self) -> None:
        self.flag = 0
        self.degree = 0
        self.knots: list[float] = []
        self.weights: list[float] = []
        self.control_points: list[list[float]] = []
        self.fit_points: list[list[float]] = []

    def field(self, code: int, value: str) -> None:
        if code == 70:
            self.flag = parse_int(value)
        elif code == 71:
            self.degree = parse_int(value)
        elif code == 40:
            self.knots.append(parse_float(value))
        elif code == 41:
            self.weights.append(parse_float(value))
        elif code in (10, 20, 30):
            _accumulate(self.control_points, code, self.ctx.scaled(value))
        elif code in (11, 21, 31):
            _accumulate(self.fit_points, code, self.ctx.scaled(value))

    def finish(self) -> None:
        ctx = self.ctx
        control_points = [(p[0], p[1], p[2]) for p in self.control_points]
        weights = (self.weights + [1.0] * len(control_points))[: len(control_points)]
        try:
            points = ctx.curve_evaluator.sample(
                self.degree, self.knots, control_points, weights, ctx.spline_segments
            )
        except CurveEvaluationError:
            if len(self.fit_points) < 2:
                raise
            points = [(p[0], p[1], p[2]) for p in self.fit_points]
        layer = self.counted_layer()
        layer.add_wire(ctx.transform_points(points), closed=bool(self.flag & SPLINE_CLOSED))


class ViewportHandler(EntityHandler):
    kind = "VIEWPORT"


def _accumulate(points: list[list[float]], code: int, value: float) -> None:
    # the x coordinate opens a new point
    if code % 100 < 20 or not points:
        points.append([0.0, 0.0, 0.0])
    points[-1][code // 10 - 1] = value


class EntityStateMachine:
    """Substate machine of the ENTITIES section and of block replays."""

    def __init__(self, ctx: ParseContext) -> None:
        self.ctx = ctx
        self.polyline = PolylineHandler(self)
        self.vertex = VertexHandler(self, self.polyline)
        insert = InsertHandler(self)
        self._handlers: dict[EntityState, EntityHandler] = {
            EntityState.POLYLINE: self.polyline,
            EntityState.POLYLINE_VERTEX: self.vertex,
            EntityState.FACE3D: FaceHandler(self),
            EntityState.LINE: LineHandler(self),
            EntityState.INSERT: insert,
            EntityState.MINSERT: insert,
            EntityState.POINT: PointHandler(self),
            EntityState.CIRCLE: CircleHandler(self),
            EntityState.ARC: ArcHandler(self),
            EntityState.DIMENSION: DimensionHandler(self),
            EntityState.TEXT: TextHandler(self, "TEXT"),
            EntityState.SOLID: SolidHandler(self, "SOLID"),
            EntityState.TRACE: SolidHandler(self, "TRACE"),
            EntityState.LWPOLYLINE: LwPolylineHandler(self),
            EntityState.MTEXT: MTextHandler(self),
            EntityState.LEADER: LeaderHandler(self),
            EntityState.ATTRIB: TextHandler(self, "ATTRIB", vertical_code=74),
            EntityState.ATTDEF: TextHandler(self, "ATTDEF", vertical_code=74),
            EntityState.ELLIPSE: EllipseHandler(self),
            EntityState.SPLINE: SplineHandler(self),
            EntityState.VIEWPORT: ViewportHandler(self),
        }

    def handler(self, state: EntityState) -> EntityHandler:
        return self._handlers[state]

    def dispatch(self, record: RecordPair) -> None:
        state = self.ctx.state
        if state.entity_state is EntityState.UNKNOWN:
            self._dispatch_unknown(record)
            return

        handler = self._handlers[state.entity_state]
        if record.code != 0:
            handler.feed(record)
            return

        next_state, redispatch = self._terminate(handler, record)
        state.entity_state = next_state
        if redispatch:
            self.dispatch(record)

    def flush(self) -> None:
        """Finish whatever entity is still open when the input ends."""
        state = self.ctx.state
        while state.entity_state is not EntityState.UNKNOWN:
            handler = self._handlers[state.entity_state]
            state.entity_state, _ = self._terminate(handler, _END_OF_INPUT)

    def instantiate(self, block: Block, instance: Matrix44) -> None:
        """Replay ``block`` under ``instance`` composed with the current transform."""
        ctx = self.ctx
        if block.name in ctx.stack.active_blocks():
            raise RecursiveBlockError(block.name)

        depth = ctx.stack.push(
            compose(instance, ctx.transform),
            block=block.name,
            return_offset=ctx.position,
        )
        ctx.state.entity_state = EntityState.UNKNOWN
        for record in block.records:
            self.dispatch(record)
            if ctx.stack.depth < depth:
                break
        else:
            self.flush()
            logger.warning("block %s has no ENDBLK", block.name)
            ctx.stack.pop()
        ctx.state.entity_state = EntityState.UNKNOWN

    def end_block(self) -> None:
        frame = self.ctx.stack.pop()
        if frame is None:
            logger.warning("%s", StructuralAnomaly("ENDBLK outside of a block instance ignored"))

    def _terminate(self, handler: EntityHandler, record: RecordPair) -> tuple[EntityState, bool]:
        try:
            return handler.terminate(record)
        except RecoverableSemanticError as exc:
            logger.warning("skipping %s: %s", handler.kind, exc)
            return EntityState.UNKNOWN, True

    def _dispatch_unknown(self, record: RecordPair) -> None:
        if record.code != 0:
            return
        ctx = self.ctx
        keyword = record.keyword
        if keyword in ("SECTION", "ENDSEC"):
            ctx.state.section = Section.UNKNOWN
            return
        if keyword == "ENDBLK":
            self.end_block()
            return
        state = ENTITY_KEYWORDS.get(keyword)
        if state is None:
            logger.debug("unrecognized entity type %s (ignoring)", keyword)
            return
        ctx.state.reset_entity_attributes()
        self._handlers[state].begin()
        ctx.state.entity_state = state
