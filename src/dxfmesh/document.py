from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from .config import Config
from .context import Block, ParseContext
from .curves import CurveEvaluator
from .entities import EntityStateMachine
from .entity import MeshPayload, WirePayload
from .errors import InputReadError
from .layers import DEFAULT_COLOR, Layer
from .records import RecordReader
from .sections import SectionDispatcher

if TYPE_CHECKING:
    from .convert import ConvertResult, GeometrySink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Document:
    layers: list[Layer]
    blocks: dict[str, Block]
    units: int = 0
    header: dict[str, int] = field(default_factory=dict)

    def layer(self, name: str, color: int | None = None) -> Layer | None:
        for layer in self.layers:
            if layer.name == name and (color is None or layer.color == color):
                return layer
        return None

    def nonempty_layers(self) -> list[Layer]:
        return [layer for layer in self.layers if not layer.is_empty()]

    def export(self, sink: GeometrySink) -> int:
        """Hand every non-empty layer to ``sink``; returns the number of layers exported."""
        exported = 0
        for layer in self.nonempty_layers():
            _log_layer_summary(layer)
            color = export_color(layer.color)
            if layer.triangles:
                sink.add_mesh(
                    MeshPayload(
                        layer=layer.name,
                        color=color,
                        vertices=tuple(layer.vertices),
                        triangles=tuple(layer.triangles),
                    )
                )
            if layer.wires or layer.points or layer.texts:
                sink.add_wires(
                    WirePayload(
                        layer=layer.name,
                        color=color,
                        chains=tuple(layer.wires),
                        points=tuple(layer.points),
                        texts=tuple(layer.texts),
                    )
                )
            exported += 1
        return exported

    def to_dxf(self, output_path: str, *, dxf_version: str = "R2010") -> ConvertResult:
        from .convert import to_dxf

        return to_dxf(self, output_path, dxf_version=dxf_version)


class Parser:
    """One pass over a record stream; blocks are replayed from memory on instancing."""

    def __init__(
        self,
        config: Config | None = None,
        *,
        curve_evaluator: CurveEvaluator | None = None,
    ) -> None:
        self.ctx = ParseContext(config, curve_evaluator)
        self.entities = EntityStateMachine(self.ctx)
        self.sections = SectionDispatcher(self.ctx, self.entities)

    def run(self, reader: RecordReader) -> None:
        try:
            for record in reader:
                self.ctx.position = reader.position
                self.sections.dispatch(record)
        finally:
            self.sections.finish()

    def document(self) -> Document:
        ctx = self.ctx
        return Document(
            layers=list(ctx.layers),
            blocks=dict(ctx.blocks),
            units=ctx.units,
            header=dict(ctx.header),
        )


def read(
    stream: Iterable[str],
    config: Config | None = None,
    *,
    curve_evaluator: CurveEvaluator | None = None,
) -> Document:
    parser = Parser(config, curve_evaluator=curve_evaluator)
    parser.run(RecordReader(stream))
    return parser.document()


def loads(
    text: str,
    config: Config | None = None,
    *,
    curve_evaluator: CurveEvaluator | None = None,
) -> Document:
    return read(io.StringIO(text), config, curve_evaluator=curve_evaluator)


def convert(
    stream: Iterable[str],
    sink: GeometrySink,
    config: Config | None = None,
    *,
    curve_evaluator: CurveEvaluator | None = None,
) -> Document:
    """Parse ``stream`` and export its layers to ``sink``.

    Geometry gathered before a read failure is still exported; the read
    failure is re-raised afterwards, also when that export fails.
    """
    parser = Parser(config, curve_evaluator=curve_evaluator)
    try:
        parser.run(RecordReader(stream))
    except InputReadError:
        try:
            parser.document().export(sink)
        except Exception:
            logger.exception("exporting partial geometry after a read failure failed")
        raise
    document = parser.document()
    document.export(sink)
    return document


def export_color(color: int) -> int:
    if color < 0:
        color = -color
    if color == 0 or color > 255:
        return DEFAULT_COLOR
    return color


def _log_layer_summary(layer: Layer) -> None:
    logger.info("LAYER: %s, color = %d", layer.name, export_color(layer.color))
    for kind, count in sorted(layer.counts.items()):
        if count:
            logger.info("\t%d %s", count, kind)
