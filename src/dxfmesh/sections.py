from __future__ import annotations

import enum
import logging

from .context import Block, EntityState, ParseContext, Section
from .entities import EntityStateMachine
from .layers import sanitize_layer_name
from .records import RecordPair, parse_int

logger = logging.getLogger(__name__)

SECTION_KEYWORDS = {section.value: section for section in Section if section is not Section.UNKNOWN}
HEADER_VARIABLES = frozenset({"$INSUNITS", "$CECOLOR", "$SPLINESEGS"})
MAX_HANDLE_LENGTH = 16


def _is_section_boundary(record: RecordPair) -> bool:
    return record.code == 0 and record.keyword in ("SECTION", "ENDSEC")


class SectionHandler:
    def __init__(self, ctx: ParseContext) -> None:
        self.ctx = ctx

    def dispatch(self, record: RecordPair) -> None:
        if _is_section_boundary(record):
            self.leave()
            self.ctx.state.section = Section.UNKNOWN

    def leave(self) -> None:
        pass


class UnknownSection(SectionHandler):
    def dispatch(self, record: RecordPair) -> None:
        if record.code != 2:
            return
        section = SECTION_KEYWORDS.get(record.keyword)
        if section is None:
            logger.debug("unrecognized section %s", record.keyword)
            return
        self.ctx.state.section = section
        if section is Section.ENTITIES:
            self.ctx.state.entity_state = EntityState.UNKNOWN


class HeaderSection(SectionHandler):
    """Binds a pending variable on code 9; the next code 70/62 value is stored into it."""

    def __init__(self, ctx: ParseContext) -> None:
        super().__init__(ctx)
        self.pending: str | None = None

    def dispatch(self, record: RecordPair) -> None:
        if record.code == 9:
            name = record.keyword
            self.pending = name if name in HEADER_VARIABLES else None
        elif record.code in (70, 62) and self.pending is not None:
            self.ctx.set_header_variable(self.pending, parse_int(record.value))
            self.pending = None
        else:
            super().dispatch(record)

    def leave(self) -> None:
        self.pending = None


class TableState(enum.Enum):
    UNKNOWN_TABLE = "UNKNOWN_TABLE"
    LAYER_TABLE = "LAYER_TABLE"


class TablesSection(SectionHandler):
    def __init__(self, ctx: ParseContext) -> None:
        super().__init__(ctx)
        self.state = TableState.UNKNOWN_TABLE
        self._clear()

    def dispatch(self, record: RecordPair) -> None:
        if self.state is TableState.LAYER_TABLE:
            self._dispatch_layer(record)
        else:
            self._dispatch_unknown(record)

    def leave(self) -> None:
        self.state = TableState.UNKNOWN_TABLE
        self._clear()

    def _clear(self) -> None:
        self.name: str | None = None
        self.color: int | None = None

    def _dispatch_unknown(self, record: RecordPair) -> None:
        if record.code != 0:
            return
        keyword = record.keyword
        if keyword == "LAYER":
            self.state = TableState.LAYER_TABLE
            self._clear()
        elif keyword == "ENDTAB":
            self._clear()
        else:
            super().dispatch(record)

    def _dispatch_layer(self, record: RecordPair) -> None:
        if record.code == 2:
            self.name = sanitize_layer_name(record.value.strip())
        elif record.code == 62:
            self.color = parse_int(record.value)
        elif record.code == 0:
            if self.name is not None and self.color is not None:
                self.ctx.layers.get_or_create(self.name, self.color)
            self._clear()
            self.state = TableState.UNKNOWN_TABLE
            self._dispatch_unknown(record)


class _PendingBlock:
    def __init__(self, offset: int) -> None:
        self.offset = offset
        self.name: str | None = None
        self.handle: str | None = None
        self.base_point = [0.0, 0.0, 0.0]
        self.records: list[RecordPair] = []
        self.in_header = True


class BlocksSection(SectionHandler):
    """Materializes every block definition as the list of records it contains.

    Name (2), handle (5) and base point (10/20/30) are read from the block
    header, i.e. before the first entity of the block.
    """

    def __init__(self, ctx: ParseContext) -> None:
        super().__init__(ctx)
        self.pending: _PendingBlock | None = None

    def dispatch(self, record: RecordPair) -> None:
        if record.code == 0:
            self._dispatch_keyword(record)
            return
        pending = self.pending
        if pending is None:
            return
        pending.records.append(record)
        if not pending.in_header:
            return
        if record.code == 2 and pending.name is None:
            pending.name = record.keyword
        elif record.code == 5:
            pending.handle = record.keyword[:MAX_HANDLE_LENGTH]
        elif record.code in (10, 20, 30):
            pending.base_point[record.code // 10 - 1] = self.ctx.scaled(record.value)

    def leave(self) -> None:
        if self.pending is not None:
            logger.warning("block %s not terminated by ENDBLK", self.pending.name)
            self._register()

    def _dispatch_keyword(self, record: RecordPair) -> None:
        keyword = record.keyword
        if keyword == "BLOCK":
            if self.pending is not None:
                logger.warning("block %s not terminated by ENDBLK", self.pending.name)
                self._register()
            self.pending = _PendingBlock(self.ctx.position)
            return
        if _is_section_boundary(record):
            super().dispatch(record)
            return
        if self.pending is None:
            logger.debug("%s outside of a block definition ignored", keyword)
            return
        self.pending.records.append(record)
        if keyword == "ENDBLK":
            self._register()
        else:
            self.pending.in_header = False

    def _register(self) -> None:
        pending = self.pending
        self.pending = None
        if pending is None:
            return
        if not pending.name:
            logger.warning("block definition without a name at record %d dropped", pending.offset)
            return
        if pending.name in self.ctx.blocks:
            logger.warning("duplicate block %s ignored, keeping the first definition", pending.name)
            return
        x, y, z = pending.base_point
        self.ctx.blocks[pending.name] = Block(
            name=pending.name,
            handle=pending.handle,
            base_point=(x, y, z),
            definition_offset=pending.offset,
            records=tuple(pending.records),
        )


class OpaqueSection(SectionHandler):
    """CLASSES, OBJECTS and THUMBNAILIMAGE: skipped up to the next section boundary."""


class SectionDispatcher:
    def __init__(self, ctx: ParseContext, entities: EntityStateMachine) -> None:
        self.ctx = ctx
        self.entities = entities
        opaque = OpaqueSection(ctx)
        self._handlers = {
            Section.UNKNOWN: UnknownSection(ctx),
            Section.HEADER: HeaderSection(ctx),
            Section.CLASSES: opaque,
            Section.TABLES: TablesSection(ctx),
            Section.BLOCKS: BlocksSection(ctx),
            Section.ENTITIES: entities,
            Section.OBJECTS: opaque,
            Section.THUMBNAIL: opaque,
        }

    def dispatch(self, record: RecordPair) -> None:
        if record.code == 999:
            logger.debug("comment: %s", record.value)
            return
        self._handlers[self.ctx.state.section].dispatch(record)

    def finish(self) -> None:
        section = self.ctx.state.section
        if section is Section.ENTITIES:
            self.entities.flush()
        elif section is not Section.UNKNOWN:
            self._handlers[section].leave()
