from __future__ import annotations

import math
from dataclasses import dataclass

from .entity import Point3D, TextLine
from .errors import UnsupportedAlignmentError

# group 72
ALIGN_LEFT = 0
ALIGN_CENTER = 1
ALIGN_RIGHT = 2
ALIGN_ALIGNED = 3
ALIGN_MIDDLE = 4
ALIGN_FIT = 5

# group 73
VALIGN_BASELINE = 0
VALIGN_BOTTOM = 1
VALIGN_MIDDLE = 2
VALIGN_TOP = 3

LINE_SPACING = 1.25

_SYMBOLS = {"d": "°", "p": "±", "c": "⌀", "%": "%"}
_SKIP_TO_SEMICOLON = set("AaCcFfHhQqTtWw")
_HORIZONTAL_FRACTION = {ALIGN_LEFT: 0.0, ALIGN_CENTER: 0.5, ALIGN_MIDDLE: 0.5, ALIGN_RIGHT: 1.0}
_VERTICAL_FRACTION = {VALIGN_BASELINE: 0.0, VALIGN_BOTTOM: 0.0, VALIGN_MIDDLE: 0.5, VALIGN_TOP: 1.0}


@dataclass(frozen=True)
class ExpandedText:
    text: str
    line_count: int
    max_line_length: int

    @property
    def lines(self) -> list[str]:
        return _split_lines(self.text)


def expand_escapes(value: str) -> ExpandedText:
    """Resolve ``%%`` symbol codes and backslash control codes.

    ``%%o``/``%%u`` (overline/underline toggles) are dropped, ``%%d``, ``%%p``,
    ``%%c`` become degree, plus-minus and diameter signs, ``%%nnn`` a character
    code. ``\\P`` and ``\\X`` break lines, ``\\~`` is a space, font and format
    switches up to the next ``;`` are skipped.
    """
    out: list[str] = []
    i = 0
    n = len(value)
    while i < n:
        ch = value[i]

        if ch == "%" and value.startswith("%%", i) and i + 2 < n:
            code = value[i + 2]
            lowered = code.lower()
            if lowered in {"o", "u"}:
                i += 3
                continue
            if lowered in _SYMBOLS:
                out.append(_SYMBOLS[lowered])
                i += 3
                continue
            digits = value[i + 2 : i + 5]
            if len(digits) == 3 and digits.isdigit():
                out.append(chr(int(digits)))
                i += 5
                continue
            out.append("%%")
            i += 2
            continue

        if ch in "{}":
            i += 1
            continue
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        if i + 1 >= n:
            out.append("\\")
            break

        code = value[i + 1]
        if code in "\\{}":
            out.append(code)
            i += 2
            continue
        if code in {"P", "X"}:
            out.append("\n")
            i += 2
            continue
        if code == "~":
            out.append(" ")
            i += 2
            continue
        if code in {"L", "l", "O", "o", "K", "k"}:
            i += 2
            continue
        if code in {"U", "u"} and i + 6 < n and value[i + 2] == "+":
            hex_digits = value[i + 3 : i + 7]
            if all(c in "0123456789abcdefABCDEF" for c in hex_digits):
                out.append(chr(int(hex_digits, 16)))
                i += 7
                continue
        if code in _SKIP_TO_SEMICOLON:
            i += 2
            while i < n and value[i] != ";":
                i += 1
            i += 1
            continue

        out.append(code)
        i += 2

    text = "".join(out)
    lines = _split_lines(text)
    return ExpandedText(text, len(lines), max((len(line) for line in lines), default=0))


def layout_mtext(
    expanded: ExpandedText,
    *,
    insert: Point3D,
    rotation: float,
    attachment: int,
    height: float = 0.0,
    char_width: float = 0.0,
    entity_height: float = 0.0,
) -> list[TextLine]:
    """Place each line of a paragraph on the 9-point attachment grid.

    Attachment points run 1-9 row by row: top, middle, bottom rows and left,
    center, right columns.
    """
    lines = expanded.lines
    if not lines:
        return []
    if height > 0.0:
        scale = height
    elif char_width > 0.0:
        scale = char_width
    else:
        scale = entity_height / len(lines) * 0.9
    line_space = LINE_SPACING * scale

    row, column = divmod(attachment - 1, 3)
    if row == 0:
        ydel = -scale
    elif row == 1:
        ydel = -len(lines) * line_space / 2.0
    else:
        ydel = len(lines) * line_space - scale
    xdel = -expanded.max_line_length * scale * column / 2.0

    xdir, ydir = _axes(rotation)
    start = _offset(insert, xdir, xdel, ydir, ydel)
    return _stack_lines(lines, start, ydir, line_space, scale, rotation)


def layout_text(
    expanded: ExpandedText,
    *,
    first: Point3D,
    second: Point3D | None,
    height: float,
    rotation: float,
    horizontal: int,
    vertical: int,
) -> list[TextLine]:
    """Place single-line text by its 72/73 alignment codes."""
    lines = expanded.lines
    if not lines:
        return []
    if second is None:
        second = first

    if horizontal in (ALIGN_ALIGNED, ALIGN_FIT):
        if vertical != VALIGN_BASELINE:
            raise UnsupportedAlignmentError(horizontal, vertical)
        dx = second[0] - first[0]
        dy = second[1] - first[1]
        allowed = math.hypot(dx, dy)
        if allowed > 0.0:
            rotation = math.degrees(math.atan2(dy, dx))
            fitted = allowed / max(expanded.max_line_length, 1)
            height = min(fitted, height) if height > 0.0 else fitted
        _, ydir = _axes(rotation)
        return _stack_lines(lines, first, ydir, LINE_SPACING * height, height, rotation)

    if horizontal not in _HORIZONTAL_FRACTION or vertical not in _VERTICAL_FRACTION:
        raise UnsupportedAlignmentError(horizontal, vertical)
    if horizontal == ALIGN_MIDDLE:
        if vertical != VALIGN_BASELINE:
            raise UnsupportedAlignmentError(horizontal, vertical)
        v_fraction = 0.5
    else:
        v_fraction = _VERTICAL_FRACTION[vertical]

    anchor = first if (horizontal == ALIGN_LEFT and vertical == VALIGN_BASELINE) else second
    length = expanded.max_line_length * height
    xdir, ydir = _axes(rotation)
    start = _offset(
        anchor, xdir, -length * _HORIZONTAL_FRACTION[horizontal], ydir, -height * v_fraction
    )
    return _stack_lines(lines, start, ydir, LINE_SPACING * height, height, rotation)


def _axes(rotation: float) -> tuple[Point3D, Point3D]:
    radians = math.radians(rotation)
    cos_r = math.cos(radians)
    sin_r = math.sin(radians)
    return (cos_r, sin_r, 0.0), (-sin_r, cos_r, 0.0)


def _offset(origin: Point3D, xdir: Point3D, xdel: float, ydir: Point3D, ydel: float) -> Point3D:
    return (
        origin[0] + xdel * xdir[0] + ydel * ydir[0],
        origin[1] + xdel * xdir[1] + ydel * ydir[1],
        origin[2] + xdel * xdir[2] + ydel * ydir[2],
    )


def _stack_lines(
    lines: list[str],
    start: Point3D,
    ydir: Point3D,
    line_space: float,
    height: float,
    rotation: float,
) -> list[TextLine]:
    placed: list[TextLine] = []
    for number, line in enumerate(lines):
        insert = _offset(start, ydir, -line_space * number, ydir, 0.0)
        placed.append(TextLine(line, insert, height, rotation))
    return placed


def _split_lines(text: str) -> list[str]:
    if not text:
        return []
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    return lines
