from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import ezdxf

from .document import Document
from .entity import MeshPayload, Point3D, WirePayload

_INVALID_DXF_NAME_CHARS = re.compile(r'[<>/\\":;?*|=`]')


class GeometrySink(Protocol):
    def add_mesh(self, payload: MeshPayload) -> None:
        ...

    def add_wires(self, payload: WirePayload) -> None:
        ...


@dataclass(frozen=True)
class ConvertResult:
    output_path: str
    layers: int
    faces: int
    polylines: int
    points: int
    texts: int


class DxfSink:
    """Writes payloads into a fresh ezdxf document, one DXF layer per payload layer.

    Triangles become 3DFACE entities, wire chains 3D POLYLINEs, point markers
    POINTs and text lines TEXT entities.
    """

    def __init__(self, dxf_version: str = "R2010") -> None:
        self.doc = ezdxf.new(dxfversion=dxf_version)
        self.modelspace = self.doc.modelspace()
        self.faces = 0
        self.polylines = 0
        self.points = 0
        self.texts = 0
        self._layer_names: dict[tuple[str, int], str] = {}

    @property
    def layer_count(self) -> int:
        return len(self._layer_names)

    def add_mesh(self, payload: MeshPayload) -> None:
        dxfattribs = self._dxfattribs(payload.layer, payload.color)
        vertices = payload.vertices
        for v1, v2, v3 in payload.triangles:
            self.modelspace.add_3dface(
                [vertices[v1], vertices[v2], vertices[v3], vertices[v3]],
                dxfattribs=dxfattribs,
            )
            self.faces += 1

    def add_wires(self, payload: WirePayload) -> None:
        dxfattribs = self._dxfattribs(payload.layer, payload.color)
        for chain in payload.chains:
            self.modelspace.add_polyline3d(
                [_point3(point) for point in chain.points],
                close=chain.closed,
                dxfattribs=dxfattribs,
            )
            self.polylines += 1
        for point in payload.points:
            self.modelspace.add_point(_point3(point), dxfattribs=dxfattribs)
            self.points += 1
        for line in payload.texts:
            if line.text == "":
                continue
            text_entity = self.modelspace.add_text(
                line.text,
                height=line.height if line.height > 0.0 else None,
                rotation=line.rotation,
                dxfattribs=dxfattribs,
            )
            text_entity.dxf.insert = _point3(line.insert)
            self.texts += 1

    def save(self, output_path: str) -> str:
        out_path = Path(output_path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        self.doc.saveas(str(out_path))
        return str(out_path)

    def _dxfattribs(self, layer: str, color: int) -> dict[str, Any]:
        return {"layer": self._layer_name(layer, color), "color": 256}

    def _layer_name(self, layer: str, color: int) -> str:
        key = (layer, color)
        name = self._layer_names.get(key)
        if name is not None:
            return name
        name = _INVALID_DXF_NAME_CHARS.sub("_", layer)
        if name in self._layer_names.values():
            name = f"{name}.c.{color}"
        if not self.doc.layers.has_entry(name):
            self.doc.layers.add(name, color=color)
        self._layer_names[key] = name
        return name


def to_dxf(
    document: Document,
    output_path: str,
    *,
    dxf_version: str = "R2010",
) -> ConvertResult:
    sink = DxfSink(dxf_version=dxf_version)
    document.export(sink)
    path = sink.save(output_path)
    return ConvertResult(
        output_path=path,
        layers=sink.layer_count,
        faces=sink.faces,
        polylines=sink.polylines,
        points=sink.points,
        texts=sink.texts,
    )


def _point3(value: Point3D) -> tuple[float, float, float]:
    return (float(value[0]), float(value[1]), float(value[2]))
