import logging

from .config import UNIT_FACTORS, Config
from .context import Block
from .convert import ConvertResult, DxfSink, GeometrySink, to_dxf
from .curves import BSplineEvaluator, CurveEvaluator
from .document import Document, Parser, convert, loads, read
from .entity import MeshPayload, Point3D, TextLine, WireChain, WirePayload
from .errors import (
    DxfMeshError,
    InputReadError,
    RecoverableSemanticError,
    StructuralAnomaly,
)
from .layers import Layer, LayerRegistry
from .logging_config import setup_logging
from .records import RecordPair, RecordReader
from .vertex_index import VertexIndex

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "read",
    "loads",
    "convert",
    "Document",
    "Parser",
    "Config",
    "UNIT_FACTORS",
    "Block",
    "Layer",
    "LayerRegistry",
    "VertexIndex",
    "RecordPair",
    "RecordReader",
    "CurveEvaluator",
    "BSplineEvaluator",
    "GeometrySink",
    "DxfSink",
    "to_dxf",
    "ConvertResult",
    "MeshPayload",
    "WirePayload",
    "WireChain",
    "TextLine",
    "Point3D",
    "setup_logging",
    "DxfMeshError",
    "RecoverableSemanticError",
    "StructuralAnomaly",
    "InputReadError",
]
