from __future__ import annotations


class DxfMeshError(Exception):
    """Base class for every error raised by dxfmesh."""


class RecoverableSemanticError(DxfMeshError):
    """The current entity cannot be assembled; it is skipped and parsing continues."""


class UnknownBlockError(RecoverableSemanticError):
    def __init__(self, name: str) -> None:
        super().__init__(f"cannot find block {name!r}")
        self.name = name


class RecursiveBlockError(RecoverableSemanticError):
    def __init__(self, name: str) -> None:
        super().__init__(f"block {name!r} references itself")
        self.name = name


class MeshVertexCountError(RecoverableSemanticError):
    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"incorrect number of vertices in polyline mesh: expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual


class UnsupportedMeshError(RecoverableSemanticError):
    pass


class UnsupportedAlignmentError(RecoverableSemanticError):
    def __init__(self, horizontal: int, vertical: int) -> None:
        super().__init__(
            f"cannot handle text alignment (horizontal={horizontal}, vertical={vertical})"
        )
        self.horizontal = horizontal
        self.vertical = vertical


class CurveEvaluationError(RecoverableSemanticError):
    pass


class InvalidGeometryError(RecoverableSemanticError):
    pass


class StructuralAnomaly(DxfMeshError):
    """Logged, never raised out of the parse loop."""


class InputReadError(DxfMeshError, OSError):
    """The input stream failed; the run is aborted."""
