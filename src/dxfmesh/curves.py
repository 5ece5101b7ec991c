from __future__ import annotations

from typing import Protocol, Sequence

from ezdxf.lldxf.const import DXFError
from ezdxf.math import BSpline

from .entity import Point3D
from .errors import CurveEvaluationError


class CurveEvaluator(Protocol):
    def sample(
        self,
        degree: int,
        knots: Sequence[float],
        control_points: Sequence[Point3D],
        weights: Sequence[float],
        segments: int,
    ) -> list[Point3D]:
        ...


class BSplineEvaluator:
    """Samples (rational) B-splines with ``ezdxf.math.BSpline``.

    Returns ``segments + 1`` points spread evenly over the valid parameter
    range ``[knots[degree], knots[len(control_points)]]``.
    """

    def sample(
        self,
        degree: int,
        knots: Sequence[float],
        control_points: Sequence[Point3D],
        weights: Sequence[float],
        segments: int,
    ) -> list[Point3D]:
        count = len(control_points)
        if degree < 1 or count < degree + 1:
            raise CurveEvaluationError(
                f"spline of degree {degree} needs at least {degree + 1} control points, got {count}"
            )
        if len(knots) != count + degree + 1:
            raise CurveEvaluationError(
                f"spline with {count} control points of degree {degree} needs "
                f"{count + degree + 1} knots, got {len(knots)}"
            )

        rational = any(weight != 1.0 for weight in weights)
        try:
            spline = BSpline(
                control_points,
                order=degree + 1,
                knots=knots,
                weights=list(weights) if rational else None,
            )
            t_start = float(knots[degree])
            t_end = float(knots[count])
            step = (t_end - t_start) / segments
            params = [t_start + i * step for i in range(segments)] + [t_end]
            return [(v.x, v.y, v.z) for v in spline.points(params)]
        except (DXFError, ValueError, ZeroDivisionError, IndexError) as exc:
            raise CurveEvaluationError(f"cannot evaluate spline: {exc}") from exc
