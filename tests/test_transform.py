from __future__ import annotations

from ezdxf.math import Matrix44

from dxfmesh.transform import TransformStack, apply, compose, instance_matrix, rotate_angle, z_rotation
from tests._dxf_helpers import triplet_close


def _rows(matrix: Matrix44) -> list[tuple[float, ...]]:
    return [tuple(matrix.get_row(i)) for i in range(4)]


def test_instance_matrix_scales_then_rotates_then_translates() -> None:
    matrix = instance_matrix((10.0, 0.0, 0.0), 90.0, (2.0, 1.0, 1.0))

    assert triplet_close(apply(matrix, (1.0, 0.0, 0.0)), (10.0, 2.0, 0.0))
    assert triplet_close(apply(matrix, (0.0, 1.0, 0.0)), (9.0, 0.0, 0.0))


def test_quarter_turns_are_exact() -> None:
    assert apply(z_rotation(180.0), (1.0, 0.0, 0.0)) == (-1.0, 0.0, 0.0)
    assert apply(z_rotation(-90.0), (1.0, 0.0, 0.0)) == (0.0, -1.0, 0.0)


def test_compose_applies_instance_before_parent() -> None:
    parent = instance_matrix((100.0, 0.0, 0.0), 90.0)
    child = instance_matrix((1.0, 0.0, 0.0))

    composed = compose(child, parent)

    # child moves (0,0) to (1,0); the parent then turns it to (0,1) and shifts it
    assert triplet_close(apply(composed, (0.0, 0.0, 0.0)), (100.0, 1.0, 0.0))


def test_offset_is_rotated_but_not_scaled() -> None:
    matrix = instance_matrix((0.0, 0.0, 0.0), 90.0, (3.0, 3.0, 3.0), offset=(2.0, 0.0, 0.0))

    assert triplet_close(apply(matrix, (0.0, 0.0, 0.0)), (0.0, 2.0, 0.0))


def test_stack_restores_exact_parent_transform() -> None:
    stack = TransformStack()
    before = stack.current
    rows_before = _rows(before)

    for level in range(5):
        instance = instance_matrix((1.5 * level, -2.0, 0.25), 33.0 * level, (1.1, 0.9, 1.0))
        stack.push(compose(instance, stack.current), block=f"B{level}", return_offset=level)
    assert stack.depth == 5
    assert stack.active_blocks() == ["B0", "B1", "B2", "B3", "B4"]

    for _ in range(5):
        assert stack.pop() is not None

    assert stack.depth == 0
    assert stack.current is before
    assert _rows(stack.current) == rows_before


def test_pop_on_empty_stack_is_a_no_op() -> None:
    stack = TransformStack()
    before = stack.current

    assert stack.pop() is None
    assert stack.current is before


def test_frame_keeps_return_offset() -> None:
    stack = TransformStack()
    stack.push(Matrix44.translate(1.0, 0.0, 0.0), block="A", return_offset=42)

    frame = stack.pop()

    assert frame is not None
    assert frame.return_offset == 42
    assert frame.block == "A"


def test_rotate_angle_follows_transform() -> None:
    assert abs(rotate_angle(z_rotation(30.0), 15.0) - 45.0) < 1e-9
    assert abs(rotate_angle(Matrix44(), 15.0) - 15.0) < 1e-9
