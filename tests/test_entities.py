from __future__ import annotations

import math

import dxfmesh
from dxfmesh import Config
from tests._dxf_helpers import entities_text, entity, point_groups, triplet_close


def _only_layer(doc: dxfmesh.Document, name: str) -> dxfmesh.Layer:
    layer = doc.layer(name)
    assert layer is not None
    return layer


def _face(*corners: tuple[float, float, float]) -> list:
    groups = [(8, "F")]
    for slot, corner in enumerate(corners):
        groups.extend(point_groups(corner, slot))
    return entity("3DFACE", *groups)


def test_line_becomes_two_point_chain() -> None:
    doc = dxfmesh.loads(
        entities_text(entity("LINE", (8, "L"), *point_groups((0.0, 0.0, 0.0)), *point_groups((3.0, 4.0, 0.0), 1)))
    )

    layer = _only_layer(doc, "L")
    assert [chain.points for chain in layer.wires] == [((0.0, 0.0, 0.0), (3.0, 4.0, 0.0))]
    assert layer.counts["LINE"] == 1


def test_3dface_with_four_distinct_corners_gives_two_triangles() -> None:
    doc = dxfmesh.loads(
        entities_text(_face((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0), (0.0, 1.0, 0.0)))
    )

    layer = _only_layer(doc, "F")
    assert layer.triangles == [(0, 1, 2), (2, 3, 0)]
    assert len(layer.vertices) == 4
    assert layer.counts["3DFACE"] == 1


def test_3dface_with_three_corners_gives_one_triangle() -> None:
    doc = dxfmesh.loads(entities_text(_face((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0))))

    layer = _only_layer(doc, "F")
    assert layer.triangles == [(0, 1, 2)]
    assert len(layer.vertices) == 3


def test_3dface_with_equal_third_and_fourth_corner_gives_one_triangle() -> None:
    doc = dxfmesh.loads(
        entities_text(_face((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0), (1.0, 1.0, 0.0)))
    )

    assert _only_layer(doc, "F").triangles == [(0, 1, 2)]


def test_adjacent_faces_share_vertices() -> None:
    doc = dxfmesh.loads(
        entities_text(
            _face((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0)),
            _face((1.0, 1.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 0.0)),
        )
    )

    layer = _only_layer(doc, "F")
    assert layer.triangles == [(0, 1, 2), (2, 3, 0)]
    assert len(layer.vertices) == 4
    assert layer.counts["3DFACE"] == 2


def test_solid_outline_uses_drawing_order() -> None:
    groups = [(8, "S")]
    for slot, corner in enumerate([(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (1.0, 1.0, 0.0)]):
        groups.extend(point_groups(corner, slot))

    doc = dxfmesh.loads(entities_text(entity("SOLID", *groups)))

    (chain,) = _only_layer(doc, "S").wires
    assert chain.closed
    assert chain.points == ((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0), (0.0, 1.0, 0.0))


def test_trace_with_three_corners() -> None:
    groups = [(8, "T")]
    for slot, corner in enumerate([(0.0, 0.0, 0.0), (2.0, 0.0, 0.0), (0.0, 2.0, 0.0)]):
        groups.extend(point_groups(corner, slot))

    doc = dxfmesh.loads(entities_text(entity("TRACE", *groups)))

    layer = _only_layer(doc, "T")
    assert len(layer.wires[0].points) == 3
    assert layer.counts["TRACE"] == 1


def test_circle_with_four_segments() -> None:
    doc = dxfmesh.loads(
        entities_text(entity("CIRCLE", (8, "C"), *point_groups((0.0, 0.0, 0.0)), (40, 1.0))),
        Config(segments_per_circle=4),
    )

    (chain,) = _only_layer(doc, "C").wires
    expected = [(1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (-1.0, 0.0, 0.0), (0.0, -1.0, 0.0)]
    assert chain.closed
    assert len(chain.points) == 4
    for actual, wanted in zip(chain.points, expected):
        assert triplet_close(actual, wanted, eps=1e-9)


def test_circle_default_segment_count_and_center() -> None:
    doc = dxfmesh.loads(entities_text(entity("CIRCLE", (8, "C"), *point_groups((5.0, 5.0, 1.0)), (40, 2.0))))

    (chain,) = _only_layer(doc, "C").wires
    assert len(chain.points) == 32
    for x, y, z in chain.points:
        assert abs(math.hypot(x - 5.0, y - 5.0) - 2.0) < 1e-9
        assert z == 1.0


def test_arc_segments_follow_sweep() -> None:
    doc = dxfmesh.loads(
        entities_text(
            entity("ARC", (8, "A"), *point_groups((0.0, 0.0, 0.0)), (40, 1.0), (50, 0.0), (51, 90.0))
        )
    )

    (chain,) = _only_layer(doc, "A").wires
    assert not chain.closed
    assert len(chain.points) == 9
    assert triplet_close(chain.points[0], (1.0, 0.0, 0.0))
    assert triplet_close(chain.points[-1], (0.0, 1.0, 0.0), eps=1e-12)


def test_arc_crossing_zero_degrees() -> None:
    doc = dxfmesh.loads(
        entities_text(
            entity("ARC", (8, "A"), *point_groups((0.0, 0.0, 0.0)), (40, 1.0), (50, 270.0), (51, 90.0))
        ),
        Config(segments_per_circle=8),
    )

    (chain,) = _only_layer(doc, "A").wires
    assert len(chain.points) == 5
    assert triplet_close(chain.points[0], (0.0, -1.0, 0.0), eps=1e-12)
    assert triplet_close(chain.points[2], (1.0, 0.0, 0.0), eps=1e-9)
    assert triplet_close(chain.points[-1], (0.0, 1.0, 0.0), eps=1e-12)


def test_full_ellipse_is_closed() -> None:
    doc = dxfmesh.loads(
        entities_text(
            entity(
                "ELLIPSE",
                (8, "E"),
                *point_groups((0.0, 0.0, 0.0)),
                *point_groups((2.0, 0.0, 0.0), 1),
                (40, 0.5),
                (41, 0.0),
                (42, 2.0 * math.pi),
            )
        )
    )

    (chain,) = _only_layer(doc, "E").wires
    assert chain.closed
    assert len(chain.points) == 30
    for x, y, _ in chain.points:
        assert abs((x / 2.0) ** 2 + (y / 1.0) ** 2 - 1.0) < 1e-9
    assert triplet_close(chain.points[0], (2.0, 0.0, 0.0))


def test_short_elliptical_arc_is_widened_to_five_steps() -> None:
    doc = dxfmesh.loads(
        entities_text(
            entity(
                "ELLIPSE",
                (8, "E"),
                *point_groups((0.0, 0.0, 0.0)),
                *point_groups((0.0, 1.0, 0.0), 1),
                (40, 1.0),
                (41, 0.0),
                (42, 0.5),
            )
        )
    )

    (chain,) = _only_layer(doc, "E").wires
    assert not chain.closed
    assert len(chain.points) == 6
    assert triplet_close(chain.points[0], (0.0, 1.0, 0.0))
    assert triplet_close(chain.points[-1], (-math.sin(0.5), math.cos(0.5), 0.0))


def test_lwpolyline_closed_chain() -> None:
    doc = dxfmesh.loads(
        entities_text(
            entity(
                "LWPOLYLINE",
                (8, "P"),
                (90, 3),
                (70, 1),
                (10, 0.0),
                (20, 0.0),
                (10, 1.0),
                (20, 0.0),
                (10, 1.0),
                (20, 1.0),
            )
        )
    )

    (chain,) = _only_layer(doc, "P").wires
    assert chain.closed
    assert chain.points == ((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0))


def test_leader_commits_vertices_on_z() -> None:
    doc = dxfmesh.loads(
        entities_text(
            entity(
                "LEADER",
                (8, "LD"),
                (71, 1),
                *point_groups((0.0, 0.0, 0.0)),
                *point_groups((2.0, 1.0, 0.0)),
                *point_groups((4.0, 1.0, 0.0)),
            )
        )
    )

    layer = _only_layer(doc, "LD")
    assert layer.wires[0].points == ((0.0, 0.0, 0.0), (2.0, 1.0, 0.0), (4.0, 1.0, 0.0))
    assert layer.counts["LEADER"] == 1


def test_entity_attributes_do_not_leak_between_entities() -> None:
    doc = dxfmesh.loads(
        entities_text(
            entity("POINT", (8, "RED"), (62, 1), *point_groups((1.0, 0.0, 0.0))),
            entity("POINT", *point_groups((2.0, 0.0, 0.0))),
        )
    )

    assert _only_layer(doc, "RED").points == [(1.0, 0.0, 0.0)]
    assert doc.layers[0].points == [(2.0, 0.0, 0.0)]


def test_entity_color_splits_layers() -> None:
    doc = dxfmesh.loads(
        entities_text(
            entity("POINT", (8, "A"), (62, 1)),
            entity("POINT", (8, "A"), (62, 3)),
            entity("POINT", (8, "A")),
        )
    )

    assert [(layer.name, layer.color, len(layer.points)) for layer in doc.layers[1:]] == [
        ("A", 1, 2),
        ("A", 3, 1),
    ]


def test_unknown_entities_and_viewports_are_ignored(caplog) -> None:
    with caplog.at_level("DEBUG", logger="dxfmesh.entities"):
        doc = dxfmesh.loads(
            entities_text(
                entity("HATCH", (8, "H"), *point_groups((1.0, 1.0, 0.0))),
                entity("VIEWPORT", (8, "V"), *point_groups((1.0, 1.0, 0.0))),
                entity("POINT", (8, "P")),
            )
        )

    assert "unrecognized entity type HATCH" in caplog.text
    assert doc.layer("H") is None
    assert doc.layer("V") is None
    assert _only_layer(doc, "P").counts["POINT"] == 1


def test_entity_open_at_end_of_input_is_flushed() -> None:
    text = "  0\nSECTION\n  2\nENTITIES\n  0\nPOINT\n  8\nP\n 10\n4.0\n"

    doc = dxfmesh.loads(text)

    assert _only_layer(doc, "P").points == [(4.0, 0.0, 0.0)]


def test_arc_with_huge_start_angle_is_reduced_to_one_turn() -> None:
    doc = dxfmesh.loads(
        entities_text(
            entity("ARC", (8, "A"), *point_groups((0.0, 0.0, 0.0)), (40, 1.0), (50, "1e20"), (51, 0.0)),
            entity("ARC", (8, "B"), *point_groups((0.0, 0.0, 0.0)), (40, 1.0), (50, 0.0), (51, "1e9")),
        )
    )

    for name in ("A", "B"):
        (chain,) = _only_layer(doc, name).wires
        assert 2 <= len(chain.points) <= 33
        for x, y, _ in chain.points:
            assert abs(math.hypot(x, y) - 1.0) < 1e-9


def test_arc_sweep_past_a_full_turn_wraps() -> None:
    doc = dxfmesh.loads(
        entities_text(
            entity("ARC", (8, "A"), *point_groups((0.0, 0.0, 0.0)), (40, 1.0), (50, 0.0), (51, 810.0))
        )
    )

    (chain,) = _only_layer(doc, "A").wires
    assert len(chain.points) == 9
    assert triplet_close(chain.points[-1], (0.0, 1.0, 0.0), eps=1e-9)


def test_ellipse_with_huge_start_parameter_is_reduced_to_one_turn() -> None:
    doc = dxfmesh.loads(
        entities_text(
            entity(
                "ELLIPSE",
                (8, "E"),
                *point_groups((0.0, 0.0, 0.0)),
                *point_groups((2.0, 0.0, 0.0), 1),
                (40, 0.5),
                (41, "1e17"),
                (42, 0.0),
            )
        )
    )

    (chain,) = _only_layer(doc, "E").wires
    assert 2 <= len(chain.points) <= 31
    for x, y, _ in chain.points:
        assert abs((x / 2.0) ** 2 + y ** 2 - 1.0) < 1e-9


def test_arc_with_infinite_angle_is_skipped(caplog) -> None:
    with caplog.at_level("WARNING", logger="dxfmesh.entities"):
        doc = dxfmesh.loads(
            entities_text(
                entity("ARC", (8, "A"), (40, 1.0), (50, "1e999")),
                entity("POINT", (8, "P")),
            )
        )

    assert "skipping ARC: angles out of range" in caplog.text
    assert _only_layer(doc, "A").wires == []
    assert _only_layer(doc, "P").counts["POINT"] == 1
