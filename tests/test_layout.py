"""Tests for layout.py: extent pass, placement and normalisation.

Property tests (no-overlap, centering, depth axis, determinism) run over a
mixed tree; scenario tests pin exact coordinates for small inputs.
"""

from __future__ import annotations

import pytest

from celestial_globe.layout import (
    DEPTH_SPACING,
    NODE_HEIGHT_DEFAULT,
    NODE_HEIGHTS,
    SIBLING_GAP,
    Direction,
    LayoutNode,
    LayoutOptions,
    LayoutResult,
    children_span,
    compute_layout,
    subtree_extents,
)
from celestial_globe.models import NodeType
from celestial_globe.tree import build_forest
from factories import ROOT, make_node, make_root, scenario_a, wide_tree

# ─── Helpers ──────────────────────────────────────────────────────────────────


def span(ln: LayoutNode) -> tuple[float, float]:
    """(start, end) of the subtree slot a node was placed in."""
    start = ln.y + ln.height / 2 - ln.extent / 2
    return (start, start + ln.extent)


def center(ln: LayoutNode) -> float:
    return ln.y + ln.height / 2


def layout_of(nodes, **kwargs) -> LayoutResult:
    return compute_layout(build_forest(nodes), LayoutOptions(**kwargs) if kwargs else None)


# ─── Scenario A ───────────────────────────────────────────────────────────────


class TestScenarioA:
    def test_exact_positions(self):
        """internet(72) → gateway(80) → {switch(64), ap(64)} with gap 24."""
        result = layout_of(scenario_a())
        assert result.position(ROOT) == (0.0, 40.0)
        assert result.position("gateway") == (300.0, 36.0)
        assert result.position("switch") == (600.0, 0.0)
        assert result.position("ap") == (600.0, 88.0)

    def test_gateway_centred_over_children(self):
        result = layout_of(scenario_a())
        first, last = result.nodes["switch"], result.nodes["ap"]
        assert center(result.nodes["gateway"]) == (span(first)[0] + span(last)[1]) / 2

    def test_switch_above_ap(self):
        result = layout_of(scenario_a())
        assert result.nodes["switch"].y < result.nodes["ap"].y

    def test_x_increases_with_depth(self):
        result = layout_of(scenario_a())
        assert result.nodes[ROOT].x < result.nodes["gateway"].x < result.nodes["switch"].x
        assert result.nodes["switch"].x == result.nodes["ap"].x


# ─── Properties ───────────────────────────────────────────────────────────────


class TestDeterminism:
    def test_repeated_runs_identical(self):
        first = layout_of(wide_tree())
        for _ in range(5):
            assert layout_of(wide_tree()) == first

    def test_input_permutation_identical(self):
        assert layout_of(list(reversed(wide_tree()))) == layout_of(wide_tree())

    def test_placement_order_is_preorder(self):
        forest = build_forest(wide_tree())
        result = compute_layout(forest)
        assert list(result.nodes) == [forest.nodes[i].id for i in forest.preorder()]


class TestNoOverlap:
    def test_sibling_spans_disjoint(self):
        """Consecutive sibling slots are separated by exactly the gap."""
        forest = build_forest(wide_tree())
        result = compute_layout(forest)
        checked = 0
        for node_id in forest.ids:
            kids = forest.children_of(node_id)
            if len(kids) < 2:
                continue
            for a, b in zip(kids, kids[1:]):
                a_end = span(result.nodes[a])[1]
                b_start = span(result.nodes[b])[0]
                assert b_start == pytest.approx(a_end + SIBLING_GAP)
                assert result.nodes[a].y + result.nodes[a].height < result.nodes[b].y
            checked += 1
        assert checked >= 3

    def test_leaves_stack_in_order(self):
        nodes = [make_root(), *(make_node(f"c{i}", ROOT, i, NodeType.CLIENT) for i in range(4))]
        result = layout_of(nodes)
        ys = [result.nodes[f"c{i}"].y for i in range(4)]
        assert ys == [0.0, 76.0, 152.0, 228.0]


class TestCentering:
    def test_every_internal_node_centred(self):
        forest = build_forest(wide_tree())
        result = compute_layout(forest)
        for node_id in forest.ids:
            kids = forest.children_of(node_id)
            if not kids:
                continue
            lo = span(result.nodes[kids[0]])[0]
            hi = span(result.nodes[kids[-1]])[1]
            assert center(result.nodes[node_id]) == pytest.approx((lo + hi) / 2), node_id

    def test_parent_taller_than_children(self):
        """A single short child is centred on its taller parent."""
        nodes = [make_node("gw", None, 0, NodeType.GATEWAY), make_node("c", "gw", 0, NodeType.CLIENT)]
        result = layout_of(nodes)
        assert result.position("gw") == (0.0, 0.0)
        assert result.position("c") == (300.0, 14.0)
        assert center(result.nodes["gw"]) == center(result.nodes["c"])


class TestDepthAxis:
    def test_x_is_depth_times_spacing(self):
        forest = build_forest(wide_tree())
        result = compute_layout(forest)
        depths = forest.depths()
        for node_id, ln in result.nodes.items():
            assert ln.depth == depths[node_id]
            assert ln.x == depths[node_id] * DEPTH_SPACING

    def test_rl_mirrors_x(self):
        lr = layout_of(wide_tree())
        rl = layout_of(wide_tree(), direction=Direction.RL)
        for node_id, ln in lr.nodes.items():
            assert rl.nodes[node_id].x == -ln.x
            assert rl.nodes[node_id].y == ln.y

    def test_custom_spacing(self):
        result = layout_of(scenario_a(), depth_spacing=100.0, sibling_gap=10.0)
        assert result.nodes["switch"].x == 200.0
        assert result.nodes["ap"].y - result.nodes["switch"].y == 64.0 + 10.0


# ─── Forest Shapes ────────────────────────────────────────────────────────────


class TestMultipleRoots:
    def test_roots_stacked_with_gap(self):
        nodes = [make_node("a", None, 0, NodeType.CLIENT), make_node("b", None, 1, NodeType.CLIENT)]
        result = layout_of(nodes)
        assert result.position("a") == (0.0, 0.0)
        assert result.position("b") == (0.0, 52.0 + SIBLING_GAP)

    def test_subtree_roots_do_not_overlap(self):
        nodes = [
            make_node("r1", None, 0, NodeType.GATEWAY),
            make_node("x", "r1", 0, NodeType.SWITCH),
            make_node("y", "r1", 1, NodeType.SWITCH),
            make_node("r2", None, 1, NodeType.GATEWAY),
        ]
        result = layout_of(nodes)
        assert span(result.nodes["r2"])[0] == pytest.approx(span(result.nodes["r1"])[1] + SIBLING_GAP)


class TestEdgeCases:
    def test_empty_forest(self):
        result = compute_layout(build_forest([]))
        assert len(result) == 0
        assert result.bounds() == (0.0, 0.0, 0.0, 0.0)

    def test_single_node(self):
        result = layout_of([make_root()])
        assert result.position(ROOT) == (0.0, 0.0)
        assert result.nodes[ROOT].height == NODE_HEIGHTS[NodeType.INTERNET]

    def test_no_negative_y(self):
        result = layout_of(wide_tree())
        assert min(ln.y for ln in result.nodes.values()) >= 0

    def test_custom_height_function(self):
        result = layout_of(scenario_a(), node_height=lambda _t: 10.0)
        assert result.position("switch") == (600.0, 0.0)
        assert result.position("ap") == (600.0, 34.0)
        assert result.position("gateway") == (300.0, 17.0)

    def test_deep_chain(self):
        nodes = [make_root()]
        parent = ROOT
        for i in range(3000):
            nodes.append(make_node(f"n{i}", parent))
            parent = f"n{i}"
        result = layout_of(nodes)
        assert result.nodes["n2999"].x == 3000 * DEPTH_SPACING


# ─── Building Blocks ──────────────────────────────────────────────────────────


class TestExtents:
    def test_children_span(self):
        assert children_span([], 24.0) == 0.0
        assert children_span([64.0], 24.0) == 64.0
        assert children_span([64.0, 64.0, 52.0], 24.0) == 228.0

    def test_subtree_extents(self):
        forest = build_forest(scenario_a())
        heights = [float(NODE_HEIGHTS[n.node_type]) for n in forest.nodes]
        extents = subtree_extents(forest, heights, SIBLING_GAP)
        assert extents[forest.index["switch"]] == 64.0
        assert extents[forest.index["gateway"]] == 152.0
        assert extents[forest.index[ROOT]] == 152.0


class TestLayoutResult:
    def test_depth_map_and_bounds(self):
        result = layout_of(scenario_a())
        assert result.depth_map == {ROOT: 0, "gateway": 1, "switch": 2, "ap": 2}
        assert result.bounds() == (0.0, 0.0, 600.0, 152.0)
        assert "gateway" in result

    def test_constants_exported(self):
        assert DEPTH_SPACING == 300.0
        assert SIBLING_GAP == 24.0
        assert NODE_HEIGHT_DEFAULT == 64.0
        assert set(NODE_HEIGHTS) == set(NodeType)
