"""Tests for view.py: the positioned projection, outline filter and stats."""

from __future__ import annotations

import pytest

from celestial_globe.layout import Direction, LayoutOptions
from celestial_globe.models import NodeType
from celestial_globe.tree import build_forest
from celestial_globe.view import build_view, filter_outline, topology_stats
from factories import ROOT, make_node, make_root, scenario_a, wide_tree


class TestBuildView:
    def test_nodes_carry_positions_and_counts(self):
        view = build_view(scenario_a())
        gw = view.node("gateway")
        assert (gw.x, gw.y) == (300.0, 36.0)
        assert gw.depth == 1
        assert gw.descendant_count == 2
        assert gw.collapsed_child_count == 0
        assert not gw.collapsed
        assert not gw.orphan

    def test_collapsed_view(self):
        view = build_view(scenario_a(), {"gateway"})
        assert [vn.id for vn in view.nodes] == [ROOT, "gateway"]
        gw = view.node("gateway")
        assert gw.collapsed
        assert gw.collapsed_child_count == 2
        assert [(e.source, e.target) for e in view.edges] == [(ROOT, "gateway")]

    def test_collapsed_layout_is_layout_of_pruned_tree(self):
        """Collapsing gateway lays out internet → gateway as a two-node chain."""
        view = build_view(scenario_a(), {"gateway"})
        assert view.positions() == {ROOT: (0.0, 4.0), "gateway": (300.0, 0.0)}

    def test_orphan_flag(self):
        view = build_view([*scenario_a(), make_node("lost", "ghost", 9)])
        assert view.node("lost").orphan
        assert view.node("lost").depth == 1

    def test_missing_node_raises_key_error(self):
        with pytest.raises(KeyError):
            build_view(scenario_a()).node("nope")

    def test_idempotent(self):
        assert build_view(wide_tree(), {"sw1"}).positions() == build_view(wide_tree(), {"sw1"}).positions()

    def test_options_forwarded(self):
        view = build_view(scenario_a(), options=LayoutOptions(direction=Direction.RL))
        assert view.node("switch").x == -600.0

    def test_broken_links_reported(self):
        view = build_view([make_root(), make_node("a", "b"), make_node("b", "a")])
        assert view.broken_links == [("b", "a")]
        assert {vn.id for vn in view.nodes} == {ROOT, "a", "b"}

    def test_empty(self):
        view = build_view([])
        assert view.nodes == []
        assert view.edges == []


class TestFilterOutline:
    def test_empty_query_keeps_all(self):
        forest = build_forest(wide_tree())
        assert filter_outline(forest, "  ") == [forest.nodes[i].id for i in forest.preorder()]

    def test_match_keeps_ancestors(self):
        forest = build_forest(wide_tree())
        assert filter_outline(forest, "C3") == [ROOT, "gw", "sw1", "ap1", "c3"]

    def test_match_on_ip_and_mac(self):
        nodes = [
            make_root(),
            make_node("a", ROOT, ip="192.168.1.10"),
            make_node("b", ROOT, 1, mac="AA:BB:CC:00:11:22"),
        ]
        forest = build_forest(nodes)
        assert filter_outline(forest, "192.168") == [ROOT, "a"]
        assert filter_outline(forest, "aa:bb") == [ROOT, "b"]

    def test_no_match(self):
        assert filter_outline(build_forest(wide_tree()), "zzz") == []


class TestStats:
    def test_counts(self):
        nodes = [
            make_node("a", status="online"),
            make_node("b", status="active"),
            make_node("c", status="offline"),
            make_node("d", status="inactive"),
            make_node("e", status="warning", node_type=NodeType.CLIENT),
        ]
        stats = topology_stats(nodes)
        assert (stats.total, stats.online, stats.offline) == (5, 2, 2)
