"""Node and snapshot builders shared by the test modules."""

from __future__ import annotations

from typing import Any

from celestial_globe.models import NodeType, TopologyNode

ROOT = "internet"


def make_node(
    node_id: str,
    parent_id: str | None = ROOT,
    order: int = 0,
    node_type: NodeType = NodeType.SWITCH,
    **extra: Any,
) -> TopologyNode:
    """Create a node with sensible defaults; label defaults to the id."""
    extra.setdefault("label", node_id)
    return TopologyNode(id=node_id, parent_id=parent_id, order=order, node_type=node_type, **extra)


def make_root(node_id: str = ROOT) -> TopologyNode:
    """Self-referencing sentinel root."""
    return TopologyNode(id=node_id, label="Internet", parent_id=node_id, node_type=NodeType.INTERNET)


def scenario_a() -> list[TopologyNode]:
    """internet (sentinel) → gateway → {switch, ap}."""
    return [
        make_root(),
        make_node("gateway", ROOT, 0, NodeType.GATEWAY),
        make_node("switch", "gateway", 0, NodeType.SWITCH),
        make_node("ap", "gateway", 1, NodeType.AP),
    ]


def wide_tree() -> list[TopologyNode]:
    """A mixed tree with several levels, uneven fan-out and tied orders."""
    return [
        make_root(),
        make_node("gw", ROOT, 0, NodeType.GATEWAY),
        make_node("sw1", "gw", 0, NodeType.SWITCH),
        make_node("sw2", "gw", 1, NodeType.SWITCH),
        make_node("ap1", "sw1", 0, NodeType.AP),
        make_node("ap2", "sw1", 0, NodeType.AP),
        make_node("c1", "ap1", 0, NodeType.CLIENT),
        make_node("c2", "ap1", 1, NodeType.CLIENT),
        make_node("c3", "ap1", 2, NodeType.CLIENT),
        make_node("c4", "sw2", 0, NodeType.CLIENT),
        make_node("ctrl", ROOT, 1, NodeType.CONTROLLER),
        make_node("wg", ROOT, 2, NodeType.WG_PEER),
    ]


def node_payload(node: TopologyNode) -> dict[str, Any]:
    return node.model_dump(mode="json")


def snapshot_payload(nodes: list[TopologyNode], collapsed_ids: list[str] | None = None) -> dict[str, Any]:
    """JSON body of a topology response for ``nodes``; edges follow parent_id."""
    edges = [
        {"from": n.parent_id, "to": n.id, "edge_type": "wired"}
        for n in nodes
        if n.parent_id and n.parent_id != n.id
    ]
    return {
        "nodes": [node_payload(n) for n in nodes],
        "edges": edges,
        "metadata": {"total_devices": len(nodes), "generated_at": "2026-01-01T00:00:00Z"},
        "view_config": {"collapsed_node_ids": collapsed_ids or []},
    }
