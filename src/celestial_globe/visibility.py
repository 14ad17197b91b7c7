"""Collapse/visibility resolver.

Raw collapse state (a set of ids) and the derived visible projection are kept
as separate structures. Nothing in here writes to node or edge objects, so
expanding a node restores exactly what was there before it was collapsed.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Iterator
from dataclasses import dataclass, field

from celestial_globe.models import ConnectionType, EdgeType, TopologyEdge, TopologyNode, TopologySnapshot
from celestial_globe.tree import NO_PARENT, Forest

_EDGE_FOR_CONNECTION: dict[ConnectionType, EdgeType] = {
    ConnectionType.WIRED: EdgeType.WIRED,
    ConnectionType.WIRELESS: EdgeType.WIRELESS,
    ConnectionType.VPN: EdgeType.VPN,
}


# ─── Collapse State ───────────────────────────────────────────────────────────


@dataclass
class CollapseState:
    """The set of node ids the user has collapsed."""

    collapsed: set[str] = field(default_factory=set)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.collapsed

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.collapsed))

    def __len__(self) -> int:
        return len(self.collapsed)

    def is_collapsed(self, node_id: str) -> bool:
        return node_id in self.collapsed

    def toggle(self, node_id: str) -> bool:
        """Flip membership; returns the new collapsed state."""
        if node_id in self.collapsed:
            self.collapsed.discard(node_id)
            return False
        self.collapsed.add(node_id)
        return True

    def set(self, node_id: str, collapsed: bool) -> None:
        if collapsed:
            self.collapsed.add(node_id)
        else:
            self.collapsed.discard(node_id)

    def copy(self) -> CollapseState:
        return CollapseState(collapsed=set(self.collapsed))

    @classmethod
    def from_nodes(cls, nodes: Iterable[TopologyNode], extra_ids: Iterable[str] = ()) -> CollapseState:
        ids = {n.id for n in nodes if n.collapsed}
        ids.update(extra_ids)
        return cls(collapsed=ids)

    @classmethod
    def from_snapshot(cls, snapshot: TopologySnapshot) -> CollapseState:
        return cls.from_nodes(snapshot.nodes, snapshot.view_config.collapsed_node_ids)


# ─── Visible Projection ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class VisibleProjection:
    """Derived view of a forest under a collapse set.

    Attributes:
        visible_ids: Visible node ids in forest pre-order.
        hidden_ids: Ids hidden by a collapsed ancestor.
        descendant_count: Subtree size minus one, for every node.
        collapsed_child_count: Nodes hidden by this node's own collapse
            (its whole subtree); zero unless the node is effectively collapsed.
        effective_collapsed: Collapsed ids that exist and have children.
    """

    visible_ids: tuple[str, ...]
    hidden_ids: frozenset[str]
    descendant_count: dict[str, int]
    collapsed_child_count: dict[str, int]
    effective_collapsed: frozenset[str]

    def is_visible(self, node_id: str) -> bool:
        return node_id not in self.hidden_ids and node_id in self.descendant_count


def compute_visible(forest: Forest, collapsed: Collection[str]) -> VisibleProjection:
    """Resolve which nodes are visible under ``collapsed``.

    A node is hidden iff some ancestor (exclusive) is collapsed. A collapsed
    leaf, or an id not present in the forest, hides nothing.
    """
    effective = frozenset(
        nid for nid in collapsed if nid in forest.index and forest.children[forest.index[nid]]
    )
    sizes = forest.subtree_sizes()

    descendant_count: dict[str, int] = {}
    collapsed_child_count: dict[str, int] = {}
    for idx, node in enumerate(forest.nodes):
        descendant_count[node.id] = sizes[idx] - 1
        collapsed_child_count[node.id] = sizes[idx] - 1 if node.id in effective else 0

    visible: list[str] = []
    hidden: set[str] = set()
    stack: list[tuple[int, bool]] = [(r, False) for r in reversed(forest.roots)]
    while stack:
        idx, under_collapsed = stack.pop()
        nid = forest.nodes[idx].id
        if under_collapsed:
            hidden.add(nid)
        else:
            visible.append(nid)
        hide_children = under_collapsed or nid in effective
        for child in reversed(forest.children[idx]):
            stack.append((child, hide_children))

    return VisibleProjection(
        visible_ids=tuple(visible),
        hidden_ids=frozenset(hidden),
        descendant_count=descendant_count,
        collapsed_child_count=collapsed_child_count,
        effective_collapsed=effective,
    )


# ─── Edges ────────────────────────────────────────────────────────────────────


def derive_edges(forest: Forest, backend_edges: Iterable[TopologyEdge] = ()) -> list[TopologyEdge]:
    """One parent → child edge per non-root node, in pre-order.

    The type and label come from a matching backend edge when there is one;
    otherwise orphans attached under the sentinel get ``logical`` and other
    nodes get the type matching their connection.
    """
    reported = {(e.source, e.target): e for e in backend_edges}
    edges: list[TopologyEdge] = []
    for idx in forest.preorder():
        p = forest.parents[idx]
        if p == NO_PARENT:
            continue
        child = forest.nodes[idx]
        parent_id = forest.nodes[p].id
        match = reported.get((parent_id, child.id))
        if match is not None:
            edge_type, label = match.edge_type, match.label
        elif forest.is_orphan(child.id):
            edge_type, label = EdgeType.LOGICAL, None
        else:
            edge_type, label = _EDGE_FOR_CONNECTION.get(child.connection_type, EdgeType.WIRED), None
        edges.append(TopologyEdge(source=parent_id, target=child.id, edge_type=edge_type, label=label))
    return edges


def visible_edges(
    forest: Forest,
    projection: VisibleProjection,
    backend_edges: Iterable[TopologyEdge] = (),
) -> list[TopologyEdge]:
    """Derived edges whose endpoints are both visible."""
    return [
        e
        for e in derive_edges(forest, backend_edges)
        if projection.is_visible(e.source) and projection.is_visible(e.target)
    ]
