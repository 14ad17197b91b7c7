"""View pipeline: tree builder → collapse resolver → layout engine.

``build_view`` is what presentation consumes: visible nodes annotated with
positions and derived counts, plus the visible edge list. Everything is
recomputed from scratch on every call.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable
from dataclasses import dataclass, field

from celestial_globe.layout import LayoutOptions, LayoutResult, compute_layout
from celestial_globe.models import TopologyEdge, TopologyNode
from celestial_globe.tree import NO_PARENT, Forest, build_forest
from celestial_globe.visibility import VisibleProjection, compute_visible, visible_edges

ONLINE_STATUSES = frozenset({"online", "active"})
OFFLINE_STATUSES = frozenset({"offline", "inactive"})


@dataclass(frozen=True)
class ViewNode:
    node: TopologyNode
    x: float
    y: float
    depth: int
    descendant_count: int
    collapsed_child_count: int
    collapsed: bool
    orphan: bool

    @property
    def id(self) -> str:
        return self.node.id


@dataclass
class TopologyView:
    nodes: list[ViewNode] = field(default_factory=list)
    edges: list[TopologyEdge] = field(default_factory=list)
    layout: LayoutResult = field(default_factory=LayoutResult)
    projection: VisibleProjection | None = None
    broken_links: list[tuple[str, str]] = field(default_factory=list)

    def node(self, node_id: str) -> ViewNode:
        for vn in self.nodes:
            if vn.id == node_id:
                return vn
        raise KeyError(node_id)

    def positions(self) -> dict[str, tuple[float, float]]:
        return {vn.id: (vn.x, vn.y) for vn in self.nodes}


def build_view(
    nodes: Iterable[TopologyNode],
    collapsed: Collection[str] = (),
    edges: Iterable[TopologyEdge] = (),
    options: LayoutOptions | None = None,
) -> TopologyView:
    """Compute the positioned visible projection of ``nodes``."""
    forest = build_forest(nodes)
    projection = compute_visible(forest, collapsed)
    layout = compute_layout(forest.prune(projection.hidden_ids), options)

    view_nodes = [
        ViewNode(
            node=forest.node(nid),
            x=ln.x,
            y=ln.y,
            depth=ln.depth,
            descendant_count=projection.descendant_count[nid],
            collapsed_child_count=projection.collapsed_child_count[nid],
            collapsed=nid in projection.effective_collapsed,
            orphan=forest.is_orphan(nid),
        )
        for nid, ln in layout.nodes.items()
    ]
    return TopologyView(
        nodes=view_nodes,
        edges=visible_edges(forest, projection, edges),
        layout=layout,
        projection=projection,
        broken_links=list(forest.broken_links),
    )


# ─── Outline Helpers ──────────────────────────────────────────────────────────


def _matches(node: TopologyNode, q: str) -> bool:
    return any(value and q in value.lower() for value in (node.label, node.ip, node.mac))


def filter_outline(forest: Forest, query: str) -> list[str]:
    """Ids to show in the outline for a search ``query``, in pre-order.

    A node is kept if it matches (label, ip or mac, case-insensitive) or has a
    matching descendant. An empty query keeps everything.
    """
    order = forest.preorder()
    q = query.strip().lower()
    if not q:
        return [forest.nodes[i].id for i in order]

    keep: set[int] = set()
    for idx, node in enumerate(forest.nodes):
        if idx in keep or not _matches(node, q):
            continue
        cur = idx
        while cur != NO_PARENT and cur not in keep:
            keep.add(cur)
            cur = forest.parents[cur]
    return [forest.nodes[i].id for i in order if i in keep]


@dataclass(frozen=True)
class TopologyStats:
    total: int
    online: int
    offline: int


def topology_stats(nodes: Iterable[TopologyNode]) -> TopologyStats:
    total = online = offline = 0
    for n in nodes:
        total += 1
        if n.status in ONLINE_STATUSES:
            online += 1
        elif n.status in OFFLINE_STATUSES:
            offline += 1
    return TopologyStats(total=total, online=online, offline=offline)
