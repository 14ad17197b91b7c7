"""Layout module: deterministic hierarchical tree layout.

Phases:
  1. Extent pass (post-order): each subtree's span along the stacking axis.
  2. Placement pass (pre-order): centre each node on its subtree span and
     hand its children consecutive slices of that span.
  3. Normalisation: shift so no stacking coordinate is negative.

Depth maps to x (``depth * depth_spacing``), the stacking axis is y. The
engine is a pure function of the forest it is given; collapse is handled by
the caller pruning hidden nodes before calling ``compute_layout``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from celestial_globe.models import NodeType
from celestial_globe.tree import Forest

# ─── Constants ────────────────────────────────────────────────────────────────

DEPTH_SPACING: float = 300.0  # x distance between adjacent depths
SIBLING_GAP: float = 24.0  # y gap between adjacent sibling subtrees
NODE_HEIGHT_DEFAULT: float = 64.0

NODE_HEIGHTS: dict[NodeType, float] = {
    NodeType.INTERNET: 72.0,
    NodeType.CONTROLLER: 100.0,
    NodeType.GATEWAY: 80.0,
    NodeType.ROUTER: 80.0,
    NodeType.SWITCH: 64.0,
    NodeType.AP: 64.0,
    NodeType.CLIENT: 52.0,
    NodeType.WG_PEER: 52.0,
    NodeType.LOGIC_DEVICE: 60.0,
    NodeType.EXTERNAL: 72.0,
    NodeType.LPG_SERVER: 80.0,
}


class Direction(str, Enum):
    LR = "LR"
    RL = "RL"


def default_node_height(node_type: NodeType) -> float:
    return NODE_HEIGHTS.get(node_type, NODE_HEIGHT_DEFAULT)


@dataclass(frozen=True)
class LayoutOptions:
    direction: Direction = Direction.LR
    sibling_gap: float = SIBLING_GAP
    depth_spacing: float = DEPTH_SPACING
    node_height: Callable[[NodeType], float] = default_node_height


# ─── Result Types ─────────────────────────────────────────────────────────────


@dataclass
class LayoutNode:
    """A positioned node. ``y`` is the top edge of the node box."""

    id: str
    depth: int
    x: float
    y: float
    height: float
    extent: float


@dataclass
class LayoutResult:
    """Positions keyed by node id, in placement (pre-order) order."""

    nodes: dict[str, LayoutNode] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def position(self, node_id: str) -> tuple[float, float]:
        ln = self.nodes[node_id]
        return (ln.x, ln.y)

    @property
    def depth_map(self) -> dict[str, int]:
        return {nid: ln.depth for nid, ln in self.nodes.items()}

    def bounds(self) -> tuple[float, float, float, float]:
        """(min_x, min_y, max_x, max_y) over node boxes; zeros when empty."""
        if not self.nodes:
            return (0.0, 0.0, 0.0, 0.0)
        xs = [ln.x for ln in self.nodes.values()]
        return (
            min(xs),
            min(ln.y for ln in self.nodes.values()),
            max(xs),
            max(ln.y + ln.height for ln in self.nodes.values()),
        )


# ─── Extent Pass ──────────────────────────────────────────────────────────────


def children_span(child_extents: list[float], gap: float) -> float:
    """Stacked span of sibling subtrees separated by ``gap``."""
    if not child_extents:
        return 0.0
    return sum(child_extents) + gap * (len(child_extents) - 1)


def subtree_extents(forest: Forest, heights: list[float], gap: float) -> list[float]:
    """Compute every subtree's extent along the stacking axis.

    extent(leaf) = own height
    extent(node) = max(own height, Σ child extents + (k - 1) * gap)
    """
    extents = list(heights)
    for idx in reversed(forest.preorder()):
        kids = forest.children[idx]
        if kids:
            span = children_span([extents[c] for c in kids], gap)
            extents[idx] = max(heights[idx], span)
    return extents


# ─── Placement ────────────────────────────────────────────────────────────────


def compute_layout(forest: Forest, options: LayoutOptions | None = None) -> LayoutResult:
    """Assign (x, y) to every node of ``forest``.

    Guarantees, for any forest:
      - sibling subtree spans never overlap and appear in sibling order;
      - a node's box is centred on the span of its children;
      - x depends on depth only;
      - identical input gives identical output.

    Multiple roots are stacked top to bottom with the sibling gap between
    them.
    """
    opts = options or LayoutOptions()
    gap = opts.sibling_gap
    sign = -1.0 if opts.direction == Direction.RL else 1.0

    heights = [float(opts.node_height(n.node_type)) for n in forest.nodes]
    extents = subtree_extents(forest, heights, gap)

    # (index, depth, stack_start), roots first, top to bottom.
    stack: list[tuple[int, int, float]] = []
    cursor = 0.0
    for r in forest.roots:
        stack.append((r, 0, cursor))
        cursor += extents[r] + gap
    stack.reverse()

    placed: list[LayoutNode] = []
    while stack:
        idx, depth, start = stack.pop()
        extent = extents[idx]
        own = heights[idx]
        x = depth * opts.depth_spacing
        placed.append(
            LayoutNode(
                id=forest.nodes[idx].id,
                depth=depth,
                x=sign * x if x else 0.0,
                y=start + extent / 2 - own / 2,
                height=own,
                extent=extent,
            )
        )

        kids = forest.children[idx]
        if not kids:
            continue
        span = children_span([extents[c] for c in kids], gap)
        child_start = start + (extent - span) / 2
        slots: list[tuple[int, int, float]] = []
        for c in kids:
            slots.append((c, depth + 1, child_start))
            child_start += extents[c] + gap
        stack.extend(reversed(slots))

    return LayoutResult(nodes={ln.id: ln for ln in _normalise(placed)})


def _normalise(placed: list[LayoutNode]) -> list[LayoutNode]:
    """Shift every node down so the smallest y is not negative."""
    if not placed:
        return placed
    min_y = min(ln.y for ln in placed)
    if min_y < 0:
        for ln in placed:
            ln.y -= min_y
    return placed
