"""SVG renderer: renders a positioned topology view to an SVG string."""

from __future__ import annotations

from celestial_globe.models import EdgeType, NodeType, TopologyEdge
from celestial_globe.renderers.base import escape_text, view_extent
from celestial_globe.view import TopologyView, ViewNode

# ─── Constants ──────────────────────────────────────────────────────────────

FONT_SIZE = 14
FONT_FAMILY = "sans-serif"
PADDING = 20  # canvas padding in pixels
NODE_WIDTH = 200
NARROW_NODE_WIDTH = 160

_NARROW_TYPES = {NodeType.INTERNET, NodeType.CLIENT, NodeType.WG_PEER}

_STROKE_STYLES: dict[EdgeType, str] = {
    EdgeType.WIRED: "",
    EdgeType.WIRELESS: 'stroke-dasharray="5 5"',
    EdgeType.VPN: 'stroke-dasharray="10 5"',
    EdgeType.LOGICAL: 'stroke-dasharray="3 3" stroke-width="1"',
    EdgeType.ROUTE: 'stroke-width="3"',
}

_FILL_STROKE = 'fill="white" stroke="black" stroke-width="1.5"'


def _font(size: int = FONT_SIZE) -> str:
    return f'font-family="{FONT_FAMILY}" font-size="{size}"'


def _num(v: float) -> str:
    """Format a coordinate without a trailing '.0'."""
    return f"{v:g}"


def node_width(vn: ViewNode) -> int:
    return NARROW_NODE_WIDTH if vn.node.node_type in _NARROW_TYPES else NODE_WIDTH


# ─── Node Rendering ─────────────────────────────────────────────────────────


def _render_node(vn: ViewNode, height: float, dx: float) -> str:
    x, y, w, h = vn.x + dx, vn.y + PADDING, node_width(vn), height
    cx, cy = x + w / 2, y + h / 2
    rx = h / 2 if vn.node.node_type == NodeType.INTERNET else 6
    parts = [
        f'<rect x="{_num(x)}" y="{_num(y)}" width="{w}" height="{_num(h)}" rx="{_num(rx)}" {_FILL_STROKE}/>',
        f'<text x="{_num(cx)}" y="{_num(cy)}" dominant-baseline="central" text-anchor="middle" {_font()}>'
        f"{escape_text(vn.node.label)}</text>",
    ]
    if vn.descendant_count > 0:
        badge = f"+{vn.collapsed_child_count}" if vn.collapsed else str(vn.descendant_count)
        parts.append(
            f'<text x="{_num(x + w - 6)}" y="{_num(y + FONT_SIZE)}" text-anchor="end" {_font(FONT_SIZE - 4)} '
            f'fill="#666">{badge}</text>'
        )
    return "\n".join(parts)


# ─── Edge Rendering ─────────────────────────────────────────────────────────


def _render_edge(edge: TopologyEdge, src: ViewNode, tgt: ViewNode, heights: dict[str, float], dx: float) -> str:
    # Connect the facing sides; with RL the child sits left of its parent.
    if tgt.x >= src.x:
        x1, x2 = src.x + node_width(src), tgt.x
    else:
        x1, x2 = src.x, tgt.x + node_width(tgt)
    x1, x2 = x1 + dx, x2 + dx
    y1 = src.y + heights[src.id] / 2 + PADDING
    y2 = tgt.y + heights[tgt.id] / 2 + PADDING
    mx = (x1 + x2) / 2
    pts = " ".join(f"{_num(px)},{_num(py)}" for px, py in ((x1, y1), (mx, y1), (mx, y2), (x2, y2)))
    style = _STROKE_STYLES.get(edge.edge_type, "")
    parts = [f'<polyline points="{pts}" fill="none" stroke="black" stroke-width="1.5" {style}/>']
    if edge.label is not None:
        parts.append(
            f'<text x="{_num(mx)}" y="{_num((y1 + y2) / 2 - 6)}" text-anchor="middle" {_font(FONT_SIZE - 4)} '
            f'fill="#333">{escape_text(edge.label)}</text>'
        )
    return "\n".join(parts)


# ─── Public Renderer ────────────────────────────────────────────────────────


class SvgRenderer:
    """Consumes a TopologyView and produces an SVG string."""

    def render(self, view: TopologyView) -> str:
        if not view.nodes:
            return ""

        heights = {nid: ln.height for nid, ln in view.layout.nodes.items()}
        by_id = {vn.id: vn for vn in view.nodes}

        min_x, max_x, max_y = view_extent(view, node_width)
        dx = PADDING - min_x
        svg_w = int(max_x + dx + PADDING)
        svg_h = int(max_y + 2 * PADDING)

        parts = [
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{svg_w}" height="{svg_h}" viewBox="0 0 {svg_w} {svg_h}">',
            f'<rect width="{svg_w}" height="{svg_h}" fill="white"/>',
        ]

        # Edges behind nodes, sorted for deterministic output
        for edge in sorted(view.edges, key=lambda e: (e.source, e.target)):
            src, tgt = by_id.get(edge.source), by_id.get(edge.target)
            if src is None or tgt is None:
                continue
            parts.append(_render_edge(edge, src, tgt, heights, dx))

        # Nodes (on top)
        for vn in view.nodes:
            parts.append(_render_node(vn, heights[vn.id], dx))

        parts.append("</svg>")
        return "\n".join(parts)
