"""Renderer protocol and helpers shared by renderers."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from celestial_globe.view import TopologyView, ViewNode


@runtime_checkable
class Renderer(Protocol):
    """Anything that turns a positioned topology view into text."""

    def render(self, view: TopologyView) -> str: ...


def escape_text(s: str) -> str:
    return s.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def view_extent(view: TopologyView, width_of: Callable[[ViewNode], float]) -> tuple[float, float, float]:
    """(min_x, max_x, max_y) covered by the node boxes of a non-empty view.

    ``x`` may be negative for right-to-left layouts; ``y`` never is.
    """
    heights = view.layout.nodes
    min_x = min(vn.x for vn in view.nodes)
    max_x = max(vn.x + width_of(vn) for vn in view.nodes)
    max_y = max(vn.y + heights[vn.id].height for vn in view.nodes)
    return min_x, max_x, max_y
