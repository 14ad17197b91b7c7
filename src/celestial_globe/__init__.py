"""celestial-globe: deterministic network-topology layout and snapshot store."""

__version__ = "0.1.0"

from celestial_globe.layout import Direction, LayoutOptions, LayoutResult, compute_layout
from celestial_globe.models import TopologyEdge, TopologyNode, TopologySnapshot
from celestial_globe.store import MutationOutcome, MutationResult, StoreStatus, TopologyStore
from celestial_globe.tree import Forest, build_forest
from celestial_globe.ui_state import UIState
from celestial_globe.view import TopologyView, build_view
from celestial_globe.visibility import CollapseState, compute_visible

__all__ = [
    "CollapseState",
    "Direction",
    "Forest",
    "LayoutOptions",
    "LayoutResult",
    "MutationOutcome",
    "MutationResult",
    "StoreStatus",
    "TopologyEdge",
    "TopologyNode",
    "TopologySnapshot",
    "TopologyStore",
    "TopologyView",
    "UIState",
    "build_forest",
    "build_view",
    "compute_layout",
    "compute_visible",
]
