"""Transient interaction state: selection, context menu, drag, highlights.

Kept apart from topology data so that none of it triggers a layout pass and a
topology refetch leaves it alone. The one exception is selection: ids that no
longer exist after a refetch are dropped silently.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from celestial_globe.store import TopologyStore


class DragMode(str, Enum):
    REPARENT = "reparent"
    FREE = "free"


class ViewMode(str, Enum):
    MINDMAP = "mindmap"
    OUTLINE = "outline"
    SPLIT = "split"


@dataclass
class ContextMenu:
    is_open: bool = False
    x: float = 0.0
    y: float = 0.0
    node_id: str | None = None
    edge_id: str | None = None


@dataclass
class UIState:
    selected_node_ids: list[str] = field(default_factory=list)
    context_menu: ContextMenu = field(default_factory=ContextMenu)
    dragged_node_ids: list[str] = field(default_factory=list)
    drop_parent_node_id: str | None = None
    drag_mode: DragMode | None = None
    highlighted_node_ids: list[str] = field(default_factory=list)
    highlighted_edge_ids: list[str] = field(default_factory=list)
    is_layouting: bool = False
    view_mode: ViewMode = ViewMode.SPLIT

    # ── Selection ─────────────────────────────────────────────────────────

    @property
    def selected_node_id(self) -> str | None:
        """Primary selection: the first selected id, if any."""
        return self.selected_node_ids[0] if self.selected_node_ids else None

    def select_only(self, ids: Iterable[str]) -> None:
        self.selected_node_ids = list(dict.fromkeys(ids))

    def toggle_selection(self, ids: Iterable[str]) -> None:
        current = list(self.selected_node_ids)
        for node_id in ids:
            if node_id in current:
                current.remove(node_id)
            else:
                current.append(node_id)
        self.selected_node_ids = current

    def clear_selection(self) -> None:
        self.selected_node_ids = []

    # ── Context Menu ──────────────────────────────────────────────────────

    def open_context_menu(self, x: float, y: float, node_id: str | None = None, edge_id: str | None = None) -> None:
        self.context_menu = ContextMenu(is_open=True, x=x, y=y, node_id=node_id, edge_id=edge_id)

    def close_context_menu(self) -> None:
        self.context_menu = ContextMenu()

    # ── Drag ──────────────────────────────────────────────────────────────

    def start_drag(self, node_ids: Iterable[str], mode: DragMode) -> None:
        self.dragged_node_ids = list(node_ids)
        self.drag_mode = mode

    def set_drop_target(self, node_id: str | None) -> None:
        self.drop_parent_node_id = node_id

    def clear_drag(self) -> None:
        self.dragged_node_ids = []
        self.drop_parent_node_id = None
        self.drag_mode = None

    # ── View Mode ─────────────────────────────────────────────────────────

    def set_view_mode(self, mode: ViewMode | str) -> None:
        """Accepts a ``ViewMode`` or its string value."""
        self.view_mode = ViewMode(mode)

    # ── Highlights ────────────────────────────────────────────────────────

    def set_highlights(self, node_ids: Iterable[str], edge_ids: Iterable[str]) -> None:
        self.highlighted_node_ids = list(node_ids)
        self.highlighted_edge_ids = list(edge_ids)

    def clear_highlights(self) -> None:
        self.highlighted_node_ids = []
        self.highlighted_edge_ids = []

    # ── Snapshot Reconciliation ───────────────────────────────────────────

    def reconcile(self, existing_ids: Iterable[str]) -> None:
        """Drop selected ids that are not in ``existing_ids``."""
        existing = set(existing_ids)
        self.selected_node_ids = [i for i in self.selected_node_ids if i in existing]

    def bind(self, store: TopologyStore) -> Callable[[], None]:
        """Reconcile selection whenever the store applies a new snapshot.

        Returns the unsubscribe callable.
        """
        last_generation = store.generation

        def on_change(s: TopologyStore) -> None:
            nonlocal last_generation
            if s.generation == last_generation:
                return
            last_generation = s.generation
            self.reconcile(n.id for n in s.nodes)

        return store.subscribe(on_change)
