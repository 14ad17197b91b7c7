"""Topology snapshot store.

The store holds the last authoritative snapshot and runs every mutation through
the same protocol:

    1. validate locally (nothing is sent if this fails);
    2. apply a draft change to the local nodes for immediate feedback;
    3. send the matching backend request;
    4. refetch the full snapshot whether the request succeeded or not.

There is no field-level rollback: a failed mutation is reverted by the
refetch replacing the draft wholesale.

Status follows a small state machine:

    IDLE/ERROR  --mutation-->  MUTATING  --backend answered-->  RECONCILING
    IDLE/ERROR  --fetch----------------------------------->   RECONCILING
    RECONCILING --snapshot applied--> IDLE
    RECONCILING --fetch failed------> ERROR

Overlapping calls are allowed. Every fetch is numbered and whichever response
lands last is applied, even when it was issued earlier than the snapshot it
replaces (last write wins; counted in ``stale_applies``).
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from celestial_globe.client import TopologyClient
from celestial_globe.config import Settings
from celestial_globe.errors import CelestialGlobeError, ValidationFailure
from celestial_globe.layout import LayoutOptions
from celestial_globe.models import (
    CreateLogicDeviceRequest,
    NodeType,
    TopologyEdge,
    TopologyMetadata,
    TopologyNode,
    TopologySnapshot,
    UpdateLogicDeviceRequest,
    ViewConfig,
    ViewFilter,
)
from celestial_globe.tree import Forest, build_forest
from celestial_globe.view import TopologyView, build_view
from celestial_globe.visibility import CollapseState

logger = logging.getLogger(__name__)

LABEL_MAX_LENGTH = 50
PENDING_PREFIX = "pending:"

Listener = Callable[["TopologyStore"], None]


class StoreStatus(str, Enum):
    IDLE = "idle"
    MUTATING = "mutating"
    RECONCILING = "reconciling"
    ERROR = "error"


class MutationResult(str, Enum):
    APPLIED = "applied"  # acknowledged by the backend, snapshot refetched
    REJECTED = "rejected"  # failed local validation, nothing sent
    FAILED = "failed"  # backend request failed, corrective refetch issued
    SKIPPED = "skipped"  # no-op or duplicate of an in-flight mutation


@dataclass(frozen=True)
class MutationOutcome:
    result: MutationResult
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.result == MutationResult.APPLIED


def validate_label(label: str) -> str:
    """Return the trimmed label or raise ``ValidationFailure``."""
    clean = label.strip()
    if not clean:
        raise ValidationFailure("label must not be empty")
    if len(clean) > LABEL_MAX_LENGTH:
        raise ValidationFailure(f"label must be at most {LABEL_MAX_LENGTH} characters")
    return clean


class TopologyStore:
    """Explicit, owned topology state for one view.

    Use as an async context manager (``init`` on enter, ``dispose`` on exit) or
    call ``init``/``dispose`` directly.
    """

    def __init__(
        self,
        client: TopologyClient,
        *,
        view_filter: ViewFilter = ViewFilter.FULL,
        site: str | None = None,
        layout_options: LayoutOptions | None = None,
        owns_client: bool = False,
    ) -> None:
        self._client = client
        self._owns_client = owns_client
        self.view_filter = view_filter
        self.site = site
        self.layout_options = layout_options

        self.nodes: list[TopologyNode] = []
        self.edges: list[TopologyEdge] = []
        self.metadata: TopologyMetadata | None = None
        self.view_config: ViewConfig | None = None
        self.collapsed = CollapseState()
        self.error: str | None = None
        self.last_mutation_error: str | None = None

        self.generation = 0
        self.stale_applies = 0
        self._issued_seq = 0
        self._applied_seq = 0
        self._pending_fetches = 0
        self._pending_mutations = 0
        self._in_flight: set[tuple[str, str]] = set()
        self._listeners: list[Listener] = []
        self._status = StoreStatus.IDLE
        self._disposed = False

    @classmethod
    def from_settings(cls, settings: Settings, **client_kwargs: Any) -> TopologyStore:
        client = TopologyClient(settings.client.base_url, timeout=settings.client.timeout, **client_kwargs)
        return cls(
            client,
            view_filter=settings.client.view_filter,
            site=settings.client.site,
            layout_options=settings.layout.to_options(),
            owns_client=True,
        )

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def init(self) -> bool:
        if self._disposed:
            raise RuntimeError("store has been disposed")
        return await self.fetch()

    async def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._listeners.clear()
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> TopologyStore:
        await self.init()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.dispose()

    # ── Observation ───────────────────────────────────────────────────────

    @property
    def status(self) -> StoreStatus:
        return self._status

    @property
    def loading(self) -> bool:
        return self._pending_fetches > 0

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(store)`` after every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if self._pending_mutations:
            status = StoreStatus.MUTATING
        elif self._pending_fetches:
            status = StoreStatus.RECONCILING
        elif self.error:
            status = StoreStatus.ERROR
        else:
            status = StoreStatus.IDLE
        if status != self._status:
            logger.debug("store status %s -> %s", self._status.value, status.value)
            self._status = status
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.warning("store listener %r failed", listener, exc_info=True)

    # ── Derived State ─────────────────────────────────────────────────────

    def node(self, node_id: str) -> TopologyNode | None:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def forest(self) -> Forest:
        return build_forest(self.nodes)

    def view(self, options: LayoutOptions | None = None) -> TopologyView:
        return build_view(self.nodes, self.collapsed.collapsed, self.edges, options or self.layout_options)

    def check_reparent(self, node_id: str, new_parent_id: str, forest: Forest | None = None) -> str | None:
        """Reason why ``node_id`` may not move under ``new_parent_id``, or None."""
        f = forest or self.forest()
        if node_id not in f:
            return f"unknown node {node_id!r}"
        if new_parent_id not in f:
            return f"unknown parent {new_parent_id!r}"
        if node_id == new_parent_id:
            return "a node cannot be its own parent"
        if node_id == f.sentinel_id:
            return "the root node cannot be moved"
        if f.is_descendant(new_parent_id, node_id):
            return f"{new_parent_id!r} is a descendant of {node_id!r}"
        return None

    # ── Fetch ─────────────────────────────────────────────────────────────

    async def fetch(self) -> bool:
        """Replace local state with a fresh snapshot. Returns False on failure."""
        self._issued_seq += 1
        seq = self._issued_seq
        self._pending_fetches += 1
        self.error = None
        self._notify()
        try:
            snapshot = await self._client.get_topology(self.view_filter, self.site)
        except CelestialGlobeError as exc:
            self._pending_fetches -= 1
            self.error = str(exc) or "Failed to load topology"
            logger.warning("topology fetch #%d failed: %s", seq, self.error)
            self._notify()
            return False
        self._pending_fetches -= 1
        self._apply(snapshot, seq)
        return True

    def _apply(self, snapshot: TopologySnapshot, seq: int) -> None:
        if seq < self._applied_seq:
            self.stale_applies += 1
            logger.info("stale snapshot #%d applied over #%d", seq, self._applied_seq)
        self.nodes = list(snapshot.nodes)
        self.edges = list(snapshot.edges)
        self.metadata = snapshot.metadata
        self.view_config = snapshot.view_config
        self.collapsed = CollapseState.from_snapshot(snapshot)
        self._applied_seq = seq
        self.generation += 1
        self._notify()

    async def set_view_filter(self, view_filter: ViewFilter, site: str | None = None) -> bool:
        self.view_filter = view_filter
        self.site = site
        return await self.fetch()

    # ── Mutation Protocol ─────────────────────────────────────────────────

    async def _mutate(
        self,
        kind: str,
        target: str,
        draft: Callable[[], None],
        request: Callable[[], Awaitable[Any]],
    ) -> MutationOutcome:
        key = (kind, target)
        if key in self._in_flight:
            logger.debug("%s for %r already in flight", kind, target)
            return MutationOutcome(MutationResult.SKIPPED, f"{kind} already in flight")

        self._in_flight.add(key)
        self._pending_mutations += 1
        failure: str | None = None
        try:
            draft()
            self._notify()
            await request()
        except CelestialGlobeError as exc:
            failure = str(exc) or f"{kind} failed"
        finally:
            self._pending_mutations -= 1
            self._in_flight.discard(key)
            if failure is not None:
                self.last_mutation_error = failure
                logger.warning("%s for %r failed: %s; refetching", kind, target, failure)
            await self.fetch()

        if failure is not None:
            return MutationOutcome(MutationResult.FAILED, failure)
        return MutationOutcome(MutationResult.APPLIED)

    def _replace_node(self, node_id: str, **changes: Any) -> None:
        self.nodes = [n.model_copy(update=changes) if n.id == node_id else n for n in self.nodes]

    @staticmethod
    def _rejected(reason: str) -> MutationOutcome:
        logger.debug("mutation rejected: %s", reason)
        return MutationOutcome(MutationResult.REJECTED, reason)

    # ── Mutations ─────────────────────────────────────────────────────────

    async def toggle_collapse(self, node_id: str) -> MutationOutcome:
        forest = self.forest()
        if node_id not in forest:
            return self._rejected(f"unknown node {node_id!r}")
        collapsed = not self.collapsed.is_collapsed(node_id)
        if collapsed and not forest.children[forest.index[node_id]]:
            return self._rejected(f"{node_id!r} has no children to collapse")

        def draft() -> None:
            self.collapsed.set(node_id, collapsed)
            self._replace_node(node_id, collapsed=collapsed)

        return await self._mutate(
            "toggle_collapse",
            node_id,
            draft,
            lambda: self._client.toggle_collapse(node_id, collapsed),
        )

    async def update_label(self, node_id: str, label: str) -> MutationOutcome:
        try:
            clean = validate_label(label)
        except ValidationFailure as exc:
            return self._rejected(exc.reason)
        node = self.node(node_id)
        if node is None:
            return self._rejected(f"unknown node {node_id!r}")
        if node.label == clean:
            return MutationOutcome(MutationResult.SKIPPED, "label unchanged")

        return await self._mutate(
            "update_label",
            node_id,
            lambda: self._replace_node(node_id, label=clean),
            lambda: self._client.update_label(node_id, clean),
        )

    async def update_parent(self, node_id: str, new_parent_id: str) -> MutationOutcome:
        forest = self.forest()
        reason = self.check_reparent(node_id, new_parent_id, forest)
        if reason is not None:
            return self._rejected(reason)
        if forest.parent_of(node_id) == new_parent_id and not forest.is_orphan(node_id):
            return MutationOutcome(MutationResult.SKIPPED, "parent unchanged")

        return await self._mutate(
            "update_parent",
            node_id,
            lambda: self._replace_node(node_id, parent_id=new_parent_id),
            lambda: self._client.update_parent(node_id, new_parent_id),
        )

    async def create_logic_device(self, req: CreateLogicDeviceRequest) -> MutationOutcome:
        try:
            clean = validate_label(req.label)
        except ValidationFailure as exc:
            return self._rejected(exc.reason)
        forest = self.forest()
        if req.parent_id is not None and req.parent_id not in forest:
            return self._rejected(f"unknown parent {req.parent_id!r}")

        payload = req.model_copy(update={"label": clean})
        parent_id = req.parent_id or forest.sentinel_id
        provisional = TopologyNode(
            id=f"{PENDING_PREFIX}{uuid.uuid4().hex}",
            label=clean,
            node_type=NodeType.LOGIC_DEVICE,
            parent_id=parent_id,
            order=max((n.order for n in self.nodes if n.parent_id == parent_id), default=-1) + 1,
            source="logic",
            ip=req.ip,
        )

        def draft() -> None:
            self.nodes = [*self.nodes, provisional]

        return await self._mutate(
            "create_logic_device",
            payload.model_dump_json(),
            draft,
            lambda: self._client.create_logic_device(payload),
        )

    async def update_logic_device(self, device_id: str, req: UpdateLogicDeviceRequest) -> MutationOutcome:
        node = self.node(device_id)
        if node is None or node.node_type != NodeType.LOGIC_DEVICE:
            return self._rejected(f"unknown logic device {device_id!r}")
        changes: dict[str, Any] = {}
        if req.label is not None:
            try:
                changes["label"] = validate_label(req.label)
            except ValidationFailure as exc:
                return self._rejected(exc.reason)
        if req.parent_id is not None:
            reason = self.check_reparent(device_id, req.parent_id)
            if reason is not None:
                return self._rejected(reason)
            changes["parent_id"] = req.parent_id
        if req.ip is not None:
            changes["ip"] = req.ip

        payload = req.model_copy(update={"label": changes["label"]}) if "label" in changes else req
        return await self._mutate(
            "update_logic_device",
            device_id,
            lambda: self._replace_node(device_id, **changes),
            lambda: self._client.update_logic_device(device_id, payload),
        )

    async def delete_logic_device(self, device_id: str) -> MutationOutcome:
        node = self.node(device_id)
        if node is None or node.node_type != NodeType.LOGIC_DEVICE:
            return self._rejected(f"unknown logic device {device_id!r}")

        def draft() -> None:
            self.nodes = [n for n in self.nodes if n.id != device_id]
            self.collapsed.set(device_id, False)

        return await self._mutate(
            "delete_logic_device",
            device_id,
            draft,
            lambda: self._client.delete_logic_device(device_id),
        )
