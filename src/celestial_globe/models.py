"""Wire types for the topology backend.

These mirror the JSON returned by ``GET topology`` and accepted by the mutation
endpoints. They carry raw node state only; everything positional or visibility
related is derived elsewhere and never written back into these objects.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from celestial_globe.errors import SnapshotDecodeError

# ─── Enums ────────────────────────────────────────────────────────────────────


class NodeType(str, Enum):
    INTERNET = "internet"
    CONTROLLER = "controller"
    GATEWAY = "gateway"
    ROUTER = "router"
    SWITCH = "switch"
    AP = "ap"
    CLIENT = "client"
    WG_PEER = "wg_peer"
    LOGIC_DEVICE = "logic_device"
    EXTERNAL = "external"
    LPG_SERVER = "lpg_server"


class EdgeType(str, Enum):
    WIRED = "wired"
    WIRELESS = "wireless"
    VPN = "vpn"
    LOGICAL = "logical"
    ROUTE = "route"


class ConnectionType(str, Enum):
    WIRED = "wired"
    WIRELESS = "wireless"
    VPN = "vpn"


class LogicDeviceType(str, Enum):
    SWITCH = "switch"
    HUB = "hub"
    CONVERTER = "converter"
    UPS = "ups"
    OTHER = "other"


class ViewFilter(str, Enum):
    FULL = "full"
    ROUTES = "routes"
    SITE = "site"


# ─── Snapshot Types ───────────────────────────────────────────────────────────


class TopologyNode(BaseModel):
    """One device (or virtual node) in the topology.

    ``descendant_count`` and ``collapsed_child_count`` are whatever the backend
    last reported; the view pipeline recomputes its own values and never reads
    these.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    label: str
    node_type: NodeType
    parent_id: str | None = None
    order: int = 0
    collapsed: bool = False
    descendant_count: int = 0
    collapsed_child_count: int = 0

    # Presentation-only fields, passed through untouched.
    status: str = "unknown"
    source: str | None = None
    state_type: str | None = None
    connection_type: ConnectionType = ConnectionType.WIRED
    mac: str | None = None
    ip: str | None = None
    lacis_id: str | None = None
    fid: str | None = None
    facility_name: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_self_parented(self) -> bool:
        return self.parent_id == self.id


class TopologyEdge(BaseModel):
    """A parent → child connection as reported by the backend."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    source: str = Field(alias="from")
    target: str = Field(alias="to")
    edge_type: EdgeType = EdgeType.WIRED
    label: str | None = None


class TopologyMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    total_devices: int = 0
    total_clients: int = 0
    controllers: int = 0
    routers: int = 0
    logic_devices: int = 0
    generated_at: str | None = None


class ViewConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    collapsed_node_ids: list[str] = Field(default_factory=list)


class TopologySnapshot(BaseModel):
    """Full topology state as returned by a single fetch."""

    model_config = ConfigDict(extra="ignore")

    nodes: list[TopologyNode] = Field(default_factory=list)
    edges: list[TopologyEdge] = Field(default_factory=list)
    metadata: TopologyMetadata = Field(default_factory=TopologyMetadata)
    view_config: ViewConfig = Field(default_factory=ViewConfig)


def parse_snapshot(payload: Any) -> TopologySnapshot:
    """Decode a JSON payload into a snapshot, wrapping pydantic errors."""
    try:
        return TopologySnapshot.model_validate(payload)
    except ValidationError as exc:
        raise SnapshotDecodeError(f"invalid topology payload: {exc.error_count()} error(s)") from exc


# ─── Logic Devices ────────────────────────────────────────────────────────────


class CreateLogicDeviceRequest(BaseModel):
    label: str
    device_type: LogicDeviceType
    parent_id: str | None = None
    ip: str | None = None
    location: str | None = None
    note: str | None = None


class UpdateLogicDeviceRequest(BaseModel):
    label: str | None = None
    device_type: LogicDeviceType | None = None
    parent_id: str | None = None
    ip: str | None = None
    location: str | None = None
    note: str | None = None
