"""HTTP client for the topology backend.

Thin async adapter over ``httpx``. Every mutation endpoint returns only an
acknowledgement; callers are expected to refetch the full snapshot afterwards.
Non-2xx answers raise ``TopologyAPIError``; failures below HTTP raise
``TopologyTransportError``.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from celestial_globe.errors import TopologyAPIError, TopologyTransportError
from celestial_globe.models import (
    CreateLogicDeviceRequest,
    TopologySnapshot,
    UpdateLogicDeviceRequest,
    ViewFilter,
    parse_snapshot,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
TOPOLOGY_PATH = "/topology/v2"


def _node_path(node_id: str, action: str) -> str:
    return f"{TOPOLOGY_PATH}/nodes/{quote(node_id, safe='')}/{action}"


def _logic_device_path(device_id: str | None = None) -> str:
    base = f"{TOPOLOGY_PATH}/logic-devices"
    return base if device_id is None else f"{base}/{quote(device_id, safe='')}"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {response.status_code}"


class TopologyClient:
    """Async client for the topology endpoints.

    Pass ``client`` to reuse an existing ``httpx.AsyncClient`` (it is then not
    closed by ``aclose``), or ``transport`` to swap the transport of the client
    created here (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> TopologyClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        logger.debug("%s %s", method, path)
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as exc:
            raise TopologyTransportError(f"{method} {path} failed: {exc}") from exc

        if response.is_error:
            raise TopologyAPIError(response.status_code, _error_message(response))
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    # ── Queries ───────────────────────────────────────────────────────────

    async def get_topology(self, view_filter: ViewFilter = ViewFilter.FULL, site: str | None = None) -> TopologySnapshot:
        params = {"filter": view_filter.value}
        if site:
            params["site"] = site
        payload = await self._request("GET", TOPOLOGY_PATH, params=params)
        return parse_snapshot(payload)

    # ── Mutations ─────────────────────────────────────────────────────────

    async def toggle_collapse(self, node_id: str, collapsed: bool) -> Any:
        return await self._request("POST", _node_path(node_id, "collapse"), json={"collapsed": collapsed})

    async def update_parent(self, node_id: str, new_parent_id: str) -> Any:
        return await self._request("PUT", _node_path(node_id, "parent"), json={"new_parent_id": new_parent_id})

    async def update_label(self, node_id: str, label: str) -> Any:
        return await self._request("PUT", _node_path(node_id, "label"), json={"label": label})

    async def create_logic_device(self, req: CreateLogicDeviceRequest) -> Any:
        return await self._request("POST", _logic_device_path(), json=req.model_dump(mode="json", exclude_none=True))

    async def update_logic_device(self, device_id: str, req: UpdateLogicDeviceRequest) -> Any:
        return await self._request(
            "PUT",
            _logic_device_path(device_id),
            json=req.model_dump(mode="json", exclude_none=True),
        )

    async def delete_logic_device(self, device_id: str) -> Any:
        return await self._request("DELETE", _logic_device_path(device_id))
