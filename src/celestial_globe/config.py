"""Configuration models.

Settings are plain pydantic models; ``Settings.from_env`` reads the
``CELESTIAL_GLOBE_*`` environment variables on top of the defaults.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import replace
from functools import partial

from pydantic import BaseModel, Field, field_validator

from celestial_globe.client import DEFAULT_TIMEOUT
from celestial_globe.layout import DEPTH_SPACING, SIBLING_GAP, Direction, LayoutOptions
from celestial_globe.models import NodeType, ViewFilter

ENV_PREFIX = "CELESTIAL_GLOBE_"

_ENV_FIELDS: dict[str, tuple[str, str]] = {
    "BASE_URL": ("client", "base_url"),
    "TIMEOUT": ("client", "timeout"),
    "FILTER": ("client", "view_filter"),
    "SITE": ("client", "site"),
    "DIRECTION": ("layout", "direction"),
    "SIBLING_GAP": ("layout", "sibling_gap"),
    "DEPTH_SPACING": ("layout", "depth_spacing"),
    "NODE_HEIGHT": ("layout", "node_height"),
    "LOG_LEVEL": ("", "log_level"),
}


def _uniform_height(height: float, _node_type: NodeType) -> float:
    return height


class LayoutSettings(BaseModel):
    """Spacing and direction for the layout engine."""

    direction: Direction = Field(default=Direction.LR, description="LR grows right, RL grows left")
    sibling_gap: float = Field(default=SIBLING_GAP, description="Gap between sibling subtrees", gt=0)
    depth_spacing: float = Field(default=DEPTH_SPACING, description="Distance between depths", gt=0)
    node_height: float | None = Field(default=None, description="Uniform height for every node type", gt=0)

    def to_options(self) -> LayoutOptions:
        opts = LayoutOptions(
            direction=self.direction,
            sibling_gap=self.sibling_gap,
            depth_spacing=self.depth_spacing,
        )
        if self.node_height is None:
            return opts
        return replace(opts, node_height=partial(_uniform_height, self.node_height))


class ClientSettings(BaseModel):
    """Where and how to reach the topology backend."""

    base_url: str = Field(default="http://localhost:8080/api", description="API base URL")
    timeout: float = Field(default=DEFAULT_TIMEOUT, description="Request timeout in seconds", gt=0)
    view_filter: ViewFilter = Field(default=ViewFilter.FULL, description="Topology filter for fetches")
    site: str | None = Field(default=None, description="Site id for the 'site' filter")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL and drop a trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {v!r}")
        return v.rstrip("/")


class Settings(BaseModel):
    client: ClientSettings = Field(default_factory=ClientSettings)
    layout: LayoutSettings = Field(default_factory=LayoutSettings)
    log_level: str = Field(default="WARNING")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {v!r}")
        return level

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        data: dict[str, dict[str, str] | str] = {"client": {}, "layout": {}}
        for suffix, (section, name) in _ENV_FIELDS.items():
            value = env.get(ENV_PREFIX + suffix)
            if value is None or value == "":
                continue
            if section:
                data[section][name] = value  # type: ignore[index]
            else:
                data[name] = value
        return cls.model_validate(data)
