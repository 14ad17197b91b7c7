"""Tests for config.py: defaults, environment overrides and validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from celestial_globe.config import ClientSettings, LayoutSettings, Settings
from celestial_globe.layout import Direction, LayoutOptions
from celestial_globe.models import NodeType, ViewFilter


class TestDefaults:
    def test_values(self):
        s = Settings()
        assert s.client.base_url == "http://localhost:8080/api"
        assert s.client.timeout == 10.0
        assert s.client.view_filter == ViewFilter.FULL
        assert s.layout.direction == Direction.LR
        assert s.log_level == "WARNING"

    def test_to_options(self):
        assert LayoutSettings().to_options() == LayoutOptions()


class TestFromEnv:
    def test_overrides(self):
        s = Settings.from_env(
            {
                "CELESTIAL_GLOBE_BASE_URL": "https://topo.example/api/",
                "CELESTIAL_GLOBE_TIMEOUT": "2.5",
                "CELESTIAL_GLOBE_FILTER": "site",
                "CELESTIAL_GLOBE_SITE": "hq",
                "CELESTIAL_GLOBE_DIRECTION": "RL",
                "CELESTIAL_GLOBE_SIBLING_GAP": "12",
                "CELESTIAL_GLOBE_DEPTH_SPACING": "200",
                "CELESTIAL_GLOBE_LOG_LEVEL": "debug",
            }
        )
        assert s.client.base_url == "https://topo.example/api"
        assert s.client.timeout == 2.5
        assert (s.client.view_filter, s.client.site) == (ViewFilter.SITE, "hq")
        assert s.layout.to_options() == LayoutOptions(direction=Direction.RL, sibling_gap=12.0, depth_spacing=200.0)
        assert s.log_level == "DEBUG"

    def test_empty_values_ignored(self):
        s = Settings.from_env({"CELESTIAL_GLOBE_BASE_URL": "", "UNRELATED": "x"})
        assert s == Settings()

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("CELESTIAL_GLOBE_SITE", "branch-2")
        assert Settings.from_env().client.site == "branch-2"


class TestValidation:
    @pytest.mark.parametrize(
        "env",
        [
            {"CELESTIAL_GLOBE_BASE_URL": "ftp://topo"},
            {"CELESTIAL_GLOBE_TIMEOUT": "0"},
            {"CELESTIAL_GLOBE_SIBLING_GAP": "-4"},
            {"CELESTIAL_GLOBE_DIRECTION": "TB"},
            {"CELESTIAL_GLOBE_FILTER": "everything"},
            {"CELESTIAL_GLOBE_LOG_LEVEL": "loud"},
        ],
    )
    def test_invalid(self, env):
        with pytest.raises(ValidationError):
            Settings.from_env(env)

    def test_client_settings_direct(self):
        assert ClientSettings(base_url="http://h:1/").base_url == "http://h:1"


class TestNodeHeight:
    def test_per_type_heights_by_default(self):
        opts = LayoutSettings().to_options()
        assert opts.node_height(NodeType.CONTROLLER) == 100.0

    def test_uniform_override(self):
        opts = Settings.from_env({"CELESTIAL_GLOBE_NODE_HEIGHT": "40"}).layout.to_options()
        assert opts.node_height(NodeType.CONTROLLER) == 40.0
        assert opts.node_height(NodeType.CLIENT) == 40.0

    def test_must_be_positive(self):
        with pytest.raises(ValidationError):
            LayoutSettings(node_height=0)
