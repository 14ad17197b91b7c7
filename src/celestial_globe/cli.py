"""
celestial-globe CLI - lay out topology snapshots

Usage:
    celestial-globe layout <snapshot.json>     Print computed positions as JSON
    celestial-globe svg <snapshot.json>        Render the positioned view as SVG
    celestial-globe stats <snapshot.json>      Print online/offline counts
    celestial-globe fetch                      Fetch from a live backend and print positions
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from celestial_globe.config import ClientSettings, Settings
from celestial_globe.errors import CelestialGlobeError
from celestial_globe.layout import Direction, LayoutOptions
from celestial_globe.models import TopologySnapshot, ViewFilter, parse_snapshot
from celestial_globe.renderers import SvgRenderer
from celestial_globe.store import TopologyStore
from celestial_globe.view import TopologyView, build_view, topology_stats
from celestial_globe.visibility import CollapseState

logger = logging.getLogger(__name__)


def view_to_dict(view: TopologyView) -> dict[str, Any]:
    return {
        "nodes": [
            {
                "id": vn.id,
                "label": vn.node.label,
                "node_type": vn.node.node_type.value,
                "x": vn.x,
                "y": vn.y,
                "depth": vn.depth,
                "descendant_count": vn.descendant_count,
                "collapsed_child_count": vn.collapsed_child_count,
                "collapsed": vn.collapsed,
                "orphan": vn.orphan,
            }
            for vn in view.nodes
        ],
        "edges": [e.model_dump(mode="json", by_alias=True, exclude_none=True) for e in view.edges],
        "broken_links": [list(link) for link in view.broken_links],
    }


def load_snapshot(path: str) -> TopologySnapshot:
    return parse_snapshot(json.loads(Path(path).read_text(encoding="utf-8")))


def _options(args: argparse.Namespace, settings: Settings) -> LayoutOptions:
    opts = settings.layout.to_options()
    if args.direction:
        opts = replace(opts, direction=Direction(args.direction))
    return opts


def _snapshot_view(args: argparse.Namespace, settings: Settings) -> TopologyView:
    snapshot = load_snapshot(args.snapshot)
    collapsed = CollapseState.from_snapshot(snapshot) if not args.expand_all else CollapseState()
    for node_id in args.collapsed or ():
        collapsed.set(node_id, True)
    return build_view(snapshot.nodes, collapsed.collapsed, snapshot.edges, _options(args, settings))


def cmd_layout(args: argparse.Namespace, settings: Settings) -> int:
    print(json.dumps(view_to_dict(_snapshot_view(args, settings)), indent=2))
    return 0


def cmd_svg(args: argparse.Namespace, settings: Settings) -> int:
    svg = SvgRenderer().render(_snapshot_view(args, settings))
    if args.output:
        Path(args.output).write_text(svg + "\n", encoding="utf-8")
    else:
        print(svg)
    return 0


def cmd_stats(args: argparse.Namespace, settings: Settings) -> int:
    stats = topology_stats(load_snapshot(args.snapshot).nodes)
    print(json.dumps({"total": stats.total, "online": stats.online, "offline": stats.offline}))
    return 0


async def _fetch(args: argparse.Namespace, settings: Settings) -> int:
    overrides = {"base_url": args.base_url, "view_filter": args.filter, "site": args.site}
    client_settings = ClientSettings.model_validate(
        {**settings.client.model_dump(), **{k: v for k, v in overrides.items() if v is not None}}
    )
    store = TopologyStore.from_settings(settings.model_copy(update={"client": client_settings}))
    async with store:
        if store.error:
            print(f"Error: {store.error}", file=sys.stderr)
            return 1
        print(json.dumps(view_to_dict(store.view(_options(args, settings))), indent=2))
    return 0


def cmd_fetch(args: argparse.Namespace, settings: Settings) -> int:
    return asyncio.run(_fetch(args, settings))


def _add_view_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--direction", "-d", choices=[d.value for d in Direction], help="Layout direction")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="celestial-globe: deterministic topology layout",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    celestial-globe layout topology.json
    celestial-globe layout topology.json --collapsed gw-1 --direction RL
    celestial-globe svg topology.json -o topology.svg
    celestial-globe fetch --base-url http://localhost:8080/api
        """,
    )
    parser.add_argument("--log-level", help="Logging level (default from CELESTIAL_GLOBE_LOG_LEVEL)")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    for name, help_text in (("layout", "Print computed positions as JSON"), ("svg", "Render the view as SVG")):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("snapshot", help="Path to a topology snapshot JSON file")
        p.add_argument("--collapsed", "-c", action="append", help="Collapse this node id (repeatable)")
        p.add_argument("--expand-all", action="store_true", help="Ignore collapse state stored in the snapshot")
        _add_view_args(p)
        if name == "svg":
            p.add_argument("--output", "-o", help="Write SVG to this file instead of stdout")

    stats_parser = subparsers.add_parser("stats", help="Print online/offline counts")
    stats_parser.add_argument("snapshot", help="Path to a topology snapshot JSON file")

    fetch_parser = subparsers.add_parser("fetch", help="Fetch from a live backend and print positions")
    fetch_parser.add_argument("--base-url", help="API base URL (default from CELESTIAL_GLOBE_BASE_URL)")
    fetch_parser.add_argument("--filter", choices=[f.value for f in ViewFilter], help="Topology filter")
    fetch_parser.add_argument("--site", help="Site id for the 'site' filter")
    _add_view_args(fetch_parser)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        settings = Settings.from_env()
        if args.log_level:
            settings = Settings.model_validate({**settings.model_dump(), "log_level": args.log_level})
    except ValueError as exc:
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        return 1
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    commands = {"layout": cmd_layout, "svg": cmd_svg, "stats": cmd_stats, "fetch": cmd_fetch}
    try:
        return commands[args.command](args, settings)
    except (OSError, ValueError, CelestialGlobeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
