"""Command-line client for the indexing backend."""
from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
import textwrap
from typing import Any, Optional, Sequence

import httpx

from fileassist import config as fa_config
from fileassist.connection import ConnectionMonitor
from fileassist.folders import FolderRegistry
from fileassist.gateway import RemoteGateway
from fileassist.logging_config import configure_logging
from fileassist.models import Envelope, MonitoringSnapshot
from fileassist.poller import MonitoringPoller
from fileassist.search import SearchSession
from fileassist.state import AppState


class _Context:
    def __init__(self, args: argparse.Namespace, transport: Optional[httpx.AsyncBaseTransport]) -> None:
        config = fa_config.get_config()
        backend = fa_config.section("backend", config)
        self.state = AppState(args.backend or str(backend.get("url", "")) or "http://localhost:8080/assistant")
        timeout = args.timeout if args.timeout is not None else float(backend.get("timeout_seconds", 10.0))
        self.gateway = RemoteGateway(self.state.endpoint, timeout=timeout, transport=transport)
        self.monitoring = fa_config.section("monitoring", config)


def _require(envelope: Envelope, default: str) -> Envelope:
    if not envelope.success:
        raise SystemExit(f"Error: {envelope.error_message(default)}")
    return envelope


def _emit(args: argparse.Namespace, payload: Any, lines: Sequence[str]) -> None:
    if args.json:
        print(json.dumps(payload, indent=2, default=str))
        return
    for line in lines:
        print(line)


def _format_snapshot(snapshot: MonitoringSnapshot) -> list[str]:
    lines: list[str] = []
    for title, values in (("System", snapshot.system_metrics), ("Performance", snapshot.performance_stats)):
        if values:
            joined = "; ".join(f"{key}={value}" for key, value in values.items())
            lines.append(f"{title}: " + os.linesep.join(textwrap.wrap(joined, width=100)))
    if snapshot.active_alerts:
        lines.append(f"Active alerts ({len(snapshot.active_alerts)}):")
        for alert in snapshot.active_alerts:
            lines.append(f"  [{alert.level.value}] {alert.title}: {alert.message}")
    else:
        lines.append("No active alerts")
    return lines


# Commands ------------------------------------------------------------------
async def _status(args: argparse.Namespace, ctx: _Context) -> None:
    monitor = ConnectionMonitor(ctx.gateway, ctx.state.connection)
    envelope = await monitor.refresh()
    payload = {"backend": ctx.state.endpoint.get(), "connection": monitor.state.value, "status": monitor.last_status}
    if not envelope.success:
        payload["error"] = monitor.last_error
    lines = [f"{ctx.state.endpoint.get()}: {monitor.state.value}"]
    if monitor.last_status:
        lines.extend(f"  {key}: {value}" for key, value in monitor.last_status.items())
    _emit(args, payload, lines)
    if not envelope.success:
        raise SystemExit(f"Error: {monitor.last_error}")


async def _folders(args: argparse.Namespace, ctx: _Context) -> None:
    registry = FolderRegistry(ctx.gateway)
    action = args.folders_command
    if action == "add":
        _require(await registry.add(args.path, not args.no_recursive), "failed to add folder")
    elif action == "remove":
        _require(await registry.remove(args.folder_id), "failed to remove folder")
    elif action == "reindex":
        _require(await registry.reindex(), "failed to re-index folders")
    else:
        _require(await registry.list(), "failed to load folders")

    folders = registry.folders
    lines = [
        f"{folder.id}\t{folder.path}\t{'recursive' if folder.recursive else 'flat'}\t{'enabled' if folder.enabled else 'disabled'}"
        for folder in folders
    ] or ["No watched folders"]
    _emit(args, [folder.as_dict() for folder in folders], lines)


async def _search(args: argparse.Namespace, ctx: _Context) -> None:
    session = SearchSession(ctx.gateway)
    view = await session.issue(args.query, args.semantic)
    if view is None:
        raise SystemExit("Error: query must not be empty")
    if view.error:
        raise SystemExit(f"Error: {view.error}")
    hits = view.results[: args.limit] if args.limit else view.results
    lines = []
    for hit in hits:
        score = f"{hit.relevance_score:.3f}" if hit.relevance_score is not None else "-"
        lines.append(f"{score}\t{hit.file_name}\t{hit.file_path}")
    _emit(args, [hit.as_dict() for hit in hits], lines or ["No results"])


async def _history(args: argparse.Namespace, ctx: _Context) -> None:
    session = SearchSession(ctx.gateway)
    if args.clear:
        _require(await session.clear_history(), "failed to clear search history")
        _emit(args, {"cleared": True}, ["Search history cleared"])
        return
    envelope = _require(await session.history(args.limit), "failed to load search history")
    entries = envelope.data if isinstance(envelope.data, list) else []
    lines = [str(entry.get("query", entry)) if isinstance(entry, dict) else str(entry) for entry in entries]
    _emit(args, entries, lines or ["No recent searches"])


async def _monitor(args: argparse.Namespace, ctx: _Context) -> None:
    interval = args.watch or float(ctx.monitoring.get("interval_seconds", 30.0))
    poller = MonitoringPoller(ctx.gateway, interval=interval)
    poller.start()
    try:
        if not args.watch:
            envelope = await poller.refresh()
            if poller.snapshot is None:
                raise SystemExit(f"Error: {poller.last_error or (envelope and envelope.message) or 'no data'}")
            _emit(args, poller.snapshot.as_dict(), _format_snapshot(poller.snapshot))
            return

        remaining = args.count
        done = asyncio.Event()

        def _on_snapshot(snapshot: MonitoringSnapshot) -> None:
            nonlocal remaining
            _emit(args, snapshot.as_dict(), _format_snapshot(snapshot) + [""])
            if remaining:
                remaining -= 1
                if remaining == 0:
                    done.set()

        def _on_error(message: str) -> None:
            print(f"Monitoring refresh failed: {message}", file=sys.stderr)

        poller.on_snapshot(_on_snapshot)
        poller.on_error(_on_error)
        await done.wait()
    finally:
        await poller.stop()


async def _run(args: argparse.Namespace, transport: Optional[httpx.AsyncBaseTransport]) -> None:
    ctx = _Context(args, transport)
    try:
        await args.func(args, ctx)
    finally:
        await ctx.gateway.aclose()


def _config_show(args: argparse.Namespace) -> None:
    cfg = fa_config.get_config()
    if args.json:
        print(json.dumps(cfg, indent=2))
        return
    print(f"# {fa_config.config_path()}")
    for name, values in cfg.items():
        print(f"[{name}]")
        if isinstance(values, dict):
            for key, value in values.items():
                print(f"  {key} = {value}")


def _config_set_backend(args: argparse.Namespace) -> None:
    try:
        fa_config.set_backend_url(args.url)
    except ValueError as exc:
        raise SystemExit(f"Error: {exc}") from exc
    print(f"Backend URL saved to {fa_config.config_path()}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Talk to the file indexing backend.")
    parser.add_argument("--backend", help="Backend base URL for this invocation")
    parser.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")
    parser.add_argument("--json", action="store_true", help="Print machine-readable JSON")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    status_cmd = sub.add_parser("status", help="Check the backend and show its status")
    status_cmd.set_defaults(func=_status)

    folders_cmd = sub.add_parser("folders", help="Manage watched folders")
    folders_sub = folders_cmd.add_subparsers(dest="folders_command", required=True)
    folders_sub.add_parser("list", help="List watched folders").set_defaults(func=_folders)
    add_cmd = folders_sub.add_parser("add", help="Watch a new folder")
    add_cmd.add_argument("path", help="Folder path on the backend host")
    add_cmd.add_argument("--no-recursive", action="store_true", help="Do not descend into subfolders")
    add_cmd.set_defaults(func=_folders)
    remove_cmd = folders_sub.add_parser("remove", help="Stop watching a folder")
    remove_cmd.add_argument("folder_id", help="Folder identifier")
    remove_cmd.set_defaults(func=_folders)
    folders_sub.add_parser("reindex", help="Re-index every watched folder").set_defaults(func=_folders)

    search_cmd = sub.add_parser("search", help="Search indexed files")
    search_cmd.add_argument("query", help="Query text")
    search_cmd.add_argument("--semantic", action="store_true", help="Use semantic matching")
    search_cmd.add_argument("--limit", type=int, default=0, help="Show at most this many hits")
    search_cmd.set_defaults(func=_search)

    history_cmd = sub.add_parser("history", help="Show or clear recent searches")
    history_cmd.add_argument("--limit", type=int, default=10, help="Number of entries")
    history_cmd.add_argument("--clear", action="store_true", help="Clear the history instead")
    history_cmd.set_defaults(func=_history)

    monitor_cmd = sub.add_parser("monitor", help="Show the monitoring dashboard")
    monitor_cmd.add_argument("--watch", type=float, default=0.0, metavar="SECONDS", help="Keep refreshing at this interval")
    monitor_cmd.add_argument("--count", type=int, default=0, help="With --watch, stop after this many snapshots")
    monitor_cmd.set_defaults(func=_monitor)

    config_cmd = sub.add_parser("config", help="Inspect or change client configuration")
    config_sub = config_cmd.add_subparsers(dest="config_command", required=True)
    config_sub.add_parser("show", help="Print the merged configuration").set_defaults(func=_config_show, sync=True)
    set_backend_cmd = config_sub.add_parser("set-backend", help="Persist the backend base URL")
    set_backend_cmd.add_argument("url", help="Backend base URL")
    set_backend_cmd.set_defaults(func=_config_set_backend, sync=True)

    return parser


def main(argv: Sequence[str] | None = None, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    if getattr(args, "sync", False):
        args.func(args)
        return
    try:
        asyncio.run(_run(args, transport))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
