"""Application bootstrap / CLI."""

from __future__ import annotations

import argparse
import asyncio
import datetime as dt
import json
import os
import sys
from pathlib import Path
from typing import Any

from loguru import logger

from .api.dispatcher import CommandDispatcher
from .config import AppConfig, load_config
from .logging_utils import configure_logging


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="visual-history")
    p.add_argument(
        "--config",
        default=os.environ.get("VISUAL_HISTORY_CONFIG", "visual_history.yml"),
        help="Path to config YAML (default: visual_history.yml or VISUAL_HISTORY_CONFIG).",
    )
    sub = p.add_subparsers(dest="cmd", required=False)

    sub.add_parser("serve", help="Run the local API server with scheduled cleanup (default).")

    search = sub.add_parser("search", help="Search captured history.")
    search.add_argument("text", nargs="?", default=None)
    search.add_argument("--color", help="Hex color, e.g. #1e90ff.")
    search.add_argument("--domain")
    search.add_argument("--since", type=_parse_date, help="Inclusive start date (YYYY-MM-DD).")
    search.add_argument("--until", type=_parse_date, help="Inclusive end date (YYYY-MM-DD).")
    search.add_argument("--limit", type=int, default=None)

    sub.add_parser("stats", help="Print storage statistics.")

    clean = sub.add_parser("clean", help="Delete entries older than the retention period.")
    clean.add_argument("--days", type=int, default=None)

    wipe = sub.add_parser("wipe", help="Irreversibly delete all history and key material.")
    wipe.add_argument("--yes", action="store_true", help="Confirm the wipe.")

    sub.add_parser("print-config", help="Load config and print resolved values.")
    return p.parse_args(argv)


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date: {value}") from exc


def _day_bounds_ms(day: dt.date, *, end: bool) -> int:
    moment = dt.datetime.combine(day, dt.time.max if end else dt.time.min)
    return int(moment.astimezone(dt.timezone.utc).timestamp() * 1000)


def _search_message(args: argparse.Namespace, config: AppConfig) -> dict[str, Any]:
    query: dict[str, Any] = {} if args.limit is None else {"limit": args.limit}
    if args.text:
        query["text"] = args.text
    if args.color:
        query["color"] = args.color
    if args.domain:
        query["domain"] = args.domain
    if args.since:
        query["startDate"] = _day_bounds_ms(args.since, end=False)
    if args.until:
        query["endDate"] = _day_bounds_ms(args.until, end=True)
    return {"action": "search", "query": query}


async def _run_command(config: AppConfig, args: argparse.Namespace) -> dict[str, Any]:
    from .api.server import build_engine
    from .settings_store import SettingsStore

    settings = SettingsStore(Path(config.keystore.settings_path))
    engine = build_engine(config, settings)
    dispatcher = CommandDispatcher(engine, default_limit=config.search.default_limit)
    try:
        if args.cmd == "search":
            response = await dispatcher.handle(_search_message(args, config))
            for item in response["results"]:
                item.pop("textContent", None)
            return response
        if args.cmd == "stats":
            return await dispatcher.handle({"action": "getStats"})
        if args.cmd == "clean":
            days = args.days
            if days is None:
                days = (await settings.load_settings()).days_to_keep
            return await dispatcher.handle({"action": "cleanOldEntries", "daysToKeep": days})
        if args.cmd == "wipe":
            return await dispatcher.handle({"action": "deleteAllData"})
        raise ValueError(f"Unsupported command: {args.cmd}")
    finally:
        await engine.close()


def _serve(config: AppConfig) -> None:
    import uvicorn

    from .api.server import create_app

    app = create_app(config)
    logger.info("Visual history API on {}:{}", config.api.host, config.api.port)
    uvicorn.run(app, host=config.api.host, port=config.api.port, log_level="warning")


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    args = _parse_args(argv)
    cmd = args.cmd or "serve"

    config = load_config(Path(args.config))
    configure_logging(config.logging.log_dir, config.logging.level)

    if cmd == "print-config":
        print(json.dumps(config.model_dump(mode="json"), indent=2))
        return

    if cmd == "serve":
        _serve(config)
        return

    if cmd == "wipe" and not args.yes:
        logger.error("Refusing to wipe history without --yes")
        raise SystemExit(2)

    args.cmd = cmd
    try:
        result = asyncio.run(_run_command(config, args))
    except Exception as exc:
        logger.error("{} failed: {}", cmd, exc)
        raise SystemExit(1) from exc
    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
