"""Netflow CLI — analyze relationship networks from the command line.

Usage:
    netflow analyze snapshot.json                   # JSON report to stdout
    netflow analyze snapshot.json -o report.json --min-strength 5
    netflow analyze snapshot.json --csv out/ --no-layout
    netflow serve --port 8000                       # Start the HTTP API
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="netflow",
        description="Netflow — relationship network analytics",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )

    subparsers = parser.add_subparsers(dest="command")

    # analyze
    ana = subparsers.add_parser("analyze", help="Analyze a snapshot file")
    ana.add_argument("snapshot", help="JSON file with people and relationships")
    ana.add_argument("--min-strength", type=int, default=None, help="Minimum edge strength (1-10)")
    ana.add_argument("--seed", type=int, default=None, help="Seed for a reproducible layout")
    ana.add_argument("--no-layout", action="store_true", help="Skip the force-directed layout")
    ana.add_argument("--output", "-o", help="Write the report to this file")
    ana.add_argument("--csv", help="Also write nodes.csv and edges.csv to this directory")

    # serve
    srv = subparsers.add_parser("serve", help="Start the HTTP API")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)

    from netflow.config.settings import settings

    # Logging
    level = logging.DEBUG if args.verbose else getattr(logging, settings.LOG_LEVEL)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Dispatch
    try:
        if args.command == "analyze":
            asyncio.run(_cmd_analyze(args))
        elif args.command == "serve":
            _cmd_serve(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except Exception as exc:
        logger.error("Error: %s", exc)
        if args.verbose:
            raise
        sys.exit(1)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _cmd_analyze(args: argparse.Namespace) -> None:
    """Analyze a snapshot file and emit the connection-flow report."""
    from netflow.config.settings import settings
    from netflow.graph.engine import FlowEngine
    from netflow.graph.exporters import FlowExporter
    from netflow.sources import JsonFileSource

    engine = FlowEngine.from_settings(
        settings,
        min_strength=args.min_strength,
        seed=args.seed,
        include_layout=False if args.no_layout else None,
    )
    report = await engine.analyze_from_source(
        JsonFileSource(args.snapshot), owner_id="cli", depth=settings.DEPTH,
    )
    exporter = FlowExporter(report)

    text = exporter.to_json(indent=2)
    if args.output:
        Path(args.output).write_text(text)
        logger.info("Report written to %s", args.output)
    else:
        print(text)

    if args.csv:
        exporter.to_csv_files(args.csv)

    logger.info("Summary: %s", json.dumps(report.summary, default=str))


def _cmd_serve(args: argparse.Namespace) -> None:
    """Start the HTTP API with uvicorn."""
    import uvicorn

    print(f"Starting Netflow API on http://{args.host}:{args.port}", file=sys.stderr)
    uvicorn.run("netflow.api.app:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
