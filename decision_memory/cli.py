"""
Command-line interface.

    decision-memory load events.jsonl
    decision-memory normalize octo demo
    decision-memory extract octo demo --min-confidence 0.5
    decision-memory explain octo demo PostgreSQL
    decision-memory search PostgreSQL --repo octo/demo
    decision-memory status
    decision-memory serve
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .common.config import load_config
from .service import DecisionMemory

logger = logging.getLogger("decision_memory.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="decision-memory",
        description="Extract engineering decisions from repository activity and explain them.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--db", default=None, help="Event store path (overrides DB_PATH)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("load", help="Store raw events from a JSON or JSON-lines export")
    p.add_argument("file")

    for name, help_text in (
        ("normalize", "Normalize raw events of a repository"),
        ("extract", "Extract decisions from normalized events"),
        ("explain", "Explain why a component exists"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("owner")
        p.add_argument("repo")
        if name == "extract":
            p.add_argument("--min-confidence", type=float, default=None,
                           help="Candidate confidence threshold (default from config)")
        if name == "explain":
            p.add_argument("subject")

    p = sub.add_parser("search", help="Search commits, pull requests and comments")
    p.add_argument("term")
    p.add_argument("--repo", default=None, help="Restrict to owner/repo")

    sub.add_parser("status", help="Show event store statistics")
    sub.add_parser("serve", help="Run the HTTP server")
    return parser


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


async def _run(args: argparse.Namespace, memory: DecisionMemory) -> int:
    if args.command == "load":
        inserted = await memory.load_events(args.file)
        print(f"Stored {inserted} new events")

    elif args.command == "normalize":
        result = await memory.normalize(f"{args.owner}/{args.repo}")
        print(f"Normalized {result.normalized}/{result.processed} events ({result.failed} failed)")

    elif args.command == "extract":
        result = await memory.extract(f"{args.owner}/{args.repo}", args.min_confidence)
        print(f"Extracted {result.extracted} decisions, skipped {result.skipped}")

    elif args.command == "explain":
        explanation = await memory.explain(f"{args.owner}/{args.repo}", args.subject)
        _print_json(explanation.model_dump(mode="json"))

    elif args.command == "search":
        hits = await memory.search(args.term, args.repo)
        _print_json([h.model_dump(mode="json") for h in hits])

    elif args.command == "status":
        _print_json(await memory.status())

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    if args.db:
        config.storage.db_path = args.db

    if args.command == "serve":
        from .server import run_server
        run_server(config)
        return 0

    memory = DecisionMemory(config)
    try:
        return asyncio.run(_run(args, memory))
    except Exception as e:
        logger.error("%s failed: %s", args.command, e)
        return 1
    finally:
        memory.close()


if __name__ == "__main__":
    sys.exit(main())
