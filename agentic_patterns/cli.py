# =============================================================================
# Command-Line Entry Point — List, Run and Clean the Examples
# =============================================================================
#
# USAGE:
#   agentic-patterns list
#   agentic-patterns run rag --query "What did the president say about inflation?"
#   agentic-patterns run planning --input my_dataset.json
#   agentic-patterns clean [--all]
# =============================================================================

from __future__ import annotations

import argparse
import asyncio
import logging
import shutil
import sys
from pathlib import Path

from agentic_patterns.agents import (
    chaining,
    parallelization,
    planning,
    rag,
    reflection,
    routing,
    tool_use,
)
from agentic_patterns.config import settings

logger = logging.getLogger(__name__)

PATTERNS = {
    "chaining": (chaining, "Draft marketing copy, gate-check it, translate it"),
    "routing": (routing, "Classify support tickets and dispatch to handlers"),
    "parallelization": (parallelization, "Sectioned review plus majority vote"),
    "reflection": (reflection, "Generate, critique and revise until approved"),
    "tool-use": (tool_use, "Answer a question with calculator/clock/unit tools"),
    "planning": (planning, "Plan and generate an HTML dashboard from SQLite"),
    "rag": (rag, "Semantic index, LLM relevance filter, grounded answer"),
}


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # SDK clients log every HTTP request at INFO
    for noisy in ("httpx", "httpcore", "openai", "anthropic", "chromadb"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentic-patterns",
        description="Run agentic workflow pattern examples",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help=f"Logging level (default: {settings.log_level})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List available patterns")

    run = subparsers.add_parser("run", help="Run one pattern example")
    run.add_argument("pattern", choices=sorted(PATTERNS))
    run.add_argument(
        "--input",
        type=Path,
        help="Input file (default: data/inputs/<pattern>.json or .txt)",
    )
    run.add_argument(
        "--query",
        help="Question for the rag pattern (overrides the input file)",
    )

    clean = subparsers.add_parser("clean", help="Delete generated data")
    clean.add_argument(
        "--all",
        action="store_true",
        help="Also delete downloaded databases and generated outputs",
    )
    return parser


def clean(include_all: bool = False) -> list[Path]:
    """Delete generated data. Returns the paths that were removed."""
    targets = [settings.vector_index_dir]
    if include_all:
        targets += [settings.database_dir, settings.output_dir]

    removed = []
    for path in targets:
        if path.exists():
            shutil.rmtree(path)
            removed.append(path)
            print(f"Deleted: {path}")
    print("Clean complete.")
    return removed


async def run_pattern(name: str, input_path: Path | None, query: str | None):
    module, _ = PATTERNS[name]
    if name == "rag":
        return await module.main(query=query, input_path=input_path)
    if query:
        logger.warning("--query is only used by the rag pattern; ignoring it")
    return await module.main(input_path=input_path)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level or settings.log_level)

    if args.command == "list":
        for name, (_, description) in PATTERNS.items():
            print(f"{name:<16} {description}")
        return 0

    if args.command == "clean":
        clean(include_all=args.all)
        return 0

    try:
        asyncio.run(run_pattern(args.pattern, args.input, args.query))
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 1
    except Exception as e:
        logger.exception("Pattern '%s' failed: %s", args.pattern, e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
