#!/usr/bin/env python3
"""
Shopping World Model CLI

Command-line interface for building the world model from recorded
shopping sessions.

Usage:
    python cli/run_pipeline.py ingest --sessions data/sessions.json
    python cli/run_pipeline.py analyze --sessions data/sessions.json --session sess-1
    python cli/run_pipeline.py classify --sessions data/sessions.json
    python cli/run_pipeline.py show-store
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from utils.json_utils import dump_json
from utils.logging_utils import setup_logging
from cli.commands import analyze_sessions, classify_sessions, run_ingest, show_store

logger = logging.getLogger(__name__)


def _write_output(path, data) -> None:
    with open(path, 'w', encoding='utf-8') as f:
        dump_json(data, f)
    print(f"\nResults saved to: {path}")
    logger.info(f"Results saved to: {path}")


def cmd_ingest(args):
    """Ingest sessions into the world model store."""
    logger.info(f"Command: ingest --sessions {args.sessions}")
    try:
        summary = run_ingest(
            args.sessions,
            store_path=args.store,
            workers=args.workers,
            category_floor=args.category_floor,
            product_floor=args.product_floor,
            trace_file=args.trace,
        )
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        logger.error(f"Error: {e}")
        return 1

    if args.output:
        _write_output(args.output, summary)
    return 1 if summary["errors"] and args.strict else 0


def cmd_analyze(args):
    """Show navigation and shopping-flow summaries."""
    logger.info(f"Command: analyze --sessions {args.sessions}")
    try:
        analyses = analyze_sessions(args.sessions, session_id=args.session)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        logger.error(f"Error: {e}")
        return 1

    if args.output:
        _write_output(args.output, [a.to_dict() for a in analyses])
    return 0


def cmd_classify(args):
    """Print interaction classifications."""
    logger.info(f"Command: classify --sessions {args.sessions}")
    try:
        rows = classify_sessions(args.sessions, session_id=args.session)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        logger.error(f"Error: {e}")
        return 1

    if args.output:
        _write_output(args.output, rows)
    return 0


def cmd_show_store(args):
    """Show world model store contents."""
    logger.info("Command: show-store")
    show_store(args.store)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Shopping World Model Pipeline CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli/run_pipeline.py ingest --sessions data/sessions.json --workers 4
  python cli/run_pipeline.py ingest --sessions data/sessions.json --product-floor 0.8
  python cli/run_pipeline.py analyze --sessions data/sessions.json -o analysis.json
  python cli/run_pipeline.py classify --sessions data/sessions.json --session sess-1
  python cli/run_pipeline.py show-store
        """
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--log-file",
        help="Also write log records to this file"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # ingest
    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Ingest sessions into the world model store"
    )
    ingest_parser.add_argument("--sessions", "-s", required=True, help="Session JSON file")
    ingest_parser.add_argument("--store", help="World model JSON store (default: data/world_model.json)")
    ingest_parser.add_argument("--workers", type=int, default=1, help="Parallel ingestion workers")
    ingest_parser.add_argument("--category-floor", type=float, help="Minimum category confidence")
    ingest_parser.add_argument("--product-floor", type=float, help="Minimum product confidence")
    ingest_parser.add_argument("--trace", help="JSONL file receiving pipeline trace events")
    ingest_parser.add_argument("--strict", action="store_true", help="Exit non-zero if any session failed")
    ingest_parser.add_argument("-o", "--output", help="Output file for the run summary (JSON)")
    ingest_parser.set_defaults(func=cmd_ingest)

    # analyze
    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Navigation and shopping-flow analysis"
    )
    analyze_parser.add_argument("--sessions", "-s", required=True, help="Session JSON file")
    analyze_parser.add_argument("--session", help="Only this session id")
    analyze_parser.add_argument("-o", "--output", help="Output file (JSON)")
    analyze_parser.set_defaults(func=cmd_analyze)

    # classify
    classify_parser = subparsers.add_parser(
        "classify",
        help="Show how each interaction is classified"
    )
    classify_parser.add_argument("--sessions", "-s", required=True, help="Session JSON file")
    classify_parser.add_argument("--session", help="Only this session id")
    classify_parser.add_argument("-o", "--output", help="Output file (JSON)")
    classify_parser.set_defaults(func=cmd_classify)

    # show-store
    store_parser = subparsers.add_parser(
        "show-store",
        help="Show world model store contents"
    )
    store_parser.add_argument("--store", help="World model JSON store")
    store_parser.set_defaults(func=cmd_show_store)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.log_file)

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
