#!/usr/bin/env python3
# posttest command line
"""
Benchmark UCI chess engines against a set of positions.

Usage:
    posttest -e engines.json -p positions.json
    posttest -e engines.json -p positions.yaml -d -sf
    posttest -e engines.json -p positions.json -s -o results/run.json
"""

import argparse
import logging
import sys
from typing import List, Optional

from rich.console import Console

from posttest import __version__
from posttest.config import ConfigManager, RunOptions
from posttest.engines.uci_bridge import DEFAULT_HANDSHAKE_TIMEOUT, DEFAULT_QUERY_TIMEOUT
from posttest.logging_utils import setup_logging
from posttest.results import ConsoleReporter, ProgressReporter, ResultsExporter
from posttest.run import BenchmarkRun
from posttest.utils.error_utils import ConfigFormatError

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="posttest", description="Benchmark UCI chess engines on fixed positions")
    parser.add_argument("-e", "--engines", required=True, help="Path to engines config file (JSON or YAML)")
    parser.add_argument("-p", "--positions", required=True, help="Path to positions config file (JSON or YAML)")
    parser.add_argument("-d", "--debug", action="store_true", help="Activate debug logging")
    parser.add_argument("-s", "--silent", action="store_true", help="Only show a progress bar instead of tables")
    parser.add_argument("-sf", "--stockfish", nargs="?", const="", default=None, metavar="PATH",
                        help="Add a Stockfish engine (default: 'stockfish' from PATH)")
    parser.add_argument("-o", "--output", type=str, default=None, help="Export results as JSON to this file")
    parser.add_argument("--handshake-timeout", type=float, default=DEFAULT_HANDSHAKE_TIMEOUT,
                        help="Seconds an engine gets to answer 'uci' (0 disables the limit)")
    parser.add_argument("--timeout", type=float, default=DEFAULT_QUERY_TIMEOUT,
                        help="Seconds an engine gets per position search (0 disables the limit)")
    parser.add_argument("--log-dir", type=str, default=None, help="Also write logs to this directory")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None, console: Optional[Console] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    console = console or Console()
    logger = setup_logging(level=logging.DEBUG if args.debug else logging.INFO, log_dir=args.log_dir)

    reporter = ConsoleReporter(console)
    if not args.silent:
        reporter.print_banner()

    try:
        positions = ConfigManager.load_positions(args.positions)
        engines = ConfigManager.load_engines(args.engines)
    except ConfigFormatError as e:
        logger.error(e.message)
        return EXIT_CONFIG_ERROR

    if args.stockfish is not None:
        stockfish = ConfigManager.stockfish_engine(args.stockfish or None)
        if stockfish is not None:
            engines.append(stockfish)

    options = RunOptions(handshake_timeout=args.handshake_timeout, query_timeout=args.timeout)
    listeners = [ProgressReporter()] if args.silent else [reporter]
    run = BenchmarkRun(engines, positions, options=options, listeners=listeners, logger=logger)
    summary = run.run()

    if args.output:
        ResultsExporter.export(run.state, summary, args.output)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
