#!/usr/bin/env python3
"""
Calculate Glicko-2 ratings for every player in a CSV file of games.

Each row after the header is one game: player one, player two, and the
outcome from player one's side (1 = win, 0.5 = draw, 0 = loss). Games are
rated one at a time in file order.

Usage:
    csvglicko games.csv
    csvglicko games.csv --sort-deviation --result-limit 20
    csvglicko games.csv --filter-provisional --output ratings.csv
"""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from .config import Settings, load_settings
from .dataset import rate_file
from .exceptions import ConfigurationError, GameRecordError, InvalidRatingError
from .glicko2 import validate_rating
from .logging_config import setup_logging
from .report import ReportOptions, SortKey, build_report, index_width, render_report, save_report

logger = logging.getLogger(__name__)


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    """Build the argument parser, with defaults taken from settings."""
    parser = argparse.ArgumentParser(
        prog="csvglicko",
        description="Calculate Glicko-2 ratings from a CSV file of games",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Rate all games and list players by rating
    csvglicko games.csv

    # Most certain ratings first, top 20 only
    csvglicko games.csv --sort-deviation --result-limit 20

    # Hide provisional ratings and save the report
    csvglicko games.csv --filter-provisional --output ratings.csv
        """,
    )

    parser.add_argument(
        "csv",
        type=Path,
        help="CSV file path to calculate ratings for.",
    )
    parser.add_argument(
        "-d", "--maximum-deviation",
        type=float,
        default=None,
        help="Maximum rating deviation to filter output with.",
    )
    parser.add_argument(
        "--minimum-deviation",
        type=float,
        default=None,
        help="Minimum rating deviation to filter output with.",
    )
    parser.add_argument(
        "-t", "--provisional-threshold",
        type=float,
        default=settings.provisional_threshold,
        help=f"Threshold above which ratings are considered provisional (default: {settings.provisional_threshold})",
    )
    parser.add_argument(
        "-r", "--default-rating",
        type=float,
        default=settings.default_rating,
        help=f"Default rating to be used for players (default: {settings.default_rating})",
    )
    parser.add_argument(
        "--default-deviation",
        type=float,
        default=settings.default_deviation,
        help=f"Default rating deviation to be used for players (default: {settings.default_deviation})",
    )
    parser.add_argument(
        "--default-volatility",
        type=float,
        default=settings.default_volatility,
        help=f"Default volatility to be used for players (default: {settings.default_volatility})",
    )
    parser.add_argument(
        "--default-tau",
        type=float,
        default=settings.tau,
        help=f"Tau value used in the Glicko-2 configuration (default: {settings.tau})",
    )
    parser.add_argument(
        "--default-tolerance",
        type=float,
        default=settings.convergence_tolerance,
        help=f"Convergence tolerance used in the Glicko-2 configuration (default: {settings.convergence_tolerance})",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=settings.max_iterations,
        help=f"Iteration limit of the volatility solver (default: {settings.max_iterations})",
    )
    parser.add_argument(
        "--max-bracket-iterations",
        type=int,
        default=settings.max_bracket_iterations,
        help=f"Step limit of the volatility bracket search (default: {settings.max_bracket_iterations})",
    )
    parser.add_argument(
        "-p", "--filter-provisional",
        action="store_true",
        help="Filter out provisional ratings.",
    )
    parser.add_argument(
        "-e", "--sort-deviation",
        action="store_true",
        help="Sort ascending by rating deviation.",
    )
    parser.add_argument(
        "-v", "--sort-volatility",
        action="store_true",
        help="Sort descending by volatility.",
    )
    parser.add_argument(
        "-i", "--sort-reverse",
        action="store_true",
        help="Reverse sorting.",
    )
    parser.add_argument(
        "-l", "--result-limit",
        type=int,
        default=None,
        help="Output result limit.",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Also save the report as CSV to this path",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level for diagnostics on stderr (default: WARNING)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 2

    args = build_parser(settings).parse_args(argv)
    setup_logging(args.log_level)

    # Command-line values override the environment
    settings = replace(
        settings,
        default_rating=args.default_rating,
        default_deviation=args.default_deviation,
        default_volatility=args.default_volatility,
        tau=args.default_tau,
        convergence_tolerance=args.default_tolerance,
        max_bracket_iterations=args.max_bracket_iterations,
        max_iterations=args.max_iterations,
        provisional_threshold=args.provisional_threshold,
    )

    try:
        config = settings.glicko2_config()
        default_rating = settings.initial_rating()
        validate_rating(default_rating)
    except (ConfigurationError, InvalidRatingError) as e:
        print(f"Error: {e}")
        return 2

    # Generate all ratings from the file
    try:
        run = rate_file(args.csv, config=config, default_rating=default_rating)
    except (OSError, GameRecordError) as e:
        print(f"There was a problem opening or reading the file \"{args.csv}\": {e}")
        return 1

    logger.info("Rated %d games for %d players", run.games_rated, len(run.table))
    if run.self_play:
        logger.info("Skipped %d self-play games", run.self_play)
    if run.skipped:
        logger.warning("Skipped %d games where the volatility solver failed", len(run.skipped))

    if args.sort_deviation:
        sort_by = SortKey.DEVIATION
    elif args.sort_volatility:
        sort_by = SortKey.VOLATILITY
    else:
        sort_by = SortKey.RATING

    options = ReportOptions(
        sort_by=sort_by,
        reverse=args.sort_reverse,
        minimum_deviation=args.minimum_deviation,
        maximum_deviation=args.maximum_deviation,
        provisional_threshold=settings.provisional_threshold,
        filter_provisional=args.filter_provisional,
        limit=args.result_limit,
    )
    report = build_report(run.table, options)
    render_report(report, index_width(len(run.table)))

    if args.output:
        save_report(report, args.output)
        logger.info("Saved: %s", args.output)

    return 0


if __name__ == "__main__":
    sys.exit(main())
