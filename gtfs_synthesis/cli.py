"""Command-line interface for gtfs-synthesis."""

import argparse
import logging
import os
import sys

from gtfs_synthesis.api import run, validate
from gtfs_synthesis.gtfs.models import SynthesisConfig
from gtfs_synthesis.version import VERSION


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def cmd_synthesize(args: argparse.Namespace) -> int:
    """Execute synthesize command."""
    setup_logging(args.verbose)

    config = SynthesisConfig(
        input_path=args.input,
        output_path=args.output,
        routing_url=args.routing_url or None,
        routing_timeout=args.routing_timeout,
        default_block=args.default_block,
        service_start_date=args.service_start,
        day_type=args.day_type,
        version_label=args.version_label,
    )

    try:
        manifest = run(args.input, args.output, config)
        print("\nSynthesis successful!")
        print(f"Output: {args.output}")
        print(f"Stats: {manifest.stats}")
        if manifest.stats.get("errors"):
            print(f"Rows skipped: {manifest.stats['errors']} (see errors.json)")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Synthesis failed")
        return 1


def cmd_validate(args: argparse.Namespace) -> int:
    """Execute validate command."""
    setup_logging(args.verbose)

    try:
        report = validate(args.input)
        if report.valid:
            print("\nValidation successful!")
            print(f"Stats: {report.stats}")
            if report.warnings:
                print(f"Warnings ({len(report.warnings)}):")
                for warning in report.warnings:
                    print(f"  - {warning}")
            return 0
        else:
            print(f"\nValidation failed with {len(report.errors)} errors:")
            for error in report.errors:
                print(f"  - {error}")
            return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Validation failed")
        return 1


def _service_date(value: str) -> str:
    if len(value) != 8 or not value.isdigit():
        raise argparse.ArgumentTypeError(f"expected YYYYMMDD, got {value!r}")
    return value


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="gtfs-synth",
        description="Synthesize GTFS-style trips, segments and travel-time slots from itineraries",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Synthesize command
    synth_parser = subparsers.add_parser("synthesize", help="Synthesize a schedule from CSV tables")
    synth_parser.add_argument(
        "--input", required=True, help="Directory with stops.csv, patterns.csv, itineraries.csv"
    )
    synth_parser.add_argument(
        "--output", default="./synthesis_data", help="Output directory (default: ./synthesis_data)"
    )
    synth_parser.add_argument(
        "--routing-url",
        default=os.environ.get("OSRM_API_URL"),
        help="OSRM route endpoint (default: $OSRM_API_URL, routing disabled when unset)",
    )
    synth_parser.add_argument(
        "--routing-timeout",
        type=float,
        default=10.0,
        help="Routing request timeout in seconds (default: 10)",
    )
    synth_parser.add_argument(
        "--service-start",
        type=_service_date,
        default=None,
        help="First calendar date as YYYYMMDD (default: today)",
    )
    synth_parser.add_argument(
        "--default-block",
        default="1",
        help="Block used in generated trip ids when a row has none (default: 1)",
    )
    synth_parser.add_argument(
        "--day-type", default="", help="DayType column of travel_times.csv"
    )
    synth_parser.add_argument(
        "--version-label", default="", help="Version column of travel_times.csv"
    )
    synth_parser.set_defaults(func=cmd_synthesize)

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate synthesis output")
    validate_parser.add_argument("--input", required=True, help="Path to output directory")
    validate_parser.set_defaults(func=cmd_validate)

    # Parse and execute
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
