#!/usr/bin/env python3
"""Windows Autopilot Device Naming CLI.

This module provides a command-line interface for assigning display names
to Windows Autopilot device identities through Microsoft Graph. It supports
two modes: exporting the current directory to a file, and applying the
desired names listed in a CSV or Excel file.

Architecture:
    - GraphClient is the shared HTTP layer for all API calls
    - TokenManager handles the Entra ID client credentials flow
    - ExportDevicesUseCase and ApplyNamesUseCase compose the adapters
    - Every apply run writes a report with one row per input serial

Environment Variables Required:
    - AUTOPILOT_TENANT_ID: Entra ID tenant
    - AUTOPILOT_CLIENT_ID: App registration client ID
    - AUTOPILOT_CLIENT_SECRET: App registration client secret
    - GRAPH_BASE_URL: Graph API base URL (optional)
    - AUTOPILOT_REPORT_DIR: Default report directory (optional)
    - AUTOPILOT_UPDATE_INTERVAL: Seconds between update calls (optional)

Example Usage:
    $ python main.py --export                         # Export devices to reports/
    $ python main.py --export --output devices.xlsx   # Export to an Excel file
    $ python main.py --apply names.csv --simulate     # Preview the changes
    $ python main.py --apply names.csv                # Apply names to unnamed devices
    $ python main.py --apply names.xlsx --force       # Also overwrite existing names
"""
import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# Local imports
from src.autopilot.api import (
    AutopilotDeviceSyncer,
    AutopilotError,
    ConfigurationError,
    DeviceManager,
    FetchError,
    GraphClient,
    InputValidationError,
    SequentialRateLimiter,
    TokenManager,
    WriteError,
)
from src.autopilot.naming.adapters import (
    FileReportWriter,
    GraphDeviceDirectory,
    GraphNameUpdater,
    OpenpyxlDirectiveParser,
)
from src.autopilot.naming.domain import RunSummary
from src.autopilot.naming.use_cases import ApplyNamesUseCase, ExportDevicesUseCase

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def load_directives(path: str) -> dict[str, str]:
    """Read and validate the directive file.

    Raises:
        InputValidationError: If the file is missing or unusable
    """
    file_path = Path(path)
    try:
        content = file_path.read_bytes()
    except OSError as e:
        raise InputValidationError(f"Cannot read {file_path}: {e}", source=str(file_path), cause=e)

    return OpenpyxlDirectiveParser().load(content)


def update_interval() -> Optional[float]:
    """Seconds between update calls from AUTOPILOT_UPDATE_INTERVAL."""
    raw = os.getenv("AUTOPILOT_UPDATE_INTERVAL")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(
            f"AUTOPILOT_UPDATE_INTERVAL must be a number of seconds, got '{raw}'"
        )


def prompt_confirm(serial: str, device_id: str, name: str) -> bool:
    answer = input(f"[Main] Set display name '{name}' on {serial} ({device_id})? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def print_summary(summary: RunSummary) -> None:
    print("\n" + "=" * 60)
    print("NAMING SUMMARY")
    print("=" * 60)
    print(f"{'Status':<20} {'Count':>8}")
    print("-" * 30)
    for status, count in summary.counts.items():
        print(f"{status.value:<20} {count:>8}")
    print("-" * 30)
    print(f"{'Total':<20} {summary.total:>8}")
    if summary.report_path:
        print(f"\n[Main] Report written to {summary.report_path}")


async def run_export(
    client: GraphClient,
    writer: FileReportWriter,
    json_path: Optional[str] = None,
) -> None:
    """Export the directory snapshot."""
    directory = GraphDeviceDirectory(AutopilotDeviceSyncer(client))
    result = await ExportDevicesUseCase(directory, writer).execute(json_path=json_path)

    print(f"[Main] Exported {result.device_count:,} devices to {result.snapshot_path}")
    if result.json_path:
        print(f"[Main] JSON copy saved to {result.json_path}")


async def run_apply(
    client: GraphClient,
    writer: FileReportWriter,
    directives: dict[str, str],
    args: argparse.Namespace,
    interval: Optional[float] = None,
) -> RunSummary:
    """Reconcile the directives and apply the allowed names."""
    directory = GraphDeviceDirectory(AutopilotDeviceSyncer(client))
    updater = GraphNameUpdater(
        DeviceManager(client),
        simulate=args.simulate,
        confirm=prompt_confirm if args.confirm else None,
    )
    use_case = ApplyNamesUseCase(
        directory=directory,
        updater=updater,
        report_writer=writer,
        force_update=args.force,
        rate_limiter=SequentialRateLimiter(interval),
    )

    result = await use_case.execute(directives)
    print_summary(result.summary)
    return result.summary


async def run(args: argparse.Namespace) -> int:
    """Main orchestration function.

    Returns:
        Process exit status
    """
    start_time = datetime.now()
    print(f"[Main] Starting at {start_time.isoformat()}")

    # Everything that can be checked locally is checked before the first request
    try:
        directives = load_directives(args.apply) if args.apply else None
        writer = FileReportWriter(args.output)
        interval = update_interval()
        token_manager = TokenManager()
    except InputValidationError as e:
        print(f"[Main] Invalid input file: {e.message}")
        for error in e.errors:
            print(f"[Main]   row {error.row_number}, {error.field}: {error.message}")
        return 1
    except ConfigurationError as e:
        print(f"[Main] Configuration error: {e.message}")
        return 1

    if directives is not None:
        print(f"[Main] Loaded {len(directives)} directive(s) from {args.apply}")

    try:
        async with GraphClient(token_manager) as client:
            if args.export:
                await run_export(client, writer, json_path=args.json)
            else:
                await run_apply(client, writer, directives, args, interval)
    except FetchError as e:
        print(f"[Main] Could not read the Autopilot directory: {e.message}")
        return 1
    except WriteError as e:
        print(f"[Main] Could not write output: {e.message}")
        return 1
    except AutopilotError as e:
        logger.exception("Run aborted")
        print(f"[Main] Run aborted: {e.message}")
        return 1

    duration = (datetime.now() - start_time).total_seconds()
    print(f"\n[Main] Completed in {duration:.1f} seconds")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Assign display names to Windows Autopilot devices",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --export                          # Export devices to reports/
  python main.py --export --json devices.json      # Also save the records as JSON
  python main.py --apply names.csv --simulate      # Show what would change
  python main.py --apply names.csv --confirm       # Ask before each update
  python main.py --apply names.xlsx --force        # Overwrite existing names
        """
    )

    # Mode selection
    mode_group = parser.add_argument_group("Mode")
    modes = mode_group.add_mutually_exclusive_group(required=True)
    modes.add_argument(
        "--export",
        action="store_true",
        help="Export the Autopilot directory to a CSV/XLSX file"
    )
    modes.add_argument(
        "--apply",
        type=str,
        metavar="FILE",
        help="Apply desired names from a CSV/XLSX file (SerialNumber + DesiredName or DeviceName)"
    )

    # Apply options
    apply_group = parser.add_argument_group("Apply Options")
    apply_group.add_argument(
        "--force",
        action="store_true",
        help="Overwrite display names that differ from the desired name"
    )
    apply_group.add_argument(
        "--simulate",
        action="store_true",
        help="Classify and report without sending any update"
    )
    apply_group.add_argument(
        "--confirm",
        action="store_true",
        help="Ask for confirmation before each update"
    )

    # Output options
    output_group = parser.add_argument_group("Output Options")
    output_group.add_argument(
        "--output",
        type=str,
        metavar="PATH",
        help="Report file (.csv/.xlsx) or directory (default: $AUTOPILOT_REPORT_DIR or reports/)"
    )
    output_group.add_argument(
        "--json",
        type=str,
        metavar="FILE",
        help="With --export, also save the device records to FILE as JSON"
    )
    output_group.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse the command line and reject option combinations that have no effect."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.export:
        apply_only = [flag for flag in ("force", "simulate", "confirm") if getattr(args, flag)]
        if apply_only:
            parser.error(
                f"{', '.join('--' + flag for flag in apply_only)} can only be used with --apply"
            )
    elif args.json:
        parser.error("--json can only be used with --export")

    return args


def main():
    args = parse_args()
    configure_logging(args.verbose)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
