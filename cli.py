#!/usr/bin/env python3
"""
Bank Grade Security - CLI Interface

Scans the websites of every institution in the target registry and writes
the live report and a dated history snapshot.
"""

import argparse
import sys
import traceback
from pathlib import Path

# Add the repository root to the path when run as a script
sys.path.insert(0, str(Path(__file__).parent))

from bankgrade import __version__
from bankgrade.core.config import Config, SCAN_ORDERS
from bankgrade.core.errors import RegistryError
from bankgrade.core.scoring import summarize
from bankgrade.scanner import Scanner


def print_banner():
    """Print application banner."""
    banner = f"""
    ╔═══════════════════════════════════════════════════════════╗
    ║           Bank Grade Security v{__version__:<27}║
    ║        Website Security of Financial Institutions         ║
    ╚═══════════════════════════════════════════════════════════╝
    """
    print(banner)


def print_summary(scanner: Scanner):
    """Print scores and grades of every scanned target."""
    rows = summarize(scanner.report.snapshot())

    print("\n" + "=" * 60)
    print("SCAN SUMMARY")
    print("=" * 60)
    print(f"\nTargets Scanned: {len(rows)}")
    print(f"Failed Scans:    {len(scanner.failures)}\n")

    for row in rows:
        print(f"  [{row['grade']}] {row['score']:>3}  {row['country'].upper():<3} {row['name']}")

    if scanner.failures:
        print("\nFailures:")
        for target, reason in scanner.failures.items():
            print(f"  • {target.label}: {reason}")

    usage = scanner.rate_limiter.get_stats()
    if usage:
        print("\nExternal Lookups:")
        for service, counts in sorted(usage.items()):
            print(f"  {service:<12} {counts['acquired']} sent, {counts['blocked']} timed out")

    print("\n" + "=" * 60)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="bankgrade",
        description="Bank Grade Security - Website Security Scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scan every target of the configured registry
  python cli.py

  # Use another registry directory and output directory
  python cli.py --registry ./banks --output-dir ./docs/data

  # Quick local run without pacing
  python cli.py --delay 0 --settle 2 -v
        """
    )

    input_group = parser.add_argument_group("Input Options")
    input_group.add_argument(
        "-r", "--registry",
        metavar="DIR",
        help="Directory with one <code>.json file per country",
    )

    output_group = parser.add_argument_group("Output Options")
    output_group.add_argument(
        "--output-dir",
        metavar="DIR",
        help="Output directory for the live report and history",
    )

    config_group = parser.add_argument_group("Configuration")
    config_group.add_argument(
        "-c", "--config",
        dest="config_file",
        metavar="FILE",
        help="Path to config.yaml file",
    )
    config_group.add_argument(
        "--env",
        dest="env_file",
        metavar="FILE",
        help="Path to .env.local file with BANKGRADE_* overrides",
    )

    exec_group = parser.add_argument_group("Execution Options")
    exec_group.add_argument(
        "--delay",
        type=float,
        metavar="SECONDS",
        help="Delay between the start of two targets",
    )
    exec_group.add_argument(
        "--settle",
        type=float,
        metavar="SECONDS",
        help="Wait after the last target before the history snapshot",
    )
    exec_group.add_argument(
        "--order",
        choices=SCAN_ORDERS,
        help="Queue order (default from config: alphabetical)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress banner and summary",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Bank Grade Security v{__version__}",
    )

    return parser


def main(argv=None):
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.quiet:
        print_banner()

    try:
        config = Config(
            config_path=args.config_file,
            env_path=args.env_file,
        )

        # Apply CLI overrides
        if args.output_dir:
            config.set("output.directory", str(Path(args.output_dir).resolve()))
        if args.delay is not None:
            config.set("scan.delay_seconds", args.delay)
        if args.settle is not None:
            config.set("scan.settle_seconds", args.settle)
        if args.order:
            config.set("scan.order", args.order)
        if args.verbose:
            config.set("logging.level", "DEBUG")

        scanner = Scanner(config=config)
        registry_dir = Path(args.registry) if args.registry else None

        with scanner:
            scanner.run(registry_dir)

        if not args.quiet:
            print_summary(scanner)
            print(f"\n Live report: {config.output_dir / config.live_report_name}\n")

        sys.exit(1 if scanner.failures else 0)

    except (FileNotFoundError, RegistryError, ValueError) as e:
        print(f" Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n\n Scan interrupted by user")
        sys.exit(130)
    except Exception as e:
        print(f" Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
