"""
Exporter - CLI.

============================================================
USAGE
============================================================
awakenfetch chains
awakenfetch export --chain kaspa --address kaspa:qq... --from 2024-01-01 --to 2024-12-31
awakenfetch export --chain variational --address 0xabc... --perps --output-dir exports/
awakenfetch serve --port 8000

Exit codes: 0 success, 1 upstream failure, 2 invalid input.
============================================================
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from chain_adapters.exceptions import (
    ChainAdapterError,
    ChainNotSupportedError,
    ConfigurationError,
    InvalidAddressError,
)
from chain_adapters.models import parse_iso8601
from chain_adapters.registry import ChainAdapterRegistry
from core.bootstrap import build_registry, build_store
from core.config import AppConfig
from core.logging_setup import setup_logging
from exporter.pipeline import ExportPipeline
from transaction_cache.cache import TransactionCache
from transaction_cache.export_history import ExportHistory


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UPSTREAM = 1
EXIT_INVALID = 2


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="awakenfetch",
        description="Fetch wallet histories and export them as Awaken tax CSV",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s chains
  %(prog)s export --chain kaspa --address kaspa:qq... --from 2024-01-01
  %(prog)s export --chain variational --address 0x... --perps
  %(prog)s serve --port 8000
        """,
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (default: LOG_LEVEL or INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("chains", help="List supported chains")

    export = subparsers.add_parser("export", help="Export a wallet history to CSV")
    export.add_argument("--chain", required=True, help="Chain id (see 'chains')")
    export.add_argument("--address", required=True, help="Wallet address")
    export.add_argument("--from", dest="from_date", help="Start date (ISO 8601)")
    export.add_argument("--to", dest="to_date", help="End date (ISO 8601, date-only means end of day)")
    export.add_argument("--perps", action="store_true", help="Export the perpetuals ledger")
    export.add_argument("--output-dir", type=Path, default=Path("."), help="Directory for the CSV file")
    export.add_argument("--stdout", action="store_true", help="Print the CSV instead of writing a file")
    export.add_argument("--no-cache", action="store_true", help="Ignore cached transactions")

    serve = subparsers.add_parser("serve", help="Run the proxy API server")
    serve.add_argument("--host", default=None, help="Bind host (default: API_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: API_PORT)")

    return parser


def parse_date_arg(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse a --from/--to value.

    A date-only ``--to`` covers the whole day.

    Raises:
        ValueError: Not ISO 8601
    """
    if not value:
        return None
    moment = parse_iso8601(value)
    if end_of_day and len(value.strip()) == 10:
        moment = moment.replace(hour=23, minute=59, second=59, microsecond=999000)
    return moment


# ============================================================
# COMMANDS
# ============================================================

def run_chains(registry: ChainAdapterRegistry) -> int:
    print(f"{'ID':<14}{'NAME':<14}{'TICKER':<8}PERPS")
    for info in registry.available_chains():
        print(f"{info.chain_id:<14}{info.chain_name:<14}{info.ticker:<8}{'yes' if info.perps_capable else 'no'}")
    return EXIT_OK


async def run_export(args: argparse.Namespace, pipeline: ExportPipeline) -> int:
    from_date = parse_date_arg(args.from_date)
    to_date = parse_date_arg(args.to_date, end_of_day=True)
    variant = "perps" if args.perps else "standard"

    previous = pipeline.previous_export(args.chain, args.address, from_date, to_date, variant)
    if previous:
        logger.info(f"Range already exported at {previous['exportedAt']}, exporting again")

    if args.perps:
        filename, text = await pipeline.export_perp_csv(args.chain, args.address, from_date, to_date)
    else:
        filename, text = await pipeline.export_standard_csv(
            args.chain, args.address, from_date, to_date, use_cache=not args.no_cache
        )

    if args.stdout:
        sys.stdout.write(text + "\n")
        return EXIT_OK

    args.output_dir.mkdir(parents=True, exist_ok=True)
    path = args.output_dir / filename
    path.write_text(text, encoding="utf-8")
    rows = text.count("\n")
    print(f"Wrote {rows} rows to {path}")
    return EXIT_OK


def run_serve(args: argparse.Namespace, config: AppConfig) -> int:
    import uvicorn

    uvicorn.run(
        "proxy_api.main:app",
        host=args.host or config.api_host,
        port=args.port or config.api_port,
        log_config=None,
    )
    return EXIT_OK


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(args: argparse.Namespace, config: AppConfig) -> int:
    """
    Async main entry point.

    Returns:
        Exit code
    """
    registry = build_registry(config)
    store = build_store(config)
    pipeline = ExportPipeline(
        registry,
        TransactionCache(
            store,
            default_ttl=config.cache_ttl_seconds,
            max_entries=config.cache_max_entries,
        ),
        ExportHistory(store),
    )

    try:
        if args.command == "chains":
            return run_chains(registry)
        return await run_export(args, pipeline)
    except (InvalidAddressError, ChainNotSupportedError, ConfigurationError) as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_INVALID
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID
    except ChainAdapterError as e:
        logger.error(f"Export failed: {e}")
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_UPSTREAM
    finally:
        await registry.close()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    config = AppConfig.from_env()
    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return EXIT_INVALID

    setup_logging(args.log_level or config.log_level, config.log_format)

    if args.command == "serve":
        return run_serve(args, config)

    try:
        return asyncio.run(async_main(args, config))
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
