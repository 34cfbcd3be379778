import argparse
import sys
from typing import List, Optional

import structlog

from config import get_settings, get_settings_for_environment
from ingestion import IngestionError, load_transactions_file
from logging_config import configure_logging
from reporting import write_accounts_csv
from services import get_transaction_processor

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger-engine",
        description="Apply a CSV stream of transactions and print the final account balances as CSV.",
    )
    parser.add_argument("input", help="path to the transactions CSV file")
    parser.add_argument(
        "--on-malformed",
        choices=["skip", "fail"],
        default=None,
        help="what to do with rows that cannot be parsed (default: from settings)",
    )
    parser.add_argument(
        "--env",
        choices=["development", "production", "testing"],
        default=None,
        help="settings preset to use instead of plain environment settings",
    )
    parser.add_argument("--log-level", default=None, help="override the configured log level")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = get_settings_for_environment(args.env) if args.env else get_settings()
    if args.log_level:
        settings = settings.model_copy(update={"log_level": args.log_level})
    configure_logging(settings)

    on_malformed = args.on_malformed or settings.malformed_row_policy
    processor = get_transaction_processor(settings)

    try:
        processor.process_all(load_transactions_file(args.input, on_malformed=on_malformed))
    except IngestionError as e:
        logger.error("Ingestion failed", input=args.input, error=str(e))
        print(f"ledger-engine: error: {e}", file=sys.stderr)
        return 1

    write_accounts_csv(processor.snapshot(), sys.stdout, precision=settings.output_precision)
    return 0


if __name__ == "__main__":
    sys.exit(main())
