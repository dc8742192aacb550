#!/usr/bin/env python
"""
Script to overwrite the delivery_records table from a report file or a Google
Sheets CSV URL without opening the dashboard.
"""

import argparse
import logging
import os
import sys

from dotenv import load_dotenv

# Add project root to path to allow importing modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from constants.schemas import build_setup_sql
from utils.import_parsers import ImportParseError, fetch_sheet_csv, read_report_file
from utils.local_cache import LocalCacheStore
from utils.record_mapper import frame_to_rows
from utils.settings_store import SettingsStore
from utils.supabase_gateway import RemoteError, SupabaseGateway

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def load_source(source: str):
    """Read records from a local file path or an http(s) sheet URL."""
    if source.startswith("http://") or source.startswith("https://"):
        return fetch_sheet_csv(source)
    with open(source, "rb") as f:
        return read_report_file(f.read(), file_name=os.path.basename(source))


def main():
    """Main function to push a report"""
    parser = argparse.ArgumentParser(description="Overwrite the Supabase delivery report table")
    parser.add_argument("source", nargs="?", help="Path to .xlsx/.csv file or a sheet CSV URL")
    parser.add_argument(
        "--dry-run", action="store_true", help="Parse the source and report, but do not upload"
    )
    parser.add_argument(
        "--print-sql", action="store_true", help="Print the table setup SQL and exit"
    )
    args = parser.parse_args()

    if args.print_sql:
        print(build_setup_sql())
        return
    if not args.source:
        parser.error("source is required unless --print-sql is given")

    # Load environment variables
    load_dotenv()

    try:
        records = load_source(args.source)
    except (ImportParseError, OSError) as e:
        logger.error(f"Could not read {args.source}: {e}")
        sys.exit(1)

    logger.info(f"Loaded {len(records)} records from {args.source}")
    if args.dry_run:
        logger.info("Dry run, nothing uploaded")
        return

    config = SettingsStore().load_backend_config()
    gateway = SupabaseGateway(config)
    try:
        inserted = gateway.replace_all(frame_to_rows(records))
    except RemoteError as e:
        logger.error(f"Upload failed: {e}")
        if e.needs_schema_setup:
            logger.error("Create the table first: run this script with --print-sql")
        sys.exit(1)
    finally:
        gateway.close()

    LocalCacheStore().save_all(records)
    logger.info(f"Uploaded {inserted} records to {config.url}")


if __name__ == "__main__":
    main()
