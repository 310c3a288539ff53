#!/usr/bin/env python3
"""
Sweep Stuck Transactions.

Runs one reconciliation sweep over pending and placeholder records and
prints the report:
1. Per-network counts
2. Fixed / failed / skipped / error totals
3. Per-record errors and skip reasons

Usage:
    python scripts/sweep_stuck_transactions.py [--dry-run] [--max-records N]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger  # noqa: E402

from reconciler.config.database import (  # noqa: E402
    create_engine,
    create_session_factory,
)
from reconciler.config.settings import get_settings  # noqa: E402
from reconciler.services.reconciliation.factory import (  # noqa: E402
    create_engine_from_settings,
)
from reconciler.services.reconciliation.reports import SweepResult  # noqa: E402

# Configure logging
logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    level="INFO",
)


def print_report(result: SweepResult) -> None:
    """Log sweep summary."""
    report = result.report

    logger.info("\n" + "=" * 60)
    logger.info("SWEEP SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Records examined: {report.total}")
    logger.info(f"Fixed: {result.fixed}")
    logger.info(f"Failed: {result.failed}")
    logger.info(f"Skipped: {result.skipped}")
    logger.info(f"Errors: {result.errors}")
    logger.info(f"Duration: {report.duration_ms}ms")

    for name, stats in report.networks.items():
        logger.info(
            f"  {name}: total={stats.total} fixed={stats.fixed} "
            f"failed={stats.failed} skipped={stats.skipped} errors={stats.errors}"
        )

    for error in report.errors:
        logger.error(f"  record {error.record_id}: {error.error}")

    for skipped in report.skipped_records:
        logger.info(f"  skipped record {skipped.record_id}: {skipped.reason}")

    if report.dry_run:
        logger.info("\nDRY RUN - No ledger calls were made and nothing was written")


async def sweep(dry_run: bool, max_records: int | None) -> SweepResult:
    """Run one sweep with production collaborators."""
    settings = get_settings()

    logger.info("=" * 60)
    logger.info("STUCK TRANSACTION SWEEP")
    logger.info(f"Dry Run: {dry_run}")
    logger.info("=" * 60)

    db_engine = create_engine(settings.database_url, use_null_pool=True)
    session_factory = create_session_factory(db_engine)
    engine = create_engine_from_settings(settings, session_factory)

    try:
        result = await engine.sweep_stuck_transactions(
            dry_run=dry_run,
            max_records=max_records or settings.sweep_max_records,
        )
    finally:
        await engine.close()
        await db_engine.dispose()

    print_report(result)
    return result


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Sweep stuck transaction records")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report suspect records without ledger calls or writes",
    )
    parser.add_argument(
        "--max-records",
        type=int,
        default=None,
        help="Maximum records to process (default: SWEEP_MAX_RECORDS)",
    )
    args = parser.parse_args()

    result = asyncio.run(sweep(dry_run=args.dry_run, max_records=args.max_records))
    sys.exit(1 if result.errors else 0)


if __name__ == "__main__":
    main()
