#!/usr/bin/env python3
"""
Check Transaction Status.

Single-shot (or retried) ledger status check for a hash, without
touching stored records.

Usage:
    python scripts/check_transaction_status.py 0xHASH [--network-id 1] [--retry]
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
from reconciler.utils.exceptions import ReconciliationError  # noqa: E402

logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    level="INFO",
)


async def check(tx_hash: str, network_id: int, retry: bool) -> int:
    """Print status; returns process exit code."""
    settings = get_settings()
    db_engine = create_engine(settings.database_url, use_null_pool=True)
    engine = create_engine_from_settings(settings, create_session_factory(db_engine))

    try:
        if retry:
            result = await engine.get_status_with_retry(tx_hash, network_id)
        else:
            result = await engine.check_status(tx_hash, network_id)
    except ReconciliationError as e:
        logger.error(str(e))
        return 2
    finally:
        await engine.close()
        await db_engine.dispose()

    logger.info(f"Status: {result.status}")
    logger.info(f"Confirmed: {result.is_confirmed}")
    logger.info(f"Confirmations: {result.confirmations}")
    logger.info(f"Block: {result.block_number}")
    if result.error:
        logger.warning(f"Error: {result.error}")
    return 0 if result.is_confirmed else 1


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Check transaction status")
    parser.add_argument("tx_hash", help="Transaction hash")
    parser.add_argument(
        "--network-id", type=int, default=1, help="Chain id (default: 1)"
    )
    parser.add_argument(
        "--retry",
        action="store_true",
        help="Retry until confirmed or failed",
    )
    args = parser.parse_args()

    sys.exit(asyncio.run(check(args.tx_hash, args.network_id, args.retry)))


if __name__ == "__main__":
    main()
