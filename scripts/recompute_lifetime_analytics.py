#!/usr/bin/env python3
"""Recompute and store lifetime analytics for one or more brands."""

import asyncio
import sys
from pathlib import Path
from typing import List

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from visibility.config import get_config
from visibility.errors import AnalyticsError
from visibility.service import BrandAnalyticsService, create_service

# Configure logging
structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ]
)

logger = structlog.get_logger(__name__)


async def recompute_all(service: BrandAnalyticsService, brand_ids: List[str]) -> dict:
    """Recompute each brand in turn; one failure does not stop the rest."""
    stats = {"recomputed": 0, "failed": 0}

    for brand_id in brand_ids:
        try:
            analytics = await service.refresh_lifetime(brand_id)
        except AnalyticsError as e:
            logger.error("lifetime_recompute_failed", brand_id=brand_id, error=str(e))
            stats["failed"] += 1
            continue

        logger.info(
            "lifetime_recomputed",
            brand_id=brand_id,
            queries=analytics.total_queries_processed,
            sessions=analytics.total_processing_sessions,
            visibility=analytics.brand_visibility_score,
            top_provider=analytics.insights.top_performing_provider,
        )
        stats["recomputed"] += 1

    return stats


async def discover_brand_ids(service: BrandAnalyticsService) -> List[str]:
    keys = await service.repository.store.list("brands/")
    return [key.split("/", 1)[1] for key in keys]


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Recompute lifetime brand analytics")
    parser.add_argument(
        "brand_ids",
        nargs="*",
        help="Brands to recompute (all brands if not specified)",
    )
    args = parser.parse_args()

    logger.info("lifetime_recompute_started", args=vars(args))

    service = create_service(get_config())

    async def run():
        brand_ids = args.brand_ids or await discover_brand_ids(service)
        return await recompute_all(service, brand_ids)

    stats = asyncio.run(run())
    logger.info("lifetime_recompute_completed", **stats)

    if stats["failed"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
