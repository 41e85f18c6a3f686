#!/usr/bin/env python3
"""Visibility Monitor - brand visibility analytics for AI answer-engines

Command-line entry point for inspecting and recomputing a brand's analytics.
"""

import argparse
import asyncio
import json
import sys

import structlog

from visibility.config import get_config
from visibility.errors import AnalyticsError
from visibility.service import BrandAnalyticsService, create_service

logger = structlog.get_logger(__name__)


def setup_logging(log_level: str = "INFO"):
    """Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    import logging

    logging.basicConfig(level=getattr(logging, log_level.upper(), logging.INFO), format="%(message)s")

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


async def run_command(service: BrandAnalyticsService, command: str, brand_id: str, save: bool):
    if command == "lifetime":
        if save:
            return await service.refresh_lifetime(brand_id)
        return await service.calculate_lifetime(brand_id)
    if command == "session":
        return await service.calculate_latest_session(brand_id)
    if command == "competitors":
        return await service.calculate_competitor_analytics(brand_id)
    if command == "history":
        return await service.get_analytics_history(brand_id)
    raise ValueError(f"Unknown command: {command}")


def main():
    """Main entry point for the visibility monitor."""
    parser = argparse.ArgumentParser(description="Brand visibility analytics")
    parser.add_argument(
        "command",
        choices=["lifetime", "session", "competitors", "history"],
        help="Analytics to calculate",
    )
    parser.add_argument("brand_id", help="Brand to analyze")
    parser.add_argument(
        "--save",
        action="store_true",
        help="Persist a new lifetime snapshot (lifetime only)",
    )
    parser.add_argument(
        "--include-citations",
        action="store_true",
        help="Include every lifetime citation in the output",
    )
    args = parser.parse_args()

    config = get_config()
    setup_logging(config.log_level)

    if not config.validate():
        sys.exit(1)
    config.log_configuration()

    service = create_service(config)

    try:
        result = asyncio.run(run_command(service, args.command, args.brand_id, args.save))
    except AnalyticsError as e:
        logger.error("visibility_monitor_failed", command=args.command, brand_id=args.brand_id, error=str(e))
        sys.exit(1)

    if result is None:
        logger.info("no_analytics_available", command=args.command, brand_id=args.brand_id)
        return

    exclude = None
    if args.command == "lifetime" and not args.include_citations:
        exclude = {"all_citations"}
    print(json.dumps(result.model_dump(mode="json", exclude=exclude, exclude_none=True), indent=2))


if __name__ == "__main__":
    main()
