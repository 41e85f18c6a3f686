"""Conversion of the long-term query log into query results."""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

import structlog
from pydantic import ValidationError

from visibility.models import (
    ChatGPTAnswer,
    GoogleAIAnswer,
    HistoricalQueryRecord,
    PerplexityAnswer,
    ProviderResults,
    QueryResult,
)

logger = structlog.get_logger(__name__)

LEGACY_SESSION_PREFIX = "legacy_"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z``."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def convert_historical_record(record: HistoricalQueryRecord) -> Optional[QueryResult]:
    """Map a completed log entry onto the current result shape.

    Returns None for records that are not completed or have no responses.
    """
    if record.status != "completed" or not record.ai_responses:
        return None

    date = record.processed_at or record.created_at
    results = ProviderResults()

    for response in record.ai_responses:
        provider = response.provider.lower()
        common = {
            "error": response.error,
            "timestamp": response.timestamp or date,
            "response_time": response.response_time,
        }
        if "openai" in provider or "chatgpt" in provider:
            results.chatgpt = ChatGPTAnswer(response=response.response or "", **common)
        elif "gemini" in provider or "google" in provider:
            text = response.response or ""
            results.google_ai = GoogleAIAnswer(ai_overview=text, has_ai_overview=bool(text), **common)
        elif "perplexity" in provider:
            results.perplexity = PerplexityAnswer(response=response.response or "", **common)

    return QueryResult(
        id=record.id,
        query=record.original_query,
        keyword=record.keyword,
        category=record.category,
        date=date,
        processing_session_id=f"{LEGACY_SESSION_PREFIX}{record.id}",
        processing_session_timestamp=record.created_at,
        results=results,
    )


def convert_historical_records(
    records: Iterable[Union[HistoricalQueryRecord, Dict[str, Any]]]
) -> List[QueryResult]:
    """Convert every usable record, logging and skipping the ones that fail.

    Raw mappings are validated here so one malformed entry cannot fail the
    whole batch.
    """
    converted = []
    skipped = 0

    for record in records:
        record_id = record.get("id") if isinstance(record, dict) else getattr(record, "id", None)
        try:
            if isinstance(record, dict):
                record = HistoricalQueryRecord.model_validate(record)
            result = convert_historical_record(record)
        except (ValidationError, AttributeError, TypeError) as e:
            logger.warning("historical_record_conversion_failed", record_id=record_id, error=str(e))
            skipped += 1
            continue
        if result is None:
            skipped += 1
            continue
        converted.append(result)

    logger.debug("historical_records_converted", converted=len(converted), skipped=skipped)
    return converted
