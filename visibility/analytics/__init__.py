"""Session and lifetime brand visibility analytics."""

from visibility.analytics.ranking import rank_providers, ranking_details, round_half_up, top_providers
from visibility.analytics.session import SessionAnalyticsAggregator, latest_session
from visibility.analytics.legacy import convert_historical_record, convert_historical_records
from visibility.analytics.lifetime import (
    LIFETIME_SESSION_ID,
    LifetimeAnalyticsAggregator,
    collect_lifetime_citations,
)
from visibility.analytics.history import build_history, visibility_trend

__all__ = [
    "rank_providers",
    "ranking_details",
    "round_half_up",
    "top_providers",
    "SessionAnalyticsAggregator",
    "latest_session",
    "convert_historical_record",
    "convert_historical_records",
    "LIFETIME_SESSION_ID",
    "LifetimeAnalyticsAggregator",
    "collect_lifetime_citations",
    "build_history",
    "visibility_trend",
]
