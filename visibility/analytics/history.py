"""Session-over-session trend."""

from typing import Optional, Sequence

from visibility.analytics.ranking import round_half_up
from visibility.models import AnalyticsTrend, BrandAnalyticsHistory, SessionAnalytics

# Visibility must move by more than this many points to count as a trend
TREND_THRESHOLD = 1.0


def visibility_trend(visibility_change: float) -> str:
    if visibility_change > TREND_THRESHOLD:
        return "improving"
    if visibility_change < -TREND_THRESHOLD:
        return "declining"
    return "stable"


def build_history(
    brand_id: str,
    sessions: Sequence[SessionAnalytics],
) -> Optional[BrandAnalyticsHistory]:
    """Compare the two most recent sessions.

    ``sessions`` may be in any order; they are sorted by session timestamp.
    The latest session's ``brand_visibility_trend`` is set from the change.
    Returns None when no session has been recorded.
    """
    if not sessions:
        return None

    ordered = sorted(sessions, key=lambda s: s.processing_session_timestamp, reverse=True)
    latest = ordered[0]
    previous = ordered[1] if len(ordered) > 1 else None

    trend = AnalyticsTrend()
    if previous is not None:
        trend = AnalyticsTrend(
            brand_mentions_change=latest.total_brand_mentions - previous.total_brand_mentions,
            citations_change=latest.total_citations - previous.total_citations,
            visibility_change=round_half_up(latest.brand_visibility_score - previous.brand_visibility_score),
        )
        insights = latest.insights.model_copy(
            update={"brand_visibility_trend": visibility_trend(trend.visibility_change)}
        )
        latest = latest.model_copy(update={"insights": insights})

    return BrandAnalyticsHistory(
        brand_id=brand_id,
        total_sessions=len(sessions),
        latest_analytics=latest,
        previous_analytics=previous,
        trend=trend,
    )
