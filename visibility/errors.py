"""Exceptions raised by the analytics service."""


class AnalyticsError(Exception):
    """Base exception for analytics failures."""

    pass


class BrandNotFoundError(AnalyticsError):
    """No brand record exists for the requested id."""

    def __init__(self, brand_id: str):
        self.brand_id = brand_id
        super().__init__(f"Brand not found: {brand_id}")


class SessionAlreadyRecordedError(AnalyticsError):
    """Session analytics are write-once."""

    def __init__(self, brand_id: str, session_id: str):
        self.brand_id = brand_id
        self.session_id = session_id
        super().__init__(f"Session {session_id} already recorded for brand {brand_id}")


class AnalyticsUpdateError(AnalyticsError):
    """Analytics could not be saved or updated."""

    pass
