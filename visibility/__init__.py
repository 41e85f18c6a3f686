"""Brand visibility analytics for AI answer-engines."""

__version__ = "0.1.0"
