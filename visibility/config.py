"""Configuration for the visibility analytics backend."""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv
import structlog
from sqlalchemy.engine import make_url

logger = structlog.get_logger(__name__)

# .env values fill in anything not already exported
load_dotenv()


@dataclass
class StorageConfig:
    """Primary record store and blob overflow settings."""

    # Primary store ceiling
    max_record_bytes: int = field(
        default_factory=lambda: int(os.getenv("STORAGE_MAX_RECORD_BYTES", "1048576"))
    )
    safety_margin: float = field(
        default_factory=lambda: float(os.getenv("STORAGE_SAFETY_MARGIN", "0.8"))
    )

    # Truncation fallback
    truncate_max_items: int = field(
        default_factory=lambda: int(os.getenv("STORAGE_TRUNCATE_MAX_ITEMS", "50"))
    )
    truncate_text_chars: int = field(
        default_factory=lambda: int(os.getenv("STORAGE_TRUNCATE_TEXT_CHARS", "3000"))
    )

    # Retries
    max_retries: int = field(default_factory=lambda: int(os.getenv("STORAGE_MAX_RETRIES", "3")))
    retry_delay: float = field(
        default_factory=lambda: float(os.getenv("STORAGE_RETRY_DELAY", "1.0"))
    )

    # Blob store
    blob_base_url: str = field(default_factory=lambda: os.getenv("BLOB_BASE_URL", ""))
    blob_public_url: Optional[str] = field(default_factory=lambda: os.getenv("BLOB_PUBLIC_URL"))
    blob_api_token: str = field(default_factory=lambda: os.getenv("BLOB_API_TOKEN", ""))

    # Database
    database_url: str = field(
        default_factory=lambda: os.getenv("DATABASE_URL", "sqlite:///visibility.db")
    )

    @property
    def threshold_bytes(self) -> int:
        return int(self.max_record_bytes * self.safety_margin)

    @property
    def blob_configured(self) -> bool:
        return bool(self.blob_base_url)


@dataclass
class AnalyticsConfig:
    """Analytics retention settings"""
    max_stored_results: int = field(
        default_factory=lambda: int(os.getenv("ANALYTICS_MAX_STORED_RESULTS", "100"))
    )


@dataclass
class VisibilityConfig:
    """Master configuration for the visibility backend."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)

    # Environment
    environment: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    def validate(self) -> bool:
        """Check limits and log every problem found.

        Returns:
            False when any setting is out of range
        """
        errors = []

        if self.storage.max_record_bytes < 1:
            errors.append("STORAGE_MAX_RECORD_BYTES must be positive")

        if not 0 < self.storage.safety_margin <= 1:
            errors.append("STORAGE_SAFETY_MARGIN must be in (0, 1]")

        if self.storage.max_retries < 1:
            errors.append("STORAGE_MAX_RETRIES must be at least 1")

        if self.analytics.max_stored_results < 1:
            errors.append("ANALYTICS_MAX_STORED_RESULTS must be at least 1")

        if errors:
            for error in errors:
                logger.error("config_validation_error", error=error)
            return False

        logger.info("config_validated")
        return True

    def log_configuration(self):
        """Emit effective settings; credentials are masked."""
        config_dict = {
            "database_url": make_url(self.storage.database_url).render_as_string(hide_password=True),
            "max_record_bytes": self.storage.max_record_bytes,
            "safety_margin": self.storage.safety_margin,
            "truncate_max_items": self.storage.truncate_max_items,
            "truncate_text_chars": self.storage.truncate_text_chars,
            "max_retries": self.storage.max_retries,
            "retry_delay": self.storage.retry_delay,
            "blob_base_url": self.storage.blob_base_url,
            "blob_api_token": self._mask_secret(self.storage.blob_api_token),
            "max_stored_results": self.analytics.max_stored_results,
            "environment": self.environment,
            "log_level": self.log_level,
        }

        logger.info("configuration_loaded", **config_dict)

    @staticmethod
    def _mask_secret(value: str) -> str:
        """Mask secret values for logging (first 4 chars + ***)."""
        if not value:
            return ""
        if len(value) <= 4:
            return "***"
        return f"{value[:4]}***"


# Process-wide instance used by the CLI and scripts
_config: Optional[VisibilityConfig] = None


def get_config() -> VisibilityConfig:
    """Return the process-wide config, loading it from the environment once."""
    global _config
    if _config is None:
        _config = VisibilityConfig()
    return _config


def init_config(**kwargs) -> VisibilityConfig:
    """Replace the process-wide config with explicit values."""
    global _config
    _config = VisibilityConfig(**kwargs)
    return _config


def reset_config() -> None:
    """Forget the cached config so the next call re-reads the environment."""
    global _config
    _config = None
