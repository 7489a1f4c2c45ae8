"""
Global configuration settings for RatePool.

Loads configuration from environment variables and provides
typed access to all system settings.
"""

import os
from typing import Optional, Dict, Any
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass
class Settings:
    """Global settings for RatePool."""

    # Storage
    storage_backend: str = "memory"
    mongodb_uri: str = ""
    db_name: str = "ratepool"

    # Collections
    campaigns_collection: str = "campaigns"
    participants_collection: str = "participants"
    withdrawn_items_collection: str = "withdrawn_items"

    # Operator access
    operator_api_key: str = ""

    # Judgement validation
    rating_min: int = 1
    rating_max: int = 9
    justification_min_length: int = 10

    # Campaign defaults
    default_expiry_hours: float = 24.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def __post_init__(self):
        """Load settings from environment variables."""
        self.storage_backend = os.getenv("RATEPOOL_STORAGE", self.storage_backend).lower()
        self.mongodb_uri = os.getenv("MONGODB_URI", self.mongodb_uri)
        self.db_name = os.getenv("RATEPOOL_DB_NAME", self.db_name)
        self.operator_api_key = os.getenv("RATEPOOL_OPERATOR_KEY", self.operator_api_key)
        self.log_level = os.getenv("LOG_LEVEL", self.log_level)

        # Load numeric settings if provided
        if os.getenv("RATING_MIN"):
            self.rating_min = int(os.getenv("RATING_MIN"))
        if os.getenv("RATING_MAX"):
            self.rating_max = int(os.getenv("RATING_MAX"))
        if os.getenv("JUSTIFICATION_MIN_LENGTH"):
            self.justification_min_length = int(os.getenv("JUSTIFICATION_MIN_LENGTH"))
        if os.getenv("DEFAULT_EXPIRY_HOURS"):
            self.default_expiry_hours = float(os.getenv("DEFAULT_EXPIRY_HOURS"))

    @property
    def uses_mongodb(self) -> bool:
        """Whether the MongoDB store is selected."""
        return self.storage_backend == "mongodb"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "storage_backend": self.storage_backend,
            "mongodb_uri": "***" if self.mongodb_uri else "",
            "db_name": self.db_name,
            "operator_configured": bool(self.operator_api_key),
            "rating_min": self.rating_min,
            "rating_max": self.rating_max,
            "justification_min_length": self.justification_min_length,
            "default_expiry_hours": self.default_expiry_hours,
            "log_level": self.log_level,
        }


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global _settings
    _settings = None


def configure(
    mongodb_uri: str = None,
    db_name: str = None,
    **kwargs
) -> Settings:
    """
    Configure global settings.

    Args:
        mongodb_uri: MongoDB connection URI
        db_name: Database name
        **kwargs: Additional settings

    Returns:
        Configured Settings instance
    """
    settings = get_settings()

    if mongodb_uri:
        settings.mongodb_uri = mongodb_uri
    if db_name:
        settings.db_name = db_name

    for key, value in kwargs.items():
        if hasattr(settings, key):
            setattr(settings, key, value)

    return settings
