"""
Unit tests for ratepool/config/settings.py.
"""

import os
import pytest
from unittest.mock import patch

from ratepool.config.settings import Settings, configure, get_settings, reset_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    reset_settings()
    yield
    reset_settings()


class TestSettings:
    """Environment-driven settings."""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()

        assert settings.storage_backend == "memory"
        assert settings.uses_mongodb is False
        assert settings.rating_min == 1
        assert settings.rating_max == 9
        assert settings.justification_min_length == 10
        assert settings.default_expiry_hours == 24.0

    def test_environment_overrides(self):
        env = {
            "RATEPOOL_STORAGE": "MongoDB",
            "MONGODB_URI": "mongodb://localhost:27017",
            "RATEPOOL_DB_NAME": "ratepool_test",
            "RATING_MAX": "5",
            "JUSTIFICATION_MIN_LENGTH": "3",
            "DEFAULT_EXPIRY_HOURS": "0.5",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings()

        assert settings.uses_mongodb is True
        assert settings.db_name == "ratepool_test"
        assert settings.rating_max == 5
        assert settings.justification_min_length == 3
        assert settings.default_expiry_hours == 0.5

    def test_to_dict_masks_secrets(self):
        with patch.dict(os.environ, {"MONGODB_URI": "mongodb://u:p@host", "RATEPOOL_OPERATOR_KEY": "k"}):
            data = Settings().to_dict()

        assert data["mongodb_uri"] == "***"
        assert data["operator_configured"] is True
        assert "k" not in data.values()

    def test_global_instance(self):
        assert get_settings() is get_settings()

    def test_configure(self):
        settings = configure(db_name="other", rating_max=7, unknown_option=1)

        assert settings is get_settings()
        assert settings.db_name == "other"
        assert settings.rating_max == 7
        assert not hasattr(settings, "unknown_option")
