"""
Unit tests for application settings.
"""

import pytest
from pydantic import ValidationError

from fare_alerts.core.config import Settings


class TestSettings:
    """Test Settings defaults and validation"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("POLL_INTERVAL_SECONDS", raising=False)
        config = Settings(_env_file=None)

        assert config.price_events_queue == "FlightPricesQueue"
        assert config.dead_letter_queue == "FlightPricesQueue.dead-letter"
        assert config.poll_interval_seconds == 0.1

    def test_log_level_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(log_level="chatty")

    def test_poll_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(poll_interval_seconds=0)

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("PRICE_EVENTS_QUEUE", "Prices")
        monkeypatch.setenv("DELIVERY_BACKEND", "celery")

        config = Settings()

        assert config.dead_letter_queue == "Prices.dead-letter"
        assert config.delivery_backend == "celery"

    def test_unknown_delivery_backend_rejected(self):
        with pytest.raises(ValidationError):
            Settings(delivery_backend="sms")
