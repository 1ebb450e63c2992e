from typing import Literal

from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    mongodb_url: str = Field(default="mongodb://localhost:27017", description="MongoDB connection URL")
    database_name: str = Field(default="flight_alerts", min_length=1, description="MongoDB database name")
    users_collection: str = Field(default="users", min_length=1, description="Collection holding user documents")

    # Queue
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL backing the price event queue")
    price_events_queue: str = Field(default="FlightPricesQueue", min_length=1, description="Durable price event queue name")
    dead_letter_suffix: str = Field(default=".dead-letter", description="Suffix of the list receiving undecodable payloads")

    # Matching engine
    poll_interval_seconds: float = Field(default=0.1, gt=0, le=60, description="Idle wait between empty polls")

    # Delivery
    delivery_backend: Literal["inline", "celery"] = Field(default="inline", description="How push alerts are handed off")
    celery_broker_url: str = Field(default="redis://localhost:6379/1", description="Celery broker URL")
    push_alerts_queue: str = Field(default="alerts.push", description="Celery queue for push alert tasks")

    # App Settings
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    debug: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    @validator("log_level")
    def validate_log_level(cls, v):
        """Accept only the standard logging level names"""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def dead_letter_queue(self) -> str:
        return f"{self.price_events_queue}{self.dead_letter_suffix}"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
