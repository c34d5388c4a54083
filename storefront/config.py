"""Configuration loading for the storefront order system.

This module provides centralized configuration management:
- Load settings from environment variables and .env files
- Validate configuration using pydantic
- Provide typed access to all settings
"""

from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from storefront.core.models import Coordinates

# The shop in Rabat that every delivery starts from
DEFAULT_STORE_LATITUDE = 33.951371146759776
DEFAULT_STORE_LONGITUDE = -6.88501751937855


class Settings(BaseSettings):
    """Application configuration loaded from environment.

    Uses pydantic-settings for environment variable handling with
    .env file support via python-dotenv.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Order repository (Dolibarr REST API)
    api_url: str = Field(
        default="http://localhost/api/index.php",
        description="Dolibarr REST API base URL",
    )
    api_key: str = Field(
        default="",
        description="Dolibarr API key, sent as the DOLAPIKEY header",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for each repository request in seconds",
    )

    # Customer
    customer_id: int = Field(
        default=0,
        description="Dolibarr third-party id of the signed-in customer",
    )

    # Delivery
    store_latitude: float = Field(
        default=DEFAULT_STORE_LATITUDE,
        description="Latitude deliveries start from",
    )
    store_longitude: float = Field(
        default=DEFAULT_STORE_LONGITUDE,
        description="Longitude deliveries start from",
    )
    user_latitude: float | None = Field(
        default=None,
        description="Customer latitude; unset means location unavailable",
    )
    user_longitude: float | None = Field(
        default=None,
        description="Customer longitude; unset means location unavailable",
    )
    geolocation_timeout_seconds: float = Field(
        default=15.0,
        description="Longest wait for a location fix in seconds",
    )

    # Cart
    cart_store_path: str = Field(
        default="./data/cart.json",
        description="JSON file holding cartItems and cartQuantities",
    )

    # Notification configuration
    notification_backend: Literal["stdout"] = Field(
        default="stdout",
        description="Notification backend type",
    )
    assume_yes: bool = Field(
        default=False,
        description="Accept every confirmation prompt without asking",
    )

    # Order submission
    idempotency_keys_enabled: bool = Field(
        default=False,
        description="Send an Idempotency-Key header with each new order",
    )

    # Logging configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log format",
    )

    # Development
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging",
    )

    @field_validator("request_timeout_seconds", "geolocation_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Ensure timeouts are positive."""
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("customer_id")
    @classmethod
    def validate_customer_id(cls, v: int) -> int:
        """Ensure customer id is non-negative."""
        if v < 0:
            raise ValueError("customer_id must be non-negative")
        return v

    @field_validator("store_latitude", "user_latitude")
    @classmethod
    def validate_latitude(cls, v: float | None) -> float | None:
        """Ensure latitude is in valid range."""
        if v is not None and not -90.0 <= v <= 90.0:
            raise ValueError("latitude must be between -90 and 90")
        return v

    @field_validator("store_longitude", "user_longitude")
    @classmethod
    def validate_longitude(cls, v: float | None) -> float | None:
        """Ensure longitude is in valid range."""
        if v is not None and not -180.0 <= v <= 180.0:
            raise ValueError("longitude must be between -180 and 180")
        return v

    @model_validator(mode="after")
    def validate_user_location_pair(self) -> "Settings":
        """Ensure the customer location is either fully set or unset."""
        if (self.user_latitude is None) != (self.user_longitude is None):
            raise ValueError("user_latitude and user_longitude must be set together")
        return self

    @property
    def store_location(self) -> Coordinates:
        return Coordinates(self.store_latitude, self.store_longitude)

    @property
    def user_location(self) -> Coordinates | None:
        if self.user_latitude is None or self.user_longitude is None:
            return None
        return Coordinates(self.user_latitude, self.user_longitude)


def load_settings(env_file: str | None = None) -> Settings:
    """Load application settings from environment.

    Args:
        env_file: Optional path to .env file. If not provided,
                 uses the default .env in the current directory.

    Returns:
        Validated Settings instance.

    Raises:
        ValidationError: If settings validation fails.
    """
    if env_file:
        return Settings(_env_file=env_file)  # type: ignore[call-arg]
    return Settings()


__all__ = ["Settings", "load_settings"]
