"""Integration tests for the composition root.

These tests verify that the bootstrap process correctly loads configuration,
instantiates adapters, initializes core services, and wires dependencies.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from storefront.adapters.cart.json_file import JsonFileCartStore
from storefront.adapters.location.static import StaticLocationAdapter
from storefront.adapters.notification.stdout import StdoutNotifier
from storefront.config import Settings, load_settings
from storefront.core.models import Coordinates
from storefront.core.order_service import OrderService
from storefront.main import build_application, configure_logging


class TestConfigurationLoading:
    """Test configuration loading and validation."""

    def test_load_settings_with_defaults(self) -> None:
        """Load settings with default values."""
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.api_url == "http://localhost/api/index.php"
        assert settings.request_timeout_seconds == 10.0
        assert settings.geolocation_timeout_seconds == 15.0
        assert settings.notification_backend == "stdout"
        assert settings.idempotency_keys_enabled is False
        assert settings.log_level == "INFO"
        assert settings.user_location is None

    def test_store_location_defaults_to_rabat(self) -> None:
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.store_location == Coordinates(33.951371146759776, -6.88501751937855)

    def test_load_settings_from_env(self) -> None:
        """Load settings from environment variables."""
        with patch.dict(
            os.environ,
            {
                "API_URL": "https://shop.example.com/api/index.php",
                "CUSTOMER_ID": "7",
                "USER_LATITUDE": "34.0",
                "USER_LONGITUDE": "-6.8",
                "IDEMPOTENCY_KEYS_ENABLED": "true",
                "LOG_LEVEL": "DEBUG",
            },
        ):
            settings = load_settings()
            assert settings.api_url == "https://shop.example.com/api/index.php"
            assert settings.customer_id == 7
            assert settings.user_location == Coordinates(34.0, -6.8)
            assert settings.idempotency_keys_enabled is True
            assert settings.log_level == "DEBUG"

    def test_load_settings_from_env_file(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text("CUSTOMER_ID=12\nASSUME_YES=true\n")

        settings = load_settings(str(env_file))

        assert settings.customer_id == 12
        assert settings.assume_yes is True

    @pytest.mark.parametrize(
        "env",
        [
            {"REQUEST_TIMEOUT_SECONDS": "0"},
            {"GEOLOCATION_TIMEOUT_SECONDS": "-1"},
            {"CUSTOMER_ID": "-5"},
            {"STORE_LATITUDE": "91"},
            {"STORE_LONGITUDE": "-181"},
            {"LOG_FORMAT": "yaml"},
        ],
    )
    def test_load_settings_rejects_invalid_values(self, env: dict[str, str]) -> None:
        with patch.dict(os.environ, env):
            with pytest.raises(ValidationError):
                load_settings()

    def test_user_location_needs_both_coordinates(self) -> None:
        with patch.dict(os.environ, {"USER_LATITUDE": "34.0"}):
            with pytest.raises(ValidationError, match="set together"):
                load_settings()


class TestApplicationWiring:
    """Test that adapters and core services are wired from settings."""

    @pytest.mark.asyncio
    async def test_build_application(self, tmp_path: Path) -> None:
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            api_url="https://shop.example.com/api/index.php/",
            customer_id=7,
            cart_store_path=str(tmp_path / "cart.json"),
            user_latitude=34.0,
            user_longitude=-6.8,
            assume_yes=True,
            idempotency_keys_enabled=True,
        )

        app = build_application(settings)
        try:
            service = app.order_service
            assert isinstance(service, OrderService)
            assert app.cli_handler.orders is service
            assert service.repository is app.repository
            assert service.catalog is app.catalog
            assert service.customer_id == 7
            assert service.idempotency_keys_enabled is True
            assert app.repository.api_url == "https://shop.example.com/api/index.php"

            assert isinstance(service.cart_store, JsonFileCartStore)
            assert service.cart_store.path == tmp_path / "cart.json"
            assert isinstance(service.location, StaticLocationAdapter)
            assert service.location.coordinates == Coordinates(34.0, -6.8)
            assert isinstance(service.notifier, StdoutNotifier)
            assert service.notifier.assume_yes is True
            assert app.cli_handler.state_machine is service.state_machine
        finally:
            await app.close()

    @pytest.mark.asyncio
    async def test_location_unavailable_without_user_coordinates(self) -> None:
        app = build_application(Settings(_env_file=None))  # type: ignore[call-arg]
        try:
            assert app.order_service.location.coordinates is None
        finally:
            await app.close()


class TestLogging:
    """Test logging configuration."""

    def test_configure_logging_accepts_both_formats(self) -> None:
        with patch("logging.basicConfig") as basic_config:
            configure_logging("WARNING", "json")
            configure_logging("DEBUG", "text")

        json_call, text_call = basic_config.call_args_list
        assert json_call.kwargs["level"] == 30
        assert json_call.kwargs["format"].startswith('{"time"')
        assert text_call.kwargs["level"] == 10
        assert "%(name)s" in text_call.kwargs["format"]
