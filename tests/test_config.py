"""
Tests for environment-mode switching in Settings.
"""

import pytest

from app.core.config import EnvironmentMode, Settings


class TestEnvironmentMode:
    @pytest.mark.parametrize(
        "mode, development, real_services",
        [
            ("development", True, False),
            ("STAGING", False, True),
            ("production", False, True),
        ],
    )
    def test_mode_flags(self, mode: str, development: bool, real_services: bool) -> None:
        settings = Settings(env_mode=mode)

        assert settings.is_development is development
        assert settings.use_real_services is real_services

    def test_unknown_mode_rejected(self) -> None:
        with pytest.raises(ValueError):
            Settings(env_mode="qa")

    def test_production_reports_missing_provider_keys(self) -> None:
        settings = Settings(env_mode=EnvironmentMode.PRODUCTION, stripe_secret_key="", sendgrid_api_key="")

        missing = settings.validate_production_config()

        assert "STRIPE_SECRET_KEY" in missing
        assert "SENDGRID_API_KEY" in missing
