"""
Unit tests for environment-driven settings
"""

from app.config import Settings

class TestSettings:

    def test_reads_typed_values_from_environment(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
        monkeypatch.setenv("ACCESS_TOKEN_EXPIRE_MINUTES", "45")
        monkeypatch.setenv("EMAIL_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("JWT_ALGORITHM", "HS512")

        config = Settings(_env_file=None)

        assert config.rate_limit_enabled is False
        assert config.access_token_expire_minutes == 45
        assert config.email_timeout_seconds == 2.5
        assert config.algorithm == "HS512"

    def test_base_url_trailing_slash_is_stripped(self, monkeypatch):
        monkeypatch.setenv("BASE_URL", "https://labs.test/")
        assert Settings(_env_file=None).base_url == "https://labs.test"

    def test_defaults(self, monkeypatch):
        for name in ("ORDER_NUMBER_PREFIX", "NOTIFICATION_CHANNEL", "JWT_ALGORITHM"):
            monkeypatch.delenv(name, raising=False)

        config = Settings(_env_file=None)

        assert config.order_number_prefix == "LL"
        assert config.notification_channel == "email"
        assert config.algorithm == "HS256"
