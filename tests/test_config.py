"""Tests for configuration settings."""

import pytest
from pydantic import ValidationError

from takesync.config.settings import API_MAX_PAGE_SIZE, MAX_WRITE_BATCH_SIZE, Settings


class TestSettings:
    """Test Settings class."""

    def test_settings_default_values(self, monkeypatch):
        """Test default values are set correctly."""
        monkeypatch.delenv("TAKESYNC_DATABASE_URL", raising=False)
        monkeypatch.delenv("TAKESYNC_LOG_LEVEL", raising=False)

        settings = Settings(_env_file=None)

        assert settings.api_base_url == "https://seller-api.takealot.com"
        assert settings.api_page_size == API_MAX_PAGE_SIZE
        assert settings.api_max_concurrent == 3
        assert settings.max_retries == 2
        assert settings.write_batch_size == MAX_WRITE_BATCH_SIZE
        assert settings.job_max_failures == 3
        assert settings.job_retention_days == 7
        assert settings.log_retention_days == 7
        assert settings.tenant_concurrency == 3
        assert settings.cron_chunks_per_invocation == 1
        assert settings.manual_max_chunks is None
        assert settings.cron_secret is None
        assert settings.database_url == "sqlite:///./takesync.db"
        assert settings.log_level == "INFO"

    def test_settings_custom_values(self):
        """Test custom values override defaults."""
        settings = Settings(
            _env_file=None,
            api_timeout=30,
            api_max_concurrent=5,
            tenant_concurrency=10,
            log_level="DEBUG",
        )
        assert settings.api_timeout == 30
        assert settings.api_max_concurrent == 5
        assert settings.tenant_concurrency == 10
        assert settings.log_level == "DEBUG"

    def test_settings_from_environment(self, monkeypatch):
        """Test settings are read from TAKESYNC_ environment variables."""
        monkeypatch.setenv("TAKESYNC_DATABASE_URL", "postgresql+psycopg://u:p@db/takesync")
        monkeypatch.setenv("TAKESYNC_CRON_SECRET", "hunter2")
        monkeypatch.setenv("TAKESYNC_MANUAL_MAX_CHUNKS", "4")

        settings = Settings(_env_file=None)

        assert settings.database_url == "postgresql+psycopg://u:p@db/takesync"
        assert settings.cron_secret.get_secret_value() == "hunter2"
        assert settings.manual_max_chunks == 4

    def test_cron_secret_is_masked(self):
        """Test the cron secret is not exposed in repr."""
        settings = Settings(_env_file=None, cron_secret="hunter2")
        assert "hunter2" not in repr(settings)

    def test_invalid_log_level(self):
        """Test invalid log level raises error."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="INVALID")

    @pytest.mark.parametrize("page_size", [0, API_MAX_PAGE_SIZE + 1])
    def test_page_size_bounds(self, page_size):
        """Test the API page size is capped by the Seller API maximum."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, api_page_size=page_size)

    def test_write_batch_size_capped(self):
        """Test write batches cannot exceed the store limit."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, write_batch_size=MAX_WRITE_BATCH_SIZE + 1)

    def test_get_proxy_list(self):
        """Test proxy list parsing."""
        settings = Settings(
            _env_file=None,
            proxy_urls="1.2.3.4:8080:user:pass, http://u:p@5.6.7.8:3128 ,",
        )
        assert settings.get_proxy_list() == ["1.2.3.4:8080:user:pass", "http://u:p@5.6.7.8:3128"]

    def test_get_proxy_list_empty(self):
        """Test proxy list is empty when not configured."""
        assert Settings(_env_file=None).get_proxy_list() == []
