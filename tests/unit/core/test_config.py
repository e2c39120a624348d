"""Unit tests for src/core/config.py."""

import re
from pathlib import Path

import pytest
import pytest_check
from pydantic import ValidationError

from src.core.config import (
    CorsConfig,
    LogConfig,
    ObservabilityConfig,
    Settings,
    get_settings,
)


@pytest.mark.unit
class TestSettingsDefaults:
    """The defaults describe the service as it ships."""

    def test_server_defaults(self) -> None:
        """Listen on every interface at port 8080 and drain for ten seconds."""
        settings = Settings()

        assert settings.api_host == "0.0.0.0"  # noqa: S104
        assert settings.api_port == 8080
        assert settings.shutdown_timeout_seconds == 10.0
        assert settings.shutdown_signals == ["SIGINT"]

    def test_documentation_defaults(self) -> None:
        """The API description and documentation UI have fixed default URLs."""
        settings = Settings()

        assert settings.openapi_url == "/openapi/schema.json"
        assert settings.docs_url == "/docs"
        assert settings.api_base_path == "/"
        assert settings.api_description_path is None

    def test_application_defaults(self) -> None:
        """Application identity defaults."""
        settings = Settings()

        assert settings.app_name == "Template project Backend API"
        assert settings.app_version == "0.1.0"
        assert settings.debug is False

    def test_nested_defaults(self) -> None:
        """Nested configuration objects are created with their own defaults."""
        settings = Settings()

        assert isinstance(settings.log_config, LogConfig)
        assert isinstance(settings.cors_config, CorsConfig)
        assert isinstance(settings.observability_config, ObservabilityConfig)
        assert settings.observability_config.metrics_excluded_paths == []
        assert settings.log_config.excluded_paths == []


@pytest.mark.unit
class TestSettingsEnvOverrides:
    """Values can be overridden through environment variables."""

    def test_port_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """API_PORT overrides the listening port."""
        monkeypatch.setenv("API_PORT", "9090")

        assert Settings().api_port == 9090

    def test_nested_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Nested values use the double underscore delimiter."""
        monkeypatch.setenv("CORS_CONFIG__MAX_AGE", "600")
        monkeypatch.setenv("LOG_CONFIG__LOG_LEVEL", "DEBUG")

        settings = Settings()

        assert settings.cors_config.max_age == 600
        assert settings.log_config.log_level == "DEBUG"

    def test_empty_docs_url_disables_docs(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """An empty DOCS_URL turns the documentation page off."""
        monkeypatch.setenv("DOCS_URL", "")

        assert Settings().docs_url is None

    def test_description_path_override(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """API_DESCRIPTION_PATH selects another document."""
        document = tmp_path / "openapi.json"
        monkeypatch.setenv("API_DESCRIPTION_PATH", str(document))

        assert Settings().api_description_path == document


@pytest.mark.unit
class TestSettingsValidation:
    """Invalid values are rejected when settings are created."""

    @pytest.mark.parametrize("port", [-1, 65536])
    def test_port_out_of_range(self, port: int) -> None:
        """Ports outside 0..65535 are invalid."""
        with pytest.raises(ValidationError):
            Settings(api_port=port)

    def test_shutdown_timeout_must_be_positive(self) -> None:
        """A zero drain bound is invalid."""
        with pytest.raises(ValidationError):
            Settings(shutdown_timeout_seconds=0)

    def test_signal_names_are_normalized(self) -> None:
        """Signal names are upper-cased."""
        settings = Settings(shutdown_signals=["sigint", "SIGTERM"])

        assert settings.shutdown_signals == ["SIGINT", "SIGTERM"]

    def test_unknown_signal_rejected(self) -> None:
        """Names that are not signals are invalid."""
        with pytest.raises(ValidationError, match="Unknown signal"):
            Settings(shutdown_signals=["SIGNOPE"])

    def test_base_path_must_be_absolute(self) -> None:
        """The operations base path starts with a slash."""
        with pytest.raises(ValidationError, match="must start with"):
            Settings(api_base_path="api")


@pytest.mark.unit
class TestFormatterDetection:
    """The log formatter is detected from the environment when unset."""

    def test_console_in_development(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Development uses the console formatter."""
        monkeypatch.delenv("K_SERVICE", raising=False)
        monkeypatch.delenv("AWS_EXECUTION_ENV", raising=False)

        settings = Settings(environment="development")

        assert settings.log_config.log_formatter_type == "console"

    def test_json_in_production(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Production uses the JSON formatter."""
        monkeypatch.delenv("K_SERVICE", raising=False)
        monkeypatch.delenv("AWS_EXECUTION_ENV", raising=False)

        settings = Settings(environment="production")

        assert settings.log_config.log_formatter_type == "json"

    def test_json_on_cloud_runtime(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Cloud runtimes use the JSON formatter even in development."""
        monkeypatch.setenv("K_SERVICE", "api")

        settings = Settings(environment="development")

        assert settings.log_config.log_formatter_type == "json"

    def test_explicit_formatter_kept(self) -> None:
        """An explicit formatter is never overridden."""
        settings = Settings(
            environment="production",
            log_config=LogConfig(log_formatter_type="console"),
        )

        assert settings.log_config.log_formatter_type == "console"


@pytest.mark.unit
class TestCorsConfig:
    """CORS policy defaults and origin matching."""

    def test_defaults(self) -> None:
        """The default policy."""
        config = CorsConfig()

        with pytest_check.check:
            assert config.allowed_origins == ["https://*", "http://*"], (
                "Any http or https origin should be allowed"
            )
        with pytest_check.check:
            assert config.allowed_methods == [
                "GET",
                "POST",
                "PUT",
                "DELETE",
                "OPTIONS",
            ]
        with pytest_check.check:
            assert config.allowed_headers == [
                "Accept",
                "Authorization",
                "Content-Type",
                "X-CSRF-Token",
            ]
        with pytest_check.check:
            assert config.exposed_headers == ["Link"]
        with pytest_check.check:
            assert config.allow_credentials is False, "Credentials are never allowed"
        with pytest_check.check:
            assert config.max_age == 300, "Preflights should be cached for 5 minutes"

    @pytest.mark.parametrize(
        "origin",
        [
            "https://example.com",
            "http://localhost:3000",
            "https://app.example.org:8443",
        ],
    )
    def test_default_regex_matches_http_origins(self, origin: str) -> None:
        """Any http or https origin is allowed."""
        regex = CorsConfig().origin_regex()

        assert regex is not None
        assert re.fullmatch(regex, origin)

    @pytest.mark.parametrize("origin", ["ftp://example.com", "null", "example.com"])
    def test_default_regex_rejects_other_schemes(self, origin: str) -> None:
        """Origins without an http(s) scheme are rejected."""
        regex = CorsConfig().origin_regex()

        assert regex is not None
        assert re.fullmatch(regex, origin) is None

    def test_literal_characters_are_escaped(self) -> None:
        """Only '*' acts as a wildcard."""
        regex = CorsConfig(allowed_origins=["https://*.example.com"]).origin_regex()

        assert regex is not None
        assert re.fullmatch(regex, "https://api.example.com")
        assert re.fullmatch(regex, "https://api.exampleXcom") is None

    def test_no_origins(self) -> None:
        """An empty list allows no origin."""
        assert CorsConfig(allowed_origins=[]).origin_regex() is None


@pytest.mark.unit
class TestGetSettings:
    """get_settings caches one instance."""

    def test_returns_cached_instance(self) -> None:
        """Repeated calls return the same object."""
        assert get_settings() is get_settings()

    def test_cache_clear_creates_new_instance(self) -> None:
        """Clearing the cache re-reads the environment."""
        first = get_settings()
        get_settings.cache_clear()

        assert get_settings() is not first
