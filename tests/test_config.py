"""Tests for environment configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from smartsheet_client.config import Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Isolate tests from the caller's environment and any .env file."""
    monkeypatch.chdir(tmp_path)
    for name in ["ACCESS_TOKEN", "BASE_URL", "MAX_RETRIES", "BACKOFF", "LOG_LEVEL", "TIMEOUT"]:
        monkeypatch.delenv(f"SMARTSHEET_{name}", raising=False)


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self) -> None:
        settings = Settings()

        assert settings.base_url == "https://api.smartsheet.com/2.0/"
        assert settings.access_token == ""
        assert settings.max_retries == 4
        assert settings.backoff == "exponential"

    def test_reads_prefixed_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SMARTSHEET_ACCESS_TOKEN", "env-token")
        monkeypatch.setenv("SMARTSHEET_MAX_RETRIES", "2")
        monkeypatch.setenv("SMARTSHEET_LOG_LEVEL", "debug")

        settings = Settings()

        assert settings.access_token == "env-token"
        assert settings.max_retries == 2
        assert settings.log_level == "DEBUG"

    def test_reads_dotenv_file(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("SMARTSHEET_ACCESS_TOKEN=from-file\n")

        assert Settings().access_token == "from-file"

    def test_rejects_plain_http(self) -> None:
        with pytest.raises(ValidationError, match="https"):
            Settings(base_url="http://api.smartsheet.com/2.0/")

    def test_allows_http_localhost(self) -> None:
        assert Settings(base_url="http://localhost:8080/2.0/").base_url.startswith("http://")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"timeout": 0},
            {"max_retries": 0},
            {"backoff": "linear"},
            {"log_level": "chatty"},
        ],
    )
    def test_rejects_invalid_values(self, kwargs: dict[str, object]) -> None:
        with pytest.raises(ValidationError):
            Settings(**kwargs)  # type: ignore[arg-type]
