"""Tests for the observability module."""

import sys
from unittest.mock import MagicMock

import pytest

from toggle_analysis.common import observability
from toggle_analysis.common.config import LogfireConfig, Settings


@pytest.fixture
def mock_logfire(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Replace the logfire module and reset the initialized flag."""
    mock = MagicMock()
    monkeypatch.setitem(sys.modules, "logfire", mock)
    monkeypatch.setattr(observability, "_LOGFIRE_INITIALIZED", False)
    return mock


def _settings(token: str | None = "test-token-123") -> Settings:
    return Settings(
        _env_file=None,
        logfire=LogfireConfig(token=token, service_name="test-service", environment="ci"),
    )


class TestInitLogfire:
    """Tests for init_logfire function."""

    def test_configures_and_instruments_httpx(self, mock_logfire: MagicMock) -> None:
        result = observability.init_logfire(_settings())

        assert result is True
        mock_logfire.configure.assert_called_once_with(
            token="test-token-123",
            service_name="test-service",
            environment="ci",
        )
        mock_logfire.instrument_httpx.assert_called_once()
        mock_logfire.instrument_fastapi.assert_not_called()

    def test_instruments_fastapi_app(self, mock_logfire: MagicMock) -> None:
        app = MagicMock()

        assert observability.init_logfire(_settings(), app) is True

        mock_logfire.instrument_fastapi.assert_called_once_with(app)

    def test_missing_token_returns_false(self, mock_logfire: MagicMock) -> None:
        assert observability.init_logfire(_settings(token=None)) is False
        mock_logfire.configure.assert_not_called()

    def test_is_idempotent(self, mock_logfire: MagicMock) -> None:
        assert observability.init_logfire(_settings()) is True
        assert observability.init_logfire(_settings()) is True

        mock_logfire.configure.assert_called_once()

    def test_configuration_error_returns_false(self, mock_logfire: MagicMock) -> None:
        """A failing configure call is logged and does not crash the caller."""
        mock_logfire.configure.side_effect = RuntimeError("invalid token")

        assert observability.init_logfire(_settings()) is False
        assert observability._LOGFIRE_INITIALIZED is False
