"""Shared fixtures for toggle-analysis tests."""

from datetime import datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from toggle_analysis.common import logging as json_logging
from toggle_analysis.common.models import (
    AnalysisFetch,
    EventInfo,
    IterationMarker,
    ScopeKeys,
    TargetingSnapshot,
)

FIXED_NOW = datetime(2024, 3, 10, 12, 0, 0)


@pytest.fixture(autouse=True)
def isolated_log_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Send JSON logs to a temporary file instead of data/logs."""
    log_path = tmp_path / "logs" / "toggle_analysis.jsonl"
    monkeypatch.setattr(json_logging, "DEFAULT_LOG_PATH", log_path)
    for logger in json_logging._loggers.values():
        monkeypatch.setattr(logger, "log_path", log_path)
    return log_path


@pytest.fixture
def scope() -> ScopeKeys:
    return ScopeKeys(project_key="shop", environment_key="online", toggle_key="checkout")


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


def make_result_payload() -> dict:
    """Two variations sharing a three-bucket axis, in non-sorted key order."""
    return {
        "1": {
            "distributionPoints": [{"x": 0.1, "y": 3}, {"x": 0.2, "y": 7}, {"x": 0.3, "y": 2}],
            "mean": 0.21,
            "winningPercentage": 64.5,
            "credibleInterval": [0.18, 0.24],
            "sampleSize": 1200,
        },
        "0": {
            "distributionPoints": [{"x": 0.1, "y": 5}, {"x": 0.2, "y": 4}, {"x": 0.3, "y": 1}],
            "mean": 0.17,
            "winningPercentage": 35.5,
            "credibleInterval": [0.14, 0.2],
            "sampleSize": 1180,
        },
    }


@pytest.fixture
def result_payload() -> dict:
    return make_result_payload()


@pytest.fixture
def targeting() -> TargetingSnapshot:
    return TargetingSnapshot.model_validate(
        {
            "variations": [
                {"name": "Control", "value": "false"},
                {"name": "Treatment", "value": "true"},
            ],
            "trackAccessEvents": True,
            "allowEnableTrackEvents": True,
        }
    )


@pytest.fixture
def backend(result_payload: dict, targeting: TargetingSnapshot) -> MagicMock:
    """AnalysisBackend double whose calls all succeed."""
    mock = MagicMock()
    mock.fetch_analysis = AsyncMock(
        return_value=AnalysisFetch(
            data=result_payload, start="2024-03-01 00:00:00", end="2024-03-08 00:00:00"
        )
    )
    mock.fetch_iteration_markers = AsyncMock(
        return_value=[IterationMarker(start="2024-03-01 00:00:00", stop=None)]
    )
    mock.request_collection_state = AsyncMock(return_value=True)
    mock.fetch_targeting = AsyncMock(return_value=targeting)
    mock.fetch_event_info = AsyncMock(
        return_value=EventInfo(name="purchase", metric_type="CONVERSION", event_type="CUSTOM")
    )
    return mock
