"""HTTP backend for the analysis API.

This module implements the AnalysisBackend contract over the toggle service's
REST API. Every response is wrapped in a ``{"success": bool, "data": ...}``
envelope.

Dependencies:
    - httpx: Async HTTP client for API requests
"""

from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from toggle_analysis.common.api_exceptions import (
    AnalysisClientError,
    NotFoundError,
    raise_for_httpx_status_error,
    raise_for_transport_error,
    unwrap_envelope,
)
from toggle_analysis.common.config import Settings
from toggle_analysis.common.logging import get_logger
from toggle_analysis.common.models import (
    AnalysisFetch,
    EventInfo,
    IterationMarker,
    ScopeKeys,
    TargetingSnapshot,
    TimeWindow,
)

logger = get_logger(__name__)

_M = TypeVar("_M", bound=BaseModel)


def _validate(model: type[_M], data: Any, scope: ScopeKeys) -> _M:
    """Validate a payload, reporting schema mismatches as client errors."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise AnalysisClientError(f"Unexpected {model.__name__} payload for {scope}: {e}") from e


class AnalysisClient:
    """Async client for analysis, iteration, targeting and collection endpoints.

    Args:
        base_url: API root, e.g. ``http://localhost:4009``
        token: Bearer token; omitted from requests when empty
        timeout: Request timeout in seconds
        transport: Optional httpx transport (used to stub the API in tests)
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: int = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "AnalysisClient":
        return cls(
            base_url=settings.analysis_api_base_url,
            token=settings.analysis_api_token,
            timeout=settings.timeout_seconds,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @staticmethod
    def _toggle_path(scope: ScopeKeys) -> str:
        return (
            f"/api/projects/{scope.project_key}"
            f"/environments/{scope.environment_key}"
            f"/toggles/{scope.toggle_key}"
        )

    async def _request(
        self,
        method: str,
        scope: ScopeKeys,
        suffix: str,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            AuthenticationError: On 401/403
            NotFoundError: On 404
            RateLimitError: On 429
            TransientError: On 502/503/504, connection errors and timeouts
            AnalysisClientError: For any other failure or a non-JSON body
        """
        url = f"{self.base_url}{self._toggle_path(scope)}{suffix}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method, url, headers=self._headers(), params=params, json=json
                )
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            raise_for_httpx_status_error(e, str(scope))
        except httpx.TransportError as e:
            raise_for_transport_error(e, str(scope))
        except ValueError as e:
            raise AnalysisClientError(f"Invalid JSON from {url}: {e}") from e

    async def fetch_analysis(self, scope: ScopeKeys, window: TimeWindow | None) -> AnalysisFetch:
        """Fetch per-variation statistics for ``window`` (server default when None)."""
        params = window.as_params() if window is not None else {"start": "", "end": ""}
        payload = await self._request("GET", scope, "/analysis", params=params)
        data = unwrap_envelope(payload, str(scope))
        if not isinstance(data, dict):
            raise AnalysisClientError(f"Analysis response missing data for {scope}")

        fetched = _validate(AnalysisFetch, data, scope)
        logger.debug(
            "Fetched analysis",
            {"variations": len(fetched.data.entries), "start": fetched.start, "end": fetched.end},
        )
        return fetched

    async def fetch_iteration_markers(self, scope: ScopeKeys) -> list[IterationMarker]:
        payload = await self._request("GET", scope, "/analysis/iterations")
        data = unwrap_envelope(payload, str(scope)) or []
        if not isinstance(data, list):
            raise AnalysisClientError(f"Iteration response is not a list for {scope}")
        return [_validate(IterationMarker, item, scope) for item in data]

    async def request_collection_state(self, scope: ScopeKeys, desired: bool) -> bool:
        """Ask the service to start (True) or stop (False) tracking access events.

        Returns:
            The envelope's ``success`` flag
        """
        payload = await self._request(
            "PATCH", scope, "/analysis/collection", json={"trackAccessEvents": desired}
        )
        if not isinstance(payload, dict):
            raise AnalysisClientError(f"Malformed collection response for {scope}")
        success = bool(payload.get("success"))
        logger.info("Collection command sent", {"desired": desired, "success": success})
        return success

    async def fetch_targeting(self, scope: ScopeKeys) -> TargetingSnapshot:
        payload = await self._request("GET", scope, "/targeting")
        data = unwrap_envelope(payload, str(scope)) or {}
        return _validate(TargetingSnapshot, data, scope)

    async def fetch_event_info(self, scope: ScopeKeys) -> EventInfo | None:
        """Fetch the metric event the analysis is based on; None if none is configured."""
        try:
            payload = await self._request("GET", scope, "/event")
        except NotFoundError:
            return None
        data = unwrap_envelope(payload, str(scope))
        if not data:
            return None
        return _validate(EventInfo, data, scope)
