"""Shareable navigation state for the analysis view.

The controller never talks to a router directly. It is handed a
NavigationState that can read the current query parameters and rewrite them,
keeping the scope path (``/{project}/{environment}/{toggle}/analysis``) intact.
"""

from collections.abc import Mapping
from typing import Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit

from toggle_analysis.common.models import ScopeKeys

ANALYSIS_SEGMENT = "analysis"


class NavigationState(Protocol):
    """Capability for reading and writing the view's addressable location."""

    def read_params(self) -> Mapping[str, str]:
        ...

    def write_params(self, params: Mapping[str, str]) -> None:
        ...

    @property
    def location(self) -> str:
        ...


def analysis_path(scope: ScopeKeys) -> str:
    return f"{scope.path}/{ANALYSIS_SEGMENT}"


class LocationNavigation:
    """In-process navigation state holding a path and its query parameters.

    Each ``write_params`` call replaces the query string wholesale and is
    recorded in ``history`` so the sequence of pushed locations can be inspected.
    """

    def __init__(self, scope: ScopeKeys, params: Mapping[str, str] | None = None) -> None:
        self._path = analysis_path(scope)
        self._params: dict[str, str] = dict(params or {})
        self.history: list[str] = []

    @classmethod
    def from_location(cls, scope: ScopeKeys, location: str) -> "LocationNavigation":
        """Create navigation state from a location such as ``/p/e/t/analysis?start=...``."""
        query = urlsplit(location).query
        return cls(scope, dict(parse_qsl(query)))

    def read_params(self) -> Mapping[str, str]:
        return dict(self._params)

    def write_params(self, params: Mapping[str, str]) -> None:
        self._params = dict(params)
        self.history.append(self.location)

    @property
    def location(self) -> str:
        if not self._params:
            return self._path
        return f"{self._path}?{urlencode(self._params)}"
