"""AnalysisController: orchestrates the results panel for one toggle.

This module composes the result normalizer, the time window and the
collection toggle around a single AnalysisBackend, and exposes a snapshot
of everything the presentation layer draws.

Architecture:
    - normalize(): pure derivation of the ViewModel from (result, variations)
    - TimeWindowController: validated window edits, re-fetch, navigation sync
    - CollectionToggle: enable/disable commands with a confirmation gate

Data flow:
    1. initialize() seeds the window from navigation and loads the analysis,
       iteration markers, targeting metadata and event info concurrently
    2. Each successful load stores its data and calls recompute()
    3. Window edits and completed collection commands trigger refresh()

Ordering:
    Fetches are never cancelled. Each fetch kind carries a sequence number and
    a response older than the last one applied for that kind is dropped, so the
    most recently issued request wins. Because recompute() always rebuilds the
    ViewModel from the stored (result, variations) pair, the view converges
    regardless of completion order. The result and the variations may still
    come from different refresh cycles; each is individually the newest.
"""

import asyncio
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Literal

from toggle_analysis.common.api_exceptions import AnalysisClientError
from toggle_analysis.common.logging import get_logger, set_scope
from toggle_analysis.common.models import (
    AnalysisBackend,
    AnalysisPanel,
    AnalysisResult,
    EventInfo,
    IterationMarker,
    ScopeKeys,
    TimeWindow,
    Variation,
    ViewModel,
)
from toggle_analysis.results.collection_toggle import CollectionToggle, ToggleOutcome
from toggle_analysis.results.event_labels import describe_event
from toggle_analysis.results.navigation import LocationNavigation, NavigationState
from toggle_analysis.results.normalizer import EMPTY_VIEW_MODEL, normalize
from toggle_analysis.results.notifications import NotificationLog, Notifier
from toggle_analysis.results.time_window import Clock, TimeWindowController

logger = get_logger(__name__)

FetchKind = Literal["analysis", "iterations", "targeting", "event"]


class AnalysisController:
    """Holds the latest analysis state for one scope and derives its view.

    Args:
        scope: Project, environment and toggle keys of the analysed toggle
        backend: Collaborator for fetches and collection commands
        navigation: Navigation state (default: in-process LocationNavigation)
        notifier: User-visible error surface (default: NotificationLog)
        clock: "now" provider used to validate window ends

    Example:
        >>> controller = AnalysisController(scope, backend)
        >>> await controller.initialize()
        >>> panel = controller.snapshot()
        >>> panel.view_model.has_data
        True
    """

    def __init__(
        self,
        scope: ScopeKeys,
        backend: AnalysisBackend,
        navigation: NavigationState | None = None,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.scope = scope
        self._backend = backend
        self._navigation = navigation or LocationNavigation(scope)
        self._notifier = notifier or NotificationLog()

        self._result: AnalysisResult | None = None
        self._variations: list[Variation] = []
        self._iterations: list[IterationMarker] = []
        self._event: EventInfo | None = None
        self._view_model: ViewModel = EMPTY_VIEW_MODEL

        self._issued: dict[FetchKind, int] = {
            "analysis": 0,
            "iterations": 0,
            "targeting": 0,
            "event": 0,
        }
        self._applied: dict[FetchKind, int] = dict(self._issued)

        self.time_window = TimeWindowController(self._navigation, self.refresh, clock)
        self.collection = CollectionToggle(
            scope, backend, self._notifier, on_committed=self._after_collection_change
        )

    @property
    def view_model(self) -> ViewModel:
        return self._view_model

    @property
    def result(self) -> AnalysisResult | None:
        return self._result

    @property
    def variations(self) -> list[Variation]:
        return list(self._variations)

    @property
    def iterations(self) -> list[IterationMarker]:
        return list(self._iterations)

    @property
    def window(self) -> TimeWindow | None:
        return self.time_window.window

    @property
    def navigation(self) -> NavigationState:
        return self._navigation

    async def initialize(self) -> None:
        """Load everything the panel shows, using the navigation window if present."""
        set_scope(str(self.scope))
        logger.info("Initializing analysis controller", {"window": self.window})
        await asyncio.gather(
            self.refresh(self.window),
            self.refresh_targeting(),
            self._load_event_info(),
        )

    async def refresh(self, window: TimeWindow | None = None) -> None:
        """Fetch the analysis for ``window`` and the iteration markers independently."""
        set_scope(str(self.scope))
        await asyncio.gather(self._load_analysis(window), self._load_iterations())

    async def refresh_targeting(self) -> None:
        """Reload variation metadata and the collection state from the targeting entity."""
        set_scope(str(self.scope))
        ticket = self._next_ticket("targeting")
        try:
            targeting = await self._backend.fetch_targeting(self.scope)
        except AnalysisClientError as e:
            self._log_fetch_failure("targeting", e)
            return
        if not self._accept("targeting", ticket):
            return

        self.on_metadata_change(targeting.variations)
        self.collection.sync(
            targeting.track_access_events, targeting.allow_enable_track_events
        )

    def on_metadata_change(self, variations: Sequence[Variation]) -> ViewModel:
        """Re-derive the view for new variation metadata against the stored result."""
        self._variations = list(variations)
        return self.recompute()

    def recompute(self) -> ViewModel:
        """Replace the view model with a fresh derivation of the stored state."""
        self._view_model = normalize(self._result, self._variations)
        return self._view_model

    async def open_location(self, params: Mapping[str, str]) -> bool:
        """Follow a link's ``start``/``end`` pair; ignored unless both are present."""
        start, end = params.get("start"), params.get("end")
        if not start or not end:
            return False
        return await self.time_window.follow_location(start, end)

    async def propose_start(self, candidate: str | datetime) -> bool:
        return await self.time_window.propose_start(candidate)

    async def propose_end(self, candidate: str | datetime) -> bool:
        return await self.time_window.propose_end(candidate)

    async def start_collection(self) -> ToggleOutcome:
        return await self.collection.request(True, self._view_model.has_data)

    async def stop_collection(self) -> ToggleOutcome:
        return await self.collection.request(False, self._view_model.has_data)

    async def confirm_stop(self) -> ToggleOutcome:
        return await self.collection.confirm()

    def cancel_stop(self) -> bool:
        return self.collection.cancel()

    def snapshot(self, drain_notifications: bool = True) -> AnalysisPanel:
        """Build the panel state for the presentation layer.

        Args:
            drain_notifications: Clear queued notifications once they are returned
        """
        notifications: list[str] = []
        if isinstance(self._notifier, NotificationLog):
            notifications = (
                self._notifier.drain() if drain_notifications else self._notifier.peek()
            )

        return AnalysisPanel(
            view_model=self._view_model,
            window=self.window,
            location=self._navigation.location,
            collection_enabled=self.collection.enabled,
            allow_enable_collection=self.collection.allow_enable,
            busy=self.collection.busy,
            confirmation_pending=self.collection.confirmation_pending,
            iterations=list(self._iterations),
            event=self._event,
            event_summary=describe_event(self._event),
            show_event_tip=self._event is None,
            notifications=notifications,
        )

    async def _after_collection_change(self) -> None:
        await asyncio.gather(self.refresh_targeting(), self.refresh(self.window))

    async def _load_analysis(self, window: TimeWindow | None) -> None:
        ticket = self._next_ticket("analysis")
        try:
            fetched = await self._backend.fetch_analysis(self.scope, window)
        except AnalysisClientError as e:
            self._log_fetch_failure("analysis", e)
            return
        if not self._accept("analysis", ticket):
            return

        self._result = fetched.data
        try:
            self.time_window.adopt(fetched.start, fetched.end)
        except ValueError:
            logger.warning(
                "Analysis response reported an unparseable window",
                {"start": fetched.start, "end": fetched.end},
            )
        self.recompute()
        logger.info(
            "Analysis applied",
            {"variations": len(fetched.data.entries), "window": self.window},
        )

    async def _load_iterations(self) -> None:
        ticket = self._next_ticket("iterations")
        try:
            iterations = await self._backend.fetch_iteration_markers(self.scope)
        except AnalysisClientError as e:
            self._log_fetch_failure("iterations", e)
            return
        if self._accept("iterations", ticket):
            self._iterations = list(iterations)

    async def _load_event_info(self) -> None:
        ticket = self._next_ticket("event")
        try:
            event = await self._backend.fetch_event_info(self.scope)
        except AnalysisClientError as e:
            self._log_fetch_failure("event", e)
            return
        if self._accept("event", ticket):
            self._event = event

    def _next_ticket(self, kind: FetchKind) -> int:
        self._issued[kind] += 1
        return self._issued[kind]

    def _accept(self, kind: FetchKind, ticket: int) -> bool:
        """Record ``ticket`` as applied unless a newer response already was."""
        if ticket < self._applied[kind]:
            logger.debug(
                "Discarding stale response",
                {"kind": kind, "ticket": ticket, "applied": self._applied[kind]},
            )
            return False
        self._applied[kind] = ticket
        return True

    def _log_fetch_failure(self, kind: FetchKind, error: AnalysisClientError) -> None:
        # Stale-but-consistent: the previous state stays on screen, no user notification.
        logger.warning(
            "Fetch failed, keeping previous state",
            {"kind": kind, "error": str(error), "type": type(error).__name__},
        )
