"""Analysed time window with validated edits.

Edits are soft-constrained: a proposal that would break the window (start not
before end, or end not in the past) is ignored without raising, and the caller
re-presents the previous values.

Every accepted edit re-fetches with the whole window, even though only one
bound moved, and mirrors it into the navigation query parameters.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime

from toggle_analysis.common.logging import get_logger
from toggle_analysis.common.models import TimeWindow
from toggle_analysis.common.timestamps import parse_timestamp, to_local_naive
from toggle_analysis.results.navigation import NavigationState

logger = get_logger(__name__)

Clock = Callable[[], datetime]
RefetchCallback = Callable[[TimeWindow], Awaitable[None]]


class TimeWindowController:
    """Owns the committed analysis window.

    Args:
        navigation: Navigation state used for initial seeding and mirroring
        refetch: Awaited with the full window after every accepted edit
        clock: Returns "now" as a naive local datetime (default: datetime.now)
    """

    def __init__(
        self,
        navigation: NavigationState,
        refetch: RefetchCallback,
        clock: Clock | None = None,
    ) -> None:
        self._navigation = navigation
        self._refetch = refetch
        self._clock = clock or datetime.now
        self._window: TimeWindow | None = self._window_from_navigation()

    @property
    def window(self) -> TimeWindow | None:
        return self._window

    def _window_from_navigation(self) -> TimeWindow | None:
        params = self._navigation.read_params()
        start, end = params.get("start"), params.get("end")
        if not start or not end:
            return None
        try:
            return TimeWindow(start=start, end=end)
        except ValueError:
            logger.warning(
                "Ignoring unparseable window in navigation state", {"start": start, "end": end}
            )
            return None

    def adopt(self, start: str | datetime, end: str | datetime) -> TimeWindow:
        """Replace the window with the one a fetch response reported.

        The server's window is authoritative after any fetch. Navigation state
        is left untouched.
        """
        self._window = TimeWindow(start=start, end=end)
        return self._window

    async def follow_location(self, start: str, end: str) -> bool:
        """Commit the window of a link whose bounds differ from the mirrored location.

        Opening the location that is already mirrored is a no-op, so repeated
        requests for the same link do not re-fetch.

        Returns:
            True if the link's window was committed, False if it was ignored
        """
        try:
            requested = TimeWindow(start=start, end=end)
        except ValueError:
            logger.warning("Ignoring unparseable window in link", {"start": start, "end": end})
            return False
        if requested == self._window_from_navigation():
            return False

        await self._commit(requested)
        return True

    async def propose_start(self, candidate: str | datetime) -> bool:
        """Commit ``candidate`` as the new start if it precedes the current end.

        Returns:
            True if the proposal was committed, False if it was ignored
        """
        if self._window is None:
            return False
        parsed = _parse_candidate(candidate)
        if parsed is None or not parsed < self._window.end_at:
            logger.debug("Start proposal ignored", {"candidate": str(candidate)})
            return False

        await self._commit(TimeWindow(start=parsed, end=self._window.end))
        return True

    async def propose_end(self, candidate: str | datetime) -> bool:
        """Commit ``candidate`` as the new end if it is strictly before now.

        A candidate that does not follow the current start is ignored as well,
        so a committed window never inverts.

        Returns:
            True if the proposal was committed, False if it was ignored
        """
        if self._window is None:
            return False
        parsed = _parse_candidate(candidate)
        if (
            parsed is None
            or not parsed < to_local_naive(self._clock())
            or not self._window.start_at < parsed
        ):
            logger.debug("End proposal ignored", {"candidate": str(candidate)})
            return False

        await self._commit(TimeWindow(start=self._window.start, end=parsed))
        return True

    async def _commit(self, window: TimeWindow) -> None:
        self._window = window
        self._navigation.write_params(window.as_params())
        logger.info("Analysis window committed", window.as_params())
        await self._refetch(window)


def _parse_candidate(candidate: str | datetime) -> datetime | None:
    if not isinstance(candidate, (str, datetime)):
        return None
    try:
        return parse_timestamp(candidate)
    except (TypeError, ValueError):
        return None

