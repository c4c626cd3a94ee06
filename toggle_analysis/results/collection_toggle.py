"""Collection toggle state machine.

Mirrors whether access events are tracked for a toggle and requests changes.
The authoritative state lives with the targeting entity: a successful command
does not flip the local state, the caller re-syncs it after refreshing.

Stopping collection once results exist breaks the continuity of the analysed
window, so that transition is held until the user confirms it.

Dependencies:
    - toggle_analysis.common.models: AnalysisBackend, ScopeKeys
    - toggle_analysis.results.notifications: Notifier for command failures
"""

from collections.abc import Awaitable, Callable
from typing import Literal

from toggle_analysis.common.api_exceptions import AnalysisClientError
from toggle_analysis.common.logging import get_logger
from toggle_analysis.common.models import AnalysisBackend, ScopeKeys
from toggle_analysis.results.notifications import OPERATION_FAILED_MESSAGE, Notifier

logger = get_logger(__name__)

ToggleOutcome = Literal["issued", "confirmation_required", "ignored", "failed"]
CommittedCallback = Callable[[], Awaitable[None]]


class CollectionToggle:
    """State machine over {enabled, disabled} with a confirmation gate on stop.

    Only one command may be in flight at a time; requests made while ``busy``
    is set are ignored.
    """

    def __init__(
        self,
        scope: ScopeKeys,
        backend: AnalysisBackend,
        notifier: Notifier,
        on_committed: CommittedCallback | None = None,
        enabled: bool = False,
        allow_enable: bool = True,
    ) -> None:
        self._scope = scope
        self._backend = backend
        self._notifier = notifier
        self._on_committed = on_committed
        self._enabled = enabled
        self._allow_enable = allow_enable
        self._busy = False
        self._confirmation_pending = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def allow_enable(self) -> bool:
        return self._allow_enable

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def confirmation_pending(self) -> bool:
        return self._confirmation_pending

    def sync(self, enabled: bool, allow_enable: bool | None = None) -> None:
        """Mirror the collection state reported by the targeting entity."""
        self._enabled = enabled
        if allow_enable is not None:
            self._allow_enable = allow_enable
        if not enabled:
            self._confirmation_pending = False

    async def request(self, target: bool, has_data: bool) -> ToggleOutcome:
        """Request a transition to ``target``.

        Args:
            target: True to start collecting events, False to stop
            has_data: Whether the current view model holds results

        Returns:
            "issued" if a command was sent and succeeded, "failed" if it was
            sent and failed, "confirmation_required" if stopping must be
            confirmed first, or "ignored" if the request does not apply now
        """
        if self._busy or self._confirmation_pending or target == self._enabled:
            return "ignored"

        if target:
            if not self._allow_enable:
                logger.debug("Start collection ignored: enabling not allowed")
                return "ignored"
            return await self._issue(True)

        if has_data:
            self._confirmation_pending = True
            logger.info("Stop collection awaiting confirmation", {"scope": str(self._scope)})
            return "confirmation_required"

        return await self._issue(False)

    async def confirm(self) -> ToggleOutcome:
        """Send the disable command withheld by the confirmation gate."""
        if not self._confirmation_pending or self._busy:
            return "ignored"
        self._confirmation_pending = False
        return await self._issue(False)

    def cancel(self) -> bool:
        """Dismiss a pending confirmation. The state stays enabled and nothing is sent.

        Returns:
            True if a confirmation was pending
        """
        was_pending = self._confirmation_pending
        self._confirmation_pending = False
        return was_pending

    async def _issue(self, desired: bool) -> ToggleOutcome:
        self._busy = True
        try:
            try:
                success = await self._backend.request_collection_state(self._scope, desired)
            except AnalysisClientError as e:
                logger.error(
                    "Collection command failed",
                    {"desired": desired, "error": str(e), "type": type(e).__name__},
                )
                success = False

            if not success:
                self._notifier.error(OPERATION_FAILED_MESSAGE)
                return "failed"

            logger.info("Collection command accepted", {"desired": desired})
            if self._on_committed is not None:
                await self._on_committed()
            return "issued"
        finally:
            self._busy = False
