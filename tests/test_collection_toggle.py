"""Tests for the collection toggle state machine."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from toggle_analysis.common.api_exceptions import TransientError
from toggle_analysis.results.collection_toggle import CollectionToggle
from toggle_analysis.results.notifications import OPERATION_FAILED_MESSAGE, NotificationLog


@pytest.fixture
def notifier() -> NotificationLog:
    return NotificationLog()


@pytest.fixture
def toggle_backend() -> MagicMock:
    backend = MagicMock()
    backend.request_collection_state = AsyncMock(return_value=True)
    return backend


def _toggle(scope, backend, notifier, enabled=False, allow_enable=True, on_committed=None):
    return CollectionToggle(
        scope,
        backend,
        notifier,
        on_committed=on_committed,
        enabled=enabled,
        allow_enable=allow_enable,
    )


class TestStartCollection:
    """Tests for enabling collection."""

    @pytest.mark.asyncio
    async def test_start_issues_command(self, scope, toggle_backend, notifier) -> None:
        on_committed = AsyncMock()
        toggle = _toggle(scope, toggle_backend, notifier, on_committed=on_committed)

        outcome = await toggle.request(True, has_data=False)

        assert outcome == "issued"
        toggle_backend.request_collection_state.assert_awaited_once_with(scope, True)
        on_committed.assert_awaited_once()
        assert toggle.busy is False

    @pytest.mark.asyncio
    async def test_start_never_requires_confirmation(
        self, scope, toggle_backend, notifier
    ) -> None:
        """Starting is issued directly even when results exist."""
        toggle = _toggle(scope, toggle_backend, notifier)

        assert await toggle.request(True, has_data=True) == "issued"
        assert toggle.confirmation_pending is False

    @pytest.mark.asyncio
    async def test_success_does_not_flip_local_state(
        self, scope, toggle_backend, notifier
    ) -> None:
        """The enabled flag only changes when the targeting state is re-synced."""
        toggle = _toggle(scope, toggle_backend, notifier)

        await toggle.request(True, has_data=False)
        assert toggle.enabled is False

        toggle.sync(True)
        assert toggle.enabled is True

    @pytest.mark.asyncio
    async def test_start_ignored_when_enabling_not_allowed(
        self, scope, toggle_backend, notifier
    ) -> None:
        toggle = _toggle(scope, toggle_backend, notifier, allow_enable=False)

        assert await toggle.request(True, has_data=False) == "ignored"
        toggle_backend.request_collection_state.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_request_for_current_state_is_ignored(
        self, scope, toggle_backend, notifier
    ) -> None:
        toggle = _toggle(scope, toggle_backend, notifier, enabled=True)

        assert await toggle.request(True, has_data=False) == "ignored"
        toggle_backend.request_collection_state.assert_not_awaited()


class TestStopCollection:
    """Tests for disabling collection and its confirmation gate."""

    @pytest.mark.asyncio
    async def test_stop_without_data_issues_immediately(
        self, scope, toggle_backend, notifier
    ) -> None:
        toggle = _toggle(scope, toggle_backend, notifier, enabled=True)

        assert await toggle.request(False, has_data=False) == "issued"
        toggle_backend.request_collection_state.assert_awaited_once_with(scope, False)

    @pytest.mark.asyncio
    async def test_stop_with_data_requires_confirmation(
        self, scope, toggle_backend, notifier
    ) -> None:
        """No command is sent until the stop is confirmed."""
        toggle = _toggle(scope, toggle_backend, notifier, enabled=True)

        outcome = await toggle.request(False, has_data=True)

        assert outcome == "confirmation_required"
        assert toggle.confirmation_pending is True
        assert toggle.enabled is True
        toggle_backend.request_collection_state.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_confirm_sends_disable(self, scope, toggle_backend, notifier) -> None:
        toggle = _toggle(scope, toggle_backend, notifier, enabled=True)
        await toggle.request(False, has_data=True)

        outcome = await toggle.confirm()

        assert outcome == "issued"
        assert toggle.confirmation_pending is False
        toggle_backend.request_collection_state.assert_awaited_once_with(scope, False)

    @pytest.mark.asyncio
    async def test_cancel_keeps_collection_enabled(self, scope, toggle_backend, notifier) -> None:
        toggle = _toggle(scope, toggle_backend, notifier, enabled=True)
        await toggle.request(False, has_data=True)

        assert toggle.cancel() is True

        assert toggle.enabled is True
        assert toggle.confirmation_pending is False
        toggle_backend.request_collection_state.assert_not_awaited()

    def test_cancel_without_pending_confirmation(self, scope, toggle_backend, notifier) -> None:
        toggle = _toggle(scope, toggle_backend, notifier, enabled=True)

        assert toggle.cancel() is False

    @pytest.mark.asyncio
    async def test_confirm_without_pending_is_ignored(
        self, scope, toggle_backend, notifier
    ) -> None:
        toggle = _toggle(scope, toggle_backend, notifier, enabled=True)

        assert await toggle.confirm() == "ignored"
        toggle_backend.request_collection_state.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_requests_ignored_while_confirmation_pending(
        self, scope, toggle_backend, notifier
    ) -> None:
        toggle = _toggle(scope, toggle_backend, notifier, enabled=True)
        await toggle.request(False, has_data=True)

        assert await toggle.request(False, has_data=True) == "ignored"
        assert toggle.confirmation_pending is True

    def test_sync_to_disabled_clears_pending_confirmation(
        self, scope, toggle_backend, notifier
    ) -> None:
        toggle = _toggle(scope, toggle_backend, notifier, enabled=True)
        toggle._confirmation_pending = True

        toggle.sync(False)

        assert toggle.confirmation_pending is False


class TestFailures:
    """Tests for command failures and the single in-flight command rule."""

    @pytest.mark.asyncio
    async def test_unsuccessful_response_notifies(self, scope, toggle_backend, notifier) -> None:
        toggle_backend.request_collection_state.return_value = False
        on_committed = AsyncMock()
        toggle = _toggle(scope, toggle_backend, notifier, on_committed=on_committed)

        outcome = await toggle.request(True, has_data=False)

        assert outcome == "failed"
        assert notifier.drain() == [OPERATION_FAILED_MESSAGE]
        assert toggle.enabled is False
        assert toggle.busy is False
        on_committed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_client_error_notifies(self, scope, toggle_backend, notifier) -> None:
        toggle_backend.request_collection_state.side_effect = TransientError("connection reset")
        toggle = _toggle(scope, toggle_backend, notifier, enabled=True)

        outcome = await toggle.request(False, has_data=False)

        assert outcome == "failed"
        assert notifier.peek() == [OPERATION_FAILED_MESSAGE]
        assert toggle.enabled is True
        assert toggle.busy is False

    @pytest.mark.asyncio
    async def test_failure_after_confirmation_notifies(
        self, scope, toggle_backend, notifier
    ) -> None:
        toggle_backend.request_collection_state.return_value = False
        toggle = _toggle(scope, toggle_backend, notifier, enabled=True)
        await toggle.request(False, has_data=True)

        assert await toggle.confirm() == "failed"
        assert notifier.drain() == [OPERATION_FAILED_MESSAGE]
        assert toggle.enabled is True

    @pytest.mark.asyncio
    async def test_second_request_ignored_while_busy(
        self, scope, toggle_backend, notifier
    ) -> None:
        """A request made while a command is in flight is not sent."""
        release = asyncio.Event()

        async def slow_command(scope, desired):
            await release.wait()
            return True

        toggle_backend.request_collection_state = AsyncMock(side_effect=slow_command)
        toggle = _toggle(scope, toggle_backend, notifier)

        first = asyncio.create_task(toggle.request(True, has_data=False))
        await asyncio.sleep(0)
        assert toggle.busy is True

        assert await toggle.request(True, has_data=False) == "ignored"

        release.set()
        assert await first == "issued"
        assert toggle.busy is False
        assert toggle_backend.request_collection_state.await_count == 1
