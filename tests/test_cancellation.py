from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from agentchat.domain.streaming.cancellation import CancellationToken


def test_cancel_runs_callbacks_once():
    token = CancellationToken()
    callback = MagicMock()
    token.add_callback(callback)

    token.cancel("stop")
    token.cancel("again")

    callback.assert_called_once()
    assert token.cancelled
    assert token.reason == "stop"


def test_callback_added_after_cancel_runs_immediately():
    token = CancellationToken()
    token.cancel()
    callback = MagicMock()

    token.add_callback(callback)

    callback.assert_called_once()


def test_failing_callback_does_not_stop_the_others():
    token = CancellationToken()
    survivor = MagicMock()
    token.add_callback(MagicMock(side_effect=RuntimeError("boom")))
    token.add_callback(survivor)

    token.cancel()

    survivor.assert_called_once()


def test_linked_token_forwards_to_external_handle():
    handle = MagicMock()
    token = CancellationToken.linked_to(handle)

    token.cancel()
    token.cancel()

    handle.cancel.assert_called_once()


def test_linking_a_token_returns_it_unchanged():
    token = CancellationToken()

    assert CancellationToken.linked_to(token) is token


@pytest.mark.asyncio
async def test_wait_returns_once_cancelled():
    token = CancellationToken()
    waiter = asyncio.create_task(token.wait())
    await asyncio.sleep(0)
    assert not waiter.done()

    token.cancel()

    await asyncio.wait_for(waiter, timeout=1)


@pytest.mark.asyncio
async def test_wait_on_cancelled_token_returns_immediately():
    token = CancellationToken()
    token.cancel()

    await asyncio.wait_for(token.wait(), timeout=1)


def test_removed_callback_is_not_run():
    token = CancellationToken()
    callback = MagicMock()
    token.add_callback(callback)

    token.remove_callback(callback)
    token.remove_callback(callback)
    token.cancel()

    callback.assert_not_called()
    assert token.pending_callbacks == 0
