from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from agentchat.domain.errors import CredentialsUnavailableError, RequestCancelledError
from agentchat.domain.models.chat_command import (
    ChatCommand,
    CommandKind,
    ConversationState,
    UserInputMessage,
)
from agentchat.domain.models.request_models import RequestState
from agentchat.domain.streaming.cancellation import CancellationToken
from agentchat.domain.streaming.credentials import CredentialProvider
from agentchat.domain.streaming.request_manager import RequestManager
from agentchat.infrastructure.credentials import StaticCredentialSource

from conftest import FakeTransport


def make_command(content: str = "hello") -> ChatCommand:
    return ChatCommand(conversation_state=ConversationState(current_message=UserInputMessage(content=content)))


@pytest.mark.asyncio
async def test_cancel_all_cancels_each_request_exactly_once(request_manager, transport):
    first, second = MagicMock(), MagicMock()

    handle_a = request_manager.issue(make_command("a"), first)
    handle_b = request_manager.issue(make_command("b"), second)
    assert request_manager.live_count == 2

    assert request_manager.cancel_all() == 2

    assert request_manager.live_count == 0
    first.cancel.assert_called_once()
    second.cancel.assert_called_once()

    for handle in (handle_a, handle_b):
        with pytest.raises(RequestCancelledError):
            await handle
    assert transport.calls == []

    # nothing left to cancel
    assert request_manager.cancel_all() == 0
    first.cancel.assert_called_once()


@pytest.mark.asyncio
async def test_cancel_mid_flight_aborts_transport():
    transport = FakeTransport(blocking=True)
    manager = RequestManager(transport, CredentialProvider(StaticCredentialSource({"bearer": {"token": "t"}})))

    handle = manager.send_message(make_command())
    await asyncio.sleep(0)
    assert transport.started == 1

    handle.cancel()
    assert manager.live_count == 0

    with pytest.raises(RequestCancelledError) as excinfo:
        await handle
    assert excinfo.value.correlation_key == handle.correlation_key
    assert transport.aborted == 1


@pytest.mark.asyncio
async def test_cancel_after_settle_is_a_no_op(request_manager, transport):
    handle = request_manager.generate_assistant_response(make_command())

    assert await handle == {"message": "ok"}
    assert request_manager.live_count == 0

    handle.cancel()
    assert request_manager.cancel_all() == 0
    assert await handle == {"message": "ok"}


@pytest.mark.asyncio
async def test_transport_error_propagates_and_clears_live_set():
    transport = FakeTransport(error=RuntimeError("backend exploded"))
    manager = RequestManager(transport, CredentialProvider(StaticCredentialSource({"bearer": {"token": "t"}})))

    handle = manager.issue(make_command())

    with pytest.raises(RuntimeError, match="backend exploded"):
        await handle
    assert manager.live_count == 0
    assert manager.metrics.get_metrics_summary()["requests.failed"] == 1


@pytest.mark.asyncio
async def test_transport_error_after_cancel_is_reported_as_cancellation():
    class GivingUpTransport(FakeTransport):
        async def _call(self, name, payload, credentials, cancellation):
            try:
                await cancellation.wait()
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                raise ConnectionResetError("stream closed")

    token = CancellationToken()
    manager = RequestManager(GivingUpTransport(), CredentialProvider(StaticCredentialSource({"bearer": {"token": "t"}})))
    handle = manager.issue(make_command(), token)
    await asyncio.sleep(0)

    token.cancel("user stopped")

    with pytest.raises(RequestCancelledError):
        await handle
    assert manager.live_count == 0


@pytest.mark.asyncio
async def test_credentials_are_derived_for_every_call(request_manager, transport, credential_source):
    await request_manager.issue(make_command())
    credential_source.update("bearer", {"token": "token-two"})
    await request_manager.issue(make_command())

    assert [call[2].secret for call in transport.calls] == ["token-one", "token-two"]


@pytest.mark.asyncio
async def test_missing_credentials_fail_the_request(transport):
    manager = RequestManager(transport, CredentialProvider(StaticCredentialSource()))

    with pytest.raises(CredentialsUnavailableError):
        manager.issue(make_command())

    assert transport.calls == []
    assert manager.live_count == 0


@pytest.mark.asyncio
async def test_profile_id_is_added_to_payload(transport, credential_source):
    manager = RequestManager(transport, CredentialProvider(credential_source), profile_id="arn:profile/1")

    await manager.issue(make_command("hi"))

    _, payload, _ = transport.calls[0]
    assert payload["profile_id"] == "arn:profile/1"
    assert payload["conversation_state"]["current_message"]["content"] == "hi"


@pytest.mark.asyncio
async def test_call_shape_follows_command_kind(request_manager, transport):
    await request_manager.send_message(make_command())
    await request_manager.generate_assistant_response(make_command())
    await request_manager.issue(make_command().model_copy(update={"kind": CommandKind.SEND_MESSAGE}))

    assert [call[0] for call in transport.calls] == [
        "send_message", "generate_assistant_response", "send_message"
    ]


@pytest.mark.asyncio
async def test_targeted_cancel():
    transport = FakeTransport(blocking=True)
    manager = RequestManager(transport, CredentialProvider(StaticCredentialSource({"bearer": {"token": "t"}})))

    keep = manager.issue(make_command("keep"))
    drop = manager.issue(make_command("drop"))

    assert manager.cancel(drop.correlation_key) is True
    assert manager.cancel(drop.correlation_key) is False
    assert manager.live_keys() == [keep.correlation_key]

    transport.gate.set()
    assert await keep == {"message": "ok"}
    with pytest.raises(RequestCancelledError):
        await drop


@pytest.mark.asyncio
async def test_request_states_are_recorded(request_manager):
    handle = request_manager.issue(make_command())
    request = request_manager.inflight_requests[handle.correlation_key]
    assert request.state == RequestState.REGISTERED
    assert request.created_at.tzinfo is not None

    await handle

    assert request.state == RequestState.SETTLED_OK


@pytest.mark.asyncio
async def test_cancellation_token_is_shared_not_wrapped(request_manager):
    token = CancellationToken()

    handle = request_manager.issue(make_command(), token)
    token.cancel()

    assert handle.cancelled
    assert request_manager.live_count == 0
    with pytest.raises(RequestCancelledError):
        await handle


@pytest.mark.asyncio
async def test_shared_token_holds_no_callbacks_after_requests_settle(request_manager):
    token = CancellationToken()

    handles = [request_manager.issue(make_command(str(i)), token) for i in range(50)]
    assert token.pending_callbacks == 50

    await asyncio.gather(*handles)
    await asyncio.sleep(0)

    assert token.pending_callbacks == 0
    assert request_manager.live_count == 0
    assert not token.cancelled


def test_issue_without_running_loop_registers_nothing(request_manager, transport):
    with pytest.raises(RuntimeError):
        request_manager.issue(make_command())

    assert request_manager.live_count == 0
    assert transport.calls == []
