from typing import Dict, Any, List, Optional, Protocol
import asyncio
import time
import uuid
import structlog

from agentchat.domain.errors import RequestCancelledError
from agentchat.domain.models.chat_command import ChatCommand, CommandKind
from agentchat.domain.models.request_models import (
    CredentialSnapshot, InflightRequest, RequestState
)
from agentchat.infrastructure.observability.logging import MetricsCollector, context_logger
from .cancellation import Cancellable, CancellationToken
from .credentials import CredentialProvider

logger = structlog.get_logger(__name__)


class StreamingTransport(Protocol):
    """Client that talks to the backend; retries, TLS and pooling live there"""

    async def send_message(
        self,
        payload: Dict[str, Any],
        credentials: CredentialSnapshot,
        cancellation: CancellationToken
    ) -> Any:
        ...

    async def generate_assistant_response(
        self,
        payload: Dict[str, Any],
        credentials: CredentialSnapshot,
        cancellation: CancellationToken
    ) -> Any:
        ...


class ResponseHandle:
    """Awaitable result of an issued request, plus its cancellation handle"""

    def __init__(self, correlation_key: str, task: "asyncio.Task[Any]", cancellation: CancellationToken):
        self.correlation_key = correlation_key
        self._task = task
        self._cancellation = cancellation

    def cancel(self) -> None:
        self._cancellation.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancellation.cancelled

    def done(self) -> bool:
        return self._task.done()

    async def result(self) -> Any:
        try:
            return await self._task
        except asyncio.CancelledError:
            # Only translate when it is our request that was cancelled, not the awaiting task
            if self._task.cancelled() and self._cancellation.cancelled:
                raise RequestCancelledError(self.correlation_key, self._cancellation.reason) from None
            raise

    def __await__(self):
        return self.result().__await__()


class RequestManager:
    """Issues backend calls and keeps track of the ones still in flight.

    Registration and removal never span an await, so ``cancel_all()`` sees
    every request either registered or already gone. Cancelling fires the
    request's token and drops it from the live set straight away; the transport
    is not waited on.
    """

    def __init__(
        self,
        transport: StreamingTransport,
        credentials: CredentialProvider,
        profile_id: Optional[str] = None,
        session_id: Optional[str] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.transport = transport
        self.credentials = credentials
        self.profile_id = profile_id
        self.session_id = session_id
        self.metrics = metrics or MetricsCollector()
        self.inflight_requests: Dict[str, InflightRequest] = {}

    @property
    def live_count(self) -> int:
        return len(self.inflight_requests)

    def live_keys(self) -> List[str]:
        return list(self.inflight_requests.keys())

    def send_message(self, command: ChatCommand, cancellation: Optional[Cancellable] = None) -> ResponseHandle:
        """Single-turn call shape"""
        return self.issue(command.model_copy(update={"kind": CommandKind.SEND_MESSAGE}), cancellation)

    def generate_assistant_response(
        self,
        command: ChatCommand,
        cancellation: Optional[Cancellable] = None
    ) -> ResponseHandle:
        """Multi-turn call shape"""
        return self.issue(
            command.model_copy(update={"kind": CommandKind.GENERATE_ASSISTANT_RESPONSE}),
            cancellation
        )

    def issue(self, command: ChatCommand, cancellation: Optional[Cancellable] = None) -> ResponseHandle:
        """Register a request and start transmitting it; must be called with a running loop.

        Credentials are derived first, so a missing credential raises here and
        nothing is registered.
        """

        loop = asyncio.get_running_loop()
        credentials = self.credentials.derive()
        token = CancellationToken.linked_to(cancellation) if cancellation is not None else CancellationToken()
        request = InflightRequest(
            correlation_key=uuid.uuid4().hex,
            kind=command.kind,
            cancellation=token
        )

        self._register(request)
        task = loop.create_task(self._run(request, command, credentials))

        def on_cancel() -> None:
            self._unregister(request, RequestState.CANCELLED)
            task.cancel()

        token.add_callback(on_cancel)
        # A caller may share one token across many requests
        task.add_done_callback(lambda _: token.remove_callback(on_cancel))

        return ResponseHandle(request.correlation_key, task, token)

    def cancel(self, correlation_key: str) -> bool:
        """Cancel one request; returns False when it is no longer live"""

        request = self.inflight_requests.get(correlation_key)
        if request is None:
            return False
        request.cancel()
        return True

    def cancel_all(self) -> int:
        """Cancel every live request and empty the live set"""

        requests = list(self.inflight_requests.values())
        self.inflight_requests.clear()

        for request in requests:
            self._transition(request, RequestState.CANCELLED)
            request.cancel()

        if requests:
            logger.info("Cancelled in-flight requests", count=len(requests), session_id=self.session_id)
            self.metrics.increment_counter("requests.cancelled", len(requests))

        return len(requests)

    async def _run(self, request: InflightRequest, command: ChatCommand, credentials: CredentialSnapshot) -> Any:
        started = time.monotonic()

        with structlog.contextvars.bound_contextvars(correlation_key=request.correlation_key):
            try:
                if request.cancellation.cancelled:
                    raise RequestCancelledError(request.correlation_key, request.cancellation.reason)

                payload = command.to_payload()
                if self.profile_id and "profile_id" not in payload:
                    payload["profile_id"] = self.profile_id

                response = await self._transmit(command.kind, payload, credentials, request.cancellation)

                self._unregister(request, RequestState.SETTLED_OK)
                self.metrics.record_latency(command.kind.value, (time.monotonic() - started) * 1000)
                return response

            except asyncio.CancelledError:
                self._unregister(request, RequestState.CANCELLED)
                raise

            except RequestCancelledError:
                self._unregister(request, RequestState.CANCELLED)
                raise

            except Exception as e:
                if request.cancellation.cancelled:
                    # transport gave up because we told it to
                    self._unregister(request, RequestState.CANCELLED)
                    raise RequestCancelledError(request.correlation_key, request.cancellation.reason) from e

                self._unregister(request, RequestState.SETTLED_ERROR, error=str(e))
                logger.error("Request failed", kind=command.kind.value, error=str(e))
                self.metrics.increment_counter("requests.failed")
                raise

            finally:
                self._unregister(request, RequestState.SETTLED_ERROR)

    async def _transmit(
        self,
        kind: CommandKind,
        payload: Dict[str, Any],
        credentials: CredentialSnapshot,
        cancellation: CancellationToken
    ) -> Any:
        if kind == CommandKind.SEND_MESSAGE:
            return await self.transport.send_message(payload, credentials, cancellation)
        return await self.transport.generate_assistant_response(payload, credentials, cancellation)

    def _register(self, request: InflightRequest) -> None:
        self.inflight_requests[request.correlation_key] = request
        self._transition(request, RequestState.REGISTERED)
        self.metrics.increment_counter("requests.issued")

    def _unregister(self, request: InflightRequest, state: RequestState, error: Optional[str] = None) -> bool:
        """Drop the request from the live set and settle it; no-op after the first call"""

        self._transition(request, state, error)
        removed = self.inflight_requests.pop(request.correlation_key, None)
        return removed is not None

    def _transition(self, request: InflightRequest, state: RequestState, error: Optional[str] = None) -> None:
        previous = request.state
        request.transition(state)
        if request.state != previous:
            context_logger.log_request_transition(
                correlation_key=request.correlation_key,
                from_state=previous.value,
                to_state=request.state.value,
                session_id=self.session_id,
                error=error
            )
