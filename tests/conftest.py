"""Shared pytest fixtures and fakes for the external collaborators."""

from __future__ import annotations

import asyncio
from typing import Any, Sequence

import pytest

from agentchat.domain.context.context_manager import ContextManager
from agentchat.domain.context.document_source import DocumentSourceAdapter
from agentchat.domain.context.memory.document_store import InMemoryDocumentStore
from agentchat.domain.context.vector_index import Chunk, VectorIndexQueryClient
from agentchat.domain.models.context_models import WorkspaceFolder
from agentchat.domain.models.session import SessionContext
from agentchat.domain.streaming.credentials import CredentialProvider
from agentchat.domain.streaming.request_manager import RequestManager
from agentchat.infrastructure.credentials import StaticCredentialSource


class FakeVectorIndex:
    def __init__(self, chunks: Sequence[Chunk] | None = None, enabled: bool = True, error: Exception | None = None):
        self.chunks = list(chunks or [])
        self.enabled = enabled
        self.error = error
        self.queries: list[str] = []

    def is_indexing_enabled(self) -> bool:
        return self.enabled

    async def query_vector_index(self, query: str):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.chunks


class RecordingSink:
    def __init__(self):
        self.events: list[tuple[str, Any]] = []

    async def send_advisory(self, session_id, advisory) -> bool:
        self.events.append((session_id, advisory))
        return True


class FakeTransport:
    """Transport whose calls can be held open with `gate` and made to fail with `error`."""

    def __init__(self, response: Any = None, error: Exception | None = None, blocking: bool = False):
        self.response = response if response is not None else {"message": "ok"}
        self.error = error
        self.blocking = blocking
        self.calls: list[tuple[str, dict, Any]] = []
        self.started = 0
        self.aborted = 0
        self._gate: asyncio.Event | None = None

    @property
    def gate(self) -> asyncio.Event:
        if self._gate is None:
            self._gate = asyncio.Event()
        return self._gate

    async def _call(self, name, payload, credentials, cancellation):
        self.calls.append((name, payload, credentials))
        self.started += 1
        try:
            if self.blocking:
                await self.gate.wait()
        except asyncio.CancelledError:
            self.aborted += 1
            raise
        if self.error is not None:
            raise self.error
        return self.response

    async def send_message(self, payload, credentials, cancellation):
        return await self._call("send_message", payload, credentials, cancellation)

    async def generate_assistant_response(self, payload, credentials, cancellation):
        return await self._call("generate_assistant_response", payload, credentials, cancellation)


@pytest.fixture
def workspace_folder() -> WorkspaceFolder:
    return WorkspaceFolder(uri="file:///home/user/project", name="project")


@pytest.fixture
def session(workspace_folder) -> SessionContext:
    return SessionContext(
        session_id="7f1c2f5e-0000-4000-8000-000000000001",
        workspace_folders=[workspace_folder],
        platform="linux",
    )


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def vector_index() -> FakeVectorIndex:
    return FakeVectorIndex()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def context_manager(session, document_store, vector_index, sink) -> ContextManager:
    return ContextManager(
        session=session,
        documents=DocumentSourceAdapter(document_store, platform="linux"),
        vector_client=VectorIndexQueryClient(vector_index),
        sink=sink,
    )


@pytest.fixture
def credential_source() -> StaticCredentialSource:
    return StaticCredentialSource({"bearer": {"token": "token-one"}})


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def request_manager(transport, credential_source) -> RequestManager:
    return RequestManager(
        transport=transport,
        credentials=CredentialProvider(credential_source),
        session_id="7f1c2f5e-0000-4000-8000-000000000001",
    )
