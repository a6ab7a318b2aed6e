from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from typing import Any, Dict, List, Optional, Set
import asyncio
import uuid
from datetime import datetime, timezone
import structlog

from .connection_manager import ConnectionManager
from .schema.events import EventType, ResponseEvent, UserMessage
from agentchat.domain.context.context_manager import ContextManager
from agentchat.domain.context.document_source import DocumentSourceAdapter
from agentchat.domain.context.memory.document_store import DocumentStore
from agentchat.domain.context.vector_index import VectorIndex, VectorIndexQueryClient
from agentchat.domain.errors import RequestCancelledError
from agentchat.domain.models.chat_command import TurnInput
from agentchat.domain.models.context_models import WorkspaceFolder
from agentchat.domain.models.session import SessionContext
from agentchat.domain.streaming.credentials import CredentialProvider, CredentialSource
from agentchat.domain.streaming.request_manager import RequestManager, StreamingTransport
from agentchat.infrastructure.config import AgentChatSettings
from agentchat.infrastructure.observability.logging import setup_logging

logger = structlog.get_logger(__name__)


class ChatSession:
    """Everything one WebSocket session needs to run turns"""

    def __init__(self, context: SessionContext, context_manager: ContextManager, request_manager: RequestManager):
        self.context = context
        self.context_manager = context_manager
        self.request_manager = request_manager
        self.turns: Set[asyncio.Task] = set()


def create_app(
    document_store: DocumentStore,
    vector_index: VectorIndex,
    transport: StreamingTransport,
    credential_source: CredentialSource,
    workspace_folders: Optional[List[WorkspaceFolder]] = None,
    settings: Optional[AgentChatSettings] = None
) -> FastAPI:
    """Build the chat WebSocket server around the given collaborators"""

    settings = settings or AgentChatSettings.from_env()
    setup_logging(settings.log_level, settings.log_format, settings.service_name)

    app = FastAPI(title="agentchat")
    connection_manager = ConnectionManager()
    sessions: Dict[str, ChatSession] = {}

    app.state.settings = settings
    app.state.connection_manager = connection_manager
    app.state.sessions = sessions

    def open_session(session_id: str) -> ChatSession:
        context = SessionContext(
            session_id=session_id,
            workspace_folders=list(workspace_folders or []),
            profile_id=settings.profile_id
        )
        context_manager = ContextManager(
            session=context,
            documents=DocumentSourceAdapter(document_store, platform=context.platform),
            vector_client=VectorIndexQueryClient(vector_index, max_chunk_size=settings.max_chunk_size),
            sink=connection_manager,
            max_context_entries=settings.max_context_entries,
            max_workspace_folders=settings.max_workspace_folders,
            default_origin=settings.origin
        )
        request_manager = RequestManager(
            transport=transport,
            credentials=CredentialProvider(credential_source, kind=settings.credential_kind),
            profile_id=settings.profile_id,
            session_id=session_id
        )
        return ChatSession(context, context_manager, request_manager)

    async def run_turn(session: ChatSession, message: UserMessage):
        session_id = session.context.session_id
        try:
            trigger_context = await session.context_manager.new_trigger_context(
                text_document_uri=message.text_document_uri,
                cursor_state=message.cursor_state,
                has_workspace=bool(message.has_workspace)
            )
            command = await session.context_manager.assemble(
                TurnInput(
                    prompt=message.content,
                    trigger_context=trigger_context,
                    model_id=message.model_id or settings.default_model_id
                ),
                message.attachments,
                has_workspace=message.has_workspace
            )
            handle = session.request_manager.generate_assistant_response(command)
            response = await handle

            await connection_manager.send_event(
                session_id,
                ResponseEvent(
                    session_id=session_id,
                    correlation_key=handle.correlation_key,
                    payload=_as_payload(response)
                )
            )

        except RequestCancelledError as e:
            logger.info("Turn cancelled", session_id=session_id, correlation_key=e.correlation_key)
        except Exception as e:
            logger.error("Error in turn processing", error=str(e), session_id=session_id)
            await connection_manager.send_error(session_id, str(e))

    def start_turn(session: ChatSession, message: UserMessage):
        task = asyncio.create_task(run_turn(session, message))
        session.turns.add(task)
        task.add_done_callback(session.turns.discard)

    @app.websocket("/ws/chat/{session_id}")
    async def chat_websocket(websocket: WebSocket, session_id: str):
        """Main WebSocket endpoint for chat turns"""

        try:
            uuid.UUID(session_id)
        except ValueError:
            await websocket.close(code=1008, reason="Invalid session ID format")
            return

        session = open_session(session_id)
        sessions[session_id] = session
        await connection_manager.connect(websocket, session_id)

        try:
            while True:
                data = await websocket.receive_json()

                try:
                    event_type = data.get("type")

                    if event_type == EventType.USER_MESSAGE:
                        start_turn(session, UserMessage(**data))

                    elif event_type == EventType.CANCEL:
                        session.request_manager.cancel_all()

                except Exception as e:
                    logger.error("Error processing message", error=str(e), session_id=session_id)
                    await connection_manager.send_error(
                        session_id,
                        f"Error processing message: {str(e)}"
                    )

        except WebSocketDisconnect:
            logger.info("Client disconnected", session_id=session_id)
        except Exception as e:
            logger.error("WebSocket error", error=str(e), session_id=session_id)
        finally:
            session.request_manager.cancel_all()
            for task in list(session.turns):
                task.cancel()
            sessions.pop(session_id, None)
            await connection_manager.disconnect(session_id)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "active_connections": len(connection_manager.active_connections),
            "inflight_requests": sum(s.request_manager.live_count for s in sessions.values()),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    return app


def _as_payload(response: Any) -> Dict[str, Any]:
    if isinstance(response, dict):
        return response
    if hasattr(response, "model_dump"):
        return response.model_dump(mode="json")
    return {"result": response}
