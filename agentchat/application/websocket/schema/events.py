from typing import Dict, Any, Optional, List, Literal
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from enum import Enum

from agentchat.domain.models.advisory import AdvisoryPayload
from agentchat.domain.models.context_models import AdditionalContextItem, CursorState


class EventType(str, Enum):
    """WebSocket event types"""
    ADVISORY = "advisory"
    RESPONSE = "response"
    ERROR = "error"
    CONNECTION = "connection"
    USER_MESSAGE = "user_message"
    CANCEL = "cancel"


class BaseEvent(BaseModel):
    """Base event model for all WebSocket messages"""
    type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: Optional[str] = None


class AdvisoryEvent(BaseEvent):
    """One-shot advisory shown in place of an answer block"""
    type: Literal[EventType.ADVISORY] = EventType.ADVISORY
    payload: AdvisoryPayload


class ResponseEvent(BaseEvent):
    """Backend response for a request issued on behalf of the session"""
    type: Literal[EventType.RESPONSE] = EventType.RESPONSE
    correlation_key: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class ErrorEvent(BaseEvent):
    """Error event"""
    type: Literal[EventType.ERROR] = EventType.ERROR
    payload: Dict[str, Any]
    error_code: Optional[str] = None


class ConnectionEvent(BaseEvent):
    """Connection status event"""
    type: Literal[EventType.CONNECTION] = EventType.CONNECTION
    status: Literal["connected", "disconnected", "reconnecting"]


class UserMessage(BaseEvent):
    """User message event"""
    type: Literal[EventType.USER_MESSAGE] = EventType.USER_MESSAGE
    content: str
    text_document_uri: Optional[str] = None
    cursor_state: Optional[CursorState] = None
    attachments: List[AdditionalContextItem] = Field(default_factory=list)
    has_workspace: Optional[bool] = None
    model_id: Optional[str] = None


class CancelEvent(BaseEvent):
    """Request from the client to stop everything in flight"""
    type: Literal[EventType.CANCEL] = EventType.CANCEL
