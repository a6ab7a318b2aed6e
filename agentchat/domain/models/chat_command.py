from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field
from enum import Enum

from .context_models import CursorState, DocumentReference, TriggerContext, UserIntent


class CommandKind(str, Enum):
    """Backend call shape selected for a request"""
    SEND_MESSAGE = "send_message"
    GENERATE_ASSISTANT_RESPONSE = "generate_assistant_response"


class ChatTriggerType(str, Enum):
    """How the turn was started"""
    MANUAL = "MANUAL"
    DIAGNOSTIC = "DIAGNOSTIC"
    INLINE_CHAT = "INLINE_CHAT"


class EnvState(BaseModel):
    """Client environment reported to the backend"""
    operating_system: str


class EditorDocument(BaseModel):
    """Active document as seen by the backend"""
    text: str = ""
    language: Optional[str] = None
    relative_path: str


class EditorState(BaseModel):
    """Editor snapshot plus the relevant documents of the turn"""
    cursor_state: Optional[CursorState] = None
    document: Optional[EditorDocument] = None
    relevant_documents: Optional[List[DocumentReference]] = Field(
        None, description="Omitted entirely when no context documents are present"
    )
    use_relevant_documents: bool = False
    workspace_folders: List[str] = Field(default_factory=list)


class UserInputMessageContext(BaseModel):
    """Everything sent alongside the user text"""
    editor_state: Optional[EditorState] = None
    tools: List[Dict[str, Any]] = Field(default_factory=list)
    env_state: Optional[EnvState] = None


class UserInputMessage(BaseModel):
    """The user message of the current turn"""
    content: str = ""
    user_input_message_context: UserInputMessageContext = Field(default_factory=UserInputMessageContext)
    user_intent: Optional[UserIntent] = None
    origin: str = "IDE"
    model_id: Optional[str] = None
    images: Optional[List[Dict[str, Any]]] = None


class ConversationState(BaseModel):
    """Conversation-level envelope of a request"""
    conversation_id: Optional[str] = None
    workspace_id: Optional[str] = None
    chat_trigger_type: ChatTriggerType = ChatTriggerType.MANUAL
    current_message: UserInputMessage
    history: List[Dict[str, Any]] = Field(default_factory=list)
    customization_id: Optional[str] = None


class ChatCommand(BaseModel):
    """Complete request payload; `kind` selects the downstream call shape"""
    kind: CommandKind = CommandKind.GENERATE_ASSISTANT_RESPONSE
    conversation_state: ConversationState
    profile_id: Optional[str] = None

    @property
    def relevant_documents(self) -> List[DocumentReference]:
        context = self.conversation_state.current_message.user_input_message_context
        if context.editor_state is None or context.editor_state.relevant_documents is None:
            return []
        return context.editor_state.relevant_documents

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for the transport, dropping unset fields and the discriminant"""
        return self.model_dump(mode="json", exclude_none=True, exclude={"kind"})


class TurnInput(BaseModel):
    """What the user submitted for one turn"""
    prompt: Optional[str] = Field(None, description="Text the user typed; sent to the backend")
    escaped_prompt: Optional[str] = Field(None, description="HTML-escaped prompt, used for display only")
    trigger_context: TriggerContext = Field(default_factory=TriggerContext)
    chat_trigger_type: ChatTriggerType = ChatTriggerType.MANUAL
    kind: CommandKind = CommandKind.GENERATE_ASSISTANT_RESPONSE
    conversation_id: Optional[str] = None
    history: List[Dict[str, Any]] = Field(default_factory=list)
    tools: List[Dict[str, Any]] = Field(default_factory=list)
    model_id: Optional[str] = None
    origin: Optional[str] = None
    images: Optional[List[Dict[str, Any]]] = None

    @property
    def text(self) -> str:
        if self.prompt is not None:
            return self.prompt
        return self.escaped_prompt or ""
