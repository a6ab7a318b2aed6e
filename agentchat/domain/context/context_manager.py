from typing import Dict, List, Any, Optional
import os
import posixpath
import re
import structlog

from agentchat.domain.models.context_models import (
    ActiveDocument, AdditionalContextItem, ContentType, ContextBundle, CursorState,
    DocumentReference, TriggerContext, UserIntent,
    ADDITIONAL_CONTEXT_MAX_LENGTH, MAX_WORKSPACE_FOLDERS
)
from agentchat.domain.models.chat_command import (
    ChatCommand, ChatTriggerType, CommandKind, ConversationState, EditorDocument,
    EditorState, EnvState, TurnInput, UserInputMessage, UserInputMessageContext
)
from agentchat.domain.models.session import SessionContext
from agentchat.infrastructure.observability.logging import context_logger
from .document_source import DocumentSourceAdapter
from .languages import language_for_path
from .vector_index import AdvisorySink, VectorIndexQueryClient
from .workspace import (
    find_workspace_root_folder, get_relative_path, get_relative_path_with_workspace_folder,
    path_to_file_uri, uri_to_path
)

logger = structlog.get_logger(__name__)


DEFAULT_CURSOR_STATE = CursorState(line=0, character=0)

# Characters of the active document sent around the cursor
ACTIVE_DOCUMENT_MAX_CHARS = 10_000

COMPACTION_PROMPT = (
    "Summarize the conversation so far into a compact brief that keeps every decision, "
    "open task, file path and code identifier needed to continue the work. "
    "Do not add new information."
)

_BOLD_SAGE = re.compile(r"\*\*@sage\*\*")
_BOLD_WORKSPACE = re.compile(r"\*\*@workspace\*\*")

_ATTACHMENT_TYPES = {
    "file": ContentType.FILE,
    "rule": ContentType.PROMPT,
    "prompt": ContentType.PROMPT,
    "code": ContentType.CODE,
}

_OPERATING_SYSTEMS = {
    "darwin": "macos",
    "linux": "linux",
    "win32": "windows",
    "cygwin": "windows",
}


def normalize_prompt(text: Optional[str], has_workspace: bool) -> str:
    """Undo markdown the chat UI adds around mentions and drop the @workspace marker"""

    text = text or ""

    if "@sage" in text:
        text = _BOLD_SAGE.sub("@sage", text)

    if has_workspace:
        text = _BOLD_WORKSPACE.sub("", text, count=1)

    return text.strip()


def env_state_for_platform(platform: str) -> Optional[EnvState]:
    operating_system = _OPERATING_SYSTEMS.get(platform)
    if operating_system is None:
        return None
    return EnvState(operating_system=operating_system)


def extract_window(text: str, cursor: CursorState, max_chars: int = ACTIVE_DOCUMENT_MAX_CHARS) -> str:
    """Whole lines around the cursor line, growing both ways until `max_chars` is reached"""

    if len(text) <= max_chars:
        return text

    lines = text.splitlines(keepends=True)
    if not lines:
        return ""

    center = min(cursor.line, len(lines) - 1)
    start, end = center, center + 1
    size = len(lines[center])

    while True:
        grew = False
        if start > 0 and size + len(lines[start - 1]) <= max_chars:
            start -= 1
            size += len(lines[start])
            grew = True
        if end < len(lines) and size + len(lines[end]) <= max_chars:
            size += len(lines[end])
            end += 1
            grew = True
        if not grew:
            break

    return "".join(lines[start:end])[:max_chars]


class ContextManager:
    """Assembles the request payload of a turn from editor, workspace and user-attached context"""

    def __init__(
        self,
        session: SessionContext,
        documents: DocumentSourceAdapter,
        vector_client: VectorIndexQueryClient,
        sink: Optional[AdvisorySink] = None,
        max_context_entries: int = ADDITIONAL_CONTEXT_MAX_LENGTH,
        max_workspace_folders: int = MAX_WORKSPACE_FOLDERS,
        default_origin: str = "IDE"
    ):
        self.session = session
        self.documents = documents
        self.vector_client = vector_client
        self.sink = sink
        self.max_context_entries = max_context_entries
        self.max_workspace_folders = max_workspace_folders
        self.default_origin = default_origin

    async def new_trigger_context(
        self,
        text_document_uri: Optional[str] = None,
        cursor_state: Optional[CursorState] = None,
        has_workspace: bool = False,
        user_intent: Optional[UserIntent] = None
    ) -> TriggerContext:
        """Create the per-turn context, resolving the active document if there is one"""

        trigger_context = TriggerContext(has_workspace=has_workspace, user_intent=user_intent)

        if text_document_uri is None:
            return trigger_context

        text_document = await self.documents.resolve_uri(text_document_uri)
        if text_document is None:
            return trigger_context

        # A found document always gets a cursor so the user can still ask about the open file
        cursor = cursor_state or DEFAULT_CURSOR_STATE

        trigger_context.document = ActiveDocument(
            uri=text_document.uri,
            text=extract_window(text_document.text, cursor),
            relative_path=self._relative_path_for_uri(text_document_uri),
            language=text_document.language_id or language_for_path(text_document_uri)
        )
        trigger_context.cursor_state = cursor

        return trigger_context

    async def assemble(
        self,
        turn_input: TurnInput,
        explicit_attachments: Optional[List[AdditionalContextItem]] = None,
        has_workspace: Optional[bool] = None
    ) -> ChatCommand:
        """Build the complete request payload for a user turn"""

        trigger_context = turn_input.trigger_context
        if has_workspace is None:
            has_workspace = trigger_context.has_workspace

        prompt = normalize_prompt(turn_input.text, has_workspace)

        workspace_folders = self.session.workspace_folder_paths(self.max_workspace_folders)
        workspace_id = self.session.remote_workspace_id()
        logger.info("Assembling request", session_id=self.session.session_id, workspace_id=workspace_id)

        workspace_documents: List[DocumentReference] = []
        if has_workspace:
            workspace_documents = await self.vector_client.get_relevant_documents(
                prompt,
                session_id=self.session.session_id,
                sink=self.sink
            )

        workspace_bundle = ContextBundle(documents=workspace_documents, max_entries=self.max_context_entries)
        if trigger_context.document_reference is not None:
            trigger_context.document_reference = trigger_context.document_reference.merge(workspace_bundle)
        else:
            trigger_context.document_reference = workspace_bundle

        # The payload keeps every chunk, including several excerpts of one file;
        # only the transparency list above is keyed by path
        relevant = workspace_documents + self._attachment_documents(explicit_attachments or [])
        relevant = relevant[:self.max_context_entries]

        context_logger.log_context_update(
            session_id=self.session.session_id,
            context_type="relevant_documents",
            action="assembled",
            details={"workspace": len(workspace_documents), "total": len(relevant)}
        )

        editor_state = self._editor_state(trigger_context, relevant, workspace_folders)

        return ChatCommand(
            kind=turn_input.kind,
            conversation_state=ConversationState(
                conversation_id=turn_input.conversation_id,
                workspace_id=workspace_id,
                chat_trigger_type=turn_input.chat_trigger_type,
                history=turn_input.history,
                customization_id=self.session.customization_id,
                current_message=UserInputMessage(
                    content=prompt,
                    user_input_message_context=UserInputMessageContext(
                        editor_state=editor_state,
                        tools=turn_input.tools,
                        env_state=env_state_for_platform(self.session.platform)
                    ),
                    user_intent=trigger_context.user_intent,
                    origin=turn_input.origin or self.default_origin,
                    model_id=turn_input.model_id,
                    images=turn_input.images
                )
            ),
            profile_id=self.session.profile_id
        )

    def compaction_command(
        self,
        tools: Optional[List[Dict[str, Any]]] = None,
        model_id: Optional[str] = None,
        origin: Optional[str] = None,
        kind: CommandKind = CommandKind.GENERATE_ASSISTANT_RESPONSE
    ) -> ChatCommand:
        """Payload asking the backend to compact the conversation history"""

        return ChatCommand(
            kind=kind,
            conversation_state=ConversationState(
                chat_trigger_type=ChatTriggerType.MANUAL,
                current_message=UserInputMessage(
                    content=COMPACTION_PROMPT,
                    user_input_message_context=UserInputMessageContext(
                        tools=tools or [],
                        env_state=env_state_for_platform(self.session.platform)
                    ),
                    origin=origin or self.default_origin,
                    model_id=model_id
                )
            ),
            profile_id=self.session.profile_id
        )

    def _editor_state(
        self,
        trigger_context: TriggerContext,
        relevant: List[DocumentReference],
        workspace_folders: List[str]
    ) -> EditorState:
        use_relevant_documents = len(relevant) > 0
        editor_state = EditorState(
            relevant_documents=list(relevant) if use_relevant_documents else None,
            use_relevant_documents=use_relevant_documents,
            workspace_folders=workspace_folders
        )

        document = trigger_context.document
        if trigger_context.cursor_state is not None and document is not None and document.relative_path:
            editor_state.cursor_state = trigger_context.cursor_state
            editor_state.document = EditorDocument(
                text=document.text,
                language=document.language,
                relative_path=document.relative_path
            )

        return editor_state

    def _attachment_documents(self, items: List[AdditionalContextItem]) -> List[DocumentReference]:
        """Convert unpinned, non-image attachments into document references"""

        documents = []
        for item in items:
            if item.pinned:
                continue
            # images travel separately
            if item.type == "image":
                continue

            language = language_for_path(item.relative_path or item.path)
            documents.append(DocumentReference(
                path=item.path,
                relative_path=self._relative_path_for_item(item),
                text=item.inner_context,
                start_line=item.start_line if item.start_line is not None else -1,
                end_line=item.end_line if item.end_line is not None else -1,
                language=language,
                source_type=_ATTACHMENT_TYPES.get(item.type)
            ))

        return documents

    def _relative_path_for_item(self, item: AdditionalContextItem) -> str:
        if not item.path:
            return item.relative_path

        folder = find_workspace_root_folder(
            path_to_file_uri(item.path, self.session.platform),
            self.session.workspace_folders
        )
        if folder is None:
            return item.relative_path
        return get_relative_path_with_workspace_folder(folder, item.path)

    def _relative_path_for_uri(self, uri: str) -> str:
        folder = find_workspace_root_folder(uri, self.session.workspace_folders)
        if folder is not None:
            return get_relative_path(folder, uri)
        return posixpath.relpath(uri_to_path(uri), uri_to_path(os.getcwd()))
