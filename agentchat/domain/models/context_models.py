from typing import Dict, Any, List, Optional, Iterable
from pydantic import BaseModel, Field, ConfigDict, PrivateAttr, field_validator
from enum import Enum
import re


# limit for each chunk of @workspace
WORKSPACE_CHUNK_MAX_SIZE = 40_960

# limit for the number of context documents attached to one request
ADDITIONAL_CONTEXT_MAX_LENGTH = 100

# maximum number of workspace folders allowed by the backend
MAX_WORKSPACE_FOLDERS = 100

_DRIVE_PREFIX = re.compile(r"^/?([A-Za-z]):")


def normalize_path_key(path: str) -> str:
    """Slash-separated path with a lower-cased drive letter"""
    path = path.replace("\\", "/")
    return _DRIVE_PREFIX.sub(lambda m: "/" + m.group(1).lower() + ":", path, count=1)


class ContentType(str, Enum):
    """Origin of a context document"""
    FILE = "file"
    CODE = "code"
    PROMPT = "prompt"
    WORKSPACE = "workspace"


class UserIntent(str, Enum):
    """Intent classification of a user turn"""
    EXPLAIN_CODE_SELECTION = "EXPLAIN_CODE_SELECTION"
    SUGGEST_ALTERNATE_IMPLEMENTATION = "SUGGEST_ALTERNATE_IMPLEMENTATION"
    APPLY_COMMON_BEST_PRACTICES = "APPLY_COMMON_BEST_PRACTICES"
    IMPROVE_CODE = "IMPROVE_CODE"
    SHOW_EXAMPLES = "SHOW_EXAMPLES"
    CITE_SOURCES = "CITE_SOURCES"
    EXPLAIN_LINE_BY_LINE = "EXPLAIN_LINE_BY_LINE"
    GENERATE_UNIT_TESTS = "GENERATE_UNIT_TESTS"


class CursorState(BaseModel):
    """Zero-based cursor position inside the active document"""
    model_config = ConfigDict(frozen=True)

    line: int = Field(0, ge=0)
    character: int = Field(0, ge=0)


class DocumentReference(BaseModel):
    """A single document attached to a request as context"""
    model_config = ConfigDict(frozen=True)

    path: str = Field(description="Absolute path of the document")
    relative_path: str = Field("", description="Path shown to the model")
    text: str = Field("", description="Document or chunk text")
    start_line: int = Field(-1, description="First line of the excerpt, -1 when unknown")
    end_line: int = Field(-1, description="Last line of the excerpt, -1 when unknown")
    language: Optional[str] = Field(None, description="Programming language name")
    source_type: Optional[ContentType] = Field(default=ContentType.FILE)

    @field_validator("text")
    @classmethod
    def _truncate_text(cls, value: str) -> str:
        if len(value) > WORKSPACE_CHUNK_MAX_SIZE:
            return value[:WORKSPACE_CHUNK_MAX_SIZE]
        return value

    @property
    def identity(self) -> str:
        """Deduplication key: the normalized path"""
        return normalize_path_key(self.path)


class ContextBundle(BaseModel):
    """Ordered, deduplicated and bounded collection of document references"""

    documents: List[DocumentReference] = Field(default_factory=list)
    max_entries: int = Field(default=ADDITIONAL_CONTEXT_MAX_LENGTH, ge=0)
    _keys: set = PrivateAttr(default_factory=set)

    def model_post_init(self, __context: Any) -> None:
        # Re-run the initial list through add() so the invariants hold from the start
        initial = self.documents
        self.documents = []
        self._keys = set()
        self.extend(initial)

    def add(self, document: DocumentReference) -> bool:
        """Add a document unless its identity is already present or the bundle is full"""
        if document.identity in self._keys:
            return False
        if len(self.documents) >= self.max_entries:
            return False
        self._keys.add(document.identity)
        self.documents.append(document)
        return True

    def extend(self, documents: Iterable[DocumentReference]) -> int:
        added = 0
        for document in documents:
            if self.add(document):
                added += 1
        return added

    def merge(self, other: "ContextBundle") -> "ContextBundle":
        """Union keyed by identity; entries already in this bundle win"""
        merged = ContextBundle(documents=list(self.documents), max_entries=self.max_entries)
        merged.extend(other.documents)
        return merged

    def contains(self, document: DocumentReference) -> bool:
        return document.identity in self._keys

    def __len__(self) -> int:
        return len(self.documents)

    def __bool__(self) -> bool:
        return bool(self.documents)


class AdditionalContextItem(BaseModel):
    """Context explicitly attached by the user (@file, @rule, @prompt, code, image)"""
    type: str = Field(description="Declared type: file, rule, prompt, code, image, ...")
    path: str = Field("", description="Absolute path of the attached item")
    relative_path: str = Field("", description="Path relative to the workspace")
    inner_context: str = Field("", description="Text content of the item")
    start_line: Optional[int] = None
    end_line: Optional[int] = None
    pinned: bool = Field(False, description="Pinned items are shown in the UI and not merged")


class WorkspaceFolder(BaseModel):
    """A workspace root known to the editor"""
    uri: str
    name: str = ""


class ActiveDocument(BaseModel):
    """The editor document the user is looking at"""
    uri: str
    text: str = ""
    relative_path: Optional[str] = None
    language: Optional[str] = None


class TriggerContext(BaseModel):
    """Transient per-turn state, created fresh for every user turn"""
    document: Optional[ActiveDocument] = None
    cursor_state: Optional[CursorState] = None
    user_intent: Optional[UserIntent] = None
    trigger_type: Optional[str] = None
    has_workspace: bool = False
    document_reference: Optional[ContextBundle] = Field(
        None, description="Context transparency list shown above the assistant response"
    )
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def relative_path(self) -> Optional[str]:
        return self.document.relative_path if self.document else None
