from typing import List, Optional, Protocol, Sequence
from pydantic import BaseModel
import posixpath
import structlog

from agentchat.domain.models.advisory import AdvisoryPayload
from agentchat.domain.models.context_models import (
    ContentType, DocumentReference, WORKSPACE_CHUNK_MAX_SIZE
)

logger = structlog.get_logger(__name__)


class Chunk(BaseModel):
    """A ranked excerpt returned by the vector index"""
    file_path: str
    content: str = ""
    context: Optional[str] = None
    relative_path: Optional[str] = None
    start_line: Optional[int] = None
    end_line: Optional[int] = None
    programming_language: Optional[str] = None


class VectorIndex(Protocol):
    """Local project index able to answer semantic queries"""

    def is_indexing_enabled(self) -> bool:
        """Whether the index is built and may be queried"""

    async def query_vector_index(self, query: str) -> Optional[Sequence[Chunk]]:
        """Return chunks ranked by relevance; may raise"""


class AdvisorySink(Protocol):
    """Destination for advisories; turns them into whatever the client understands"""

    async def send_advisory(self, session_id: str, advisory: AdvisoryPayload) -> bool:
        """Deliver an advisory to the session"""


class VectorIndexQueryClient:
    """Queries the vector index and turns chunks into workspace document references"""

    def __init__(self, index: VectorIndex, max_chunk_size: int = WORKSPACE_CHUNK_MAX_SIZE):
        self.index = index
        self.max_chunk_size = max_chunk_size

    async def get_relevant_documents(
        self,
        query: str,
        session_id: Optional[str] = None,
        sink: Optional[AdvisorySink] = None
    ) -> List[DocumentReference]:
        """Relevant workspace documents for the query, empty when indexing is off"""

        if not self.index.is_indexing_enabled():
            logger.info("Workspace index disabled, skipping query", session_id=session_id)
            if sink is not None and session_id is not None:
                await sink.send_advisory(session_id, AdvisoryPayload.workspace_index_disabled())
            return []

        chunks = await self._query(query)

        documents = []
        for chunk in chunks:
            text = chunk.context if chunk.context is not None else chunk.content
            if not text:
                continue
            if len(text) > self.max_chunk_size:
                logger.debug("Truncating @workspace chunk", relative_path=chunk.relative_path)
                text = text[:self.max_chunk_size]
            documents.append(self._to_document(chunk, text))

        return documents

    async def _query(self, query: str) -> Sequence[Chunk]:
        try:
            chunks = await self.index.query_vector_index(query=query)
            return chunks or []
        except Exception as e:
            logger.error("Error querying vector index for relevant documents", error=str(e))
            return []

    def _to_document(self, chunk: Chunk, text: str) -> DocumentReference:
        language = chunk.programming_language
        if language == "unknown":
            language = None

        return DocumentReference(
            path=chunk.file_path,
            relative_path=chunk.relative_path or posixpath.basename(chunk.file_path.replace("\\", "/")),
            text=text,
            start_line=chunk.start_line if chunk.start_line is not None else -1,
            end_line=chunk.end_line if chunk.end_line is not None else -1,
            language=language,
            source_type=ContentType.WORKSPACE
        )
