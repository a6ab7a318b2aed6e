from typing import Dict, Any, Optional, Protocol, Union
from pydantic import BaseModel
from pathlib import Path
import asyncio


class TextDocument(BaseModel):
    """A document as held by the editor, or read from disk"""
    uri: str
    language_id: str = ""
    version: int = 0
    text: str = ""


class DocumentStore(Protocol):
    """Live document store plus file system access"""

    async def get_text_document(self, uri: str) -> Optional[TextDocument]:
        """Return the live copy of a document, if the editor has it open"""

    async def read_file(self, path: str) -> Union[str, bytes]:
        """Read a file from disk; raises on failure"""


class InMemoryDocumentStore:
    """Document store keeping synced documents in memory, reading the rest from disk"""

    def __init__(self, encoding: str = "utf-8"):
        self.documents: Dict[str, TextDocument] = {}
        self.encoding = encoding
        self._lock = asyncio.Lock()

    async def open_document(self, uri: str, text: str, language_id: str = "", version: int = 1) -> TextDocument:
        """Register or replace the live copy of a document"""

        async with self._lock:
            document = TextDocument(uri=uri, language_id=language_id, version=version, text=text)
            self.documents[uri] = document
            return document

    async def close_document(self, uri: str) -> bool:
        """Forget the live copy of a document"""

        async with self._lock:
            return self.documents.pop(uri, None) is not None

    async def get_text_document(self, uri: str) -> Optional[TextDocument]:
        async with self._lock:
            return self.documents.get(uri)

    async def read_file(self, path: str) -> str:
        return await asyncio.to_thread(Path(path).read_text, encoding=self.encoding)

    async def get_stats(self) -> Dict[str, Any]:
        """Get store statistics"""

        async with self._lock:
            return {
                "open_documents": len(self.documents),
                "total_chars": sum(len(doc.text) for doc in self.documents.values())
            }
