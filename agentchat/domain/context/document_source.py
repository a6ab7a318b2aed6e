from typing import List, Optional, Union
import structlog

from .memory.document_store import DocumentStore, TextDocument
from .uri_normalizer import possible_path_uris
from .workspace import path_to_file_uri, uri_to_fs_path

logger = structlog.get_logger(__name__)


class DocumentSourceAdapter:
    """Fetches document text, preferring the editor's live copy over the disk.

    A live copy always wins; it is never compared against what is on disk.
    Every failure is logged and reported as ``None`` so callers can treat it as
    missing context.
    """

    def __init__(self, store: DocumentStore, platform: str = "linux"):
        self.store = store
        self.platform = platform

    def candidate_uris(self, path: str) -> List[str]:
        """Lookup keys for a path, canonical form first"""

        canonical = path_to_file_uri(path, self.platform)
        others = sorted(possible_path_uris(path, self.platform) - {canonical})
        return [canonical] + others

    async def resolve_path(
        self,
        path: str,
        use_workspace: bool = True,
        use_fs: bool = True
    ) -> Optional[TextDocument]:
        """Resolve a filesystem path to a document"""

        try:
            if use_workspace:
                for uri in self.candidate_uris(path):
                    document = await self.store.get_text_document(uri)
                    if document:
                        return document

                # Not open in the editor, not found under any key we tried, or missing

            if use_fs:
                content = await self.store.read_file(path)
                return TextDocument(uri=path, language_id="", version=0, text=_decode(content))

        except Exception as e:
            logger.error("Unable to load document", path=path, error=str(e))

        return None

    async def resolve_uri(self, uri: str) -> Optional[TextDocument]:
        """Resolve a document URI: live copy first, then the file it points at"""

        try:
            document = await self.store.get_text_document(uri)
            if document:
                return document

            content = await self.store.read_file(uri_to_fs_path(uri))
            return TextDocument(uri=uri, language_id="", version=0, text=_decode(content))

        except Exception as e:
            logger.error("Unable to load document", uri=uri, error=str(e))
            return None


def _decode(content: Union[str, bytes]) -> str:
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return content
