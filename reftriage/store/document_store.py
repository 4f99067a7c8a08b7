"""
Document Store - External Content Collaborator

The engine only hands out DocumentRefs. Content is fetched lazily, after
resolution, and only for results that are not blocked by a contract.
"""

import logging
from pathlib import Path
from typing import Mapping, Protocol, Union

from reftriage.config.settings import TriageSettings
from reftriage.errors import DocumentNotFoundError, TriageError
from reftriage.models.resolution import ResolutionResult
from reftriage.models.rule import DocumentRef

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Anything that turns a DocumentRef into content."""

    def fetch(self, ref: DocumentRef) -> str:
        ...


class InMemoryDocumentStore:
    """Content held in a dict keyed by document id."""

    def __init__(self, contents: Mapping[str, str]):
        self._contents = dict(contents)

    def fetch(self, ref: DocumentRef) -> str:
        try:
            return self._contents[ref.id]
        except KeyError:
            raise DocumentNotFoundError(f"No content for document {ref}") from None


class FileSystemDocumentStore:
    """
    Markdown files laid out as ``<root>/<category>/<id><suffix>``.

    Files are read on every fetch; nothing is cached.
    """

    def __init__(self, root: Union[str, Path], suffix: str = ".md"):
        self._root = Path(root)
        self._suffix = suffix

    @classmethod
    def from_settings(cls, settings: TriageSettings) -> "FileSystemDocumentStore":
        """
        Store rooted at ``settings.documents_path``.

        Raises:
            TriageError: no documents path is configured.
        """
        if settings.documents_path is None:
            raise TriageError("documents_path is not configured (set TRIAGE_DOCUMENTS_PATH)")
        return cls(settings.documents_path)

    def path_for(self, ref: DocumentRef) -> Path:
        path = (self._root / ref.category / f"{ref.id}{self._suffix}").resolve()
        if self._root.resolve() not in path.parents:
            raise DocumentNotFoundError(f"Document {ref} resolves outside the store root")
        return path

    def fetch(self, ref: DocumentRef) -> str:
        path = self.path_for(ref)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise DocumentNotFoundError(f"No content for document {ref} at {path}") from None


def fetch_documents(store: DocumentStore, result: ResolutionResult) -> dict[str, str]:
    """
    Fetch content for every document of a result, in rank order.

    Blocked results carry no documents, so nothing is fetched for them.

    Raises:
        DocumentNotFoundError: a referenced document has no content.
    """
    if result.is_blocked:
        logger.debug("Result is blocked by a contract, nothing to fetch")
        return {}
    return {ranked.document.id: store.fetch(ranked.document) for ranked in result.documents}
