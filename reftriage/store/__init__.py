from reftriage.store.document_store import (
    DocumentStore,
    FileSystemDocumentStore,
    InMemoryDocumentStore,
    fetch_documents,
)

__all__ = [
    "DocumentStore",
    "FileSystemDocumentStore",
    "InMemoryDocumentStore",
    "fetch_documents",
]
