"""authstate storage module."""

from ..config import StoreConfig
from ..types import ConfigurationError
from .document_store import DocumentStore, InMemoryDocumentStore
from .mongo_store import MongoDocumentStore


def open_document_store(config: StoreConfig) -> DocumentStore:
    """
    Create the document store selected by the configuration's URL scheme.

    ``mongodb://`` and ``mongodb+srv://`` give a MongoDocumentStore,
    ``memory://`` an InMemoryDocumentStore. The store is not connected yet.

    Raises:
        ConfigurationError: For an unsupported scheme.
    """
    scheme = config.scheme
    if scheme in ("mongodb", "mongodb+srv"):
        return MongoDocumentStore(
            config.url,
            database=config.database,
            collection=config.collection,
            server_selection_timeout=config.connect_timeout,
        )
    if scheme == "memory":
        return InMemoryDocumentStore()
    raise ConfigurationError(f"Unsupported store URL scheme: {scheme}")


__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "MongoDocumentStore",
    "open_document_store",
]
