"""Document store interface and in-memory implementation."""

import asyncio
import copy
from abc import ABC, abstractmethod
from typing import Optional

from ..types import DOCUMENT_ID_FIELD, NotConnectedError


class DocumentStore(ABC):
    """
    Interface for a key-addressable document collection.

    Documents are mappings carrying their id under ``_id``. ``replace``
    is an upsert of the whole document; a reader never observes a
    partially written document.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection and confirm the store is reachable."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the connection."""
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether a confirmed connection is open."""
        ...

    @abstractmethod
    async def find(self, doc_id: str) -> Optional[dict]:
        """Return the document with this id, or None."""
        ...

    @abstractmethod
    async def replace(self, doc_id: str, document: dict) -> None:
        """Insert or fully replace the document with this id."""
        ...

    @abstractmethod
    async def delete(self, doc_id: str) -> None:
        """Delete the document with this id (no-op if absent)."""
        ...

    @abstractmethod
    async def delete_all(self) -> int:
        """Delete every document; returns the number deleted."""
        ...

    @abstractmethod
    async def list_ids(self) -> list[str]:
        """List all document ids."""
        ...


class InMemoryDocumentStore(DocumentStore):
    """
    In-memory implementation of DocumentStore (for testing).

    WARNING: This is NOT durable. Documents survive close()/connect()
    cycles of the same instance but are lost when the process exits.
    """

    def __init__(self) -> None:
        self._documents: dict[str, dict] = {}
        self._connected = False
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def find(self, doc_id: str) -> Optional[dict]:
        self._require_connection()
        async with self._lock:
            document = self._documents.get(doc_id)
            return copy.deepcopy(document) if document is not None else None

    async def replace(self, doc_id: str, document: dict) -> None:
        self._require_connection()
        stored = copy.deepcopy(document)
        stored[DOCUMENT_ID_FIELD] = doc_id
        async with self._lock:
            self._documents[doc_id] = stored

    async def delete(self, doc_id: str) -> None:
        self._require_connection()
        async with self._lock:
            self._documents.pop(doc_id, None)

    async def delete_all(self) -> int:
        self._require_connection()
        async with self._lock:
            count = len(self._documents)
            self._documents.clear()
            return count

    async def list_ids(self) -> list[str]:
        self._require_connection()
        async with self._lock:
            return list(self._documents.keys())

    def _require_connection(self) -> None:
        if not self._connected:
            raise NotConnectedError()
