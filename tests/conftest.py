"""Pytest configuration and fixtures"""

from typing import Optional

import pytest

from authstate import AuthStateRepository, InMemoryDocumentStore, StorageError


class RecordingStore(InMemoryDocumentStore):
    """In-memory store that records writes and can fail chosen documents."""

    def __init__(self) -> None:
        super().__init__()
        self.replaced: list[str] = []
        self.deleted: list[str] = []
        self.fail_ids: set[str] = set()
        self.fail_reads = False

    async def find(self, doc_id: str) -> Optional[dict]:
        if self.fail_reads:
            raise StorageError(f"read of {doc_id} failed")
        return await super().find(doc_id)

    async def replace(self, doc_id: str, document: dict) -> None:
        if doc_id in self.fail_ids:
            raise StorageError(f"write of {doc_id} failed")
        await super().replace(doc_id, document)
        self.replaced.append(doc_id)

    async def delete(self, doc_id: str) -> None:
        if doc_id in self.fail_ids:
            raise StorageError(f"delete of {doc_id} failed")
        await super().delete(doc_id)
        self.deleted.append(doc_id)

    async def raw(self, doc_id: str) -> Optional[dict]:
        """Read a document bypassing failure injection."""
        return await super().find(doc_id)


@pytest.fixture
def store():
    """Fresh recording in-memory store"""
    return RecordingStore()


@pytest.fixture
async def repository(store):
    """Connected repository over the recording store"""
    repo = AuthStateRepository(store)
    await repo.connect()
    yield repo
    await repo.close()
