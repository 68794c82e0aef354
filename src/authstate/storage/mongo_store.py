"""
MongoDB document store.

Uses PyMongo's native asyncio client. Credential and key records live as
documents in a single collection, addressed by ``_id``; ``replace`` maps
to ``replace_one(..., upsert=True)``, which MongoDB applies atomically to
one document.
"""

import logging
from datetime import timedelta
from typing import Any, Optional

from pymongo import AsyncMongoClient
from pymongo.errors import ConfigurationError as DriverConfigurationError
from pymongo.errors import ConnectionFailure, InvalidURI, PyMongoError

from ..config import DEFAULT_COLLECTION, DEFAULT_DATABASE
from ..types import (
    DOCUMENT_ID_FIELD,
    ConfigurationError,
    NotConnectedError,
    StorageError,
    StoreConnectionError,
)
from .document_store import DocumentStore

logger = logging.getLogger(__name__)


class MongoDocumentStore(DocumentStore):
    """
    DocumentStore backed by a MongoDB collection.

    Example usage:
        ```python
        store = MongoDocumentStore("mongodb://localhost:27017/bot")
        await store.connect()

        await store.replace("creds", {"registered": False})
        doc = await store.find("creds")
        ```
    """

    def __init__(
        self,
        url: str,
        database: Optional[str] = None,
        collection: str = DEFAULT_COLLECTION,
        server_selection_timeout: timedelta = timedelta(seconds=10),
        client: Optional[AsyncMongoClient] = None,
    ) -> None:
        """
        Create a MongoDB document store.

        Args:
            url: MongoDB connection string.
            database: Database name; defaults to the URL's database, then
                ``authstate``.
            collection: Collection name.
            server_selection_timeout: How long the driver waits for a
                reachable server before failing an operation.
            client: Optional pre-built client (the store then does not own it).
        """
        self._url = url
        self._database_name = database
        self._collection_name = collection
        self._server_selection_timeout = server_selection_timeout
        self._client = client
        self._owns_client = client is None
        self._collection: Any = None

    async def connect(self) -> None:
        """
        Open the client and confirm the server answers a ping.

        Raises:
            ConfigurationError: If the connection string is invalid.
            StoreConnectionError: If the server is unreachable.
        """
        try:
            if self._client is None:
                self._client = AsyncMongoClient(
                    self._url,
                    serverSelectionTimeoutMS=int(self._server_selection_timeout.total_seconds() * 1000),
                )

            await self._client.admin.command("ping")
            if self._database_name:
                database = self._client[self._database_name]
            else:
                database = self._client.get_default_database(default=DEFAULT_DATABASE)
        except (InvalidURI, DriverConfigurationError, ValueError) as e:
            raise ConfigurationError(f"Invalid MongoDB connection string: {e}") from e
        except ConnectionFailure as e:
            raise StoreConnectionError(f"MongoDB is unreachable: {e}") from e
        except PyMongoError as e:
            raise StoreConnectionError(f"MongoDB connection failed: {e}") from e

        self._collection = database[self._collection_name]
        logger.info("Connected to MongoDB collection %s.%s", database.name, self._collection_name)

    async def close(self) -> None:
        self._collection = None
        if self._client is not None and self._owns_client:
            await self._client.close()
            self._client = None

    @property
    def is_connected(self) -> bool:
        return self._collection is not None

    async def find(self, doc_id: str) -> Optional[dict]:
        collection = self._require_collection()
        try:
            return await collection.find_one({DOCUMENT_ID_FIELD: doc_id})
        except PyMongoError as e:
            raise StorageError(f"Failed to read document {doc_id}: {e}") from e

    async def replace(self, doc_id: str, document: dict) -> None:
        collection = self._require_collection()
        document = {**document, DOCUMENT_ID_FIELD: doc_id}
        try:
            await collection.replace_one({DOCUMENT_ID_FIELD: doc_id}, document, upsert=True)
        except PyMongoError as e:
            raise StorageError(f"Failed to write document {doc_id}: {e}") from e

    async def delete(self, doc_id: str) -> None:
        collection = self._require_collection()
        try:
            await collection.delete_one({DOCUMENT_ID_FIELD: doc_id})
        except PyMongoError as e:
            raise StorageError(f"Failed to delete document {doc_id}: {e}") from e

    async def delete_all(self) -> int:
        collection = self._require_collection()
        try:
            result = await collection.delete_many({})
        except PyMongoError as e:
            raise StorageError(f"Failed to clear collection: {e}") from e
        return result.deleted_count

    async def list_ids(self) -> list[str]:
        collection = self._require_collection()
        try:
            return [str(doc_id) for doc_id in await collection.distinct(DOCUMENT_ID_FIELD)]
        except PyMongoError as e:
            raise StorageError(f"Failed to list documents: {e}") from e

    def _require_collection(self) -> Any:
        if self._collection is None:
            raise NotConnectedError()
        return self._collection
