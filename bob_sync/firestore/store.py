"""Async Firestore access for the BOB collections."""

from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple
import logging

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from ..core.exceptions import DocumentStoreError

TASKS = "tasks"
STORIES = "stories"
GOALS = "goals"
SPRINTS = "sprints"

OWNER_FIELD = "ownerUid"

# Firestore rejects batches with more than 500 writes.
MAX_BATCH_SIZE = 500

Document = Tuple[str, Dict[str, Any]]

# Transport, quota and credential failures surfaced by the client library.
STORE_ERRORS = (google_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError)


class DocumentStore(Protocol):
    """What the sync engine needs from the document database."""

    server_timestamp: Any
    delete_field: Any

    async def query(
        self,
        collection: str,
        owner_uid: str,
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        ...

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def merge_write(
        self, collection: str, doc_id: str, payload: Mapping[str, Any]
    ) -> None:
        ...

    async def batch_merge_write(
        self, collection: str, updates: Sequence[Tuple[str, Mapping[str, Any]]]
    ) -> None:
        ...


class FirestoreStore:
    """DocumentStore backed by google-cloud-firestore's AsyncClient."""

    server_timestamp = firestore.SERVER_TIMESTAMP
    delete_field = firestore.DELETE_FIELD

    def __init__(
        self,
        project_id: Optional[str] = None,
        database: Optional[str] = None,
        client: Optional[firestore.AsyncClient] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self._project_id = project_id
        self._database = database
        self._client = client

    def _get_client(self) -> firestore.AsyncClient:
        if self._client is not None:
            return self._client
        kwargs: Dict[str, Any] = {}
        if self._project_id:
            kwargs["project"] = self._project_id
        if self._database:
            kwargs["database"] = self._database
        try:
            self._client = firestore.AsyncClient(**kwargs)
        except STORE_ERRORS as e:
            raise DocumentStoreError(f"Failed to create Firestore client: {e}") from e
        return self._client

    async def query(
        self,
        collection: str,
        owner_uid: str,
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        """Fetch documents owned by ``owner_uid`` matching equality filters."""
        query = self._get_client().collection(collection).where(
            filter=FieldFilter(OWNER_FIELD, "==", owner_uid)
        )
        for field_path, value in (filters or {}).items():
            query = query.where(filter=FieldFilter(field_path, "==", value))
        if limit is not None:
            query = query.limit(limit)

        documents: List[Document] = []
        try:
            async for snapshot in query.stream():
                documents.append((snapshot.id, snapshot.to_dict() or {}))
        except STORE_ERRORS as e:
            self.logger.error(f"Query on {collection} failed: {e}")
            raise DocumentStoreError(f"Failed to query {collection}: {e}") from e

        self.logger.debug(f"Fetched {len(documents)} documents from {collection}")
        return documents

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one document by id; None when it does not exist."""
        reference = self._get_client().collection(collection).document(doc_id)
        try:
            snapshot = await reference.get()
        except STORE_ERRORS as e:
            raise DocumentStoreError(f"Failed to read {collection}/{doc_id}: {e}") from e
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    async def merge_write(
        self, collection: str, doc_id: str, payload: Mapping[str, Any]
    ) -> None:
        """Merge ``payload`` into a single document."""
        reference = self._get_client().collection(collection).document(doc_id)
        try:
            await reference.set(dict(payload), merge=True)
        except STORE_ERRORS as e:
            raise DocumentStoreError(f"Failed to write {collection}/{doc_id}: {e}") from e

    async def batch_merge_write(
        self, collection: str, updates: Sequence[Tuple[str, Mapping[str, Any]]]
    ) -> None:
        """Merge several payloads, committing in chunks of MAX_BATCH_SIZE."""
        if not updates:
            return
        client = self._get_client()
        target = client.collection(collection)
        for start in range(0, len(updates), MAX_BATCH_SIZE):
            batch = client.batch()
            for doc_id, payload in updates[start:start + MAX_BATCH_SIZE]:
                batch.set(target.document(doc_id), dict(payload), merge=True)
            try:
                await batch.commit()
            except STORE_ERRORS as e:
                raise DocumentStoreError(
                    f"Failed to commit batch of {collection} updates: {e}"
                ) from e
        self.logger.debug(f"Committed {len(updates)} merged writes to {collection}")
