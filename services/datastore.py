"""
Document persistence on top of the Firestore async client.

Documents cross this boundary as plain dicts that carry their document id
under ``"id"``; the id itself is never written into the stored fields.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from fastapi import Request
from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore import AsyncClient, FieldFilter

from domain.errors import ApiError

logger = logging.getLogger('uvicorn.error')


class ServiceUnavailable(ApiError):
    status_code = 503
    message = "Database service unavailable"


def _snapshot_to_dict(snapshot) -> Dict[str, Any]:
    data = snapshot.to_dict() or {}
    data['id'] = snapshot.id
    return data


class DocumentStore:
    def __init__(
        self,
        project: Optional[str] = None,
        database: str = "(default)",
        client: Optional[AsyncClient] = None,
    ):
        self.project = project
        self.database = database
        self._client = client

    async def connect(self) -> None:
        if self._client is None:
            self._client = firestore.AsyncClient(project=self.project, database=self.database)
            logger.info(f"Firestore Async client initialized for database '{self.database}'.")

    async def close(self) -> None:
        if self._client is None:
            return
        await self._client.close()
        self._client = None
        logger.info("Firestore Async client closed.")

    @property
    def client(self) -> AsyncClient:
        if self._client is None:
            raise ServiceUnavailable()
        return self._client

    # --- Reads ---
    async def find(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> List[Dict[str, Any]]:
        query = self.client.collection(collection)
        for field, value in (filters or {}).items():
            query = query.where(filter=FieldFilter(field, "==", value))
        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        return [_snapshot_to_dict(doc) async for doc in query.stream()]

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snapshot = await self.client.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return _snapshot_to_dict(snapshot)

    async def find_by_ids(self, collection: str, doc_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        refs = [self.client.collection(collection).document(doc_id) for doc_id in set(doc_ids)]
        if not refs:
            return {}
        found = {}
        async for snapshot in self.client.get_all(refs):
            if snapshot.exists:
                found[snapshot.id] = _snapshot_to_dict(snapshot)
        return found

    # --- Writes ---
    async def insert(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        await self.client.collection(collection).document(doc_id).create(dict(data))
        return {**data, 'id': doc_id}

    async def update_by_id(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Overwrite ``fields`` on an existing document and return the document as stored.

        Returns None when there is no such document. Fields not named are left untouched.
        """
        ref = self.client.collection(collection).document(doc_id)
        try:
            await ref.update(dict(fields))
        except google_exceptions.NotFound:
            logger.warning(f"Update skipped: document '{doc_id}' not found in '{collection}'.")
            return None
        snapshot = await ref.get()
        return _snapshot_to_dict(snapshot) if snapshot.exists else None

    async def replace_by_id(
        self, collection: str, doc_id: str, data: Mapping[str, Any]
    ) -> Optional[Dict[str, Any]]:
        return await self.update_by_id(collection, doc_id, data)

    async def increment(
        self, collection: str, doc_id: str, field: str, amount: int = 1
    ) -> Optional[Dict[str, Any]]:
        return await self.update_by_id(collection, doc_id, {field: firestore.Increment(amount)})

    async def delete_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ref = self.client.collection(collection).document(doc_id)
        snapshot = await ref.get()
        if not snapshot.exists:
            return None
        await ref.delete()
        return _snapshot_to_dict(snapshot)


async def get_document_store(request: Request) -> DocumentStore:
    if not hasattr(request.app.state, 'store') or not request.app.state.store:
        logger.error("Document store not initialized or unavailable.")
        raise ServiceUnavailable()
    return request.app.state.store
