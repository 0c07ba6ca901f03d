import copy
import os

os.environ.setdefault("AUTH_SECRET_KEY", "test-signing-key")
os.environ.setdefault("ALLOWED_HOSTS", "testserver")

import pytest
from fastapi.testclient import TestClient

import AuthAndAuthor as auth
import config
from domain.authors import Author
from domain.comments import Comment
from domain.posts import Post
from main import app
from services.datastore import get_document_store


class InMemoryDocumentStore:
    """Dict-backed stand-in with the same interface as DocumentStore."""

    def __init__(self):
        self.collections = {}
        self.calls = []

    def _collection(self, name):
        return self.collections.setdefault(name, {})

    def _out(self, doc_id, data):
        return {**copy.deepcopy(data), "id": doc_id}

    async def find(self, collection, filters=None, order_by=None, descending=True):
        self.calls.append(("find", collection))
        docs = [
            self._out(doc_id, data)
            for doc_id, data in self._collection(collection).items()
            if all(data.get(field) == value for field, value in (filters or {}).items())
        ]
        if order_by:
            docs.sort(key=lambda doc: doc[order_by], reverse=descending)
        return docs

    async def find_by_id(self, collection, doc_id):
        self.calls.append(("find_by_id", collection))
        data = self._collection(collection).get(doc_id)
        return None if data is None else self._out(doc_id, data)

    async def find_by_ids(self, collection, doc_ids):
        self.calls.append(("find_by_ids", collection))
        docs = self._collection(collection)
        return {doc_id: self._out(doc_id, docs[doc_id]) for doc_id in set(doc_ids) if doc_id in docs}

    async def insert(self, collection, doc_id, data):
        self.calls.append(("insert", collection))
        self._collection(collection)[doc_id] = copy.deepcopy(dict(data))
        return self._out(doc_id, data)

    async def update_by_id(self, collection, doc_id, fields):
        self.calls.append(("update_by_id", collection))
        docs = self._collection(collection)
        if doc_id not in docs:
            return None
        docs[doc_id].update(copy.deepcopy(dict(fields)))
        return self._out(doc_id, docs[doc_id])

    async def replace_by_id(self, collection, doc_id, data):
        return await self.update_by_id(collection, doc_id, data)

    async def increment(self, collection, doc_id, field, amount=1):
        self.calls.append(("increment", collection))
        docs = self._collection(collection)
        if doc_id not in docs:
            return None
        docs[doc_id][field] = docs[doc_id].get(field, 0) + amount
        return self._out(doc_id, docs[doc_id])

    async def delete_by_id(self, collection, doc_id):
        self.calls.append(("delete_by_id", collection))
        data = self._collection(collection).pop(doc_id, None)
        return None if data is None else self._out(doc_id, data)

    # Synchronous seeding helpers for tests
    def put(self, collection, model):
        self._collection(collection)[model.id] = model.model_dump(exclude={"id"})
        return model

    def get(self, collection, doc_id):
        return self._collection(collection).get(doc_id)


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def client(store):
    app.dependency_overrides[get_document_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def author(store):
    return store.put(
        config.AUTHORS_COLLECTION,
        Author(name="Ada", hashed_password=auth.get_password_hash("correct horse")),
    )


@pytest.fixture
def auth_headers(author):
    token = auth.create_access_token({"sub": author.id, "name": author.name})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def post(store, author):
    return store.put(
        config.POSTS_COLLECTION,
        Post(
            author=author.id,
            title="First post",
            category="travel",
            text=["Day one.", "Day two."],
            isPublished=False,
        ),
    )


@pytest.fixture
def comment(store, author, post):
    store.put(config.POSTS_COLLECTION, post.model_copy(update={"commentCount": 1}))
    return store.put(
        config.COMMENTS_COLLECTION,
        Comment(commenter=author.id, post=post.id, text="Nice read"),
    )
