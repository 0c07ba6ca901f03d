import datetime

import pytest

import config
from domain.posts import Post

MISSING_ID = "A" * 20
MALFORMED_IDS = ["abc", "A" * 21, "not-a-valid-id-at-al", "65068c32be2fd5ade9800662"]


def test_list_posts_newest_first(client, store, author):
    older = store.put(config.POSTS_COLLECTION, Post(
        author=author.id, title="Old", category="other", text=["x"],
        timestamp=datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc),
    ))
    newer = store.put(config.POSTS_COLLECTION, Post(
        author=author.id, title="New", category="other", text=["y"],
        timestamp=datetime.datetime(2024, 6, 1, tzinfo=datetime.timezone.utc),
    ))

    response = client.get("/posts")

    assert response.status_code == 200
    assert [p["id"] for p in response.json()] == [newer.id, older.id]


def test_get_post(client, post):
    response = client.get(f"/posts/{post.id}")
    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "First post"
    assert body["commentCount"] == 0
    assert body["text"] == ["Day one.", "Day two."]


def test_get_missing_post_is_404(client):
    response = client.get(f"/posts/{MISSING_ID}")
    assert response.status_code == 404
    assert response.json() == {"message": "Failed to fetch - no resource with that ID"}


@pytest.mark.parametrize("bad_id", MALFORMED_IDS)
@pytest.mark.parametrize("method", ["get", "put", "patch", "delete"])
def test_malformed_id_is_400_before_touching_store(client, store, auth_headers, method, bad_id):
    kwargs = {"headers": auth_headers}
    if method == "put":
        kwargs["json"] = {"title": "x"}
    if method == "patch":
        kwargs["params"] = {"publish": "true"}

    response = getattr(client, method)(f"/posts/{bad_id}", **kwargs)

    assert response.status_code == 400
    assert response.json() == {"message": "Failed to fetch - invalid ID format"}
    assert store.calls == []


def test_create_post(client, store, author, auth_headers):
    response = client.post("/posts", headers=auth_headers, json={
        "title": "  A <b>bold</b> start ",
        "category": "Fiction",
        "text": "First.\r\n\r\nSecond.\nThird.",
        "isPublished": "Yes",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["author"] == author.id
    assert body["title"] == "A &lt;b&gt;bold&lt;&#x2F;b&gt; start"
    assert body["category"] == "fiction"
    assert body["text"] == ["First.", "Second.", "Third."]
    assert body["isPublished"] is True
    assert body["commentCount"] == 0
    assert store.get(config.POSTS_COLLECTION, body["id"])["title"] == body["title"]


def test_create_post_without_selection_is_unpublished(client, auth_headers):
    response = client.post("/posts", headers=auth_headers, json={
        "title": "Draft", "category": "poetry", "text": "lines",
    })
    assert response.status_code == 200
    assert response.json()["isPublished"] is False


def test_create_post_with_empty_title_returns_errors_and_stores_nothing(client, store, auth_headers):
    response = client.post("/posts", headers=auth_headers, json={
        "title": "   ", "category": "travel", "text": "Body",
    })

    assert response.status_code == 200
    errors = response.json()["errors"]
    assert any(e["msg"] == "Title must not be empty" for e in errors)
    assert store.collections.get(config.POSTS_COLLECTION, {}) == {}


@pytest.mark.parametrize("category,accepted", [
    ("FICTION", True),
    ("Non-Fiction", True),
    ("Cooking", False),
])
def test_create_post_category_is_lower_cased(client, auth_headers, category, accepted):
    response = client.post("/posts", headers=auth_headers, json={
        "title": "t", "category": category, "text": "b",
    })
    assert response.status_code == 200
    if accepted:
        assert response.json()["category"] == category.lower()
    else:
        assert response.json()["errors"][0]["path"] == "category"


def test_create_post_requires_token(client):
    response = client.post("/posts", json={"title": "t", "category": "other", "text": "b"})
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_create_post_rejects_bad_token(client):
    response = client.post(
        "/posts",
        headers={"Authorization": "Bearer not.a.token"},
        json={"title": "t", "category": "other", "text": "b"},
    )
    assert response.status_code == 401


def test_edit_post_with_only_title_keeps_other_fields(client, store, post, auth_headers):
    store.put(config.POSTS_COLLECTION, post.model_copy(update={"commentCount": 3, "isPublished": True}))

    response = client.put(f"/posts/{post.id}", headers=auth_headers, json={"title": "New"})

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "New"
    assert body["id"] == post.id
    assert body["author"] == post.author
    assert body["category"] == post.category
    assert body["text"] == post.text
    assert body["isPublished"] is True
    assert body["commentCount"] == 3
    assert datetime.datetime.fromisoformat(body["timestamp"]) == post.timestamp


def test_edit_post_replaces_provided_fields(client, post, auth_headers):
    response = client.put(f"/posts/{post.id}", headers=auth_headers, json={
        "category": "Poetry", "text": "one\n\ntwo", "isPublished": "no",
    })
    body = response.json()
    assert body["category"] == "poetry"
    assert body["text"] == ["one", "two"]
    assert body["isPublished"] is False
    assert body["title"] == "First post"


def test_edit_post_validation_errors(client, store, post, auth_headers):
    response = client.put(f"/posts/{post.id}", headers=auth_headers, json={"category": "gossip"})
    assert response.status_code == 200
    assert response.json()["errors"][0]["msg"] == "Category must be one of the listed options"
    assert store.get(config.POSTS_COLLECTION, post.id)["category"] == "travel"


def test_edit_missing_post_is_404(client, auth_headers):
    response = client.put(f"/posts/{MISSING_ID}", headers=auth_headers, json={"title": "New"})
    assert response.status_code == 404


@pytest.mark.parametrize("flag,expected", [("true", True), ("false", False)])
def test_publish_post(client, store, post, auth_headers, flag, expected):
    response = client.patch(f"/posts/{post.id}", headers=auth_headers, params={"publish": flag})
    assert response.status_code == 200
    assert response.json()["isPublished"] is expected
    assert store.get(config.POSTS_COLLECTION, post.id)["isPublished"] is expected


@pytest.mark.parametrize("params", [{"publish": "maybe"}, {"publish": "TRUE"}, {}])
def test_publish_post_with_bad_flag_is_invalid_query(client, post, auth_headers, params):
    response = client.patch(f"/posts/{post.id}", headers=auth_headers, params=params)
    assert response.status_code == 400
    assert response.json() == {"message": "Failed to fetch - invalid query"}


def test_publish_post_invalid_id_takes_precedence(client, auth_headers):
    response = client.patch("/posts/bad", headers=auth_headers, params={"publish": "maybe"})
    assert response.status_code == 400
    assert response.json()["message"] == "Failed to fetch - invalid ID format"


def test_publish_missing_post_is_404(client, auth_headers):
    response = client.patch(f"/posts/{MISSING_ID}", headers=auth_headers, params={"publish": "true"})
    assert response.status_code == 404


def test_delete_post_returns_deleted_entity(client, store, post, auth_headers):
    response = client.delete(f"/posts/{post.id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["id"] == post.id
    assert store.get(config.POSTS_COLLECTION, post.id) is None


def test_delete_missing_post_is_404(client, auth_headers):
    response = client.delete(f"/posts/{MISSING_ID}", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.parametrize("bad_id", MALFORMED_IDS)
def test_bodyless_edit_with_malformed_id_is_400(client, store, auth_headers, bad_id):
    response = client.put(f"/posts/{bad_id}", headers=auth_headers)

    assert response.status_code == 400
    assert response.json() == {"message": "Failed to fetch - invalid ID format"}
    assert store.calls == []


def test_bodyless_edit_keeps_post_unchanged(client, post, auth_headers):
    response = client.put(f"/posts/{post.id}", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == post.title
    assert body["category"] == post.category
    assert body["text"] == post.text


def test_create_post_coerces_scalar_fields(client, auth_headers):
    response = client.post("/posts", headers=auth_headers, json={
        "title": 5, "category": "other", "text": 42,
    })

    assert response.status_code == 200
    assert response.json()["title"] == "5"
    assert response.json()["text"] == ["42"]


def test_create_post_with_unparseable_field_returns_errors(client, store, auth_headers):
    response = client.post("/posts", headers=auth_headers, json={
        "title": ["a", "b"], "category": "other", "text": "body",
    })

    assert response.status_code == 200
    errors = response.json()["errors"]
    assert [(e["path"], e["location"], e["value"]) for e in errors] == [("title", "body", ["a", "b"])]
    assert store.collections.get(config.POSTS_COLLECTION, {}) == {}


def test_create_post_without_body_returns_errors(client, store, auth_headers):
    response = client.post("/posts", headers=auth_headers)

    assert response.status_code == 200
    assert {e["path"] for e in response.json()["errors"]} == {"title", "category", "text"}
    assert store.collections.get(config.POSTS_COLLECTION, {}) == {}
