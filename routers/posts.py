# In routers/posts.py

import logging
from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError
from typing import List, Optional, Annotated

import AuthAndAuthor as auth
from config import POSTS_COLLECTION
from domain.errors import InvalidId, InvalidQuery, NotFound
from domain.ids import is_valid_id, require_valid_id
from domain.posts import CATEGORIES, Post, PostForm
from services.datastore import DocumentStore, get_document_store
from services.validation import (
    FieldChain, run_pipeline, convert_to_array_of_paragraphs, selection_to_boolean
)

logger = logging.getLogger('uvicorn.error')

router = APIRouter(
    prefix="/posts",
    tags=["posts"]
)


def post_rules(optional: bool = False) -> List[FieldChain]:
    chains = [
        FieldChain("title", "Title must not be empty").trim().not_empty().escape(),
        FieldChain("category", "Category must be one of the listed options")
            .to_lower_case()
            .is_in(CATEGORIES),
        FieldChain("text", "Article cannot be empty")
            .trim()
            .not_empty()
            .escape()
            .custom_sanitizer(convert_to_array_of_paragraphs),
        # A missing selection reads as "" and so publishes nothing
        FieldChain("isPublished")
            .trim()
            .to_lower_case()
            .escape()
            .custom_sanitizer(selection_to_boolean),
    ]
    if optional:
        for chain in chains:
            chain.optional()
    return chains


NEW_POST_RULES = post_rules()
EDIT_POST_RULES = post_rules(optional=True)


# --- Post API Routes ---
@router.get("", response_model=List[Post])
async def get_all_posts(
    store: DocumentStore = Depends(get_document_store)
):
    # Newest posts first
    all_posts = []
    for post_data in await store.find(POSTS_COLLECTION, order_by="timestamp"):
        try:
            all_posts.append(Post(**post_data))
        except ValidationError as validation_error:
            logger.error(f"Data validation error for post doc {post_data.get('id')}: {validation_error}. Data: {post_data}")
            continue
    return all_posts


@router.get("/{post_id}", response_model=Post)
async def get_post_by_id(
    post_id: str,
    store: DocumentStore = Depends(get_document_store)
):
    require_valid_id(post_id)
    post_data = await store.find_by_id(POSTS_COLLECTION, post_id)
    if post_data is None:
        logger.warning(f"Post document with ID {post_id} not found.")
        raise NotFound()
    return Post(**post_data)


@router.post("", response_model=Post)
async def create_post(
    current_author: Annotated[auth.CurrentAuthor, Depends(auth.get_current_author)],
    post_in: Optional[PostForm] = None,
    store: DocumentStore = Depends(get_document_store)
):
    values = run_pipeline((post_in or PostForm()).model_dump(), NEW_POST_RULES)

    # Only create and store a new post if no errors
    new_post = Post(
        author=current_author.id,
        title=values["title"],
        category=values["category"],
        text=values["text"],
        isPublished=values["isPublished"],
    )
    await store.insert(POSTS_COLLECTION, new_post.id, new_post.model_dump(exclude={"id"}))
    logger.info(f"Author '{current_author.id}' created post '{new_post.id}'")
    return new_post


@router.put("/{post_id}", response_model=Post)
async def edit_post(
    post_id: str,
    current_author: Annotated[auth.CurrentAuthor, Depends(auth.get_current_author)],
    post_in: Optional[PostForm] = None,
    store: DocumentStore = Depends(get_document_store)
):
    require_valid_id(post_id)
    values = run_pipeline((post_in or PostForm()).model_dump(), EDIT_POST_RULES)

    existing_data = await store.find_by_id(POSTS_COLLECTION, post_id)
    if existing_data is None:
        logger.warning(f"Edit attempt on non-existent post {post_id} by author {current_author.id}")
        raise NotFound()
    existing_post = Post(**existing_data)

    post_with_edits = Post(
        id=existing_post.id,
        author=existing_post.author,
        title=values.get("title", existing_post.title),
        timestamp=existing_post.timestamp,
        category=values.get("category", existing_post.category),
        text=values.get("text", existing_post.text),
        isPublished=values.get("isPublished", existing_post.isPublished),
    )
    # commentCount is left out so concurrent comment writes are not overwritten
    edited_data = await store.replace_by_id(
        POSTS_COLLECTION, post_id, post_with_edits.model_dump(exclude={"id", "commentCount"})
    )
    if edited_data is None:
        raise NotFound()
    logger.info(f"Author '{current_author.id}' edited post '{post_id}'")
    return Post(**edited_data)


@router.patch("/{post_id}", response_model=Post)
async def publish_post(
    post_id: str,
    current_author: Annotated[auth.CurrentAuthor, Depends(auth.get_current_author)],
    publish: Optional[str] = Query(default=None),
    store: DocumentStore = Depends(get_document_store)
):
    if not is_valid_id(post_id):
        raise InvalidId()
    if publish not in ("true", "false"):
        raise InvalidQuery()

    edited_data = await store.update_by_id(POSTS_COLLECTION, post_id, {"isPublished": publish == "true"})
    if edited_data is None:
        raise NotFound()
    logger.info(f"Author '{current_author.id}' set post '{post_id}' isPublished={publish}")
    return Post(**edited_data)


@router.delete("/{post_id}", response_model=Post)
async def delete_post(
    post_id: str,
    current_author: Annotated[auth.CurrentAuthor, Depends(auth.get_current_author)],
    store: DocumentStore = Depends(get_document_store)
):
    require_valid_id(post_id)
    deleted_data = await store.delete_by_id(POSTS_COLLECTION, post_id)
    if deleted_data is None:
        raise NotFound()
    # Comments on the post are kept
    logger.info(f"Author '{current_author.id}' deleted post '{post_id}'")
    return Post(**deleted_data)
