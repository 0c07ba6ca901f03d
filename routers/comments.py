import asyncio
import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

import AuthAndAuthor as auth
from config import AUTHORS_COLLECTION, COMMENTS_COLLECTION, POSTS_COLLECTION
from domain.comments import Comment, CommentForm, CommenterName, PopulatedComment
from domain.errors import InvalidQuery, NotFound, PartialUpdateFailure
from domain.ids import is_valid_id, require_valid_id
from services.datastore import DocumentStore, get_document_store
from services.validation import FieldChain, remove_dangerous_script_tags, run_pipeline

logger = logging.getLogger('uvicorn.error')

router = APIRouter(tags=["comments"])

# Script blocks go before the emptiness check; once escaped they would no longer match
COMMENT_RULES = [
    FieldChain("text", "Comment cannot be empty")
        .trim()
        .custom_sanitizer(remove_dangerous_script_tags)
        .trim()
        .not_empty()
        .escape(),
]


async def populate_commenters(store: DocumentStore, comments: List[Comment]) -> List[PopulatedComment]:
    """Swap each commenter id for ``{"name": ...}`` of that author."""
    authors = await store.find_by_ids(AUTHORS_COLLECTION, [c.commenter for c in comments])
    populated = []
    for comment in comments:
        author = authors.get(comment.commenter)
        populated.append(PopulatedComment(
            **comment.model_dump(exclude={"commenter"}),
            commenter=CommenterName(name=author["name"]) if author else None,
        ))
    return populated


async def list_comments(
    store: DocumentStore,
    post_id: Optional[str] = None,
    commenter_id: Optional[str] = None,
) -> List[PopulatedComment]:
    search_filter = {}
    if post_id:
        search_filter["post"] = post_id
    if commenter_id:
        search_filter["commenter"] = commenter_id

    comments = [
        Comment(**data)
        for data in await store.find(COMMENTS_COLLECTION, search_filter, order_by="timestamp")
    ]
    return await populate_commenters(store, comments)


def require_valid_filters(*filters: Optional[str]) -> None:
    # Absent filters are fine, present ones must look like ids
    for value in filters:
        if value is not None and not is_valid_id(value):
            raise InvalidQuery()


# --- Comment API Routes ---
@router.get("/comments", response_model=List[PopulatedComment])
async def get_all_comments(
    post: Optional[str] = Query(default=None),
    commenter: Optional[str] = Query(default=None),
    store: DocumentStore = Depends(get_document_store)
):
    require_valid_filters(post, commenter)
    return await list_comments(store, post_id=post, commenter_id=commenter)


@router.get("/posts/{post_id}/comments", response_model=List[PopulatedComment])
async def get_comments_for_post(
    post_id: str,
    commenter: Optional[str] = Query(default=None),
    store: DocumentStore = Depends(get_document_store)
):
    require_valid_id(post_id)
    require_valid_filters(commenter)
    return await list_comments(store, post_id=post_id, commenter_id=commenter)


@router.get("/comments/{comment_id}", response_model=Comment)
async def get_comment_by_id(
    comment_id: str,
    store: DocumentStore = Depends(get_document_store)
):
    require_valid_id(comment_id)
    comment_data = await store.find_by_id(COMMENTS_COLLECTION, comment_id)
    if comment_data is None:
        logger.warning(f"Comment {comment_id} not found")
        raise NotFound()
    return Comment(**comment_data)


@router.post(
    "/posts/{post_id}/comments",
    response_model=PopulatedComment,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    post_id: str,
    current_author: Annotated[auth.CurrentAuthor, Depends(auth.get_current_author)],
    comment_in: Optional[CommentForm] = None,
    commenter_id: Optional[str] = Query(default=None, alias="commenterID"),
    store: DocumentStore = Depends(get_document_store)
):
    require_valid_id(post_id)
    if commenter_id is None:
        commenter_id = current_author.id
    if not is_valid_id(commenter_id):
        raise InvalidQuery()

    values = run_pipeline((comment_in or CommentForm()).model_dump(), COMMENT_RULES)
    new_comment = Comment(
        commenter=commenter_id,
        post=post_id,
        text=values["text"],
        replies=[],
    )

    # Not a transaction: either write can land without the other
    saved_comment, updated_post = await asyncio.gather(
        store.insert(COMMENTS_COLLECTION, new_comment.id, new_comment.model_dump(exclude={"id"})),
        store.increment(POSTS_COLLECTION, post_id, "commentCount", 1),
    )
    if not saved_comment or not updated_post:
        logger.error(
            f"Partial write creating comment '{new_comment.id}' on post '{post_id}': "
            f"comment saved={bool(saved_comment)}, post counter updated={bool(updated_post)}"
        )
        raise PartialUpdateFailure()

    logger.info(f"Author '{commenter_id}' created comment '{new_comment.id}' on post '{post_id}'")
    populated = await populate_commenters(store, [new_comment])
    return populated[0]


@router.put("/comments/{comment_id}", response_model=Comment)
async def edit_comment(
    comment_id: str,
    current_author: Annotated[auth.CurrentAuthor, Depends(auth.get_current_author)],
    comment_in: Optional[CommentForm] = None,
    store: DocumentStore = Depends(get_document_store)
):
    require_valid_id(comment_id)
    values = run_pipeline((comment_in or CommentForm()).model_dump(), COMMENT_RULES)

    existing_data = await store.find_by_id(COMMENTS_COLLECTION, comment_id)
    if existing_data is None:
        raise NotFound()
    existing_comment = Comment(**existing_data)

    comment_with_edits = Comment(
        id=existing_comment.id,
        commenter=existing_comment.commenter,
        post=existing_comment.post,
        timestamp=existing_comment.timestamp,
        text=values["text"],
        replies=existing_comment.replies,
    )
    edited_data = await store.replace_by_id(
        COMMENTS_COLLECTION, comment_id, comment_with_edits.model_dump(exclude={"id"})
    )
    if edited_data is None:
        raise NotFound()
    logger.info(f"Author '{current_author.id}' edited comment '{comment_id}'")
    return Comment(**edited_data)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: str,
    current_author: Annotated[auth.CurrentAuthor, Depends(auth.get_current_author)],
    store: DocumentStore = Depends(get_document_store)
):
    require_valid_id(comment_id)
    deleted_data = await store.delete_by_id(COMMENTS_COLLECTION, comment_id)
    if deleted_data is None:
        raise NotFound()

    deleted_comment = Comment(**deleted_data)
    # Best effort, a missing post is not an error here
    await store.increment(POSTS_COLLECTION, deleted_comment.post, "commentCount", -1)
    logger.info(
        f"Author '{current_author.id}' deleted comment '{comment_id}' from post '{deleted_comment.post}': "
        f"{deleted_comment.model_dump(mode='json')}"
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
