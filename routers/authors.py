import logging
from datetime import timedelta
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm

import AuthAndAuthor as auth
import config
from domain.authors import Author, AuthorPublic, SignUpAuthor
from domain.errors import Conflict, NotAuthenticated, NotFound
from domain.ids import require_valid_id
from services.datastore import DocumentStore, get_document_store
from services.validation import FieldChain, run_pipeline

logger = logging.getLogger('uvicorn.error')

router = APIRouter(tags=["authors"])

SIGN_UP_RULES = [
    FieldChain("name", "Name must not be empty").trim().not_empty().escape(),
    FieldChain("password", "Password must not be empty")
    .not_empty()
    .max_bytes(auth.MAX_PASSWORD_BYTES, "Password must be at most 72 bytes"),
]


@router.post("/auth/signup", response_model=AuthorPublic, status_code=status.HTTP_201_CREATED)
async def sign_up(
    author_in: Optional[SignUpAuthor] = None,
    store: DocumentStore = Depends(get_document_store)
):
    values = run_pipeline((author_in or SignUpAuthor()).model_dump(), SIGN_UP_RULES)

    # Uniqueness is checked, not enforced: two racing sign-ups can both pass
    if await store.find(config.AUTHORS_COLLECTION, {"name": values["name"]}):
        logger.warning(f"Sign up rejected, author name '{values['name']}' already exists.")
        raise Conflict("An author with that name already exists")

    author = Author(name=values["name"], hashed_password=auth.get_password_hash(values["password"]))
    await store.insert(config.AUTHORS_COLLECTION, author.id, author.model_dump(exclude={"id"}))
    logger.info(f"Created author '{author.id}' ({author.name})")
    return AuthorPublic(id=author.id, name=author.name)


@router.post("/auth/token", response_model=auth.Token)
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    store: DocumentStore = Depends(get_document_store)
) -> auth.Token:
    author = await auth.authenticate_author(store, form_data.username, form_data.password)
    if not author:
        raise NotAuthenticated("Incorrect name or password")
    access_token_expires = timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = auth.create_access_token(
        data={"sub": author.id, "name": author.name}, expires_delta=access_token_expires
    )
    return auth.Token(access_token=access_token, token_type="bearer")


@router.get("/authors/{author_id}", response_model=AuthorPublic)
async def get_author_by_id(
    author_id: str,
    store: DocumentStore = Depends(get_document_store)
):
    require_valid_id(author_id)
    author_data = await store.find_by_id(config.AUTHORS_COLLECTION, author_id)
    if author_data is None:
        raise NotFound()
    return AuthorPublic(id=author_data["id"], name=author_data["name"])
