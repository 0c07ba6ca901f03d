from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Annotated

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jwt.exceptions import InvalidTokenError
from pydantic import BaseModel
import logging

import config
import secretmanager
from domain.authors import Author
from domain.errors import NotAuthenticated
from domain.ids import is_valid_id
from services.datastore import DocumentStore
from services.validation import escape_html

ALGORITHM = "HS256"
MAX_PASSWORD_BYTES = 72

logger = logging.getLogger('uvicorn.error')

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token", auto_error=False)

class Token(BaseModel):
    access_token: str
    token_type: str

class CurrentAuthor(BaseModel):
    id: str
    name: str | None = None


@lru_cache(maxsize=1)
def get_secret_key():
    if config.AUTH_SECRET_KEY:
        return config.AUTH_SECRET_KEY
    if config.AUTH_SECRET_NAME:
        return secretmanager.get_secret(config.AUTH_SECRET_NAME)
    raise RuntimeError("No token signing key configured: set AUTH_SECRET_KEY or AUTH_SECRET_NAME")


def verify_password(plain_password, hashed_password):
    # bcrypt refuses anything longer, and no stored hash can match it
    if len(plain_password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(
        bytes(plain_password, encoding="utf-8"),
        bytes(hashed_password, encoding="utf-8"),
    )


def get_password_hash(password):
    return bcrypt.hashpw(
        bytes(password, encoding="utf-8"),
        bcrypt.gensalt(),
    ).decode("utf-8")


async def get_author_by_name(store: DocumentStore, name: str):
    # Names are stored sanitized, so look them up the same way
    matches = await store.find(config.AUTHORS_COLLECTION, {"name": escape_html(name.strip())})
    if matches:
        return Author(**matches[0])


async def authenticate_author(store: DocumentStore, name: str, password: str):
    author = await get_author_by_name(store, name)
    if not author or not author.hashed_password:
        return False
    if not verify_password(password, author.hashed_password):
        return False
    return author


def create_access_token(data: dict, expires_delta: timedelta | None = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=15)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, get_secret_key(), algorithm=ALGORITHM)
    return encoded_jwt


async def get_current_author(token: Annotated[str | None, Depends(oauth2_scheme)]) -> CurrentAuthor:
    """Caller identity for write routes, taken from the bearer token alone."""
    if not token:
        raise NotAuthenticated("Not authenticated")
    try:
        payload = jwt.decode(token, get_secret_key(), algorithms=[ALGORITHM])
    except InvalidTokenError:
        logger.warning("Rejected bearer token that failed verification.")
        raise NotAuthenticated()
    author_id = payload.get("sub")
    if not is_valid_id(author_id):
        raise NotAuthenticated()
    return CurrentAuthor(id=author_id, name=payload.get("name"))
