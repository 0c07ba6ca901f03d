from pydantic import BaseModel, Field
from typing import Optional, Union

from domain.ids import new_id


class Author(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    hashed_password: str | None = None


class AuthorPublic(BaseModel):
    id: str
    name: str

    class Config:
        from_attributes = True


class SignUpAuthor(BaseModel):
    name: Optional[Union[str, int, float, bool]] = None
    password: Optional[Union[str, int, float, bool]] = None
