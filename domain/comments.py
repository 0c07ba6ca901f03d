from pydantic import BaseModel, Field
from typing import Any, List, Optional, Union
import datetime

from domain.ids import new_id


class Comment(BaseModel):
    id: str = Field(default_factory=new_id)
    commenter: str # Author id
    post: str # Post id, fixed once created
    timestamp: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.timezone.utc))
    text: str
    replies: List[Any] = Field(default_factory=list)

    class Config:
        from_attributes = True


class CommenterName(BaseModel):
    name: str


class PopulatedComment(Comment):
    # Commenter reduced to the author's name; None if the author is gone
    commenter: Optional[CommenterName] = None


class CommentForm(BaseModel):
    text: Optional[Union[str, int, float, bool]] = None
