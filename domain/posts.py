from pydantic import BaseModel, Field
from typing import List, Optional, Union
import datetime

from domain.ids import new_id

CATEGORIES = (
    "fiction",
    "non-fiction",
    "poetry",
    "technology",
    "travel",
    "lifestyle",
    "other",
)


class Post(BaseModel):
    id: str = Field(default_factory=new_id)
    author: str # Author id
    title: str
    timestamp: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.timezone.utc))
    category: str
    text: List[str]
    isPublished: bool = False
    commentCount: int = 0 # Only ever changed by the comment routes

    class Config:
        from_attributes = True


class PostForm(BaseModel):
    """Raw post fields as submitted; sanitized by the route before use."""
    # Scalars are accepted and stringified by the validation chains
    title: Optional[Union[str, int, float, bool]] = None
    category: Optional[Union[str, int, float, bool]] = None
    text: Optional[Union[str, int, float, bool]] = None
    isPublished: Optional[Union[str, int, float, bool]] = None
