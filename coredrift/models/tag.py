"""Tag and Note data models."""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from coredrift.models.document import Document


class Tag(Document):
    """A free-form label for trades and notes."""

    id: Optional[str] = Field(default=None, description="Repository-assigned ID")
    user_id: str = Field(..., min_length=1, description="Owning user ID")
    name: str = Field(..., min_length=1, description="Tag name, unique per user")
    color: Optional[str] = Field(default=None, description="Display color")


class Note(Document):
    """A rich-text journal note."""

    id: Optional[str] = Field(default=None, description="Repository-assigned ID")
    user_id: str = Field(..., min_length=1, description="Owning user ID")
    title: str = Field(default="", description="Note title")
    content: Optional[Any] = Field(default=None, description="Rich-text document")
    tags: list[str] = Field(default_factory=list, description="Tag names")
    trade_id: Optional[str] = Field(default=None, description="Annotated trade ID")
    created_at: Optional[datetime] = Field(default=None, description="Creation time")
    updated_at: Optional[datetime] = Field(default=None, description="Last update time")
