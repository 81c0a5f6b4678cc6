"""
Discussion Schemas

Messages in the discussion log and the canvas nodes they reference.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .team import MentionRef


NODE_TAG_PREFIX = "NG-"


class CanvasSelection(BaseModel):
    """Snapshot of the first selected node on the host canvas"""
    model_config = ConfigDict(populate_by_name=True)

    node_id: str = Field(alias="nodeId")
    node_type: str = Field(default="Element", alias="nodeType")
    tag: Optional[str] = None
    selection_count: int = Field(default=1, alias="selectionCount")


class AttachmentRef(BaseModel):
    """Weak reference to a tagged canvas node"""
    model_config = ConfigDict(populate_by_name=True)

    node_id: str = Field(alias="nodeId")
    node_type: str = Field(default="Element", alias="nodeType")
    tag: str


class DiscussionMessage(BaseModel):
    """An entry of the append-only discussion log"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    text: str = ""
    mentions: List[MentionRef] = Field(default_factory=list)
    attachments: List[AttachmentRef] = Field(default_factory=list)
    created_by: str = Field(default="me", alias="createdBy")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="createdAt",
    )

    @field_validator("attachments")
    @classmethod
    def _at_most_one_attachment(cls, value: List[AttachmentRef]) -> List[AttachmentRef]:
        if len(value) > 1:
            raise ValueError("a message carries at most one attachment")
        return value
