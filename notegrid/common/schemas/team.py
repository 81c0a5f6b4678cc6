"""
Team Schemas

Roster members and the mention references resolved against them.
"""

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


EVERYONE_ID = "everyone"
EVERYONE_LABEL = "@Everyone"


class MentionType(str, Enum):
    """Who a mention points at"""
    EVERYONE = "everyone"
    LEAD = "lead"
    USER = "user"


class TeamMember(BaseModel):
    """A roster member; at most one member is lead"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    email: str = ""
    role: str = ""
    is_lead: bool = Field(default=False, alias="isLead")

    @property
    def label(self) -> str:
        return f"@{self.name}"


class MentionRef(BaseModel):
    """A mention resolved from message text"""
    id: str
    label: str
    type: MentionType


class MentionCandidate(BaseModel):
    """An entry offered by the mention completion list"""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    label: str
    type: MentionType
    name: str
    role: str = ""
    is_lead: bool = Field(default=False, alias="isLead")

    def to_ref(self) -> MentionRef:
        return MentionRef(id=self.id, label=self.label, type=self.type)

    @classmethod
    def everyone(cls) -> "MentionCandidate":
        return cls(
            id=EVERYONE_ID,
            label=EVERYONE_LABEL,
            type=MentionType.EVERYONE,
            name="Everyone",
            role="Notify all team members",
        )

    @classmethod
    def from_member(cls, member: TeamMember) -> "MentionCandidate":
        return cls(
            id=member.id,
            label=member.label,
            type=MentionType.LEAD if member.is_lead else MentionType.USER,
            name=member.name,
            role=member.role,
            is_lead=member.is_lead,
        )


class NotifyRequest(BaseModel):
    """Body of POST /notify/tag"""
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    tagged_user: Optional[str] = Field(default=None, alias="taggedUser")
    tagged_by: Optional[str] = Field(default="You", alias="taggedBy")
    message: Optional[str] = None
    context: Optional[str] = "Discussion Panel"
