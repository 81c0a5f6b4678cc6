"""
NoteGrid Schemas
"""

from .notes import (
    Note,
    NoteSet,
    NoteType,
    TYPE_ORDER,
    TYPE_LABELS,
)
from .team import (
    TeamMember,
    MentionRef,
    MentionCandidate,
    MentionType,
    NotifyRequest,
    EVERYONE_ID,
    EVERYONE_LABEL,
)
from .discussion import (
    AttachmentRef,
    CanvasSelection,
    DiscussionMessage,
    NODE_TAG_PREFIX,
)

__all__ = [
    "Note",
    "NoteSet",
    "NoteType",
    "TYPE_ORDER",
    "TYPE_LABELS",
    "TeamMember",
    "MentionRef",
    "MentionCandidate",
    "MentionType",
    "NotifyRequest",
    "EVERYONE_ID",
    "EVERYONE_LABEL",
    "AttachmentRef",
    "CanvasSelection",
    "DiscussionMessage",
    "NODE_TAG_PREFIX",
]
