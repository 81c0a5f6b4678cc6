"""
Note Schemas

A Note is the only thing the analysis service produces: a category plus a
line of text. NoteSets are saved snapshots of one analysis run.
"""

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class NoteType(str, Enum):
    """Sticky note categories"""
    TASK = "task"
    DECISION = "decision"
    QUESTION = "question"


TYPE_ORDER = [NoteType.TASK, NoteType.DECISION, NoteType.QUESTION]

TYPE_LABELS = {
    NoteType.TASK: "Tasks",
    NoteType.DECISION: "Decisions",
    NoteType.QUESTION: "Questions",
}


class Note(BaseModel):
    """A single sticky note"""
    model_config = ConfigDict(frozen=True)

    type: NoteType
    text: str

    def serialize(self) -> str:
        """Serialized form stored inside a NoteSet"""
        return json.dumps({"type": self.type.value, "text": self.text})


def _new_id() -> str:
    return str(uuid.uuid4())


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class NoteSet(BaseModel):
    """A saved analysis result"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    title: str = "Untitled note"
    created_at: str = Field(default_factory=_now_iso, alias="createdAt")
    notes: List[str] = Field(default_factory=list, alias="stickyNotes")
