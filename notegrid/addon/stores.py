"""
Add-on Stores

The four persisted slots of the add-on: saved NoteSets, the team roster,
the discussion log, and the canvas tag counter. All of them live in one
LocalStore and are read-modify-written on every mutation.
"""

import json
import logging
from typing import Iterable, List, Optional, Tuple

from pydantic import ValidationError

from ..common.kv_store import LocalStore
from ..common.schemas import (
    DiscussionMessage,
    Note,
    NoteSet,
    NoteType,
    TeamMember,
    NODE_TAG_PREFIX,
)

logger = logging.getLogger("notegrid.addon.stores")

NOTES_KEY = "sticky_notes_db"
TEAM_KEY = "team_store"
DISCUSSION_KEY = "discussion_messages"
TAG_COUNTER_KEY = "notegrid_next_node_tag"


def _load_array(store: LocalStore, key: str) -> Optional[list]:
    """Read a JSON array slot; None when the slot is corrupt or not an array"""
    raw = store.get_item(key)
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Slot %s holds invalid JSON: %s", key, e)
        return None
    if not isinstance(parsed, list):
        logger.warning("Slot %s is not an array", key)
        return None
    return parsed


def parse_stored_note(raw: str) -> Note:
    """Decode one serialized note; anything unreadable becomes a task"""
    try:
        obj = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return Note(type=NoteType.TASK, text=str(raw))

    # Empty text is a valid note; only a missing or non-string text is not
    if isinstance(obj, dict) and "type" in obj and isinstance(obj.get("text"), str):
        try:
            return Note.model_validate(obj)
        except ValidationError:
            return Note(type=NoteType.TASK, text=obj["text"])
    return Note(type=NoteType.TASK, text=str(raw))


class NoteSetStore:
    """Saved NoteSets, most recent first"""

    def __init__(self, store: LocalStore):
        self._store = store

    def all(self) -> List[NoteSet]:
        entries = _load_array(self._store, NOTES_KEY) or []
        note_sets = []
        for entry in entries:
            try:
                note_sets.append(NoteSet.model_validate(entry))
            except ValidationError as e:
                logger.warning("Skipping malformed note set: %s", e)
        return note_sets

    def _persist(self, note_sets: List[NoteSet]) -> None:
        data = [ns.model_dump(by_alias=True) for ns in note_sets]
        self._store.set_item(NOTES_KEY, json.dumps(data))

    def save_new(self, title: str, notes: Iterable[Note]) -> NoteSet:
        note_sets = self.all()
        note_set = NoteSet(
            title=title or "Untitled note",
            notes=[note.serialize() for note in notes],
        )
        note_sets.insert(0, note_set)
        self._persist(note_sets)
        return note_set

    def get(self, note_set_id: str) -> Optional[NoteSet]:
        for note_set in self.all():
            if note_set.id == note_set_id:
                return note_set
        return None

    def open(self, note_set_id: str) -> Optional[Tuple[NoteSet, List[Note]]]:
        note_set = self.get(note_set_id)
        if note_set is None:
            return None
        return note_set, [parse_stored_note(raw) for raw in note_set.notes]


class TeamStore:
    """
    The team roster.

    At most one member is lead; promoting a member demotes every other one
    in the same write.
    """

    def __init__(self, store: LocalStore):
        self._store = store
        self._members: List[TeamMember] = []
        self._corrupt = False

    def init(self) -> List[TeamMember]:
        self._members = self._load()
        return self.members

    def _load(self) -> List[TeamMember]:
        entries = _load_array(self._store, TEAM_KEY)
        if entries is None:
            self._corrupt = True
            return []
        self._corrupt = False
        members = []
        for entry in entries:
            try:
                members.append(TeamMember.model_validate(entry))
            except ValidationError as e:
                logger.warning("Skipping malformed team member: %s", e)
        return members

    def _persist(self) -> None:
        data = [m.model_dump(by_alias=True) for m in self._members]
        self._store.set_item(TEAM_KEY, json.dumps(data))

    def clear_if_corrupt(self) -> None:
        """Reset the slot when its content could not be read"""
        if self._corrupt:
            self._members = []
            self._persist()
            self._corrupt = False

    @property
    def members(self) -> List[TeamMember]:
        return list(self._members)

    @property
    def lead(self) -> Optional[TeamMember]:
        for member in self._members:
            if member.is_lead:
                return member
        return None

    def get(self, member_id: str) -> Optional[TeamMember]:
        for member in self._members:
            if member.id == member_id:
                return member
        return None

    def add_member(
        self,
        name: str,
        email: str = "",
        role: str = "",
        is_lead: bool = False,
    ) -> TeamMember:
        member = TeamMember(
            name=(name or "").strip() or "Unnamed",
            email=(email or "").strip(),
            role=(role or "").strip(),
            is_lead=bool(is_lead),
        )
        if member.is_lead:
            self._members = [m.model_copy(update={"is_lead": False}) for m in self._members]
        self._members.append(member)
        self._persist()
        return member

    def set_lead(self, member_id: str) -> None:
        self._members = [
            m.model_copy(update={"is_lead": m.id == member_id}) for m in self._members
        ]
        self._persist()

    def remove_member(self, member_id: str) -> None:
        self._members = [m for m in self._members if m.id != member_id]
        self._persist()


class DiscussionStore:
    """Append-only discussion log"""

    def __init__(self, store: LocalStore):
        self._store = store
        self._messages: List[DiscussionMessage] = []

    def load(self) -> List[DiscussionMessage]:
        entries = _load_array(self._store, DISCUSSION_KEY) or []
        messages = []
        for entry in entries:
            try:
                messages.append(DiscussionMessage.model_validate(entry))
            except ValidationError as e:
                logger.warning("Skipping malformed discussion message: %s", e)
        self._messages = messages
        return self.messages

    @property
    def messages(self) -> List[DiscussionMessage]:
        return list(self._messages)

    def add_message(self, message: DiscussionMessage) -> None:
        self._messages.append(message)
        data = [m.model_dump(mode="json", by_alias=True) for m in self._messages]
        self._store.set_item(DISCUSSION_KEY, json.dumps(data))


def format_node_tag(n) -> str:
    try:
        num = max(1, int(n or 1))
    except (TypeError, ValueError):
        num = 1
    return f"{NODE_TAG_PREFIX}{num:03d}"


class TagCounter:
    """Monotonic NG-### tag issuer backed by a persisted counter"""

    def __init__(self, store: LocalStore):
        self._store = store

    def peek(self) -> int:
        raw = self._store.get_item(TAG_COUNTER_KEY)
        try:
            return int(raw) if raw else 1
        except ValueError:
            logger.warning("Tag counter holds %r, restarting at 1", raw)
            return 1

    def next_tag(self) -> str:
        current = self.peek()
        tag = format_node_tag(current)
        self._store.set_item(TAG_COUNTER_KEY, str(max(1, current) + 1))
        return tag
