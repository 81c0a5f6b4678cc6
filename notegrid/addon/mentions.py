"""
Mention Engine

Detects @ triggers while a message is being typed, offers roster-filtered
completions, and resolves the mentions of a finished message.

Resolution is name-based and runs on the final text at send time, so it
can disagree with what the completion list offered while typing.
"""

import html
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from ..common.schemas import (
    EVERYONE_ID,
    EVERYONE_LABEL,
    MentionCandidate,
    MentionRef,
    MentionType,
    TeamMember,
)

logger = logging.getLogger("notegrid.addon.mentions")

MENTION_PATTERN = re.compile(r"@(\w+)")
NODE_TAG_LINK_PATTERN = re.compile(r"\[(NG-\d{3,})\]")

DEFAULT_PLACEHOLDER = "Type a message..."


def build_candidates(members: Iterable[TeamMember], query: str = "") -> List[MentionCandidate]:
    """
    Completion list: @Everyone, then the lead, then the other members in
    roster order, filtered by a case-insensitive substring of name or label.
    """
    members = list(members)
    candidates = [MentionCandidate.everyone()]

    lead = next((m for m in members if m.is_lead), None)
    if lead is not None:
        candidates.append(MentionCandidate.from_member(lead))
    candidates.extend(MentionCandidate.from_member(m) for m in members if not m.is_lead)

    if query:
        needle = query.lower()
        candidates = [
            c for c in candidates
            if needle in c.name.lower() or needle in c.label.lower()
        ]
    return candidates


def resolve_mentions(text: str, members: Iterable[TeamMember]) -> List[MentionRef]:
    """Resolve @word tokens against the roster; unknown names are dropped"""
    members = list(members)
    mentions: List[MentionRef] = []

    for match in MENTION_PATTERN.finditer(text or ""):
        name = match.group(1)
        if name.lower() == EVERYONE_ID:
            mentions.append(
                MentionRef(id=EVERYONE_ID, label=EVERYONE_LABEL, type=MentionType.EVERYONE)
            )
            continue

        member = next((m for m in members if m.name.lower() == name.lower()), None)
        if member is None:
            logger.debug("No team member matches @%s", name)
            continue
        mentions.append(MentionCandidate.from_member(member).to_ref())

    return mentions


def escape_html(text: str) -> str:
    return html.escape(text or "", quote=False)


def _highlight_labels(escaped: str, catalog: Dict[str, str]) -> str:
    """Wrap every catalog label in a mention span in one pass"""
    if not catalog:
        return escaped
    labels = sorted(catalog, key=len, reverse=True)
    by_escaped = {escape_html(label): catalog[label] for label in labels}
    pattern = re.compile("|".join(re.escape(escape_html(label)) for label in labels))

    def _span(match: re.Match) -> str:
        label = match.group(0)
        return f'<span class="mention {by_escaped[label]}">{label}</span>'

    return pattern.sub(_span, escaped)


def _linkify_tags(rendered: str) -> str:
    return NODE_TAG_LINK_PATTERN.sub(
        r'<button type="button" class="node-id-link" data-node-tag="\1">[\1]</button>',
        rendered,
    )


def render_message_html(text: str, mentions: Iterable[MentionRef]) -> str:
    """Escaped message HTML with styled mentions and clickable [NG-###] tags"""
    catalog: Dict[str, str] = {}
    for mention in mentions or []:
        catalog.setdefault(mention.label, MentionType(mention.type).value)
    return _linkify_tags(_highlight_labels(escape_html(text), catalog))


def render_input_preview(
    value: str,
    members: Iterable[TeamMember],
    placeholder: str = DEFAULT_PLACEHOLDER,
) -> str:
    """Overlay HTML for the composer: every known label highlighted"""
    if not value:
        return f'<span class="input-placeholder">{escape_html(placeholder or DEFAULT_PLACEHOLDER)}</span>'

    catalog: Dict[str, str] = {}
    for candidate in build_candidates(members):
        catalog.setdefault(candidate.label, candidate.type.value)
    rendered = _highlight_labels(escape_html(value), catalog)
    return rendered.replace("\n", "<br>")


class KeyAction(str, Enum):
    """What a key press did to the composer"""
    NONE = "none"
    MOVED = "moved"
    COMPLETED = "completed"
    CLOSED = "closed"
    SUBMIT = "submit"


@dataclass(frozen=True)
class Completion:
    """Composer text and cursor after inserting a mention"""
    text: str
    cursor: int


@dataclass(frozen=True)
class KeyResult:
    action: KeyAction
    completion: Optional[Completion] = None


class MentionEngine:
    """
    Completion session driven by composer input events.

    Args:
        members: Callable returning the current roster; read on every
            refresh so roster edits show up mid-session.
    """

    def __init__(self, members: Callable[[], List[TeamMember]]):
        self._members = members
        self.is_open = False
        self.start_index = -1
        self.query = ""
        self.candidates: List[MentionCandidate] = []
        self.highlight = 0

    def _show(self, query: str) -> None:
        self.query = query
        self.candidates = build_candidates(self._members(), query)
        if not self.candidates:
            self.close()
            return
        self.highlight = 0
        self.is_open = True

    def close(self) -> None:
        self.is_open = False
        self.start_index = -1
        self.query = ""
        self.candidates = []
        self.highlight = 0

    def on_input(self, text: str, cursor: int, inserted: Optional[str] = None) -> None:
        """
        Process a composer change.

        Args:
            text: Full composer value after the change.
            cursor: Caret offset after the change.
            inserted: Text the change inserted, if it was a typed insertion.
        """
        if inserted == "@":
            self.start_index = cursor - 1
            self._show("")
            return

        if not self.is_open or self.start_index < 0:
            return

        if cursor < self.start_index:
            self.close()
            return

        query = text[self.start_index + 1:cursor]
        if any(ch.isspace() for ch in query):
            self.close()
            return

        self._show(query)

    def move_highlight(self, delta: int) -> None:
        if not self.is_open:
            return
        upper = max(len(self.candidates) - 1, 0)
        self.highlight = min(max(self.highlight + delta, 0), upper)

    def complete(
        self,
        candidate: MentionCandidate,
        text: str,
        cursor: int,
        tag: Optional[str] = None,
    ) -> Optional[Completion]:
        """Replace the trigger substring with the candidate label"""
        if candidate is None or self.start_index < 0:
            return None

        before = text[:self.start_index]
        after = text[cursor:]
        insertion = f"{candidate.label} [{tag}] " if tag else f"{candidate.label} "
        self.close()
        return Completion(text=before + insertion + after, cursor=len(before) + len(insertion))

    def handle_key(
        self,
        key: str,
        text: str = "",
        cursor: int = 0,
        tag: Optional[str] = None,
        shift: bool = False,
    ) -> KeyResult:
        if key == "Enter" and not shift:
            if self.is_open:
                if not self.candidates:
                    return KeyResult(KeyAction.NONE)
                index = self.highlight if self.highlight < len(self.candidates) else 0
                completion = self.complete(self.candidates[index], text, cursor, tag)
                return KeyResult(KeyAction.COMPLETED, completion)
            return KeyResult(KeyAction.SUBMIT)

        if not self.is_open:
            return KeyResult(KeyAction.NONE)

        if key == "ArrowDown":
            self.move_highlight(1)
            return KeyResult(KeyAction.MOVED)
        if key == "ArrowUp":
            self.move_highlight(-1)
            return KeyResult(KeyAction.MOVED)
        if key == "Escape":
            self.close()
            return KeyResult(KeyAction.CLOSED)
        return KeyResult(KeyAction.NONE)
