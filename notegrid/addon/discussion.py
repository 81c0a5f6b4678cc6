"""
Discussion Composer

Composer state for the discussion panel: text, caret, one pending canvas
attachment, and the mention session. Sending appends to the discussion
log and hands tag notifications to the background queue.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..common.schemas import AttachmentRef, DiscussionMessage, MentionCandidate
from .canvas import parse_dropped_attachment
from .mentions import (
    Completion,
    KeyAction,
    KeyResult,
    MentionEngine,
    escape_html,
    render_message_html,
    render_input_preview,
    resolve_mentions,
)
from .notifications import NotificationQueue
from .stores import DiscussionStore, TeamStore

logger = logging.getLogger("notegrid.addon.discussion")


def strip_attached_tag(text: str, tag: Optional[str]) -> str:
    """Drop [tag] from text so an attached node is not referenced twice"""
    if not tag:
        return text
    pattern = re.compile(r"\s*\[" + re.escape(tag) + r"\]\s*")
    text = pattern.sub(" ", text)
    return re.sub(r"\s{2,}", " ", text).strip()


class DiscussionComposer:
    """
    Args:
        store: Discussion log.
        team: Roster used for candidates and mention resolution.
        queue: Background notification queue; None disables notifications.
        selection_tag: Returns the tag of the current canvas selection, if
            any; it is appended to completed mentions.
    """

    def __init__(
        self,
        store: DiscussionStore,
        team: TeamStore,
        queue: Optional[NotificationQueue] = None,
        selection_tag: Optional[Callable[[], Optional[str]]] = None,
    ):
        self.store = store
        self.team = team
        self.queue = queue
        self._selection_tag = selection_tag or (lambda: None)
        self.mentions = MentionEngine(lambda: self.team.members)
        self.text = ""
        self.cursor = 0
        self.attachment: Optional[AttachmentRef] = None

    def input(self, text: str, cursor: Optional[int] = None, inserted: Optional[str] = None) -> None:
        self.text = text or ""
        self.cursor = len(self.text) if cursor is None else cursor
        self.mentions.on_input(self.text, self.cursor, inserted)

    def _apply(self, completion: Optional[Completion]) -> None:
        if completion is not None:
            self.text = completion.text
            self.cursor = completion.cursor

    def key(self, key: str, shift: bool = False) -> KeyResult:
        result = self.mentions.handle_key(key, self.text, self.cursor, self._selection_tag(), shift)
        if result.action == KeyAction.COMPLETED:
            self._apply(result.completion)
        return result

    def pick(self, candidate: MentionCandidate) -> None:
        self._apply(self.mentions.complete(candidate, self.text, self.cursor, self._selection_tag()))

    def attach(self, attachment: AttachmentRef) -> None:
        """Only one attachment at a time; a new one replaces the old"""
        self.attachment = attachment

    def attach_dropped(self, payload: Optional[str]) -> bool:
        attachment = parse_dropped_attachment(payload)
        if attachment is None:
            return False
        self.attach(attachment)
        return True

    def remove_attachment(self) -> None:
        self.attachment = None

    def preview(self, placeholder: str = "Type a message...") -> str:
        return render_input_preview(self.text, self.team.members, placeholder)

    def send(self) -> Optional[DiscussionMessage]:
        """
        Append the composed message to the log.

        Returns:
            The stored message, or None when there is nothing to send.
        """
        text = self.text.strip()
        if not text and self.attachment is None:
            return None

        attachments = [self.attachment] if self.attachment is not None else []
        if self.attachment is not None:
            text = strip_attached_tag(text, self.attachment.tag)

        members = self.team.members
        mentions = resolve_mentions(text, members)
        message = DiscussionMessage(text=text, mentions=mentions, attachments=attachments)
        self.store.add_message(message)

        if self.queue is not None and mentions:
            self.queue.submit(text, mentions, members)

        self.text = ""
        self.cursor = 0
        self.attachment = None
        self.mentions.close()
        return message


def format_message_time(created_at: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    minutes = int((now - created_at).total_seconds() // 60)

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return created_at.strftime("%Y-%m-%d")


@dataclass
class RenderedMessage:
    author: str
    time: str
    html: str
    is_mine: bool
    attachments: List[str] = field(default_factory=list)


def render_message(message: DiscussionMessage, now: Optional[datetime] = None) -> RenderedMessage:
    attachments = [
        f'<button type="button" class="node-id-link" data-node-tag="{escape_html(att.tag)}">'
        f"[{escape_html(att.tag)}] {escape_html(att.node_type or 'Element')}</button>"
        for att in message.attachments
        if att.tag
    ]
    is_mine = message.created_by == "me"
    return RenderedMessage(
        author="You" if is_mine else message.created_by,
        time=format_message_time(message.created_at, now),
        html=render_message_html(message.text, message.mentions),
        is_mine=is_mine,
        attachments=attachments,
    )
