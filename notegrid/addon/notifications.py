"""
Tag Notifications

After a message is sent, every tagged member with an e-mail address gets
one "you were tagged" notification through the backend. Each delivered
notification also tries to open a Trello card.

Notifications are a side channel: failures are logged and reported as
outcomes, never raised into the composer.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Optional, Set, Tuple

import httpx

from ..common.schemas import MentionRef, MentionType, NotifyRequest, TeamMember
from .trello import TrelloClient, TrelloError

logger = logging.getLogger("notegrid.addon.notifications")

DEFAULT_TAGGED_BY = "You"
DEFAULT_CONTEXT = "Discussion Panel"
MAX_KEPT_OUTCOMES = 200


class NotificationError(Exception):
    """The notification endpoint rejected a payload"""
    pass


class OutcomeStatus(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class NotificationOutcome:
    """Result of one tagged mention"""
    status: OutcomeStatus
    label: str
    email: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class NotificationPayload:
    email: str
    tagged_user: str
    message: str
    tagged_by: str = DEFAULT_TAGGED_BY
    context: str = DEFAULT_CONTEXT
    trello_title: str = ""
    trello_description: str = ""

    def to_request(self) -> Dict[str, Any]:
        """JSON body for POST /notify/tag"""
        return NotifyRequest(
            email=self.email,
            tagged_user=self.tagged_user,
            tagged_by=self.tagged_by,
            message=self.message,
            context=self.context,
        ).model_dump(by_alias=True)


def plan_notifications(
    text: str,
    mentions: Iterable[MentionRef],
    members: Iterable[TeamMember],
) -> Tuple[List[NotificationPayload], List[NotificationOutcome]]:
    """
    Split mentions into payloads to send and skipped outcomes.

    Only user and lead mentions are considered. Members are looked up by
    id; e-mails are deduplicated case-insensitively.
    """
    by_id = {m.id: m for m in members}
    seen: Set[str] = set()
    payloads: List[NotificationPayload] = []
    skipped: List[NotificationOutcome] = []

    for mention in mentions or []:
        if mention.type not in (MentionType.USER, MentionType.LEAD):
            continue

        member = by_id.get(mention.id)
        if member is None:
            skipped.append(NotificationOutcome(OutcomeStatus.SKIPPED, mention.label, reason="not in team"))
            continue

        email = (member.email or "").strip()
        if not email:
            skipped.append(NotificationOutcome(OutcomeStatus.SKIPPED, mention.label, reason="no email address"))
            continue

        key = email.lower()
        if key in seen:
            skipped.append(
                NotificationOutcome(OutcomeStatus.SKIPPED, mention.label, email=email, reason="duplicate")
            )
            continue
        seen.add(key)

        display_name = (member.name or "").strip() or mention.label.lstrip("@") or "User"
        payloads.append(
            NotificationPayload(
                email=email,
                tagged_user=display_name,
                message=text,
                trello_title=f"Mention: {display_name}",
                trello_description=text,
            )
        )

    return payloads, skipped


def build_notification_payloads(
    text: str,
    mentions: Iterable[MentionRef],
    members: Iterable[TeamMember],
) -> List[NotificationPayload]:
    return plan_notifications(text, mentions, members)[0]


class NotificationDispatcher:
    """
    Posts payloads to the backend's /notify/tag endpoint.

    Args:
        backend_url: Backend origin.
        trello: Optional Trello client; a card is created per delivered
            notification when it is configured.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        backend_url: str = "http://localhost:3001",
        trello: Optional[TrelloClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.backend_url = backend_url.rstrip("/")
        self.trello = trello
        self._transport = transport

    async def send(self, payload: NotificationPayload) -> None:
        async with httpx.AsyncClient(timeout=httpx.Timeout(30.0), transport=self._transport) as client:
            response = await client.post(f"{self.backend_url}/notify/tag", json=payload.to_request())

        if not response.is_success:
            try:
                body: Any = response.json()
            except ValueError:
                body = {"error": "Unknown error"}
            message = body.get("error") if isinstance(body, dict) else None
            raise NotificationError(message or f"HTTP {response.status_code}")

    async def _maybe_create_task(self, payload: NotificationPayload) -> None:
        if self.trello is None or not self.trello.is_configured:
            return
        if not (payload.trello_title or payload.trello_description):
            return
        try:
            card = await self.trello.create_card(payload.trello_title, payload.trello_description)
            logger.info("Created Trello task for mention: %s", card.get("id"))
        except (TrelloError, httpx.HTTPError) as e:
            logger.warning("Failed to create Trello task for mention: %s", e)

    async def _deliver(self, payload: NotificationPayload) -> NotificationOutcome:
        await self.send(payload)
        await self._maybe_create_task(payload)
        return NotificationOutcome(OutcomeStatus.SENT, f"@{payload.tagged_user}", email=payload.email)

    async def notify_tagged_users(
        self,
        text: str,
        mentions: Iterable[MentionRef],
        members: Iterable[TeamMember],
    ) -> List[NotificationOutcome]:
        """Send every notification concurrently; one failure never stops the others"""
        mentions = list(mentions or [])
        if not mentions:
            logger.debug("No tags detected, skipping email notifications")
            return []

        payloads, outcomes = plan_notifications(text, mentions, members)
        for skipped in outcomes:
            logger.info("Skipped tag %s (%s)", skipped.label, skipped.reason)
        if not payloads:
            logger.debug("No valid email recipients after filtering")
            return outcomes

        logger.info("Sending notifications to: %s", ", ".join(p.tagged_user for p in payloads))
        results = await asyncio.gather(
            *(self._deliver(p) for p in payloads),
            return_exceptions=True,
        )

        failed = 0
        for payload, result in zip(payloads, results):
            if isinstance(result, BaseException):
                failed += 1
                outcomes.append(
                    NotificationOutcome(
                        OutcomeStatus.FAILED,
                        f"@{payload.tagged_user}",
                        email=payload.email,
                        error=str(result) or type(result).__name__,
                    )
                )
            else:
                outcomes.append(result)

        if failed:
            logger.warning("Failed to notify %d user(s)", failed)
        return outcomes


class NotificationQueue:
    """
    Background queue for notification jobs.

    submit() returns immediately; outcomes accumulate in ``outcomes``,
    which keeps only the most recent ``max_outcomes`` entries.
    """

    def __init__(self, dispatcher: NotificationDispatcher, max_outcomes: int = MAX_KEPT_OUTCOMES):
        self.dispatcher = dispatcher
        self.outcomes: Deque[NotificationOutcome] = deque(maxlen=max_outcomes)
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(
        self,
        text: str,
        mentions: Iterable[MentionRef],
        members: Iterable[TeamMember],
    ) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(
            self._run(text, list(mentions or []), list(members or []))
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run(self, text: str, mentions: List[MentionRef], members: List[TeamMember]) -> None:
        try:
            outcomes = await self.dispatcher.notify_tagged_users(text, mentions, members)
        except Exception as e:
            logger.warning("Tag notification failed: %s", e)
            return
        self.outcomes.extend(outcomes)

    async def drain(self) -> List[NotificationOutcome]:
        """Wait for every submitted job"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        return list(self.outcomes)
