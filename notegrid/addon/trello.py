"""
Trello Task Board

Thin Trello REST client plus the "Tasks" board: cards assigned to the
current member, and cards the member handed out (in progress / completed).
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import httpx

logger = logging.getLogger("notegrid.addon.trello")

CARD_FIELDS = "id,name,desc,closed,due,dueComplete,dateLastActivity,idMembers,idMemberCreator"
MEMBER_FIELDS = "fullName,initials,username,avatarUrl"


class TrelloError(Exception):
    """Trello request failed or credentials are missing"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TrelloClient:
    """
    Minimal async Trello client.

    Args:
        api_key: Trello API key.
        token: Trello member token.
        list_id: List that new cards are created in.
        base_url: API root.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        api_key: str = "",
        token: str = "",
        list_id: str = "",
        base_url: str = "https://api.trello.com/1",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.token = token
        self.list_id = list_id
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    @classmethod
    def from_config(cls, trello_config) -> "TrelloClient":
        return cls(
            api_key=trello_config.api_key,
            token=trello_config.token,
            list_id=trello_config.list_id,
            base_url=trello_config.base_url,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.token)

    def _credentials(self) -> Dict[str, str]:
        if not self.is_configured:
            raise TrelloError("Missing Trello credentials")
        return {"key": self.api_key, "token": self.token}

    async def _request(self, method: str, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        query = {**(params or {}), **self._credentials()}
        async with httpx.AsyncClient(timeout=httpx.Timeout(15.0), transport=self._transport) as client:
            response = await client.request(method, f"{self.base_url}{path}", params=query)

        if not response.is_success:
            raise TrelloError(
                f"Trello request failed ({response.status_code}): {response.text or response.reason_phrase}",
                status_code=response.status_code,
            )
        return response.json()

    async def fetch_current_member(self) -> Dict[str, Any]:
        return await self._request("GET", "/members/me", {"fields": "id,username,fullName,initials,avatarUrl"})

    async def fetch_member_cards(self, **extra: str) -> List[Dict[str, Any]]:
        params = {
            "fields": CARD_FIELDS,
            "filter": "all",
            "limit": "500",
            "members": "true",
            "member_fields": MEMBER_FIELDS,
            "memberCreator": "true",
            "memberCreator_fields": MEMBER_FIELDS,
            "attachments": "false",
            "checklists": "none",
        }
        params.update(extra)
        return await self._request("GET", "/members/me/cards", params)

    async def fetch_card_by_id(self, card_id: str, **extra: str) -> Dict[str, Any]:
        if not card_id:
            raise TrelloError("Card ID is required")
        params = {
            "fields": CARD_FIELDS,
            "members": "true",
            "member_fields": MEMBER_FIELDS,
        }
        params.update(extra)
        return await self._request("GET", f"/cards/{card_id}", params)

    async def create_card(self, name: str, desc: str = "") -> Dict[str, Any]:
        if not self.list_id:
            raise TrelloError("Missing Trello list id")
        return await self._request(
            "POST", "/cards", {"idList": self.list_id, "name": name, "desc": desc or ""}
        )


def is_card_assigned_by_user(card: Dict[str, Any], user_id: Optional[str]) -> bool:
    """Created by the user, or shared between the user and someone else"""
    if not card or not user_id:
        return False
    if card.get("idMemberCreator") == user_id:
        return True
    member_ids = card.get("idMembers") or []
    return user_id in member_ids and any(mid != user_id for mid in member_ids)


def _activity_key(card: Dict[str, Any]) -> float:
    raw = card.get("dateLastActivity")
    if not raw:
        return 0.0
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00")).timestamp()
    except ValueError:
        return 0.0


def sort_cards_by_activity(cards: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(cards, key=_activity_key, reverse=True)


@dataclass
class TaskBoardState:
    loading: bool = False
    last_fetched_at: float = 0.0
    current_user: Optional[Dict[str, Any]] = None
    assigned_to_me: List[Dict[str, Any]] = field(default_factory=list)
    assigned_by_me_in_progress: List[Dict[str, Any]] = field(default_factory=list)
    assigned_by_me_completed: List[Dict[str, Any]] = field(default_factory=list)
    error: str = ""


class TaskBoard:
    """
    Cached Trello board.

    Args:
        client: TrelloClient used for reads.
        cache_ttl: Seconds a successful load stays fresh.
        max_per_section: Cards kept per section.
        clock: Monotonic clock (injectable for tests).
    """

    def __init__(
        self,
        client: TrelloClient,
        cache_ttl: float = 300.0,
        max_per_section: int = 30,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.cache_ttl = cache_ttl
        self.max_per_section = max_per_section
        self._clock = clock
        self.state = TaskBoardState()

    def is_fresh(self) -> bool:
        if not self.state.last_fetched_at:
            return False
        return self._clock() - self.state.last_fetched_at < self.cache_ttl

    async def load(self, force: bool = False) -> TaskBoardState:
        state = self.state
        if state.loading:
            return state
        if not force and self.is_fresh():
            return state

        state.loading = True
        state.error = ""
        now = self._clock()
        try:
            current_user, cards = await asyncio.gather(
                self.client.fetch_current_member(),
                self.client.fetch_member_cards(),
            )
            user_id = current_user.get("id")
            cards = [c for c in (cards or []) if isinstance(c, dict)]

            assigned_to_me = [
                c for c in cards
                if user_id in (c.get("idMembers") or []) and not c.get("closed")
            ]
            assigned_by_me = [c for c in cards if is_card_assigned_by_user(c, user_id)]

            cap = self.max_per_section
            state.current_user = current_user
            state.assigned_to_me = sort_cards_by_activity(assigned_to_me)[:cap]
            state.assigned_by_me_in_progress = sort_cards_by_activity(
                [c for c in assigned_by_me if not c.get("closed")]
            )[:cap]
            state.assigned_by_me_completed = sort_cards_by_activity(
                [c for c in assigned_by_me if c.get("closed")]
            )[:cap]
            state.last_fetched_at = now
        except (TrelloError, httpx.HTTPError) as e:
            logger.error("Failed to load Trello tasks: %s", e)
            state.error = str(e) or "Unable to load Trello tasks."
            state.assigned_to_me = []
            state.assigned_by_me_in_progress = []
            state.assigned_by_me_completed = []
        finally:
            state.loading = False
        return state
