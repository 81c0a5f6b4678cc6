"""
Canvas Bridge

Connects the add-on to the host document through an abstract sandbox
proxy. Polls the canvas selection, assigns NG-### tags on attach, and
focuses tagged elements.

Connection failures are transient: the bridge retries a bounded number of
times and reports progress through a status line.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError

from ..common.schemas import AttachmentRef, CanvasSelection
from .stores import TagCounter

logger = logging.getLogger("notegrid.addon.canvas")

POLL_INTERVAL = 1.2
MAX_CONNECT_ATTEMPTS = 10
RETRY_DELAY = 1.5

STATUS_CONNECTING = "Canvas attachment: connecting to sandbox…"
STATUS_NOT_CONNECTED = "Canvas attachment: sandbox not connected (click Add-on Dev Refresh)."
STATUS_SELECT = "Canvas attachment: select an element on the canvas."
STATUS_WAITING = "Canvas attachment: waiting for sandbox…"
STATUS_CLEARED = "Canvas attachment: selection cleared."
STATUS_DRAG_NEEDS_TAG = "Canvas attachment: click the chip once to assign an ID, then drag."


class CanvasError(Exception):
    """A user-initiated canvas action could not be completed"""
    pass


class DocumentSandbox(ABC):
    """
    Proxy to the host document.

    Implementations wrap the host SDK; tests use in-memory fakes.
    """

    @abstractmethod
    async def get_selection(self) -> Optional[Dict[str, Any]]:
        """
        First selected node.

        Returns:
            {nodeId, nodeType, tag, selectionCount} or None
        """
        pass

    @abstractmethod
    async def ensure_tag(self, node_id: str, tag: str) -> Optional[str]:
        """Store tag on the node unless it has one; return the node's tag"""
        pass

    @abstractmethod
    async def focus_by_tag(self, tag: str) -> Dict[str, Any]:
        """Select and reveal the node carrying tag; {"ok": bool, ...}"""
        pass

    @abstractmethod
    async def focus_by_node_id(self, node_id: str) -> Dict[str, Any]:
        """Select and reveal a node by id; {"ok": bool, ...}"""
        pass


class ConnectState(str, Enum):
    INIT = "init"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


SandboxConnector = Callable[[], Awaitable[DocumentSandbox]]


class CanvasBridge:
    """
    Selection poller and tagger.

    Args:
        connector: Coroutine factory returning a connected sandbox proxy;
            raises when the host is not ready.
        tags: Counter issuing NG-### tags.
        max_attempts: Automatic connection attempts before giving up.
        retry_delay: Seconds between automatic retries.
        poll_interval: Seconds between selection polls in poll_forever().
    """

    def __init__(
        self,
        connector: SandboxConnector,
        tags: TagCounter,
        max_attempts: int = MAX_CONNECT_ATTEMPTS,
        retry_delay: float = RETRY_DELAY,
        poll_interval: float = POLL_INTERVAL,
    ):
        self._connector = connector
        self.tags = tags
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.poll_interval = poll_interval

        self.sandbox: Optional[DocumentSandbox] = None
        self.state = ConnectState.INIT
        self.attempts = 0
        self.error = ""
        self.status = ""
        self.current_selection: Optional[CanvasSelection] = None
        self.dismissed_node_id: Optional[str] = None
        self._retry_task: Optional[asyncio.Task] = None

    async def connect(self) -> Optional[DocumentSandbox]:
        if self.sandbox is not None:
            return self.sandbox
        if self.state == ConnectState.CONNECTING:
            return None

        self.state = ConnectState.CONNECTING
        self.attempts += 1
        try:
            sandbox = await self._connector()
        except Exception as e:
            self.state = ConnectState.ERROR
            self.sandbox = None
            self.error = str(e) or type(e).__name__
            logger.warning("Failed to connect to document sandbox: %s", e)
            return None

        self.sandbox = sandbox
        self.state = ConnectState.CONNECTED
        self.error = ""
        logger.info("Connected to document sandbox")
        return sandbox

    def _schedule_retry(self) -> None:
        if self._retry_task is not None and not self._retry_task.done():
            return

        async def _retry():
            await asyncio.sleep(self.retry_delay)
            await self.connect()

        self._retry_task = asyncio.get_running_loop().create_task(_retry())

    async def poll(self) -> str:
        """Refresh the selection snapshot and return the status line"""
        if self.sandbox is None:
            await self.connect()

            if self.sandbox is None:
                if self.state == ConnectState.CONNECTING:
                    self.status = STATUS_CONNECTING
                elif self.state == ConnectState.ERROR:
                    retrying = "Retrying… " if self.attempts > 1 else ""
                    self.status = (
                        f"Canvas attachment: sandbox not connected. {retrying}"
                        f"({self.error or 'unknown error'})"
                    )
                    if self.attempts < self.max_attempts:
                        self._schedule_retry()
                else:
                    self.status = STATUS_NOT_CONNECTED
                return self.status

        try:
            raw = await self.sandbox.get_selection()
            selection = self._coerce_selection(raw)
        except Exception as e:
            logger.debug("Selection poll failed: %s", e)
            self.status = STATUS_WAITING
            return self.status

        if selection is not None and self.dismissed_node_id and selection.node_id == self.dismissed_node_id:
            self.current_selection = None
        else:
            self.current_selection = selection
            self.dismissed_node_id = None

        self.status = self._selection_status()
        return self.status

    @staticmethod
    def _coerce_selection(raw: Any) -> Optional[CanvasSelection]:
        if raw is None:
            return None
        if isinstance(raw, CanvasSelection):
            return raw
        if isinstance(raw, dict) and not raw.get("nodeId"):
            return None
        return CanvasSelection.model_validate(raw)

    def _selection_status(self) -> str:
        selection = self.current_selection
        if selection is None:
            return STATUS_SELECT
        count = selection.selection_count or 1
        prefix = (
            f"Canvas attachment: {count} selected, using the first. "
            if count > 1 else "Canvas attachment: "
        )
        return prefix + ("ready." if selection.tag else "ready, click chip to attach.")

    def dismiss_selection(self) -> None:
        """Hide the current selection until a different node is selected"""
        if self.current_selection is not None:
            self.dismissed_node_id = self.current_selection.node_id
        self.current_selection = None
        self.status = STATUS_CLEARED

    async def attach_current_selection(self) -> AttachmentRef:
        """
        Tag the selected node if needed and return it as an attachment.

        The selection is snapshotted first so a poll tick landing during
        the tag round-trip cannot change what gets attached.

        Raises:
            CanvasError: nothing is selected or no tag could be assigned.
        """
        if self.current_selection is None:
            raise CanvasError("Select an element on the canvas first.")
        snapshot = self.current_selection.model_copy()

        tag = snapshot.tag or await self._ensure_tag(snapshot)
        if not tag:
            raise CanvasError("Could not assign an ID to the selected element.")

        if self.current_selection is not None and self.current_selection.node_id == snapshot.node_id:
            self.current_selection = self.current_selection.model_copy(update={"tag": tag})
            self.status = self._selection_status()

        return AttachmentRef(node_id=snapshot.node_id, node_type=snapshot.node_type, tag=tag)

    async def _ensure_tag(self, selection: CanvasSelection) -> Optional[str]:
        if self.sandbox is None:
            return None
        tag = self.tags.next_tag()
        try:
            saved = await self.sandbox.ensure_tag(selection.node_id, tag)
        except Exception as e:
            logger.warning("Failed to tag node %s: %s", selection.node_id, e)
            return None
        return saved or tag

    def drag_payload(self) -> Optional[str]:
        """Payload carried when the selection chip is dragged into the composer"""
        selection = self.current_selection
        if selection is None or not selection.tag:
            self.status = STATUS_DRAG_NEEDS_TAG
            return None
        return json.dumps(
            {"nodeId": selection.node_id, "nodeType": selection.node_type, "tag": selection.tag}
        )

    async def jump_to_tag(self, tag: str) -> bool:
        """Reveal the tagged node on the canvas"""
        if not tag:
            return False
        if self.sandbox is None:
            raise CanvasError("Canvas jump not available. Refresh the add-on.")
        result = await self.sandbox.focus_by_tag(tag)
        if not (result or {}).get("ok"):
            raise CanvasError(f"Couldn't find element {tag} on the canvas.")
        return True

    async def poll_forever(self, interval: Optional[float] = None, stop: Optional[asyncio.Event] = None) -> None:
        interval = self.poll_interval if interval is None else interval
        stop = stop or asyncio.Event()
        while not stop.is_set():
            await self.poll()
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass


def parse_dropped_attachment(raw: Optional[str]) -> Optional[AttachmentRef]:
    """Read a dropped selection chip; None unless it carries nodeId and tag"""
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return None
    if not isinstance(payload, dict) or not payload.get("tag") or not payload.get("nodeId"):
        return None
    try:
        return AttachmentRef.model_validate(payload)
    except ValidationError:
        return None
