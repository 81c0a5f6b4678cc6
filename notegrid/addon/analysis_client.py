"""
Note Analysis Client

Posts composed text and file attachments to the backend's /analyze
endpoint and hands back the note array it returns.

The response body is returned as-is. coerce_notes() is the per-note
degradation the board applies before rendering.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import httpx

from ..common.schemas import Note, NoteType

logger = logging.getLogger("notegrid.addon.analysis_client")


class AnalysisError(Exception):
    """The analysis request failed (transport error or non-2xx status)"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class UploadFile:
    """A file blob picked in the composer"""
    name: str
    content: bytes
    content_type: str = "application/octet-stream"


class NoteAnalysisClient:
    """
    Client for POST /analyze.

    Args:
        base_url: Backend origin, e.g. "http://localhost:3001".
        timeout: Request timeout in seconds; None waits indefinitely.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, addon_config) -> "NoteAnalysisClient":
        return cls(base_url=addon_config.backend_url)

    async def analyze(self, text: str = "", files: Sequence[UploadFile] = ()) -> Any:
        """
        Submit content for analysis.

        Returns:
            The decoded JSON body, expected to be a list of {type, text}.

        Raises:
            AnalysisError: on transport failure or a non-2xx response.
        """
        data = {"text": text or ""}
        multipart = [
            ("files", (f.name, f.content, f.content_type)) for f in files
        ]

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            ) as client:
                response = await client.post(
                    f"{self.base_url}/analyze",
                    data=data,
                    files=multipart or None,
                )
        except httpx.HTTPError as e:
            logger.warning("Analysis request failed: %s", e)
            raise AnalysisError(f"Analysis request failed: {e}") from e

        if not response.is_success:
            raise AnalysisError(
                f"AI request failed ({response.status_code})",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise AnalysisError(f"Analysis response is not JSON: {e}") from e


def coerce_notes(raw: Any) -> List[Note]:
    """Turn an analysis body into notes, degrading each malformed entry"""
    if not isinstance(raw, list):
        logger.warning("Analysis body is not an array: %s", type(raw).__name__)
        return []

    notes = []
    for item in raw:
        if not isinstance(item, dict):
            logger.warning("Skipping non-object note: %r", item)
            continue
        try:
            note_type = NoteType(item.get("type"))
        except ValueError:
            note_type = NoteType.TASK
        text = item.get("text")
        notes.append(Note(type=note_type, text="" if text is None else str(text)))
    return notes
