"""
Note Analyzer

Turns text plus uploaded files into a sticky-note array with one LLM call.
Images go to the model as inline data; other files are only listed by
name and type.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..common.llm_client import ImageInput, LLMClient
from ..common.llm_utils import parse_llm_json_array

logger = logging.getLogger("notegrid.server.analyzer")

ANALYSIS_PROMPT = """
You extract structured information from text.

Return ONLY valid JSON.
Return a JSON array.
Each item must be an object with EXACT keys:
- "type": one of "task", "decision", "question"
- "text": string

Example:
[
  { "type": "decision", "text": "Decided to ship onboarding v2." },
  { "type": "question", "text": "Who owns comms?" },
  { "type": "task", "text": "Prepare Q3 roadmap." }
]

No markdown.
No code fences.
No explanation.
"""


class AnalysisInputError(ValueError):
    """Request carried neither text nor any file"""
    pass


class AnalysisOutputError(RuntimeError):
    """Model output could not be read as a JSON array"""
    pass


@dataclass
class IncomingFile:
    """An uploaded file held in memory"""
    filename: str
    content_type: Optional[str]
    data: bytes

    @property
    def is_image(self) -> bool:
        return bool(self.content_type and self.content_type.startswith("image/"))


@dataclass
class AnalysisRequest:
    """What is sent to the model"""
    prompt: str
    images: List[ImageInput]


def build_request(text: str, files: Sequence[IncomingFile] = ()) -> AnalysisRequest:
    """
    Assemble the user turn.

    Raises:
        AnalysisInputError: nothing to analyze.
    """
    parts: List[str] = []
    trimmed = (text or "").strip()
    if trimmed:
        parts.append(trimmed)

    images: List[ImageInput] = []
    others: List[str] = []
    for f in files:
        if f.is_image:
            images.append(ImageInput(media_type=f.content_type, data=f.data))
        else:
            others.append(f"{f.filename} ({f.content_type or 'unknown'})")

    if others:
        parts.append(f"Files included (not images): {', '.join(others)}")

    if not parts and not images:
        raise AnalysisInputError("No text or supported images provided")

    return AnalysisRequest(prompt="\n\n".join(parts), images=images)


class NoteAnalyzer:
    """
    Args:
        llm_client: Configured LLM client.
        temperature: Sampling temperature for extraction.
        max_tokens: Response token cap.
    """

    def __init__(self, llm_client: LLMClient, temperature: float = 0.2, max_tokens: int = 1024):
        self.llm_client = llm_client
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def is_available(self) -> bool:
        return self.llm_client.is_available

    def analyze(self, text: str, files: Sequence[IncomingFile] = ()) -> list:
        """
        Run extraction.

        Returns:
            The parsed JSON array, as returned by the model.

        Raises:
            AnalysisInputError: nothing to analyze.
            AnalysisOutputError: the model output is not a JSON array.
        """
        request = build_request(text, files)

        raw = self.llm_client.generate(
            request.prompt,
            system=ANALYSIS_PROMPT,
            images=request.images,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        logger.debug("AI raw output: %s", raw)

        notes = parse_llm_json_array(raw)
        if notes is None:
            raise AnalysisOutputError(f"Unparseable model output: {raw[:200]!r}")
        return notes
