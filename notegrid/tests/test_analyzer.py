"""Tests for request assembly and note extraction in the backend analyzer."""

import pytest
from unittest.mock import MagicMock

from notegrid.server.analyzer import (
    ANALYSIS_PROMPT,
    AnalysisInputError,
    AnalysisOutputError,
    IncomingFile,
    NoteAnalyzer,
    build_request,
)


def _llm(output):
    client = MagicMock()
    client.is_available = True
    client.generate.return_value = output
    return client


class TestBuildRequest:
    def test_text_only(self):
        request = build_request("  hello  ")
        assert request.prompt == "hello"
        assert request.images == []

    def test_images_and_other_files(self):
        request = build_request("notes", [
            IncomingFile(filename="board.png", content_type="image/png", data=b"png"),
            IncomingFile(filename="spec.pdf", content_type="application/pdf", data=b"pdf"),
            IncomingFile(filename="blob", content_type=None, data=b"?"),
        ])
        assert request.prompt == (
            "notes\n\nFiles included (not images): spec.pdf (application/pdf), blob (unknown)"
        )
        assert [i.media_type for i in request.images] == ["image/png"]

    def test_image_only_is_accepted(self):
        request = build_request("", [IncomingFile(filename="a.jpg", content_type="image/jpeg", data=b"j")])
        assert request.prompt == ""
        assert len(request.images) == 1

    def test_nothing_to_analyze(self):
        with pytest.raises(AnalysisInputError, match="No text or supported images provided"):
            build_request("   ", [])


class TestNoteAnalyzer:
    def test_returns_parsed_array(self):
        llm = _llm('```json\n[{"type": "task", "text": "Ship"}]\n```')
        analyzer = NoteAnalyzer(llm, temperature=0.1, max_tokens=500)

        assert analyzer.analyze("go ship") == [{"type": "task", "text": "Ship"}]
        kwargs = llm.generate.call_args.kwargs
        assert kwargs["system"] == ANALYSIS_PROMPT
        assert kwargs["temperature"] == 0.1
        assert kwargs["max_tokens"] == 500

    def test_unparseable_output(self):
        analyzer = NoteAnalyzer(_llm("I could not find anything."))
        with pytest.raises(AnalysisOutputError):
            analyzer.analyze("text")

    def test_availability_follows_client(self):
        from notegrid.common.llm_client import LLMClient
        assert NoteAnalyzer(LLMClient(provider="openai")).is_available is False
        assert NoteAnalyzer(_llm("[]")).is_available is True
