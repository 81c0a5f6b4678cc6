"""Tests for parse_llm_json_array."""

from notegrid.common.llm_utils import parse_llm_json_array


class TestParseLLMJsonArray:
    def test_plain_array(self):
        raw = '[{"type": "task", "text": "Ship it"}]'
        assert parse_llm_json_array(raw) == [{"type": "task", "text": "Ship it"}]

    def test_code_fenced_array(self):
        raw = '```json\n[{"type": "question", "text": "Who?"}]\n```'
        assert parse_llm_json_array(raw) == [{"type": "question", "text": "Who?"}]

    def test_array_wrapped_in_object(self):
        raw = '{"notes": [{"type": "decision", "text": "Go"}]}'
        assert parse_llm_json_array(raw) == [{"type": "decision", "text": "Go"}]

    def test_object_with_two_lists_is_rejected(self):
        assert parse_llm_json_array('{"a": [], "b": []}') is None

    def test_preamble_is_skipped(self):
        raw = 'Here you go:\n[{"type": "task", "text": "A"}]\nThanks'
        assert parse_llm_json_array(raw) == [{"type": "task", "text": "A"}]

    def test_empty_and_garbage(self):
        assert parse_llm_json_array("") is None
        assert parse_llm_json_array("   ") is None
        assert parse_llm_json_array("no json here") is None
        assert parse_llm_json_array("[broken") is None
