"""Tests for the discussion composer and message rendering."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from notegrid.common.kv_store import LocalStore


@pytest.fixture
def stores():
    from notegrid.addon.stores import DiscussionStore, TeamStore
    store = LocalStore()
    team = TeamStore(store)
    team.init()
    team.add_member("Alice", email="alice@x.com", is_lead=True)
    team.add_member("Bob", email="bob@x.com")
    log = DiscussionStore(store)
    log.load()
    return log, team


def _composer(stores, **kwargs):
    from notegrid.addon.discussion import DiscussionComposer
    log, team = stores
    return DiscussionComposer(log, team, **kwargs)


class TestStripAttachedTag:
    def test_removes_tag_and_collapses_spaces(self):
        from notegrid.addon.discussion import strip_attached_tag
        assert strip_attached_tag("look [NG-002]  here", "NG-002") == "look here"
        assert strip_attached_tag("[NG-002] start", "NG-002") == "start"
        assert strip_attached_tag("keep [NG-003]", "NG-002") == "keep [NG-003]"
        assert strip_attached_tag("no tag", None) == "no tag"


class TestComposer:
    def test_typing_a_mention(self, stores):
        from notegrid.addon.mentions import KeyAction
        composer = _composer(stores)
        composer.input("hi @", inserted="@")
        composer.input("hi @Bo", inserted="o")
        result = composer.key("Enter")

        assert result.action == KeyAction.COMPLETED
        assert composer.text == "hi @Bob "
        assert composer.cursor == len("hi @Bob ")

    def test_completion_carries_selection_tag(self, stores):
        composer = _composer(stores, selection_tag=lambda: "NG-005")
        composer.input("@", inserted="@")
        candidate = composer.mentions.candidates[1]
        composer.pick(candidate)
        assert composer.text == "@Alice [NG-005] "

    def test_send_stores_message_with_mentions(self, stores):
        from notegrid.common.schemas import MentionType
        log, _ = stores
        composer = _composer(stores)
        composer.input("  @Alice please review @Bob and @everyone  ")
        message = composer.send()

        assert message.text == "@Alice please review @Bob and @everyone"
        assert [m.type for m in message.mentions] == [
            MentionType.LEAD, MentionType.USER, MentionType.EVERYONE,
        ]
        assert log.messages == [message]
        assert composer.text == ""
        assert composer.cursor == 0

    def test_empty_send_is_noop(self, stores):
        log, _ = stores
        composer = _composer(stores)
        composer.input("   ")
        assert composer.send() is None
        assert log.messages == []

    def test_attachment_only_message(self, stores):
        from notegrid.common.schemas import AttachmentRef
        composer = _composer(stores)
        composer.attach(AttachmentRef(node_id="n1", node_type="Text", tag="NG-001"))
        message = composer.send()
        assert message.text == ""
        assert message.attachments[0].tag == "NG-001"
        assert composer.attachment is None

    def test_attached_tag_is_not_repeated_in_text(self, stores):
        composer = _composer(stores)
        assert composer.attach_dropped('{"nodeId": "n1", "nodeType": "Text", "tag": "NG-001"}')
        composer.input("see [NG-001] please")
        message = composer.send()
        assert message.text == "see please"

    def test_new_attachment_replaces_old(self, stores):
        from notegrid.common.schemas import AttachmentRef
        composer = _composer(stores)
        composer.attach(AttachmentRef(node_id="n1", tag="NG-001"))
        composer.attach(AttachmentRef(node_id="n2", tag="NG-002"))
        assert composer.attachment.tag == "NG-002"
        composer.remove_attachment()
        assert composer.attachment is None

    def test_bad_drop_is_ignored(self, stores):
        composer = _composer(stores)
        assert composer.attach_dropped("just text") is False
        assert composer.attachment is None

    def test_preview(self, stores):
        composer = _composer(stores)
        assert "input-placeholder" in composer.preview()
        composer.input("@Alice")
        assert composer.preview() == '<span class="mention lead">@Alice</span>'

    @pytest.mark.asyncio
    async def test_send_queues_notifications(self, stores):
        from notegrid.addon.notifications import NotificationDispatcher, NotificationQueue
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"ok": True})

        queue = NotificationQueue(NotificationDispatcher(transport=httpx.MockTransport(handler)))
        composer = _composer(stores, queue=queue)
        composer.input("@Bob ping")
        composer.send()
        await queue.drain()

        assert len(requests) == 1
        assert len(queue.outcomes) == 1

    @pytest.mark.asyncio
    async def test_no_mentions_no_notifications(self, stores):
        from notegrid.addon.notifications import NotificationDispatcher, NotificationQueue
        queue = NotificationQueue(NotificationDispatcher())
        composer = _composer(stores, queue=queue)
        composer.input("just chatting")
        composer.send()
        assert queue.pending == 0


class TestRendering:
    def test_message_time(self):
        from notegrid.addon.discussion import format_message_time
        now = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)
        assert format_message_time(now - timedelta(seconds=20), now) == "Just now"
        assert format_message_time(now - timedelta(minutes=5), now) == "5m ago"
        assert format_message_time(now - timedelta(hours=3), now) == "3h ago"
        assert format_message_time(now - timedelta(days=2), now) == "2024-05-08"

    def test_render_message(self, stores):
        from notegrid.addon.discussion import render_message
        from notegrid.common.schemas import AttachmentRef
        composer = _composer(stores)
        composer.attach(AttachmentRef(node_id="n1", node_type="Ellipse", tag="NG-003"))
        composer.input("@Bob check [NG-004]")
        message = composer.send()

        rendered = render_message(message, message.created_at + timedelta(minutes=2))

        assert rendered.author == "You"
        assert rendered.is_mine is True
        assert rendered.time == "2m ago"
        assert '<span class="mention user">@Bob</span>' in rendered.html
        assert 'data-node-tag="NG-004"' in rendered.html
        assert rendered.attachments == [
            '<button type="button" class="node-id-link" data-node-tag="NG-003">[NG-003] Ellipse</button>'
        ]
