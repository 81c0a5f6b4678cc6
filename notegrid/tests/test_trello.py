"""Tests for the Trello client and the cached task board."""

import httpx
import pytest


ME = {"id": "me", "fullName": "Me Myself"}


def _card(card_id, members, creator="someone", closed=False, activity="2024-01-01T00:00:00.000Z"):
    return {
        "id": card_id,
        "name": card_id,
        "idMembers": members,
        "idMemberCreator": creator,
        "closed": closed,
        "dateLastActivity": activity,
    }


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _transport(cards, calls=None):
    def handler(request):
        if calls is not None:
            calls.append(request.url.path)
        if request.url.path.endswith("/members/me"):
            return httpx.Response(200, json=ME)
        if request.url.path.endswith("/members/me/cards"):
            return httpx.Response(200, json=cards)
        return httpx.Response(404, text="not found")
    return httpx.MockTransport(handler)


class TestHelpers:
    def test_assigned_by_user(self):
        from notegrid.addon.trello import is_card_assigned_by_user
        assert is_card_assigned_by_user(_card("a", [], creator="me"), "me")
        assert is_card_assigned_by_user(_card("b", ["me", "you"]), "me")
        assert not is_card_assigned_by_user(_card("c", ["me"]), "me")
        assert not is_card_assigned_by_user(_card("d", ["you"]), "me")
        assert not is_card_assigned_by_user(_card("e", ["me"]), None)

    def test_sort_by_activity_descending(self):
        from notegrid.addon.trello import sort_cards_by_activity
        cards = [
            _card("old", [], activity="2023-01-01T00:00:00Z"),
            _card("none", [], activity=None),
            _card("new", [], activity="2024-06-01T00:00:00Z"),
        ]
        assert [c["id"] for c in sort_cards_by_activity(cards)] == ["new", "old", "none"]


class TestTrelloClient:
    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        from notegrid.addon.trello import TrelloClient, TrelloError
        client = TrelloClient()
        assert not client.is_configured
        with pytest.raises(TrelloError, match="Missing Trello credentials"):
            await client.fetch_current_member()

    @pytest.mark.asyncio
    async def test_credentials_sent_as_query(self):
        from notegrid.addon.trello import TrelloClient
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(200, json=ME)

        client = TrelloClient(api_key="k", token="t", transport=httpx.MockTransport(handler))
        assert await client.fetch_current_member() == ME
        assert seen["key"] == "k"
        assert seen["token"] == "t"

    @pytest.mark.asyncio
    async def test_error_status(self):
        from notegrid.addon.trello import TrelloClient, TrelloError
        transport = httpx.MockTransport(lambda request: httpx.Response(401, text="invalid token"))
        client = TrelloClient(api_key="k", token="t", transport=transport)
        with pytest.raises(TrelloError, match=r"\(401\): invalid token") as excinfo:
            await client.fetch_member_cards()
        assert excinfo.value.status_code == 401

    @pytest.mark.asyncio
    async def test_card_id_required(self):
        from notegrid.addon.trello import TrelloClient, TrelloError
        client = TrelloClient(api_key="k", token="t")
        with pytest.raises(TrelloError, match="Card ID is required"):
            await client.fetch_card_by_id("")


class TestTaskBoard:
    @pytest.mark.asyncio
    async def test_sections(self):
        from notegrid.addon.trello import TaskBoard, TrelloClient
        cards = [
            _card("mine-open", ["me"]),
            _card("mine-closed", ["me"], closed=True),
            _card("handed-out", ["you"], creator="me", activity="2024-02-01T00:00:00Z"),
            _card("shared", ["me", "you"], activity="2024-03-01T00:00:00Z"),
            _card("handed-done", ["you"], creator="me", closed=True),
            _card("unrelated", ["you"]),
        ]
        client = TrelloClient(api_key="k", token="t", transport=_transport(cards))
        board = TaskBoard(client, clock=FakeClock())
        state = await board.load()

        assert state.current_user == ME
        assert [c["id"] for c in state.assigned_to_me] == ["shared", "mine-open"]
        assert [c["id"] for c in state.assigned_by_me_in_progress] == ["shared", "handed-out"]
        assert [c["id"] for c in state.assigned_by_me_completed] == ["handed-done"]
        assert state.error == ""
        assert state.loading is False

    @pytest.mark.asyncio
    async def test_cache_ttl(self):
        from notegrid.addon.trello import TaskBoard, TrelloClient
        calls = []
        clock = FakeClock()
        client = TrelloClient(api_key="k", token="t", transport=_transport([], calls))
        board = TaskBoard(client, cache_ttl=300, clock=clock)

        await board.load()
        clock.now += 100
        await board.load()
        assert len(calls) == 2

        await board.load(force=True)
        assert len(calls) == 4

        clock.now += 301
        assert not board.is_fresh()
        await board.load()
        assert len(calls) == 6

    @pytest.mark.asyncio
    async def test_sections_are_capped(self):
        from notegrid.addon.trello import TaskBoard, TrelloClient
        cards = [_card(f"c{i}", ["me"]) for i in range(5)]
        client = TrelloClient(api_key="k", token="t", transport=_transport(cards))
        board = TaskBoard(client, max_per_section=2, clock=FakeClock())
        state = await board.load()
        assert len(state.assigned_to_me) == 2

    @pytest.mark.asyncio
    async def test_failure_clears_sections(self, caplog):
        from notegrid.addon.trello import TaskBoard, TrelloClient
        board = TaskBoard(TrelloClient(), clock=FakeClock())
        board.state.assigned_to_me = [_card("stale", ["me"])]

        state = await board.load()

        assert state.error == "Missing Trello credentials"
        assert state.assigned_to_me == []
        assert state.last_fetched_at == 0.0
        assert "Failed to load Trello tasks" in caplog.text
