"""Scenario tests for NoteGridApp intent dispatch."""

import httpx
import pytest

from notegrid.common.kv_store import LocalStore


def _analysis(body, status=200):
    from notegrid.addon.analysis_client import NoteAnalysisClient
    transport = httpx.MockTransport(lambda request: httpx.Response(status, json=body))
    return NoteAnalysisClient("http://backend", transport=transport)


def _app(store=None, analysis=None, **kwargs):
    from notegrid.addon.app import NoteGridApp
    return NoteGridApp(store=store or LocalStore(), analysis=analysis or _analysis([]), **kwargs)


class TestNoteFlow:
    @pytest.mark.asyncio
    async def test_analyze_saves_and_reopens(self, tmp_path):
        from notegrid.addon.app import AnalyzeContent, GoBack, OpenNoteSet, OpenTab, StartNote
        from notegrid.common.schemas import NoteType
        body = [
            {"type": "decision", "text": "Ship onboarding v2"},
            {"type": "task", "text": "Prepare Q3 roadmap"},
            {"type": "mystery", "text": "Unknown kind"},
        ]
        store = LocalStore(tmp_path / "store.json")
        app = _app(store=store, analysis=_analysis(body))

        await app.dispatch(StartNote())
        assert app.state.modals.name_open
        await app.dispatch(StartNote(title="  Kickoff  "))
        assert app.state.navigation.current_view == "input"
        assert app.state.note_title == "Kickoff"

        note_set = await app.dispatch(AnalyzeContent(text="meeting notes"))
        assert app.state.navigation.current_view == "result"
        assert app.state.board_status == ""
        assert len(app.state.layout.cards) == 3
        assert app.state.saved_notes[0].id == note_set.id

        await app.dispatch(GoBack())
        assert app.state.navigation.current_view == "home"
        assert app.state.layout.cards == {}

        reloaded = _app(store=LocalStore(tmp_path / "store.json"))
        await reloaded.dispatch(OpenTab(tab="sticky"))
        assert reloaded.state.navigation.current_view == "sticky-notes"
        notes = await reloaded.dispatch(OpenNoteSet(note_set_id=note_set.id))

        assert [(n.type, n.text) for n in notes] == [
            (NoteType.DECISION, "Ship onboarding v2"),
            (NoteType.TASK, "Prepare Q3 roadmap"),
            (NoteType.TASK, "Unknown kind"),
        ]
        assert reloaded.state.note_title == "Kickoff"
        await reloaded.dispatch(GoBack())
        assert reloaded.state.navigation.current_view == "sticky-notes"

    @pytest.mark.asyncio
    async def test_analysis_failure_sets_status(self):
        from notegrid.addon.app import STATUS_AI_FAILED, AnalyzeContent
        app = _app(analysis=_analysis({"error": "AI failed"}, status=500))
        result = await app.dispatch(AnalyzeContent(text="x"))
        assert result is None
        assert app.state.board_status == STATUS_AI_FAILED
        assert app.note_sets.all() == []

    @pytest.mark.asyncio
    async def test_board_intents_reach_layout(self):
        from notegrid.addon.app import AnalyzeContent, MoveCard, PressCard, ReleaseCard, ToggleCollapse
        from notegrid.addon.layout import ReleaseOutcome
        app = _app(analysis=_analysis([{"type": "task", "text": "A"}]))
        await app.dispatch(AnalyzeContent(text="x"))
        card = app.state.layout.cards["card-1"]

        await app.dispatch(PressCard("card-1", 0, 0))
        await app.dispatch(MoveCard(0, 30))
        assert await app.dispatch(ReleaseCard()) == ReleaseOutcome.MOVED
        assert card.top == 58

        await app.dispatch(ToggleCollapse("card-1"))
        assert card.collapsed

    @pytest.mark.asyncio
    async def test_unknown_intent(self):
        app = _app()
        with pytest.raises(TypeError, match="Unknown intent"):
            await app.dispatch(object())


class TestTeamFlow:
    @pytest.mark.asyncio
    async def test_add_member_requires_fields(self):
        from notegrid.addon.app import AddMember, TeamFormError
        app = _app()
        with pytest.raises(TeamFormError, match="required fields"):
            await app.dispatch(AddMember(name="Alice", email="", role="PM"))
        assert app.team.members == []

    @pytest.mark.asyncio
    async def test_lead_and_removal_with_confirm(self):
        from notegrid.addon.app import (
            AddMember,
            OpenTeamModal,
            RequestRemoveMember,
            ResolveConfirm,
            SetLead,
        )
        app = _app()
        await app.dispatch(OpenTeamModal())
        assert app.state.modals.team_open
        alice = await app.dispatch(AddMember("Alice", "alice@x.com", "PM", is_lead=True))
        bob = await app.dispatch(AddMember("Bob", "bob@x.com", "Dev"))
        assert not app.state.modals.team_open

        await app.dispatch(SetLead(bob.id))
        await app.dispatch(SetLead(bob.id))
        assert [m.id for m in app.team.members if m.is_lead] == [bob.id]

        await app.dispatch(RequestRemoveMember(alice.id))
        assert app.state.modals.confirm_message == "Remove Alice from the team?"
        await app.dispatch(ResolveConfirm(confirmed=False))
        assert len(app.team.members) == 2

        await app.dispatch(RequestRemoveMember(alice.id))
        await app.dispatch(ResolveConfirm(confirmed=True))
        assert [m.name for m in app.team.members] == ["Bob"]
        assert not app.state.modals.confirm_open

    @pytest.mark.asyncio
    async def test_leaving_team_view_closes_modals(self):
        from notegrid.addon.app import AddMember, NavigateTo, OpenTeamModal, RequestRemoveMember
        app = _app()
        member = await app.dispatch(AddMember("Alice", "alice@x.com", "PM"))
        await app.dispatch(OpenTeamModal())
        await app.dispatch(RequestRemoveMember(member.id))
        await app.dispatch(NavigateTo("home"))
        assert not app.state.modals.confirm_open
        assert not app.state.modals.team_open


class TestDiscussionFlow:
    @pytest.mark.asyncio
    async def test_enter_sends_and_notifies(self):
        from notegrid.addon.app import AddMember, ComposerInput, ComposerKey
        from notegrid.addon.notifications import NotificationDispatcher
        sent = []

        def handler(request):
            sent.append(request)
            return httpx.Response(200, json={"ok": True})

        app = _app(notifications=NotificationDispatcher(transport=httpx.MockTransport(handler)))
        await app.dispatch(AddMember("Bob", "bob@x.com", "Dev"))
        await app.dispatch(ComposerInput("@Bob ship it"))
        await app.dispatch(ComposerKey("Enter"))
        await app.notification_queue.drain()

        assert [m.text for m in app.discussion.messages] == ["@Bob ship it"]
        assert len(sent) == 1
        assert app.messages()[0].author == "You"

    @pytest.mark.asyncio
    async def test_attach_without_sandbox_sets_alert(self):
        from notegrid.addon.app import AttachSelection, JumpToTag
        app = _app()
        await app.dispatch(AttachSelection())
        assert app.state.alert == "Select an element on the canvas first."
        await app.dispatch(JumpToTag("NG-001"))
        assert app.state.alert == "Canvas jump not available. Refresh the add-on."

    @pytest.mark.asyncio
    async def test_drop_attachment(self):
        from notegrid.addon.app import DropAttachment, RemoveAttachment
        app = _app()
        assert await app.dispatch(DropAttachment('{"nodeId": "n1", "tag": "NG-001"}'))
        assert app.composer.attachment.tag == "NG-001"
        await app.dispatch(RemoveAttachment())
        assert app.composer.attachment is None


class TestTasksFlow:
    @pytest.mark.asyncio
    async def test_tasks_tab_without_credentials(self):
        from notegrid.addon.app import OpenTab
        app = _app()
        await app.dispatch(OpenTab(tab="tasks"))
        assert app.state.navigation.current_view == "tasks"
        assert app.tasks.state.error == "Missing Trello credentials"


class TestFromConfig:
    def test_addon_settings_are_applied(self, tmp_path):
        from notegrid.addon.app import NoteGridApp
        from notegrid.common.config import NoteGridConfig
        cfg = NoteGridConfig()
        cfg.addon.store_path = str(tmp_path / "store.json")
        cfg.addon.poll_interval = 0.5
        cfg.addon.retry_delay = 2.0
        cfg.addon.max_connect_attempts = 3
        cfg.trello.cache_ttl = 60

        app = NoteGridApp.from_config(cfg)

        assert app.canvas.poll_interval == 0.5
        assert app.canvas.retry_delay == 2.0
        assert app.canvas.max_attempts == 3
        assert app.tasks.cache_ttl == 60
        assert app.store.path == tmp_path / "store.json"
