"""
NoteGrid Add-on Application

Explicit application state plus a single intent handler. Every user
action in the panel is one of the intent dataclasses below; dispatch()
applies it to AppState and the owned components. Rendering reads state
and never mutates it.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Type

from ..common.config import NoteGridConfig, load_config
from ..common.kv_store import LocalStore
from ..common.schemas import MentionCandidate, Note, NoteSet
from .analysis_client import AnalysisError, NoteAnalysisClient, UploadFile, coerce_notes
from .canvas import CanvasBridge, CanvasError, SandboxConnector
from .discussion import DiscussionComposer, RenderedMessage, render_message
from .layout import ReleaseOutcome, StickyLayoutEngine
from .mentions import KeyAction, KeyResult
from . import navigation as nav
from .navigation import NavigationController
from .notifications import NotificationDispatcher, NotificationQueue
from .stores import DiscussionStore, NoteSetStore, TagCounter, TeamStore
from .trello import TaskBoard, TaskBoardState, TrelloClient

logger = logging.getLogger("notegrid.addon.app")

UNTITLED = "Untitled note"
STATUS_ANALYZING = "Analyzing with AI…"
STATUS_AI_FAILED = "AI failed. Is backend running?"

TAB_VIEWS = {
    "sticky": nav.STICKY_NOTES,
    "team": nav.TEAM,
    "discussion": nav.DISCUSSION,
    "tasks": nav.TASKS,
}


class TeamFormError(ValueError):
    """The add-member form is missing a required field"""
    pass


# ----------------------------------------------------------------------
# Intents
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class NavigateTo:
    target: str
    replace_history: bool = False
    entry_source: Optional[str] = None


@dataclass(frozen=True)
class GoBack:
    pass


@dataclass(frozen=True)
class OpenTab:
    tab: str


@dataclass(frozen=True)
class StartNote:
    """Open the name step, or continue to content entry when a title is given"""
    title: Optional[str] = None


@dataclass(frozen=True)
class CancelNote:
    pass


@dataclass(frozen=True)
class AnalyzeContent:
    text: str = ""
    files: Sequence[UploadFile] = ()


@dataclass(frozen=True)
class OpenNoteSet:
    note_set_id: str


@dataclass(frozen=True)
class OpenTeamModal:
    pass


@dataclass(frozen=True)
class CloseTeamModal:
    pass


@dataclass(frozen=True)
class AddMember:
    name: str
    email: str
    role: str
    is_lead: bool = False


@dataclass(frozen=True)
class SetLead:
    member_id: str


@dataclass(frozen=True)
class RequestRemoveMember:
    member_id: str


@dataclass(frozen=True)
class ResolveConfirm:
    confirmed: bool


@dataclass(frozen=True)
class PressCard:
    card_id: str
    x: float
    y: float


@dataclass(frozen=True)
class MoveCard:
    x: float
    y: float


@dataclass(frozen=True)
class ReleaseCard:
    pass


@dataclass(frozen=True)
class ToggleCollapse:
    card_id: str


@dataclass(frozen=True)
class PointerDown:
    card_id: Optional[str]
    x: float
    y: float


@dataclass(frozen=True)
class PointerUp:
    card_id: Optional[str]
    x: float
    y: float


@dataclass(frozen=True)
class ComposerInput:
    text: str
    cursor: Optional[int] = None
    inserted: Optional[str] = None


@dataclass(frozen=True)
class ComposerKey:
    key: str
    shift: bool = False


@dataclass(frozen=True)
class PickMention:
    candidate: MentionCandidate


@dataclass(frozen=True)
class SendMessage:
    pass


@dataclass(frozen=True)
class AttachSelection:
    pass


@dataclass(frozen=True)
class DismissSelection:
    pass


@dataclass(frozen=True)
class DropAttachment:
    """A selection chip dropped onto the composer"""
    payload: Optional[str]


@dataclass(frozen=True)
class RemoveAttachment:
    pass


@dataclass(frozen=True)
class JumpToTag:
    tag: str


@dataclass(frozen=True)
class RefreshTasks:
    force: bool = True


# ----------------------------------------------------------------------
# State
# ----------------------------------------------------------------------

@dataclass
class ModalState:
    name_open: bool = False
    team_open: bool = False
    confirm_open: bool = False
    confirm_message: str = ""
    confirm_action: Optional[Callable[[], None]] = None


@dataclass
class AppState:
    navigation: NavigationController
    layout: StickyLayoutEngine
    modals: ModalState = field(default_factory=ModalState)
    active_tab: str = "sticky"
    note_title: str = UNTITLED
    board_status: str = ""
    saved_notes: List[NoteSet] = field(default_factory=list)
    alert: str = ""


class NoteGridApp:
    """
    Owns the add-on components and applies intents to them.

    Args:
        store: Local key-value store shared by every persisted slot.
        analysis: Client for the backend's /analyze endpoint.
        sandbox_connector: Coroutine factory connecting to the host document.
        trello: Trello client for the task board and mention cards.
        notifications: Dispatcher for tag e-mails.
        canvas_width: Board width used by the layout engine.
    """

    def __init__(
        self,
        store: Optional[LocalStore] = None,
        analysis: Optional[NoteAnalysisClient] = None,
        sandbox_connector: Optional[SandboxConnector] = None,
        trello: Optional[TrelloClient] = None,
        notifications: Optional[NotificationDispatcher] = None,
        canvas_width: float = 720,
    ):
        self.store = store if store is not None else LocalStore()
        self.analysis = analysis or NoteAnalysisClient()
        self.trello = trello or TrelloClient()

        self.note_sets = NoteSetStore(self.store)
        self.team = TeamStore(self.store)
        self.discussion = DiscussionStore(self.store)
        self.tags = TagCounter(self.store)

        self.team.init()
        self.team.clear_if_corrupt()
        self.discussion.load()

        self.state = AppState(
            navigation=NavigationController(on_leave_team=self._close_team_modals),
            layout=StickyLayoutEngine(canvas_width=canvas_width),
        )
        self.state.saved_notes = self.note_sets.all()

        dispatcher = notifications or NotificationDispatcher(trello=self.trello)
        self.notification_queue = NotificationQueue(dispatcher)
        self.canvas = CanvasBridge(sandbox_connector or _no_sandbox, self.tags)
        self.composer = DiscussionComposer(
            self.discussion,
            self.team,
            queue=self.notification_queue,
            selection_tag=self._selection_tag,
        )
        self.tasks = TaskBoard(self.trello)

        self._handlers: Dict[Type, Callable[[Any], Awaitable[Any]]] = {
            NavigateTo: self._navigate_to,
            GoBack: self._go_back,
            OpenTab: self._open_tab,
            StartNote: self._start_note,
            CancelNote: self._cancel_note,
            AnalyzeContent: self._analyze_content,
            OpenNoteSet: self._open_note_set,
            OpenTeamModal: self._open_team_modal,
            CloseTeamModal: self._close_team_modal,
            AddMember: self._add_member,
            SetLead: self._set_lead,
            RequestRemoveMember: self._request_remove_member,
            ResolveConfirm: self._resolve_confirm,
            PressCard: self._press_card,
            MoveCard: self._move_card,
            ReleaseCard: self._release_card,
            ToggleCollapse: self._toggle_collapse,
            PointerDown: self._pointer_down,
            PointerUp: self._pointer_up,
            ComposerInput: self._composer_input,
            ComposerKey: self._composer_key,
            PickMention: self._pick_mention,
            SendMessage: self._send_message,
            AttachSelection: self._attach_selection,
            DismissSelection: self._dismiss_selection,
            DropAttachment: self._drop_attachment,
            RemoveAttachment: self._remove_attachment,
            JumpToTag: self._jump_to_tag,
            RefreshTasks: self._refresh_tasks,
        }

    @classmethod
    def from_config(
        cls,
        config: Optional[NoteGridConfig] = None,
        sandbox_connector: Optional[SandboxConnector] = None,
    ) -> "NoteGridApp":
        config = config or load_config()
        trello = TrelloClient.from_config(config.trello)
        app = cls(
            store=LocalStore(config.addon.store_path),
            analysis=NoteAnalysisClient.from_config(config.addon),
            sandbox_connector=sandbox_connector,
            trello=trello,
            notifications=NotificationDispatcher(config.addon.backend_url, trello=trello),
        )
        app.canvas.max_attempts = config.addon.max_connect_attempts
        app.canvas.retry_delay = config.addon.retry_delay
        app.canvas.poll_interval = config.addon.poll_interval
        app.tasks.cache_ttl = config.trello.cache_ttl
        app.tasks.max_per_section = config.trello.max_tasks_per_section
        return app

    async def dispatch(self, intent: Any) -> Any:
        """Apply one intent; intents are processed one at a time"""
        handler = self._handlers.get(type(intent))
        if handler is None:
            raise TypeError(f"Unknown intent: {type(intent).__name__}")
        logger.debug("Dispatching %s", intent)
        return await handler(intent)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _selection_tag(self) -> Optional[str]:
        selection = self.canvas.current_selection
        return selection.tag if selection is not None else None

    def _close_team_modals(self) -> None:
        modals = self.state.modals
        modals.team_open = False
        modals.confirm_open = False
        modals.confirm_message = ""
        modals.confirm_action = None

    def _set_note_title(self, title: Optional[str]) -> None:
        self.state.note_title = title or UNTITLED

    def _reset_content_step(self) -> None:
        self.state.board_status = ""

    def _render_notes(self, notes: List[Note]) -> None:
        self.state.board_status = ""
        self.state.layout.render(notes)

    def messages(self, now=None) -> List[RenderedMessage]:
        return [render_message(m, now) for m in self.discussion.messages]

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def _navigate_to(self, intent: NavigateTo) -> None:
        self.state.navigation.navigate_to(
            intent.target,
            replace_history=intent.replace_history,
            entry_source=intent.entry_source,
        )

    async def _go_back(self, intent: GoBack) -> None:
        self._reset_content_step()
        self.state.layout.clear()
        self.state.navigation.go_back()

    async def _open_tab(self, intent: OpenTab) -> None:
        view = TAB_VIEWS.get(intent.tab)
        if view is None:
            logger.warning("Unknown tab: %s", intent.tab)
            return
        self.state.active_tab = intent.tab

        if view == nav.STICKY_NOTES:
            self.state.saved_notes = self.note_sets.all()
        elif view == nav.DISCUSSION:
            self.discussion.load()
            await self.canvas.poll()
        self.state.navigation.navigate_to(view)
        if view == nav.TASKS:
            await self.tasks.load()

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    async def _start_note(self, intent: StartNote) -> None:
        if intent.title is None:
            self._reset_content_step()
            self.state.modals.name_open = True
            return
        self.state.modals.name_open = False
        self._set_note_title(intent.title.strip())
        self.state.layout.clear()
        self.state.navigation.navigate_to(nav.INPUT)

    async def _cancel_note(self, intent: CancelNote) -> None:
        self.state.modals.name_open = False
        self._reset_content_step()

    async def _analyze_content(self, intent: AnalyzeContent) -> Optional[NoteSet]:
        state = self.state
        state.layout.clear()
        state.board_status = STATUS_ANALYZING
        state.navigation.navigate_to(nav.RESULT, entry_source=nav.HOME)

        try:
            raw = await self.analysis.analyze(intent.text, intent.files)
        except AnalysisError as e:
            logger.warning("Analysis failed: %s", e)
            state.board_status = STATUS_AI_FAILED
            return None

        notes = coerce_notes(raw)
        self._render_notes(notes)
        note_set = self.note_sets.save_new(state.note_title or UNTITLED, notes)
        state.saved_notes = self.note_sets.all()
        return note_set

    async def _open_note_set(self, intent: OpenNoteSet) -> Optional[List[Note]]:
        opened = self.note_sets.open(intent.note_set_id)
        if opened is None:
            return None
        note_set, notes = opened
        self._set_note_title(note_set.title)
        self.state.navigation.navigate_to(nav.RESULT, entry_source=nav.STICKY_NOTES)
        self._render_notes(notes)
        return notes

    # ------------------------------------------------------------------
    # Team
    # ------------------------------------------------------------------

    async def _open_team_modal(self, intent: OpenTeamModal) -> None:
        self.state.active_tab = "team"
        self.state.navigation.navigate_to(nav.TEAM)
        self.state.modals.team_open = True

    async def _close_team_modal(self, intent: CloseTeamModal) -> None:
        self.state.modals.team_open = False

    async def _add_member(self, intent: AddMember):
        name = (intent.name or "").strip()
        email = (intent.email or "").strip()
        role = (intent.role or "").strip()
        if not name or not email or not role:
            raise TeamFormError("Please fill in all required fields (Name, Email, and Role)")

        member = self.team.add_member(name, email, role, intent.is_lead)
        self.state.modals.team_open = False
        return member

    async def _set_lead(self, intent: SetLead) -> None:
        self.team.set_lead(intent.member_id)

    async def _request_remove_member(self, intent: RequestRemoveMember) -> None:
        member = self.team.get(intent.member_id)
        if member is None:
            return
        modals = self.state.modals
        modals.team_open = False
        modals.name_open = False
        modals.confirm_open = True
        modals.confirm_message = f"Remove {member.name} from the team?"
        modals.confirm_action = lambda: self.team.remove_member(member.id)

    async def _resolve_confirm(self, intent: ResolveConfirm) -> None:
        modals = self.state.modals
        action = modals.confirm_action
        modals.confirm_open = False
        modals.confirm_message = ""
        modals.confirm_action = None
        if intent.confirmed and action is not None:
            action()

    # ------------------------------------------------------------------
    # Board
    # ------------------------------------------------------------------

    async def _press_card(self, intent: PressCard) -> bool:
        return self.state.layout.press(intent.card_id, intent.x, intent.y)

    async def _move_card(self, intent: MoveCard) -> None:
        self.state.layout.move(intent.x, intent.y)

    async def _release_card(self, intent: ReleaseCard) -> ReleaseOutcome:
        return self.state.layout.release()

    async def _toggle_collapse(self, intent: ToggleCollapse) -> None:
        self.state.layout.toggle_collapse(intent.card_id)

    async def _pointer_down(self, intent: PointerDown) -> None:
        self.state.layout.pointer_down(intent.card_id, intent.x, intent.y)

    async def _pointer_up(self, intent: PointerUp) -> bool:
        return self.state.layout.pointer_up(intent.card_id, intent.x, intent.y)

    # ------------------------------------------------------------------
    # Discussion
    # ------------------------------------------------------------------

    async def _composer_input(self, intent: ComposerInput) -> None:
        self.composer.input(intent.text, intent.cursor, intent.inserted)

    async def _composer_key(self, intent: ComposerKey) -> KeyResult:
        result = self.composer.key(intent.key, intent.shift)
        if result.action == KeyAction.SUBMIT:
            self.composer.send()
        return result

    async def _pick_mention(self, intent: PickMention) -> None:
        self.composer.pick(intent.candidate)

    async def _send_message(self, intent: SendMessage):
        return self.composer.send()

    async def _attach_selection(self, intent: AttachSelection) -> None:
        self.state.alert = ""
        try:
            attachment = await self.canvas.attach_current_selection()
        except CanvasError as e:
            self.state.alert = str(e)
            return
        self.composer.attach(attachment)

    async def _dismiss_selection(self, intent: DismissSelection) -> None:
        self.canvas.dismiss_selection()

    async def _drop_attachment(self, intent: DropAttachment) -> bool:
        return self.composer.attach_dropped(intent.payload)

    async def _remove_attachment(self, intent: RemoveAttachment) -> None:
        self.composer.remove_attachment()

    async def _jump_to_tag(self, intent: JumpToTag) -> None:
        self.state.alert = ""
        try:
            await self.canvas.jump_to_tag(intent.tag)
        except CanvasError as e:
            self.state.alert = str(e)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def _refresh_tasks(self, intent: RefreshTasks) -> TaskBoardState:
        return await self.tasks.load(force=intent.force)


async def _no_sandbox():
    raise CanvasError("No document sandbox available")
