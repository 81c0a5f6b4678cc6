"""
Sticky Layout Engine

Places note cards on an absolute-coordinate board, and owns the drag and
collapse protocols. Per-card geometry and the pre-collapse state live in
explicit CardRecord entries instead of element attributes.

Layout is not persisted; every render() starts from a clean board.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from ..common.schemas import Note, NoteType, TYPE_LABELS, TYPE_ORDER

logger = logging.getLogger("notegrid.addon.layout")

CARD_GAP = 12
COLUMN_GAP = 16
HEADER_HEIGHT = 28
SINGLE_COLUMN_BREAKPOINT = 560

DRAG_THRESHOLD = 5
GROW_PADDING = 20

COLLAPSED_SIZE = 24
CLUSTER_SPACING = 4
CLUSTER_ORIGIN_X = 20
CLUSTER_ORIGIN_Y = 20
CLUSTER_SLOT_STEP = 30
CLUSTER_ROW_HEIGHT = COLLAPSED_SIZE + CLUSTER_SPACING
EDGE_MARGIN = 20

MeasureFn = Callable[[Note, float], float]


def default_measure(note: Note, width: float) -> float:
    """Rough card height: padding plus one 18px line per wrapped row"""
    chars_per_line = max(8, int(width // 8))
    lines = max(1, math.ceil(len(note.text or "") / chars_per_line))
    return 48 + 18 * lines


@dataclass
class ColumnHeader:
    type: NoteType
    label: str
    left: float
    top: float
    width: float


@dataclass
class CardRecord:
    """Geometry and interaction state of one card"""
    card_id: str
    note: Note
    left: float
    top: float
    width: float
    height: float
    editable: bool = False
    collapsed: bool = False
    dragging: bool = False
    focused: bool = False
    original_left: Optional[float] = None
    original_top: Optional[float] = None
    original_width: Optional[float] = None
    original_height: Optional[float] = None
    was_editable: bool = False

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height


class DragPhase(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"


@dataclass
class DragSession:
    card_id: str
    start_x: float
    start_y: float
    initial_left: float
    initial_top: float
    phase: DragPhase
    moved: bool = False


class ReleaseOutcome(str, Enum):
    """How a press/release pair ended"""
    NONE = "none"
    MOVED = "moved"
    FOCUSED = "focused"


@dataclass
class _ClickStart:
    card_id: str
    x: float
    y: float


def _note_type(note: Note) -> NoteType:
    try:
        return NoteType(note.type)
    except ValueError:
        return NoteType.TASK


class StickyLayoutEngine:
    """
    Card placement, drag and collapse for one board.

    Args:
        canvas_width: Board width in pixels.
        measure: Height of a card for a note at a given width.
    """

    def __init__(self, canvas_width: float = 720, measure: Optional[MeasureFn] = None):
        self.canvas_width = canvas_width
        self.canvas_height: float = 0
        self.measure = measure or default_measure
        self.cards: Dict[str, CardRecord] = {}
        self.headers: List[ColumnHeader] = []
        self.cursor = ""
        self.text_selection_enabled = True
        self._session: Optional[DragSession] = None
        self._click: Optional[_ClickStart] = None
        self._next_id = 1

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    def _new_id(self) -> str:
        card_id = f"card-{self._next_id}"
        self._next_id += 1
        return card_id

    def clear(self) -> None:
        self.cards = {}
        self.headers = []
        self.canvas_height = 0
        self.cursor = ""
        self.text_selection_enabled = True
        self._session = None
        self._click = None
        self._next_id = 1

    def render(self, notes: Iterable[Note]) -> List[CardRecord]:
        """Lay out notes in per-type columns, or one column on narrow boards"""
        self.clear()

        groups: Dict[NoteType, List[Note]] = {t: [] for t in TYPE_ORDER}
        for note in notes:
            note_type = _note_type(note)
            if note_type != note.type:
                note = Note(type=note_type, text=note.text)
            groups[note_type].append(note)
        present = [t for t in TYPE_ORDER if groups[t]]

        if not present:
            return []

        if self.canvas_width < SINGLE_COLUMN_BREAKPOINT:
            top = 0.0
            for note_type in present:
                top = self._place_column(note_type, groups[note_type], 0, top, self.canvas_width)
                top += CARD_GAP
        else:
            count = len(present)
            width = (self.canvas_width - COLUMN_GAP * (count - 1)) / count
            for index, note_type in enumerate(present):
                left = index * (width + COLUMN_GAP)
                self._place_column(note_type, groups[note_type], left, 0, width)

        self._grow_to(max(card.bottom for card in self.cards.values()))
        logger.debug("Rendered %d cards in %d groups", len(self.cards), len(present))
        return list(self.cards.values())

    def _place_column(
        self,
        note_type: NoteType,
        notes: List[Note],
        left: float,
        top: float,
        width: float,
    ) -> float:
        self.headers.append(
            ColumnHeader(type=note_type, label=TYPE_LABELS[note_type], left=left, top=top, width=width)
        )
        top += HEADER_HEIGHT
        for note in notes:
            height = self.measure(note, width)
            card = CardRecord(
                card_id=self._new_id(),
                note=note,
                left=left,
                top=top,
                width=width,
                height=height,
            )
            self.cards[card.card_id] = card
            top += height + CARD_GAP
        return top

    def add_card(
        self,
        note: Note,
        editable: bool = True,
        left: float = 0,
        top: Optional[float] = None,
        width: Optional[float] = None,
    ) -> CardRecord:
        """Add a hand-written card below the existing ones"""
        width = width or min(self.canvas_width, 220)
        if top is None:
            top = max((c.bottom + CARD_GAP for c in self.cards.values()), default=0)
        card = CardRecord(
            card_id=self._new_id(),
            note=note,
            left=left,
            top=top,
            width=width,
            height=self.measure(note, width),
            editable=editable,
            was_editable=editable,
        )
        self.cards[card.card_id] = card
        self._grow_to(card.bottom)
        return card

    def _grow_to(self, bottom: float) -> None:
        if bottom > self.canvas_height:
            self.canvas_height = bottom + GROW_PADDING

    def _card(self, card_id: str) -> Optional[CardRecord]:
        card = self.cards.get(card_id)
        if card is None:
            logger.debug("Unknown card %s", card_id)
        return card

    # ------------------------------------------------------------------
    # Drag
    # ------------------------------------------------------------------

    @property
    def session(self) -> Optional[DragSession]:
        return self._session

    def press(self, card_id: str, x: float, y: float) -> bool:
        """Start a drag session; ignored while another session is listening"""
        if self._session is not None:
            return False
        card = self._card(card_id)
        if card is None:
            return False

        self._session = DragSession(
            card_id=card_id,
            start_x=x,
            start_y=y,
            initial_left=card.left,
            initial_top=card.top,
            phase=DragPhase.PENDING if card.editable else DragPhase.ACTIVE,
        )
        if self._session.phase == DragPhase.ACTIVE:
            self._activate(card)
        return True

    def _activate(self, card: CardRecord) -> None:
        self._session.phase = DragPhase.ACTIVE
        self._session.initial_left = card.left
        self._session.initial_top = card.top
        card.dragging = True
        self.cursor = "grabbing"
        self.text_selection_enabled = False

    def move(self, x: float, y: float) -> None:
        session = self._session
        if session is None:
            return
        card = self.cards.get(session.card_id)
        if card is None:
            self._session = None
            return

        if session.phase == DragPhase.PENDING:
            dx = abs(x - session.start_x)
            dy = abs(y - session.start_y)
            if dx <= DRAG_THRESHOLD and dy <= DRAG_THRESHOLD:
                return
            self._activate(card)

        new_left = session.initial_left + (x - session.start_x)
        new_top = session.initial_top + (y - session.start_y)

        max_left = max(0, self.canvas_width - card.width)
        card.left = max(0, min(max_left, new_left))
        card.top = max(0, new_top)
        session.moved = True
        self._grow_to(card.bottom)

    def release(self) -> ReleaseOutcome:
        session = self._session
        if session is None:
            return ReleaseOutcome.NONE
        self._session = None
        card = self.cards.get(session.card_id)

        if session.phase == DragPhase.PENDING:
            if card is not None and card.editable:
                card.focused = True
                return ReleaseOutcome.FOCUSED
            return ReleaseOutcome.NONE

        if card is not None:
            card.dragging = False
        self.cursor = ""
        self.text_selection_enabled = True
        return ReleaseOutcome.MOVED if session.moved else ReleaseOutcome.NONE

    # ------------------------------------------------------------------
    # Collapse
    # ------------------------------------------------------------------

    def collapse(self, card_id: str) -> None:
        card = self._card(card_id)
        if card is None or card.collapsed:
            return

        card.original_left = card.left
        card.original_top = card.top
        card.original_width = card.width
        card.original_height = card.height
        card.was_editable = card.editable

        card.collapsed = True
        card.editable = False
        card.focused = False
        card.width = COLLAPSED_SIZE
        card.height = COLLAPSED_SIZE
        self._cluster(card)

    def _cluster(self, card: CardRecord) -> None:
        """Park a collapsed card in its type's cluster"""
        note_type = _note_type(card.note)
        same_type = [
            c for c in self.cards.values()
            if c.collapsed and c is not card and _note_type(c.note) == note_type
        ]

        if not same_type:
            card.left = CLUSTER_ORIGIN_X
            card.top = CLUSTER_ORIGIN_Y + TYPE_ORDER.index(note_type) * CLUSTER_SLOT_STEP
            return

        row_top = max(c.top for c in same_type)
        max_right = max(c.left + COLLAPSED_SIZE for c in same_type if c.top == row_top)

        if max_right + CLUSTER_SPACING + COLLAPSED_SIZE > self.canvas_width - EDGE_MARGIN:
            card.left = CLUSTER_ORIGIN_X
            card.top = row_top + CLUSTER_ROW_HEIGHT
        else:
            card.left = max_right + CLUSTER_SPACING
            card.top = row_top
        self._grow_to(card.bottom)

    def expand(self, card_id: str) -> None:
        card = self._card(card_id)
        if card is None or not card.collapsed:
            return

        if card.original_left is not None:
            card.left = card.original_left
        if card.original_top is not None:
            card.top = card.original_top
        if card.original_width is not None:
            card.width = card.original_width
        if card.original_height is not None:
            card.height = card.original_height

        card.collapsed = False
        if card.was_editable:
            card.editable = True
        card.original_left = card.original_top = None
        card.original_width = card.original_height = None
        self._grow_to(card.bottom)

    def toggle_collapse(self, card_id: str) -> None:
        card = self._card(card_id)
        if card is None:
            return
        if card.collapsed:
            self.expand(card_id)
        else:
            self.collapse(card_id)

    def pointer_down(self, card_id: Optional[str], x: float, y: float) -> None:
        """Remember a press on a collapsed card"""
        card = self.cards.get(card_id) if card_id else None
        if card is not None and card.collapsed:
            self._click = _ClickStart(card_id=card_id, x=x, y=y)

    def pointer_up(self, card_id: Optional[str], x: float, y: float) -> bool:
        """Expand the pressed collapsed card when the pointer barely moved"""
        click, self._click = self._click, None
        if click is None:
            return False

        card = self.cards.get(click.card_id)
        if card is None or not card.collapsed or card_id != click.card_id:
            return False
        if abs(x - click.x) < DRAG_THRESHOLD and abs(y - click.y) < DRAG_THRESHOLD:
            self.expand(click.card_id)
            return True
        return False
