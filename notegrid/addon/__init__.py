"""
NoteGrid Add-on Core

UI-toolkit-independent state of the add-on panel: navigation, mention
completion, the sticky board layout, the analysis client, and the
persisted stores they work on.
"""

from .analysis_client import AnalysisError, NoteAnalysisClient, UploadFile, coerce_notes
from .app import AppState, NoteGridApp, TeamFormError
from .canvas import CanvasBridge, CanvasError, DocumentSandbox
from .discussion import DiscussionComposer, render_message
from .layout import StickyLayoutEngine
from .mentions import MentionEngine, build_candidates, resolve_mentions
from .navigation import NavigationController
from .notifications import NotificationDispatcher, NotificationQueue, build_notification_payloads
from .stores import DiscussionStore, NoteSetStore, TagCounter, TeamStore
from .trello import TaskBoard, TrelloClient, TrelloError

__all__ = [
    "AnalysisError",
    "NoteAnalysisClient",
    "UploadFile",
    "coerce_notes",
    "AppState",
    "NoteGridApp",
    "TeamFormError",
    "CanvasBridge",
    "CanvasError",
    "DocumentSandbox",
    "DiscussionComposer",
    "render_message",
    "StickyLayoutEngine",
    "MentionEngine",
    "build_candidates",
    "resolve_mentions",
    "NavigationController",
    "NotificationDispatcher",
    "NotificationQueue",
    "build_notification_payloads",
    "DiscussionStore",
    "NoteSetStore",
    "TagCounter",
    "TeamStore",
    "TaskBoard",
    "TrelloClient",
    "TrelloError",
]
