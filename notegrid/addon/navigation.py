"""
Navigation Controller

Single source of truth for which view is visible. Keeps a back-stack of
view identifiers and treats the "result" view as a dead end: leaving it
always returns to the view it was entered from.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

logger = logging.getLogger("notegrid.addon.navigation")

HOME = "home"
INPUT = "input"
RESULT = "result"
STICKY_NOTES = "sticky-notes"
TEAM = "team"
DISCUSSION = "discussion"
TASKS = "tasks"

VIEWS = [HOME, INPUT, RESULT, STICKY_NOTES, TEAM, DISCUSSION, TASKS]


@dataclass(frozen=True)
class ViewVisibility:
    """Projection of one view onto the screen"""
    view: str
    active: bool
    aria_hidden: bool


class NavigationController:
    """
    View state machine with back-stack semantics.

    Args:
        initial_view: View active at boot; seeds the history.
        views: Known view identifiers used for the visibility projection.
        on_leave_team: Called when navigating away from the team view,
            to close the team and confirm modals.
    """

    def __init__(
        self,
        initial_view: str = HOME,
        views: Optional[List[str]] = None,
        on_leave_team: Optional[Callable[[], None]] = None,
    ):
        self.views = list(views or VIEWS)
        if initial_view not in self.views:
            self.views.append(initial_view)
        self.current_view: str = initial_view
        self.previous_view: Optional[str] = None
        self.entry_view: Optional[str] = None
        self.view_history: List[str] = [initial_view]
        self._on_leave_team = on_leave_team
        self._visibility: Dict[str, ViewVisibility] = {}
        self._project()

    def navigate_to(
        self,
        target: Optional[str],
        replace_history: bool = False,
        entry_source: Optional[str] = None,
    ) -> None:
        if not target:
            return

        if replace_history and self.view_history:
            self.view_history.pop()

        if self.current_view == target and not replace_history:
            self._project()
            return

        prev = self.current_view
        self.previous_view = prev
        self.current_view = target

        if prev == TEAM and target != TEAM and self._on_leave_team is not None:
            self._on_leave_team()

        if target == RESULT:
            self.entry_view = entry_source or prev or HOME

        if not self.view_history or self.view_history[-1] != target:
            self.view_history.append(target)

        logger.debug("Navigated %s -> %s (history=%s)", prev, target, self.view_history)
        self._project()

    def go_back(self) -> None:
        if self.current_view == RESULT:
            destination = self.entry_view or self.previous_view or HOME
            self.entry_view = None
            self.navigate_to(destination, replace_history=True)
            return

        if self.current_view == HOME:
            return

        if len(self.view_history) > 1:
            self.view_history.pop()
            self.current_view = self.view_history[-1]
            self.previous_view = self.view_history[-2] if len(self.view_history) > 1 else None
            self._project()

    @property
    def show_back(self) -> bool:
        return self.current_view != HOME

    def _project(self) -> None:
        views = self.views
        if self.current_view not in views:
            views = views + [self.current_view]
        self._visibility = {
            view: ViewVisibility(
                view=view,
                active=view == self.current_view,
                aria_hidden=view != self.current_view,
            )
            for view in views
        }

    def visibility(self) -> Dict[str, ViewVisibility]:
        return dict(self._visibility)
