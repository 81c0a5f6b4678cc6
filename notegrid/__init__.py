"""
NoteGrid

Brainstorming add-on core: turns free-form text and images into categorized
sticky notes and coordinates a small team around them.

Philosophy:
- The LLM only extracts; every note is a plain {type, text} pair
- UI state is explicit and driven by intents, never by ambient globals
- Side channels (e-mail, Trello, canvas tags) never block the primary flow

Usage:
    from notegrid.common import load_config, LocalStore
    from notegrid.common.schemas import Note, NoteType, TeamMember
    from notegrid.addon import NavigationController, StickyLayoutEngine
    from notegrid.addon.app import NoteGridApp
"""

__version__ = "0.1.0"
