"""
NoteGrid Common Module

Shared infrastructure for the backend service and the add-on core.
"""

from .config import NoteGridConfig, load_config
from .kv_store import LocalStore
from .llm_client import LLMClient, ImageInput

__all__ = [
    "NoteGridConfig",
    "load_config",
    "LocalStore",
    "LLMClient",
    "ImageInput",
]
