"""Session persistence."""

from .models import CURRENT_SCHEMA_VERSION, StoredSession, session_to_payload
from .state import StateStore
from .store import SessionStore, SessionStoreError, workspace_id_for

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "SessionStore",
    "SessionStoreError",
    "StateStore",
    "StoredSession",
    "session_to_payload",
    "workspace_id_for",
]
