from .store import SavedSession, SessionStore, default_session_name

__all__ = ["SavedSession", "SessionStore", "default_session_name"]
