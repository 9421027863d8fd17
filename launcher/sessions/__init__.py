from launcher.sessions.session_store import SessionStore

__all__ = ['SessionStore']
