"""Per-caller conversation context."""
from community_search.conversation.session_store import SessionStore

__all__ = ["SessionStore"]
