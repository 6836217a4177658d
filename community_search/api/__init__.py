"""HTTP routes."""
from community_search.api.routes import router

__all__ = ["router"]
