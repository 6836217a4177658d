"""Utility modules."""
from community_search.utils.logging import setup_logging, get_logger

__all__ = ["setup_logging", "get_logger"]
