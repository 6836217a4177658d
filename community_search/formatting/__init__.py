"""Reply text and follow-up suggestions."""
from community_search.formatting.response_formatter import format_response, format_turnover
from community_search.formatting.suggestion_engine import generate_suggestions

__all__ = ["format_response", "format_turnover", "generate_suggestions"]
