"""Data access layer."""
from community_search.repositories.member_repo import MemberRepository

__all__ = ["MemberRepository"]
