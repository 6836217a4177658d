"""Repository for ranked full-text lookups over the member directory."""
from typing import Any, List, Mapping, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import Table, and_, func, select
from sqlalchemy.dialects.mysql import match

from community_search.database.models import Member
from community_search.models.entities import MemberProfile
from community_search.search.search_filter import SearchFilter
from community_search.utils.logging import get_logger

logger = get_logger(__name__)


def split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def row_to_profile(row: Mapping[str, Any]) -> MemberProfile:
    return MemberProfile(
        member_id=str(row["id"]),
        name=row.get("name"),
        phone=row.get("phone"),
        email=row.get("email"),
        city=row.get("city"),
        organization=row.get("organization"),
        designation=row.get("designation"),
        skills=split_list(row.get("skills")),
        services=split_list(row.get("services")),
        graduation_year=row.get("graduation_year"),
        degree=row.get("degree"),
        branch=row.get("branch"),
        annual_turnover=row.get("annual_turnover"),
    )


class MemberRepository:
    """
    Read-only access to members.

    Uses SQLAlchemy Core against the ORM table so the keyword branch never
    loads ORM state across concurrent tasks.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.table: Table = Member.__table__

    def _filter_conditions(self, search_filter: SearchFilter) -> list:
        # Same semantics as SearchFilter.to_vector_filter: case-insensitive
        # equality on canonical values, OR within a field
        t = self.table
        conditions = []
        if search_filter.city:
            conditions.append(func.lower(t.c.city) == search_filter.city.lower())
        if search_filter.graduation_years:
            conditions.append(t.c.graduation_year.in_(list(search_filter.graduation_years)))
        if search_filter.degrees:
            conditions.append(func.lower(t.c.degree).in_([d.lower() for d in search_filter.degrees]))
        if search_filter.branches:
            conditions.append(func.lower(t.c.branch).in_([b.lower() for b in search_filter.branches]))
        low, high = search_filter.turnover_range
        if low is not None:
            conditions.append(t.c.annual_turnover >= low)
        if high is not None:
            conditions.append(t.c.annual_turnover < high)
        return conditions

    async def full_text_search(
        self,
        query_text: str,
        search_filter: SearchFilter,
        limit: int,
    ) -> List[Tuple[MemberProfile, float]]:
        """
        Members ranked by MySQL natural-language relevance.

        With filter predicates every matching member is returned, relevance 0
        included. Without them only rows with a lexical hit come back.
        """
        t = self.table
        relevance = match(t.c.search_text, against=query_text).in_natural_language_mode()

        conditions = [t.c.is_active.is_(True)]
        filter_conditions = self._filter_conditions(search_filter)
        conditions.extend(filter_conditions)
        if not filter_conditions:
            conditions.append(relevance > 0)

        stmt = (
            select(t, relevance.label("relevance"))
            .where(and_(*conditions))
            .order_by(relevance.desc(), t.c.id.asc())
            .limit(limit)
        )

        result = await self.session.execute(stmt)
        rows = result.mappings().all()
        logger.debug(
            f"Full-text search returned {len(rows)} rows",
            extra={"rows": len(rows), "filtered": bool(filter_conditions)}
        )
        return [(row_to_profile(row), float(row["relevance"] or 0.0)) for row in rows]
