"""Hard constraints derived from extracted entities, shared by both search branches."""
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
from pydantic import BaseModel, ConfigDict, Field

from community_search.extraction.patterns import TURNOVER_TIER_BOUNDS
from community_search.models.entities import EntitySet, MemberProfile, TurnoverTier


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle.lower() in haystack.lower()


def _any_overlap(values: Iterable[str], wanted: Iterable[str]) -> bool:
    lowered = [v.lower() for v in values if v]
    return any(w.lower() in v or v in w.lower() for w in wanted for v in lowered)


class SearchFilter(BaseModel):
    """
    Frozen projection of an EntitySet into backend predicates.

    Skills and services are deliberately not predicates: they only feed
    matched-field attribution and are left to the ranking itself.
    """
    model_config = ConfigDict(frozen=True)

    city: Optional[str] = None
    graduation_years: Tuple[int, ...] = ()
    degrees: Tuple[str, ...] = ()
    branches: Tuple[str, ...] = ()
    turnover_tier: Optional[TurnoverTier] = None
    skills: Tuple[str, ...] = Field(default=(), description="Attribution only")
    services: Tuple[str, ...] = Field(default=(), description="Attribution only")

    @classmethod
    def from_entities(cls, entities: EntitySet) -> "SearchFilter":
        return cls(
            city=entities.location,
            graduation_years=tuple(entities.graduation_years),
            degrees=tuple(entities.degree),
            branches=tuple(entities.branch),
            turnover_tier=entities.turnover_tier,
            skills=tuple(entities.skills),
            services=tuple(entities.services),
        )

    @property
    def turnover_range(self) -> Tuple[Optional[int], Optional[int]]:
        """[low, high) bounds in rupees; None means unbounded."""
        if self.turnover_tier is None:
            return (None, None)
        return TURNOVER_TIER_BOUNDS[self.turnover_tier]

    def constrained_fields(self) -> List[str]:
        """Profile fields a matching member necessarily satisfies."""
        fields = []
        if self.city:
            fields.append("city")
        if self.graduation_years:
            fields.append("graduation_year")
        if self.degrees:
            fields.append("degree")
        if self.branches:
            fields.append("branch")
        if self.turnover_tier:
            fields.append("annual_turnover")
        return fields

    def has_predicates(self) -> bool:
        return bool(self.constrained_fields())

    def matched_fields(self, profile: Optional[MemberProfile]) -> Set[str]:
        """Which of the query's constraints and interests this profile satisfies."""
        if profile is None:
            return set()

        matched = set()
        if self.city and _contains(profile.city, self.city):
            matched.add("city")
        if self.graduation_years and profile.graduation_year in self.graduation_years:
            matched.add("graduation_year")
        if self.degrees and any(_contains(profile.degree, d) for d in self.degrees):
            matched.add("degree")
        if self.branches and any(_contains(profile.branch, b) for b in self.branches):
            matched.add("branch")
        if self.turnover_tier and profile.annual_turnover is not None:
            low, high = self.turnover_range
            if (low is None or profile.annual_turnover >= low) and (high is None or profile.annual_turnover < high):
                matched.add("annual_turnover")
        if self.skills and _any_overlap(profile.skills, self.skills):
            matched.add("skills")
        if self.services and _any_overlap(profile.services + profile.skills, self.services):
            matched.add("services")
        return matched

    def to_vector_filter(self) -> Optional[Dict[str, Any]]:
        """
        Pinecone metadata filter. String metadata is stored lowercase by the
        backfill job, so values are lowercased here. The keyword branch
        applies the same case-insensitive equality in SQL, so a member passes
        both filters or neither.
        """
        clauses: Dict[str, Any] = {}
        if self.city:
            clauses["city"] = {"$eq": self.city.lower()}
        if self.graduation_years:
            clauses["graduation_year"] = {"$in": list(self.graduation_years)}
        if self.degrees:
            clauses["degree"] = {"$in": [d.lower() for d in self.degrees]}
        if self.branches:
            clauses["branch"] = {"$in": [b.lower() for b in self.branches]}
        low, high = self.turnover_range
        if low is not None or high is not None:
            turnover: Dict[str, int] = {}
            if low is not None:
                turnover["$gte"] = low
            if high is not None:
                turnover["$lt"] = high
            clauses["annual_turnover"] = turnover
        return clauses or None
