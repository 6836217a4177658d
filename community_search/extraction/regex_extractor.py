"""Fast, deterministic entity extraction without LLM calls."""
from typing import List, Optional, Pattern, Tuple

from community_search.config import PipelineConfig
from community_search.extraction import patterns
from community_search.extraction.normalization import normalize_query, normalize_year
from community_search.models.entities import EntitySet, RegexExtraction, TurnoverTier
from community_search.utils.logging import get_logger

logger = get_logger(__name__)


def _ordered_matches(table: List[Tuple[str, Pattern]], text: str) -> List[str]:
    """Canonical values found in text, ordered by where they first appear."""
    found = []
    for canonical, pattern in table:
        match = pattern.search(text)
        if match:
            found.append((match.start(), canonical))
    return [canonical for _, canonical in sorted(found)]


class RegexEntityExtractor:
    """
    Pattern-driven extractor for years, locations, degrees, branches,
    skills, services, turnover tiers and person names.

    Pure and idempotent over normalize_query: extracting from a query or from
    its normalized form gives the same result.
    """

    def __init__(self, config: PipelineConfig):
        self.config = config

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------

    def extract_years(self, text: str) -> List[int]:
        # Turnover figures ("above 2000 lakhs") are not batch years
        text = patterns.TURNOVER_AMOUNT_PATTERN.sub(" ", text)
        years = set()

        for match in patterns.YEAR_RANGE_PATTERN.finditer(text):
            start, end = sorted((int(match.group(1)), int(match.group(2))))
            years.update(range(start, end + 1))

        for match in patterns.YEAR4_PATTERN.finditer(text):
            years.add(int(match.group(1)))

        for pattern in patterns.YEAR2_PATTERNS:
            for match in pattern.finditer(text):
                year = normalize_year(match.group(1))
                if year:
                    years.add(year)

        for match in patterns.DECADE_PATTERN.finditer(text):
            qualifier, century, digit = match.groups()
            if century:
                base = int(century) * 100 + int(digit) * 10
            else:
                base = normalize_year(int(digit) * 10)
            low, high = patterns.DECADE_SPANS[qualifier]
            years.update(range(base + low, base + high + 1))

        return sorted(y for y in years if patterns.MIN_YEAR <= y <= patterns.MAX_YEAR)

    def extract_location(self, text: str) -> Optional[str]:
        match = patterns.CITY_PATTERN.search(text)
        if not match:
            return None
        return patterns.CITY_LOOKUP[match.group(1)]

    def extract_degrees(self, text: str) -> List[str]:
        return _ordered_matches(patterns.DEGREE_PATTERNS, text)

    def extract_branches(self, text: str) -> List[str]:
        return _ordered_matches(patterns.BRANCH_PATTERNS, text)

    def extract_skills(self, text: str) -> List[str]:
        return _ordered_matches(patterns.SKILL_PATTERNS, text)

    def extract_services(self, text: str) -> List[str]:
        services = _ordered_matches(patterns.SERVICE_PATTERNS, text)
        for specific, generic in patterns.SERVICE_SUBSUMES.items():
            if specific in services:
                services = [s for s in services if s not in generic]
        return services

    def extract_turnover_tier(self, text: str) -> Optional[TurnoverTier]:
        match = patterns.TURNOVER_AMOUNT_PATTERN.search(text)
        if match:
            comparator, figure, unit = match.groups()
            scale = patterns.CRORE if unit.startswith("cr") else patterns.LAKH
            amount = float(figure) * scale
            if comparator in ("below", "under", "less than", "upto", "up to"):
                # Anything capped at or below the low band is low, otherwise medium
                if amount <= patterns.TURNOVER_TIER_BOUNDS[TurnoverTier.LOW][1]:
                    return TurnoverTier.LOW
                return TurnoverTier.MEDIUM
            return patterns.tier_for_amount(amount)

        for tier, pattern in patterns.TURNOVER_TIER_PATTERNS:
            if pattern.search(text):
                return tier
        return None

    def extract_name(self, text: str) -> Optional[str]:
        for pattern in patterns.NAME_PATTERNS:
            match = pattern.search(text)
            if not match:
                continue
            tokens = []
            for token in match.group(1).split():
                if (
                    token in patterns.NAME_STOPWORDS
                    or token in patterns.CITY_LOOKUP
                    or any(ch.isdigit() for ch in token)
                ):
                    break
                tokens.append(token)
            if not tokens:
                continue
            candidate = " ".join(tokens)
            # "details of mechanical" is a branch, not a person
            if any(
                pattern.search(candidate)
                for _, pattern in patterns.BRANCH_PATTERNS + patterns.DEGREE_PATTERNS
                + patterns.SERVICE_PATTERNS + patterns.SKILL_PATTERNS
            ):
                continue
            return " ".join(token.capitalize() for token in tokens)
        return None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def _confidence(self, entities: EntitySet) -> float:
        weights = {
            "graduation_year": (bool(entities.graduation_years), self.config.year_weight),
            "location": (bool(entities.location), self.config.location_weight),
            "degree_branch": (bool(entities.degree or entities.branch), self.config.degree_branch_weight),
            "skill_service": (bool(entities.skills or entities.services), self.config.skill_service_weight),
            "turnover": (entities.turnover_tier is not None, self.config.turnover_weight),
            "name": (bool(entities.name), self.config.name_weight),
        }
        populated = [weight for present, weight in weights.values() if present]
        if not populated:
            return 0.0
        score = sum(populated) + self.config.multi_slot_bonus * (len(populated) - 1)
        return round(min(1.0, score), 3)

    def extract(self, query: str) -> RegexExtraction:
        text = normalize_query(query)

        entities = EntitySet(
            graduation_years=self.extract_years(text),
            location=self.extract_location(text),
            degree=self.extract_degrees(text),
            branch=self.extract_branches(text),
            skills=self.extract_skills(text),
            services=self.extract_services(text),
            turnover_tier=self.extract_turnover_tier(text),
            name=self.extract_name(text),
        )

        matched_patterns = []
        if entities.graduation_years:
            matched_patterns.append("graduation_year")
        if entities.location:
            matched_patterns.append("location")
        if entities.degree:
            matched_patterns.append("degree")
        if entities.branch:
            matched_patterns.append("branch")
        if entities.skills:
            matched_patterns.append("skills")
        if entities.services:
            matched_patterns.append("services")
        if entities.turnover_tier:
            matched_patterns.append("turnover")
        if entities.name:
            matched_patterns.append("name")

        confidence = self._confidence(entities)
        logger.debug(
            f"Regex extraction: patterns={matched_patterns}, confidence={confidence:.2f}",
            extra={"query": text[:100], "matched_patterns": matched_patterns, "confidence": confidence}
        )
        return RegexExtraction(entities=entities, confidence=confidence, matched_patterns=matched_patterns)
