"""Text and entity normalization shared by the regex and LLM extractors."""
import re
from typing import Iterable, List, Optional

from community_search.extraction import patterns
from community_search.models.entities import EntitySet, TurnoverTier

_STRIP_CHARS = re.compile(r"[?!,;:()\"]")
_WHITESPACE = re.compile(r"\s+")


def normalize_query(text: str) -> str:
    """Lowercase, drop ? ! , ; : ( ) and double quotes, collapse whitespace."""
    if not text:
        return ""
    cleaned = _STRIP_CHARS.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def _title(value: str) -> str:
    return " ".join(word.capitalize() for word in value.split())


def _dedupe(values: Iterable) -> List:
    seen = set()
    ordered = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


def canonical_city(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    text = normalize_query(value)
    if not text:
        return None
    if text in patterns.CITY_LOOKUP:
        return patterns.CITY_LOOKUP[text]
    match = patterns.CITY_PATTERN.search(text)
    if match:
        return patterns.CITY_LOOKUP[match.group(1)]
    return _title(text)


def _canonical_from(table, value: Optional[str], fallback) -> Optional[str]:
    if not value:
        return None
    text = normalize_query(value)
    if not text:
        return None
    for canonical, pattern in table:
        if pattern.search(text) or text == canonical.lower():
            return canonical
    return fallback(text)


def canonical_branch(value: Optional[str]) -> Optional[str]:
    # Bare "it" from a model is the branch, not the pronoun
    if value and normalize_query(value) == "it":
        return "IT"
    return _canonical_from(patterns.BRANCH_PATTERNS, value, _title)


def canonical_degree(value: Optional[str]) -> Optional[str]:
    return _canonical_from(patterns.DEGREE_PATTERNS, value, lambda text: text.upper())


def canonical_skill(value: Optional[str]) -> Optional[str]:
    return _canonical_from(patterns.SKILL_PATTERNS, value, lambda text: text)


def canonical_service(value: Optional[str]) -> Optional[str]:
    return _canonical_from(patterns.SERVICE_PATTERNS, value, lambda text: text)


def canonical_name(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    text = normalize_query(value)
    return _title(text) if text else None


def normalize_year(value) -> Optional[int]:
    """Coerce a year (int, "1995", "'95", 95) into the supported range."""
    try:
        year = int(str(value).strip().lstrip("'"))
    except (TypeError, ValueError):
        return None
    if 0 <= year <= 99:
        year += 2000 if year < patterns.TWO_DIGIT_PIVOT else 1900
    if patterns.MIN_YEAR <= year <= patterns.MAX_YEAR:
        return year
    return None


def normalize_turnover_tier(value) -> Optional[TurnoverTier]:
    if value is None or value == "":
        return None
    if isinstance(value, TurnoverTier):
        return value
    try:
        return TurnoverTier(str(value).strip().lower())
    except ValueError:
        return None


def _clean_list(values, canonicalize) -> List:
    if values is None:
        return []
    if isinstance(values, (str, int)):
        values = [values]
    cleaned = (canonicalize(value) for value in values)
    return _dedupe(value for value in cleaned if value is not None and value != "")


def normalize_entities(
    skills=None,
    services=None,
    location=None,
    turnover_tier=None,
    graduation_years=None,
    degree=None,
    branch=None,
    name=None,
) -> EntitySet:
    """
    Build a canonical EntitySet from loosely-typed values.

    Accepts single values or lists for the array fields and is safe to apply
    to values that are already canonical.
    """
    years = _clean_list(graduation_years, normalize_year)
    return EntitySet(
        skills=_clean_list(skills, canonical_skill),
        services=_clean_list(services, canonical_service),
        location=canonical_city(location),
        turnover_tier=normalize_turnover_tier(turnover_tier),
        graduation_years=sorted(years),
        degree=_clean_list(degree, canonical_degree),
        branch=_clean_list(branch, canonical_branch),
        name=canonical_name(name),
    )
