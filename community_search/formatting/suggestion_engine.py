"""Template-based follow-up suggestions (no LLM calls)."""
from collections import Counter
from typing import List, Optional

from community_search.formatting.response_formatter import describe_entities
from community_search.models.entities import ExtractedQuery, Intent, RankedResult

MAX_SUGGESTIONS = 3


def _top_values(results: List[RankedResult], attribute: str, exclude: Optional[List[str]] = None) -> List[str]:
    excluded = {value.lower() for value in (exclude or [])}
    counts = Counter(
        getattr(r.profile, attribute)
        for r in results
        if r.profile is not None and getattr(r.profile, attribute)
    )
    # most_common keeps first-seen order among equal counts
    return [value for value, _ in counts.most_common() if str(value).lower() not in excluded]


def _top_services(results: List[RankedResult], exclude: List[str]) -> List[str]:
    excluded = {value.lower() for value in exclude}
    counts = Counter(
        service
        for r in results
        if r.profile is not None
        for service in r.profile.services
        if service.lower() not in excluded
    )
    return [value for value, _ in counts.most_common()]


def _business_suggestions(results: List[RankedResult], extracted: ExtractedQuery) -> List[str]:
    entities = extracted.entities
    suggestions = []
    cities = _top_values(results, "city", [entities.location] if entities.location else None)
    if cities:
        suggestions.append(f"Show only in {cities[0]}" if not entities.location else f"Show in {cities[0]} instead")
    services = _top_services(results, entities.services)
    if services:
        suggestions.append(f"Find {services[0]} providers")
    if entities.turnover_tier is None and any(r.profile and r.profile.annual_turnover for r in results):
        suggestions.append("Show businesses with high turnover")
    suggestions.append("Show alumni who run these businesses")
    return suggestions


def _peer_suggestions(results: List[RankedResult], extracted: ExtractedQuery) -> List[str]:
    entities = extracted.entities
    suggestions = []
    if entities.graduation_years:
        year = entities.graduation_years[0]
        suggestions.append(f"Show {year - 1} batch instead")
        suggestions.append(f"Find {year} alumni with businesses")
    else:
        years = _top_values(results, "graduation_year")
        if years:
            suggestions.append(f"Show only {years[0]} batch")
    branches = _top_values(results, "branch", entities.branch)
    if branches:
        suggestions.append(f"Show {branches[0]} branch instead" if entities.branch else f"Show only {branches[0]} branch")
    cities = _top_values(results, "city", [entities.location] if entities.location else None)
    if cities and not entities.location:
        suggestions.append(f"Who is in {cities[0]}?")
    return suggestions


def _person_suggestions(results: List[RankedResult], extracted: ExtractedQuery) -> List[str]:
    suggestions = []
    top = results[0].profile
    if top is not None:
        if top.graduation_year:
            suggestions.append(f"Show {top.graduation_year} batchmates")
        if top.organization:
            suggestions.append(f"Who else works at {top.organization}?")
        if top.city:
            suggestions.append(f"Find members in {top.city}")
    return suggestions


def _generic_suggestions(results: List[RankedResult], extracted: ExtractedQuery) -> List[str]:
    suggestions = []
    cities = _top_values(results, "city")
    if cities:
        suggestions.append(f"Show members in {cities[0]}")
    years = _top_values(results, "graduation_year")
    if years:
        suggestions.append(f"Show {years[0]} batch")
    suggestions.append("Find businesses run by alumni")
    return suggestions


def empty_result_suggestions(extracted: ExtractedQuery) -> List[str]:
    entities = extracted.entities
    suggestions = []
    if entities.location:
        suggestions.append("Search without the city filter")
    if entities.graduation_years:
        year = entities.graduation_years[0]
        suggestions.append(f"Try {year - 1} to {year + 1} batches")
    if entities.branch:
        suggestions.append(f"Show all {entities.branch[0]} alumni")
    suggestions.extend(["Browse all members", "Find businesses in Chennai"])
    return suggestions


def past_last_page_suggestions(extracted: ExtractedQuery) -> List[str]:
    summary = describe_entities(extracted.entities)
    suggestions = [summary] if summary else []
    suggestions.append("Browse all members")
    return suggestions


def low_confidence_suggestions() -> List[str]:
    return [
        "1995 batch mechanical",
        "Web development company in Chennai",
        "Alumni with businesses in Bangalore",
    ]


def generate_suggestions(
    results: List[RankedResult],
    extracted: ExtractedQuery,
    low_confidence: bool = False,
    total: int = 0,
) -> List[str]:
    """At most three distinct follow-up queries for the caller to try next."""
    if low_confidence:
        suggestions = low_confidence_suggestions()
    elif not results and total > 0:
        suggestions = past_last_page_suggestions(extracted)
    elif not results:
        suggestions = empty_result_suggestions(extracted)
    elif extracted.intent == Intent.FIND_BUSINESS:
        suggestions = _business_suggestions(results, extracted)
    elif extracted.intent in (Intent.FIND_PEERS, Intent.FIND_ALUMNI_BUSINESS):
        suggestions = _peer_suggestions(results, extracted)
        if extracted.intent == Intent.FIND_ALUMNI_BUSINESS:
            suggestions.insert(0, "Show only businesses with high turnover")
    elif extracted.intent == Intent.FIND_SPECIFIC_PERSON:
        suggestions = _person_suggestions(results, extracted)
    else:
        suggestions = _generic_suggestions(results, extracted)

    unique = []
    for suggestion in suggestions:
        if suggestion not in unique:
            unique.append(suggestion)
    return unique[:MAX_SUGGESTIONS]
