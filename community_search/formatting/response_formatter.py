"""Plain-text rendering of ranked results, one template per intent."""
import math
from typing import Iterable, List, Optional

from community_search.extraction.patterns import CRORE, LAKH
from community_search.models.entities import (
    EntitySet,
    ExtractedQuery,
    Intent,
    MemberProfile,
    RankedResult,
)

PERSON_CARD_LIMIT = 5

FIELD_LABELS = {
    "city": "location",
    "graduation_year": "batch",
    "degree": "degree",
    "branch": "branch",
    "annual_turnover": "turnover",
    "skills": "skills",
    "services": "services",
}


def format_turnover(amount: Optional[int]) -> str:
    """Rupee amount in Indian units: ₹2.5 Cr, ₹40.0 L, ₹800K."""
    if amount is None:
        return "not disclosed"
    if amount >= CRORE:
        return f"₹{amount / CRORE:.1f} Cr"
    if amount >= LAKH:
        return f"₹{amount / LAKH:.1f} L"
    return f"₹{amount / 1000:.0f}K"


def matched_on(fields: Iterable[str]) -> str:
    labels = [FIELD_LABELS.get(field, field) for field in fields]
    return f"Matched on: {', '.join(labels) if labels else 'overall profile similarity'}"


def describe_entities(entities: EntitySet) -> str:
    """Short human summary of what was searched for."""
    parts = []
    if entities.name:
        parts.append(entities.name)
    if entities.services or entities.skills:
        parts.append(", ".join(entities.services + entities.skills))
    if entities.branch:
        parts.append("/".join(entities.branch))
    if entities.degree:
        parts.append("/".join(entities.degree))
    if entities.graduation_years:
        years = entities.graduation_years
        batch = str(years[0]) if len(years) == 1 else f"{years[0]}-{years[-1]}"
        parts.append(f"{batch} batch")
    if entities.turnover_tier:
        parts.append(f"{entities.turnover_tier.value} turnover")
    if entities.location:
        parts.append(f"in {entities.location}")
    return " ".join(parts)


def _contact(profile: MemberProfile) -> str:
    contact = [value for value in (profile.phone, profile.email) if value]
    return " / ".join(contact) if contact else "no contact on file"


def _batch(profile: MemberProfile) -> str:
    details = [str(value) for value in (profile.graduation_year, profile.degree, profile.branch) if value]
    return ", ".join(details)


def _role(profile: MemberProfile) -> Optional[str]:
    if profile.designation and profile.organization:
        return f"{profile.designation} at {profile.organization}"
    return profile.designation or profile.organization


def _business_block(index: int, result: RankedResult) -> List[str]:
    p = result.profile
    lines = [f"{index}. {p.organization or p.name or 'Unnamed business'}"]
    offerings = p.services or p.skills
    if offerings:
        lines.append(f"   Services: {', '.join(offerings[:5])}")
    if p.city:
        lines.append(f"   Location: {p.city}")
    if p.annual_turnover is not None:
        lines.append(f"   Turnover: {format_turnover(p.annual_turnover)}")
    lines.append(f"   Contact: {p.name or 'member'} ({_contact(p)})")
    return lines


def _peer_block(index: int, result: RankedResult) -> List[str]:
    p = result.profile
    batch = _batch(p)
    lines = [f"{index}. {p.name or 'Member'}" + (f" ({batch})" if batch else "")]
    role = _role(p)
    if role:
        lines.append(f"   {role}")
    if p.city:
        lines.append(f"   Location: {p.city}")
    return lines


def _alumni_business_block(index: int, result: RankedResult) -> List[str]:
    p = result.profile
    batch = _batch(p)
    lines = [f"{index}. {p.name or 'Member'}" + (f" ({batch})" if batch else "")]
    if p.organization:
        lines.append(f"   Business: {p.organization}")
    offerings = p.services or p.skills
    if offerings:
        lines.append(f"   Services: {', '.join(offerings[:5])}")
    if p.annual_turnover is not None:
        lines.append(f"   Turnover: {format_turnover(p.annual_turnover)}")
    lines.append(f"   Contact: {_contact(p)}")
    return lines


def _person_card(index: int, result: RankedResult) -> List[str]:
    p = result.profile
    lines = [f"{index}. {p.name or 'Member'}"]
    batch = _batch(p)
    if batch:
        lines.append(f"   Batch: {batch}")
    role = _role(p)
    if role:
        lines.append(f"   Work: {role}")
    if p.city:
        lines.append(f"   Location: {p.city}")
    if p.skills or p.services:
        lines.append(f"   Expertise: {', '.join((p.skills + p.services)[:6])}")
    if p.annual_turnover is not None:
        lines.append(f"   Annual Turnover: {format_turnover(p.annual_turnover)}")
    if p.phone:
        lines.append(f"   Phone: {p.phone}")
    if p.email:
        lines.append(f"   Email: {p.email}")
    return lines


def _default_block(index: int, result: RankedResult) -> List[str]:
    p = result.profile
    key_fields = [value for value in (_role(p), p.city, _batch(p)) if value]
    lines = [f"{index}. {p.name or 'Member'}"]
    if key_fields:
        lines.append(f"   {' | '.join(key_fields)}")
    lines.append(f"   Contact: {_contact(p)}")
    return lines


TEMPLATES = {
    Intent.FIND_BUSINESS: _business_block,
    Intent.FIND_PEERS: _peer_block,
    Intent.FIND_ALUMNI_BUSINESS: _alumni_business_block,
    Intent.FIND_SPECIFIC_PERSON: _person_card,
}

HEADER_NOUNS = {
    Intent.FIND_BUSINESS: ("business", "businesses"),
    Intent.FIND_PEERS: ("member", "members"),
    Intent.FIND_ALUMNI_BUSINESS: ("alumni business", "alumni businesses"),
    Intent.FIND_SPECIFIC_PERSON: ("match", "matches"),
}


def header_for(extracted: ExtractedQuery, total: int) -> str:
    singular, plural = HEADER_NOUNS.get(extracted.intent, ("member", "members"))
    noun = singular if total == 1 else plural
    summary = describe_entities(extracted.entities)
    return f"Found {total} {noun}" + (f" for {summary}" if summary else "") + ":"


def empty_result_clarification(extracted: ExtractedQuery) -> str:
    summary = describe_entities(extracted.entities)
    target = f" for {summary}" if summary else ""
    return (
        f"I couldn't find any members{target}. "
        "Try removing a filter, widening the batch years or checking the spelling of the city or service."
    )


def low_confidence_clarification(extracted: ExtractedQuery) -> str:
    summary = describe_entities(extracted.entities)
    opening = (
        f"I picked up \"{summary}\" but I'm not sure what you're looking for. "
        if summary
        else "I'm not sure what you're looking for. "
    )
    return (
        opening +
        "Could you add a batch year, city, branch or the service you need? "
        'For example: "1995 batch mechanical" or "web development company in Chennai".'
    )


def past_last_page(extracted: ExtractedQuery, total: int, page: int, total_pages: int) -> str:
    singular, plural = HEADER_NOUNS.get(extracted.intent, ("member", "members"))
    summary = describe_entities(extracted.entities)
    target = f" for {summary}" if summary else ""
    return (
        f"No more results on page {page}. "
        f"{total} {singular if total == 1 else plural} matched{target} "
        f"across {total_pages} page{'s' if total_pages != 1 else ''}."
    )


def format_response(
    results: List[RankedResult],
    extracted: ExtractedQuery,
    total: int,
    page: int = 1,
    page_size: Optional[int] = None,
) -> str:
    """Render a page of results for the extracted intent, numbered from the page offset."""
    page_size = page_size or max(len(results), 1)
    total_pages = math.ceil(total / page_size)
    if not results:
        if total > 0:
            return past_last_page(extracted, total, page, total_pages)
        return empty_result_clarification(extracted)

    template = TEMPLATES.get(extracted.intent, _default_block)
    shown = results[:PERSON_CARD_LIMIT] if extracted.intent == Intent.FIND_SPECIFIC_PERSON else results
    offset = (page - 1) * page_size

    lines = [header_for(extracted, total), ""]
    for index, result in enumerate(shown, start=offset + 1):
        if result.profile is None:
            result = result.model_copy(update={"profile": MemberProfile(member_id=result.member_id)})
        lines.extend(template(index, result))
        lines.append(f"   {matched_on(result.matched_fields)}")
        lines.append("")

    more = total > offset + len(shown)
    if page == 1:
        if more:
            lines.append(f"Showing {len(shown)} of {total}. Ask for more to see the next page.")
    else:
        position = f"Showing {offset + 1}-{offset + len(shown)} of {total} (page {page} of {total_pages})."
        lines.append(position + (" Ask for more to see the next page." if more else ""))
    return "\n".join(lines).rstrip()
