"""Tests for response text and follow-up suggestions."""

import pytest

from community_search.formatting.response_formatter import (
    describe_entities,
    format_response,
    format_turnover,
    matched_on,
)
from community_search.formatting.suggestion_engine import MAX_SUGGESTIONS, generate_suggestions
from community_search.models.entities import (
    EntitySet,
    ExtractedQuery,
    ExtractionMethod,
    Intent,
    MemberProfile,
    RankedResult,
)


def extracted(intent, confidence=0.8, **entities):
    return ExtractedQuery(
        intent=intent,
        entities=EntitySet(**entities),
        confidence=confidence,
        method=ExtractionMethod.REGEX,
        normalized_query_text="query",
    )


def result(member_id, score=0.8, fields=(), **profile):
    return RankedResult(
        member_id=member_id,
        final_score=score,
        matched_fields=list(fields),
        profile=MemberProfile(member_id=member_id, **profile),
    )


@pytest.mark.parametrize("amount, expected", [
    (25_000_000, "₹2.5 Cr"),
    (4_000_000, "₹40.0 L"),
    (50_000, "₹50K"),
    (None, "not disclosed"),
])
def test_format_turnover(amount, expected):
    assert format_turnover(amount) == expected


def test_matched_on():
    assert matched_on(["city", "services"]) == "Matched on: location, services"
    assert matched_on([]) == "Matched on: overall profile similarity"


def test_describe_entities():
    entities = EntitySet(graduation_years=[1995, 1996, 1997], branch=["Mechanical"], location="Chennai")
    assert describe_entities(entities) == "Mechanical 1995-1997 batch in Chennai"
    assert describe_entities(EntitySet()) == ""


class TestFormatResponse:
    def test_empty_result_is_a_clarification(self):
        query = extracted(Intent.FIND_PEERS, graduation_years=[1995], location="Chennai")
        text = format_response([], query, 0)
        assert text.startswith("I couldn't find any members for 1995 batch in Chennai.")

    def test_business_template(self):
        query = extracted(Intent.FIND_BUSINESS, services=["web development"], location="Chennai")
        results = [
            result(
                "m1", fields=["city", "services"],
                name="Ravi", organization="Ravi Web Works", city="Chennai",
                services=["web development", "seo"], annual_turnover=25_000_000, phone="98400 11111",
            ),
            result("m2", name="Priya", organization="Pixel Studio", city="Chennai"),
        ]

        text = format_response(results, query, 2)

        assert text.splitlines()[0] == "Found 2 businesses for web development in Chennai:"
        assert "1. Ravi Web Works" in text
        assert "   Services: web development, seo" in text
        assert "   Turnover: ₹2.5 Cr" in text
        assert "   Contact: Ravi (98400 11111)" in text
        assert "   Matched on: location, services" in text
        assert "   Contact: Priya (no contact on file)" in text
        assert "Matched on: overall profile similarity" in text

    def test_peer_template(self):
        query = extracted(Intent.FIND_PEERS, graduation_years=[1995], branch=["Mechanical"])
        results = [result(
            "m1", fields=["graduation_year", "branch"],
            name="Karthik", graduation_year=1995, degree="B.E", branch="Mechanical",
            designation="Plant Head", organization="TVS", city="Hosur",
        )]

        text = format_response(results, query, 1)

        assert text.splitlines()[0] == "Found 1 member for Mechanical 1995 batch:"
        assert "1. Karthik (1995, B.E, Mechanical)" in text
        assert "   Plant Head at TVS" in text
        assert "   Matched on: batch, branch" in text

    def test_person_cards_are_limited(self):
        query = extracted(Intent.FIND_SPECIFIC_PERSON, name="Ravi")
        results = [result(f"m{i}", name=f"Ravi {i}", email=f"ravi{i}@example.com") for i in range(7)]

        text = format_response(results, query, 7)

        assert "5. Ravi 4" in text
        assert "6. Ravi 5" not in text
        assert "   Email: ravi0@example.com" in text
        assert text.endswith("Showing 5 of 7. Ask for more to see the next page.")

    def test_page_past_the_end_reports_total(self):
        query = extracted(Intent.FIND_PEERS, graduation_years=[1995])

        text = format_response([], query, 25, page=4, page_size=10)

        assert text == "No more results on page 4. 25 members matched for 1995 batch across 3 pages."
        assert "couldn't find" not in text

    def test_later_pages_number_from_offset(self):
        query = extracted(Intent.FIND_PEERS, graduation_years=[1995])
        results = [result(f"m{i}", name=f"Member {i}") for i in range(10)]

        text = format_response(results, query, 25, page=2, page_size=10)

        assert "11. Member 0" in text
        assert "20. Member 9" in text
        assert "\n1. Member 0" not in text
        assert text.endswith("Showing 11-20 of 25 (page 2 of 3). Ask for more to see the next page.")

    def test_last_page_has_no_more_prompt(self):
        query = extracted(Intent.FIND_PEERS, graduation_years=[1995])
        results = [result(f"m{i}", name=f"Member {i}") for i in range(5)]

        text = format_response(results, query, 25, page=3, page_size=10)

        assert "21. Member 0" in text
        assert text.endswith("Showing 21-25 of 25 (page 3 of 3).")

    def test_missing_profile_still_renders(self):
        query = extracted(Intent.LIST_MEMBERS)
        text = format_response([RankedResult(member_id="m9", final_score=0.5)], query, 1)
        assert "1. Member" in text


class TestSuggestions:
    def test_business_suggestions(self):
        query = extracted(Intent.FIND_BUSINESS, services=["web development"])
        results = [
            result("m1", city="Chennai", services=["web development", "seo"], annual_turnover=10),
            result("m2", city="Chennai", services=["seo"]),
        ]

        suggestions = generate_suggestions(results, query)

        assert suggestions == [
            "Show only in Chennai",
            "Find seo providers",
            "Show businesses with high turnover",
        ]

    def test_peer_suggestions_offer_adjacent_batch(self):
        query = extracted(Intent.FIND_PEERS, graduation_years=[1995])
        suggestions = generate_suggestions([result("m1", graduation_year=1995)], query)
        assert suggestions[0] == "Show 1994 batch instead"
        assert "Find 1995 alumni with businesses" in suggestions

    def test_person_suggestions(self):
        query = extracted(Intent.FIND_SPECIFIC_PERSON, name="Ravi")
        results = [result("m1", graduation_year=2001, organization="Infosys", city="Mysore")]
        assert generate_suggestions(results, query) == [
            "Show 2001 batchmates",
            "Who else works at Infosys?",
            "Find members in Mysore",
        ]

    def test_empty_results_suggest_loosening(self):
        query = extracted(Intent.FIND_PEERS, graduation_years=[1995], location="Chennai")
        suggestions = generate_suggestions([], query)
        assert suggestions == ["Search without the city filter", "Try 1994 to 1996 batches", "Browse all members"]

    def test_page_past_the_end_does_not_suggest_loosening(self):
        query = extracted(Intent.FIND_PEERS, graduation_years=[1995], location="Chennai")
        suggestions = generate_suggestions([], query, total=25)
        assert suggestions == ["1995 batch in Chennai", "Browse all members"]

    def test_low_confidence_examples(self):
        suggestions = generate_suggestions([], extracted(Intent.LIST_MEMBERS, confidence=0.1), low_confidence=True)
        assert "1995 batch mechanical" in suggestions

    @pytest.mark.parametrize("intent", list(Intent))
    def test_at_most_three_unique(self, intent):
        results = [result(f"m{i}", city=f"City {i}", graduation_year=1990 + i, branch="Civil") for i in range(5)]
        suggestions = generate_suggestions(results, extracted(intent))
        assert len(suggestions) <= MAX_SUGGESTIONS
        assert len(suggestions) == len(set(suggestions))
