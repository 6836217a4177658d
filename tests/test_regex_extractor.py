"""Tests for the deterministic regex entity extractor."""

import pytest

from community_search.extraction.normalization import normalize_query
from community_search.extraction.regex_extractor import RegexEntityExtractor
from community_search.models.entities import TurnoverTier


@pytest.fixture
def extractor(config):
    return RegexEntityExtractor(config)


class TestGraduationYears:
    def test_four_digit_batch(self, extractor):
        assert extractor.extract_years("1995 batch mechanical") == [1995]

    @pytest.mark.parametrize("text, expected", [
        ("95 batch", [1995]),
        ("class of '05", [2005]),
        ("'98 mech guys", [1998]),
        ("batch of 12", [2012]),
    ])
    def test_two_digit_years_use_pivot(self, extractor, text, expected):
        assert extractor.extract_years(text) == expected

    def test_year_range_is_expanded(self, extractor):
        assert extractor.extract_years("batches 1995 to 1997") == [1995, 1996, 1997]

    @pytest.mark.parametrize("text, expected", [
        ("early 90s", [1990, 1991, 1992, 1993]),
        ("mid-90s", [1994, 1995, 1996]),
        ("late 1990s", [1997, 1998, 1999]),
        ("the 2000s", list(range(2000, 2010))),
        ("90s", list(range(1990, 2000))),
    ])
    def test_decades(self, extractor, text, expected):
        assert extractor.extract_years(text) == expected

    def test_turnover_figures_are_not_years(self, extractor):
        assert extractor.extract_years("turnover above 2000 lakhs") == []

    def test_out_of_range_years_ignored(self, extractor):
        assert extractor.extract_years("founded in 1890") == []


class TestSlots:
    @pytest.mark.parametrize("text, expected", [
        ("members in blr", "Bangalore"),
        ("anyone from bengaluru", "Bangalore"),
        ("old madras friends", "Chennai"),
        ("mumbai", "Mumbai"),
    ])
    def test_city_aliases(self, extractor, text, expected):
        assert extractor.extract_location(text) == expected

    def test_city_needs_word_boundary(self, extractor):
        # "hyd" is an alias; "hydraulics" is not a city
        assert extractor.extract_location("hydraulics experts") is None

    def test_branch_synonyms(self, extractor):
        assert extractor.extract_branches("mech and civil engineers") == ["Mechanical", "Civil"]

    def test_eee_does_not_also_match_ece(self, extractor):
        assert extractor.extract_branches("electrical and electronics engineers") == ["EEE"]

    def test_it_pronoun_is_not_a_branch(self, extractor):
        assert extractor.extract_branches("is it possible") == []
        assert extractor.extract_branches("it branch 2003") == ["IT"]

    def test_degrees_in_query_order(self, extractor):
        assert extractor.extract_degrees("mba and b.tech holders") == ["MBA", "B.Tech"]

    def test_bare_be_is_not_a_degree(self, extractor):
        assert extractor.extract_degrees("who can be my mentor") == []

    def test_service_synonyms_canonicalize(self, extractor):
        assert extractor.extract_services("web developers in chennai") == ["web development"]

    def test_specific_service_suppresses_generic(self, extractor):
        assert extractor.extract_services("it consulting firms") == ["it consulting"]

    def test_skills(self, extractor):
        assert extractor.extract_skills("python and machine learning people") == ["python", "machine learning"]

    @pytest.mark.parametrize("text, expected", [
        ("packaging companies with turnover above 5 crore", TurnoverTier.MEDIUM),
        ("turnover above 20 crores", TurnoverTier.HIGH),
        ("turnover below 1 crore", TurnoverTier.LOW),
        ("turnover above 2000 lakhs", TurnoverTier.HIGH),
        ("small businesses in salem", TurnoverTier.LOW),
        ("high turnover exporters", TurnoverTier.HIGH),
    ])
    def test_turnover_tiers(self, extractor, text, expected):
        assert extractor.extract_turnover_tier(text) == expected

    def test_name_after_marker(self, extractor):
        assert extractor.extract_name("contact details of ramesh kumar") == "Ramesh Kumar"

    def test_name_stops_at_stopword(self, extractor):
        assert extractor.extract_name("anyone named suresh from civil") == "Suresh"

    def test_branch_word_is_not_a_name(self, extractor):
        assert extractor.extract_name("details of mechanical") is None


class TestExtract:
    def test_year_and_branch_reach_fast_path_threshold(self, extractor, config):
        result = extractor.extract("1995 batch mechanical")
        assert result.entities.graduation_years == [1995]
        assert result.entities.branch == ["Mechanical"]
        assert result.confidence == pytest.approx(0.7)
        assert result.confidence >= config.llm_fallback_threshold
        assert result.matched_patterns == ["graduation_year", "branch"]

    def test_partial_match_stays_below_threshold(self, extractor, config):
        result = extractor.extract("find web development company in Chennai")
        assert result.entities.location == "Chennai"
        assert result.entities.services == ["web development"]
        assert result.confidence == pytest.approx(0.6)
        assert result.confidence < config.llm_fallback_threshold

    def test_no_entities_zero_confidence(self, extractor):
        result = extractor.extract("hello there")
        assert result.entities.is_empty()
        assert result.confidence == 0.0
        assert result.matched_patterns == []

    def test_single_slot_uses_its_weight(self, extractor):
        assert extractor.extract("members in Coimbatore").confidence == pytest.approx(0.25)

    def test_confidence_capped_at_one(self, extractor):
        result = extractor.extract(
            "anyone named ravi from 1998 batch mechanical in chennai doing web development with high turnover"
        )
        assert result.confidence == 1.0

    @pytest.mark.parametrize("query", [
        "1995 batch mechanical",
        "Find WEB development company, in Chennai?",
        "Contact details of Ramesh Kumar",
        "early 90s ECE alumni in Bengaluru",
    ])
    def test_extraction_is_idempotent_over_normalization(self, extractor, query):
        assert extractor.extract(query) == extractor.extract(normalize_query(query))
        assert extractor.extract(query) == extractor.extract(query)
