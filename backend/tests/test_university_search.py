"""Tests for fuzzy re-ranking of university search results."""

from __future__ import annotations

from app.services.university_search import field_similarity, rank_universities, relevance

UNIVERSITIES = [
    {"id": "1", "name": "University of California, Los Angeles", "short_name": "UCLA",
     "city": "Los Angeles", "state": "CA"},
    {"id": "2", "name": "Massachusetts Institute of Technology", "short_name": "MIT",
     "city": "Cambridge", "state": "MA"},
    {"id": "3", "name": "Harvard University", "short_name": "Harvard",
     "city": "Cambridge", "state": "MA"},
]


def test_exact_short_name_scores_full():
    """Acronym searches hit the short name exactly."""
    assert relevance("mit", UNIVERSITIES[1]) == 100
    assert relevance(" UCLA ", UNIVERSITIES[0]) == 100


def test_empty_query_scores_zero_and_keeps_order():
    """No query means no re-ranking."""
    assert relevance("", UNIVERSITIES[0]) == 0
    assert rank_universities("", UNIVERSITIES) == UNIVERSITIES


def test_rank_puts_best_match_first():
    """The closest name wins."""
    ranked = rank_universities("harvard", UNIVERSITIES)
    assert ranked[0]["id"] == "3"


def test_rank_is_stable_for_equal_scores():
    """Both Cambridge schools tie on city; input order is kept."""
    ranked = rank_universities("Cambridge", UNIVERSITIES)
    assert [u["id"] for u in ranked[:2]] == ["2", "3"]


def test_missing_fields_are_ignored():
    """Rows with null columns still score."""
    assert relevance("toronto", {"name": "University of Toronto", "short_name": None}) == 100


def test_state_code_inside_query_does_not_win():
    """'ca' inside 'cambridge' is not a match for California."""
    assert relevance("cambridge", UNIVERSITIES[0]) < 100
    ranked = rank_universities("cambridge", UNIVERSITIES)
    assert ranked[-1]["id"] == "1"


def test_city_match_beats_state_code_fragment():
    """'on' inside 'boston' does not pull Toronto ahead."""
    rows = [
        {"id": "t", "name": "University of Toronto", "short_name": "UofT", "city": "Toronto", "state": "ON"},
        {"id": "b", "name": "Boston University", "short_name": "BU", "city": "Boston", "state": "MA"},
    ]
    assert relevance("boston", rows[0]) < relevance("boston", rows[1]) == 100
    assert rank_universities("boston", rows)[0]["id"] == "b"


def test_exact_state_code_scores_full():
    """A bare state code still finds schools in that state."""
    assert relevance("MA", UNIVERSITIES[2]) == 100


def test_short_field_uses_full_ratio():
    """Fields shorter than the query are compared whole."""
    assert field_similarity("cambridge", "ca") < 50
    assert field_similarity("cambridge", "cambridge, ma") == 100
