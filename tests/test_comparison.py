"""Tests for comparison ranking and rendering."""

import math

import pytest
from charstats.comparison import (
    COMPARISON_ITEMS,
    compare_first_stat,
    describe_match,
    rank_comparisons,
)
from charstats.errors import InvalidMagnitude, NothingToCompare
from charstats.types import ComparisonItem, ComparisonMatch, StatRecord


def test_catalog_size_and_immutability():
    """Test the catalog is the fixed set of reference items."""
    assert len(COMPARISON_ITEMS) == 61
    assert COMPARISON_ITEMS[0].name == "Human (average)"
    with pytest.raises(Exception):
        COMPARISON_ITEMS[0].cm = 1


def test_exact_match_ranks_first():
    """Test an item of exactly the given size comes first with ratio 1."""
    matches = rank_comparisons(170)
    assert matches[0].item.name == "Human (average)"
    assert matches[0].ratio == 1


def test_at_most_five_results():
    """Test output is truncated to five entries."""
    assert len(rank_comparisons(30)) == 5
    assert len(rank_comparisons(30, limit=2)) == 2


def test_log_distance_is_symmetric():
    """Test 2x bigger and 2x smaller are equally close."""
    catalog = [ComparisonItem("Big", 200), ComparisonItem("Small", 50)]
    matches = rank_comparisons(100, catalog=catalog)
    assert abs(math.log(matches[0].ratio)) == pytest.approx(abs(math.log(matches[1].ratio)))
    # equal distance keeps declaration order
    assert [m.item.name for m in matches] == ["Big", "Small"]


def test_ties_keep_catalog_order():
    """Test equal-size items keep their declaration order."""
    matches = rank_comparisons(30)
    names = [m.item.name for m in matches[:3]]
    assert names == ["Cat", "Pumpkin", "Wine bottle"]


@pytest.mark.parametrize("value", [1e-9, 1e-3, 1.0, 1e6, 1e25])
def test_ratios_always_positive(value):
    """Test ratios are positive across extreme scales."""
    for match in rank_comparisons(value):
        assert match.ratio > 0


def test_rank_rejects_non_positive():
    """Test ranking a non-positive length fails."""
    with pytest.raises(InvalidMagnitude):
        rank_comparisons(0)


def test_describe_bigger_and_smaller():
    """Test rendering uses the reciprocal for smaller ratios."""
    horse = ComparisonItem("Horse", 150)
    assert describe_match("Alex", ComparisonMatch(horse, 2.0)) == "Alex is 2.00x bigger than Horse"
    assert describe_match("Alex", ComparisonMatch(horse, 0.25)) == "Alex is 4.00x smaller than Horse"


def test_factor_reciprocal_round_trip():
    """Test the displayed factor converts back to the ratio."""
    match = ComparisonMatch(ComparisonItem("Cat", 30), 0.3)
    assert 1 / match.factor == pytest.approx(match.ratio)


def test_compare_first_positive_numeric_stat():
    """Test the comparison action picks the first usable stat."""
    records = [
        StatRecord("mood", "Mood", "happy"),
        StatRecord("weight", "Weight", 0, " lbs"),
        StatRecord("height", "Height", 6, " ft"),
    ]
    report = compare_first_stat(records, subject="Alex")
    assert report.stat_name == "Height"
    assert report.canonical_cm == pytest.approx(182.88)
    assert report.matches[0].item.name == "Human (average)"
    assert report.lines[0] == "Alex is 1.08x bigger than Human (average)"
    assert report.render().startswith("Height Comparisons:\n\n")


def test_compare_nothing_to_compare():
    """Test empty and non-numeric scopes report nothing to compare."""
    with pytest.raises(NothingToCompare):
        compare_first_stat([])
    with pytest.raises(NothingToCompare):
        compare_first_stat([StatRecord("mood", "Mood", "happy")])


def test_compare_ignores_booleans():
    """Test boolean values are not treated as numbers."""
    with pytest.raises(NothingToCompare):
        compare_first_stat([StatRecord("flag", "Flag", True)])


def test_tiny_length_ranks_without_crashing():
    """Test a length whose ratio to the largest items underflows to zero."""
    matches = rank_comparisons(1e-310)
    assert len(matches) == 5
    assert matches[0].item.name == "Atom"
    assert all(m.ratio > 0 for m in matches)


def test_huge_length_ranks_without_crashing():
    """Test a length whose ratio to the smallest items overflows."""
    matches = rank_comparisons(1e306)
    assert matches[0].item.name == "Milky Way (diameter)"


def test_rank_rejects_infinity():
    with pytest.raises(InvalidMagnitude):
        rank_comparisons(math.inf)


def test_factor_of_underflowed_ratio_is_infinite():
    match = ComparisonMatch(ComparisonItem("Milky Way (diameter)", 1e21), 0.0)
    assert match.factor == math.inf


def test_compare_tiny_stat():
    """Test the comparison action handles subnormal lengths."""
    report = compare_first_stat([StatRecord("height", "Height", 1e-310, " cm")])
    assert report.lines[0].startswith("Character is ")
    assert report.lines[0].endswith("x smaller than Atom")


def test_compare_overflowing_stat_is_nothing_to_compare():
    """Test a length that overflows to infinity when normalized."""
    with pytest.raises(NothingToCompare):
        compare_first_stat([StatRecord("distance", "Distance", 1e308, " mi")])
