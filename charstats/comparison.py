"""Size comparisons against a fixed catalog of everyday and cosmic objects.

Ranking uses the logarithmic distance ``abs(ln(ratio))`` so that "twice as
big" and "half as big" count as equally close; a linear difference would
always favour the large catalog entries.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Sequence

from .errors import InvalidMagnitude, NothingToCompare
from .types import ComparisonItem, ComparisonMatch, ComparisonReport, StatRecord
from .units import normalize_length

DEFAULT_LIMIT = 5

COMPARISON_ITEMS = (
    ComparisonItem("Human (average)", 170),
    ComparisonItem("Basketball", 24),
    ComparisonItem("Baseball", 7.3),
    ComparisonItem("Golf ball", 4.3),
    ComparisonItem("Ping pong ball", 4),
    ComparisonItem("Sugar cube", 1.3),
    ComparisonItem("Grain of rice", 0.7),
    ComparisonItem("Bacterium", 0.001),
    ComparisonItem("Virus", 0.00001),
    ComparisonItem("Atom", 0.0000001),
    ComparisonItem("Elephant", 300),
    ComparisonItem("Giraffe", 550),
    ComparisonItem("Blue whale", 3000),
    ComparisonItem("Brachiosaurus", 2500),
    ComparisonItem("Tyrannosaurus Rex", 1200),
    ComparisonItem("Great white shark", 600),
    ComparisonItem("Grizzly bear", 250),
    ComparisonItem("Lion", 250),
    ComparisonItem("Horse", 150),
    ComparisonItem("Dog (large)", 80),
    ComparisonItem("Cat", 30),
    ComparisonItem("Mouse", 10),
    ComparisonItem("Ant", 0.5),
    ComparisonItem("Ladybug", 0.8),
    ComparisonItem("Bee", 1.5),
    ComparisonItem("Butterfly", 3),
    ComparisonItem("Dragonfly", 7),
    ComparisonItem("Hummingbird", 10),
    ComparisonItem("Sparrow", 16),
    ComparisonItem("Eagle", 90),
    ComparisonItem("Ostrich", 220),
    ComparisonItem("Penny", 1.91),
    ComparisonItem("Dime", 1.77),
    ComparisonItem("Quarter", 2.43),
    ComparisonItem("Apple", 7.5),
    ComparisonItem("Orange", 8),
    ComparisonItem("Watermelon", 25),
    ComparisonItem("Pumpkin", 30),
    ComparisonItem("Soda can", 12),
    ComparisonItem("Wine bottle", 30),
    ComparisonItem("Champagne bottle", 33),
    ComparisonItem("Toilet paper roll", 12),
    ComparisonItem("Paperclip", 3.3),
    ComparisonItem("Pencil", 19),
    ComparisonItem("Smartphone", 15),
    ComparisonItem("Laptop", 35),
    ComparisonItem("Dinner plate", 27),
    ComparisonItem("Pizza (large)", 35),
    ComparisonItem("Car", 450),
    ComparisonItem("Bus", 1000),
    ComparisonItem("Train car", 2600),
    ComparisonItem("Airplane (747)", 7000),
    ComparisonItem("Statue of Liberty", 9300),
    ComparisonItem("Empire State Building", 38100),
    ComparisonItem("Mount Everest", 884000),
    ComparisonItem("Earth", 1275600000),
    ComparisonItem("Moon", 347600000),
    ComparisonItem("Sun", 1391000000000),
    ComparisonItem("Jupiter", 13982000000000),
    ComparisonItem("Saturn", 11738000000000),
    ComparisonItem("Milky Way (diameter)", 1e21),
)


def _log_distance(canonical_cm: float, match: ComparisonMatch) -> float:
    if 0 < match.ratio < math.inf:
        return abs(math.log(match.ratio))
    # the ratio under- or overflowed; the logs of both lengths are still finite
    return abs(math.log(canonical_cm) - math.log(match.item.cm))


def rank_comparisons(
    canonical_cm: float,
    catalog: Sequence[ComparisonItem] = COMPARISON_ITEMS,
    limit: int = DEFAULT_LIMIT,
) -> List[ComparisonMatch]:
    """Find the catalog items closest in size to a length.

    Args:
        canonical_cm: Length in centimeters (see ``normalize_length``)
        catalog: Reference items; declaration order breaks ties
        limit: Maximum number of matches to return

    Returns:
        Up to ``limit`` matches, closest first

    Raises:
        InvalidMagnitude: If ``canonical_cm`` is not a positive, finite length
    """
    if not 0 < canonical_cm < math.inf:
        raise InvalidMagnitude(canonical_cm, "cm")
    matches = [ComparisonMatch(item, canonical_cm / item.cm) for item in catalog]
    # sorted() is stable, so equal distances keep catalog order
    matches = sorted(matches, key=lambda m: _log_distance(canonical_cm, m))
    return matches[:limit]


def describe_match(subject: str, match: ComparisonMatch) -> str:
    """Render one match: "Alex is 2.00x bigger than Horse"."""
    direction = "bigger" if match.bigger else "smaller"
    return f"{subject} is {match.factor:.2f}x {direction} than {match.item.name}"


def compare_first_stat(
    records: Iterable[StatRecord],
    subject: str = "Character",
    limit: int = DEFAULT_LIMIT,
) -> ComparisonReport:
    """Run the comparison action on the first positive numeric stat.

    Args:
        records: Stats of the active scope, in display order
        subject: Who the comparison lines talk about
        limit: Maximum number of comparisons

    Returns:
        ComparisonReport with ranked matches and rendered lines

    Raises:
        NothingToCompare: If no stat is numeric and positive, or its unit
            does not yield a positive length
    """
    records = list(records)
    if not records:
        raise NothingToCompare("No stats to compare")

    chosen = next((r for r in records if r.is_numeric and r.value > 0), None)
    if chosen is None:
        raise NothingToCompare("No numeric stats to compare")

    try:
        canonical = normalize_length(chosen.value, chosen.unit)
        matches = rank_comparisons(canonical, limit=limit)
    except InvalidMagnitude as e:
        raise NothingToCompare(str(e)) from e

    return ComparisonReport(
        stat_name=chosen.name or chosen.key,
        canonical_cm=canonical,
        matches=matches,
        lines=[describe_match(subject, m) for m in matches],
    )
