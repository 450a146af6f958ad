"""CharStats - Character stat tracking for conversational AI.

Track per-character stats, pick up stat changes from chat text, and inject a
compact summary into generation requests so the model stays consistent.
Zero dependencies in the core.

Example:
    >>> from charstats import StatsApp
    >>>
    >>> app = StatsApp()
    >>> app.store.add_stat("global", "Height", "6", "ft")
    >>> app.observe_chat("Alex gained strength.")
    >>> print(app.summary())  # [Character Stats: Height: 6.00 ft, Strength: 1.00]
"""

__version__ = "0.1.0"

from .types import (
    StatRecord,
    Preferences,
    ComparisonItem,
    ComparisonMatch,
    ComparisonReport,
    StatChange,
    CharacterInfo,
    OutboundRequest,
    InjectionResult,
)
from .errors import (
    CharStatsError,
    ParseFailure,
    InvalidMagnitude,
    NothingToCompare,
    InvalidGrowth,
    PersistenceFailure,
)
from .units import normalize_length, length_unit
from .comparison import COMPARISON_ITEMS, rank_comparisons, describe_match, compare_first_stat
from .store import StatStore, GLOBAL_SCOPE
from .storage import SQLiteKeyValueStore
from .context import CharacterContextResolver, ContextPoller, StaticHostContext
from .extractor import StatExtractor, extract_stat_changes
from .injection import InjectionPipeline, STATS_MARKER, build_stats_text, should_intercept
from .app import StatsApp

__all__ = [
    "StatsApp",
    "StatRecord",
    "Preferences",
    "ComparisonItem",
    "ComparisonMatch",
    "ComparisonReport",
    "StatChange",
    "CharacterInfo",
    "OutboundRequest",
    "InjectionResult",
    "CharStatsError",
    "ParseFailure",
    "InvalidMagnitude",
    "NothingToCompare",
    "InvalidGrowth",
    "PersistenceFailure",
    "normalize_length",
    "length_unit",
    "COMPARISON_ITEMS",
    "rank_comparisons",
    "describe_match",
    "compare_first_stat",
    "StatStore",
    "GLOBAL_SCOPE",
    "SQLiteKeyValueStore",
    "CharacterContextResolver",
    "ContextPoller",
    "StaticHostContext",
    "StatExtractor",
    "extract_stat_changes",
    "InjectionPipeline",
    "STATS_MARKER",
    "build_stats_text",
    "should_intercept",
]
