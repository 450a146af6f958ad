"""Pattern-based stat extraction from chat text.

Goal: keep tracked stats in step with what the story says ("Alex gained
strength.", "her height is now 7") without asking the user.

This is intentionally heuristic (no ML). Four independent rules run on every
text fragment; missing a phrasing is acceptable, inventing a stat from a
pronoun is not.

Known quirk: "X increased by N" sets X to N. It does not add N. Chat logs in
the wild already depend on this, so it is kept as is.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Callable, Iterable, List, Optional

from .store import StatStore
from .types import StatChange
from .utils import capitalize_first, stat_key

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")

_GROWTH_RE = re.compile(r"\bhas\s+grown\s+(?:a|an)?\s+([a-zA-Z\s]+?)(?:\.|,|$)", re.IGNORECASE)
_GAIN_RE = re.compile(r"\bgained\s+([a-zA-Z\s]+?)(?:\.|,|$)", re.IGNORECASE)
_INCREASE_RE = re.compile(r"([a-zA-Z\s]+?)\s+increased\s+(?:to|by)\s+(\d+(?:\.\d+)?)", re.IGNORECASE)
_NOW_RE = re.compile(r"([a-zA-Z\s]+?)\s+(?:is\s+)?now\s+(\d+(?:\.\d+)?)", re.IGNORECASE)

# Words that introduce the stat rather than name it. "s" is what is left of a
# possessive once the apostrophe breaks the phrase ("Alex's strength").
_LEAD_WORDS = {"the", "a", "an", "his", "her", "their", "its", "my", "your", "our", "s"}

# "it is now 50" must not create a stat called "it"
_PRONOUN_PLACEHOLDERS = {"it", "that", "this"}


def clean_stat_phrase(raw: str) -> str:
    """Reduce a captured phrase to the stat it names.

    Whitespace is collapsed and the phrase lowercased; everything up to and
    including the last determiner/possessive is dropped, so "the knight's
    strength" becomes "strength".

    Args:
        raw: Phrase captured by an extraction rule

    Returns:
        The cleaned phrase, possibly empty
    """
    words = _WS_RE.sub(" ", raw.strip()).lower().split(" ")
    words = [w for w in words if w]
    for i in range(len(words) - 1, -1, -1):
        if words[i] in _LEAD_WORDS:
            words = words[i + 1:]
            break
    return " ".join(words)


def _is_placeholder(phrase: str) -> bool:
    return phrase.rsplit(" ", 1)[-1] in _PRONOUN_PLACEHOLDERS


def _change(rule: str, phrase: str, value: float, create_only: bool) -> StatChange:
    return StatChange(
        rule=rule,
        key=stat_key(phrase),
        name=capitalize_first(phrase),
        value=value,
        create_only=create_only,
    )


def extract_stat_changes(text: str) -> List[StatChange]:
    """Extract stat mutations from free text.

    Rules, all evaluated against the same text:
        growth:   "has grown [a|an] X"         -> create X = 1 if missing
        gain:     "gained X"                   -> create X = 1 if missing
        increase: "X increased (to|by) N"      -> set X = N
        now:      "X [is] now N"               -> set X = N (not for it/that/this)

    Args:
        text: Chat message text

    Returns:
        Changes in rule order; empty when nothing matched
    """
    changes: List[StatChange] = []

    if not text or not text.strip():
        return changes

    # Growth: "Alex has grown a tail."
    m = _GROWTH_RE.search(text)
    if m:
        phrase = clean_stat_phrase(m.group(1))
        if phrase:
            changes.append(_change("growth", phrase, 1.0, create_only=True))

    # Gain: "gained strength"
    m = _GAIN_RE.search(text)
    if m:
        phrase = clean_stat_phrase(m.group(1))
        if phrase:
            changes.append(_change("gain", phrase, 1.0, create_only=True))

    # Increase: "strength increased to 20" / "strength increased by 5"
    m = _INCREASE_RE.search(text)
    if m:
        phrase = clean_stat_phrase(m.group(1))
        if phrase:
            changes.append(_change("increase", phrase, float(m.group(2)), create_only=False))

    # Now: "height is now 7", "health now 150"
    m = _NOW_RE.search(text)
    if m:
        phrase = clean_stat_phrase(m.group(1))
        if phrase and not _is_placeholder(phrase):
            changes.append(_change("now", phrase, float(m.group(2)), create_only=False))

    return changes


class StatExtractor:
    """Applies extracted changes to the active scope of a StatStore.

    Each processed fragment is one store batch: at most one persistence write
    and one change notification, however many rules fired. Calls made while a
    fragment is being applied on the same thread (e.g. a change listener that
    re-reads the chat) are ignored.
    """

    def __init__(self, store: StatStore, scope_provider: Callable[[], str]):
        self.store = store
        self.scope_provider = scope_provider
        self._local = threading.local()

    @property
    def busy(self) -> bool:
        return getattr(self._local, "active", False)

    def process_text(self, text: str, scope: Optional[str] = None) -> List[StatChange]:
        """Extract and apply changes from one text fragment.

        Never raises; failures are logged and the fragment is skipped.

        Returns:
            The changes that actually mutated the store
        """
        if self.busy:
            logger.debug("Ignoring re-entrant chat update")
            return []

        applied: List[StatChange] = []
        self._local.active = True
        try:
            changes = extract_stat_changes(text)
            if not changes:
                return applied
            scope = scope or self.scope_provider()
            with self.store.batch(scope):
                for change in changes:
                    if change.create_only:
                        mutated = self.store.create_if_absent(
                            scope, change.key, change.name, change.value
                        )
                    else:
                        mutated = self.store.set_value(
                            scope, change.key, change.value, name=change.name
                        )
                    if mutated:
                        applied.append(change)
                        logger.info(
                            f"Stat from chat ({change.rule}): {change.key} = {change.value} in {scope}"
                        )
        except Exception:
            logger.exception("Error parsing chat for stats")
        finally:
            self._local.active = False
        return applied

    def process_messages(self, texts: Iterable[str],
                         scope: Optional[str] = None) -> List[StatChange]:
        """Process several rendered messages, each as its own fragment."""
        applied: List[StatChange] = []
        for text in texts:
            applied.extend(self.process_text(text, scope=scope))
        return applied
