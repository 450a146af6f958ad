"""In-memory stat store with best-effort persistence.

Stats are grouped by scope ("char_<name>" or "global"). Every mutation is
persisted to the key-value backend and announced to change listeners. Inside
``batch()`` the write and the notification happen once, when the outermost
batch exits.
"""

from __future__ import annotations

import json
import logging
import math
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Callable, Dict, Iterator, List, Optional

from .errors import InvalidGrowth, PersistenceFailure
from .storage import STATS_RECORD, KeyValueStore
from .types import StatRecord, StatValue, is_numeric
from .utils import format_stat_value, format_unit, parse_stat_value, stat_key

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "global"

# (display name, unit) offered as one-click defaults
DEFAULT_STATS = (
    ("Height", " ft"),
    ("Weight", " lbs"),
)

ChangeListener = Callable[[str], None]


class StatStore:
    """Owns every StatRecord, keyed by scope then by stat key.

    Readers get copies (``snapshot``/``get``); only the store's own methods
    mutate records. All read-mutate-persist sequences hold an RLock so the
    context poller thread and concurrent tool calls cannot interleave.

    Example:
        >>> store = StatStore(SQLiteKeyValueStore())
        >>> store.add_stat("global", "Height", "6", "ft")
        >>> store.snapshot("global")[0].value
        6.0
    """

    def __init__(self, backend: Optional[KeyValueStore] = None):
        self._backend = backend
        self._data: Dict[str, Dict[str, StatRecord]] = {}
        self._lock = threading.RLock()
        self._listeners: List[ChangeListener] = []
        self._batch_depth = 0
        self._pending: List[str] = []

    # ── persistence ──────────────────────────────────────────────

    def load(self) -> None:
        """Replace in-memory state with the persisted stats cache."""
        if self._backend is None:
            return
        try:
            raw = self._backend.get(STATS_RECORD)
            parsed = json.loads(raw) if raw else {}
        except Exception as e:
            logger.error(f"Could not load stats: {PersistenceFailure(STATS_RECORD, e)}")
            return

        data: Dict[str, Dict[str, StatRecord]] = {}
        if isinstance(parsed, dict):
            for scope, entries in parsed.items():
                if not isinstance(entries, dict):
                    continue
                data[scope] = {
                    key: StatRecord.from_dict(key, raw_record)
                    for key, raw_record in entries.items()
                }
        with self._lock:
            self._data = data
        logger.info(f"Loaded stats for {len(data)} scope(s)")

    def save(self) -> bool:
        """Write the whole stats cache. Failures are logged, never raised."""
        if self._backend is None:
            return False
        with self._lock:
            payload = {
                scope: {key: rec.to_dict() for key, rec in records.items()}
                for scope, records in self._data.items()
            }
        try:
            self._backend.set(STATS_RECORD, json.dumps(payload))
        except Exception as e:
            logger.error(str(PersistenceFailure(STATS_RECORD, e)))
            return False
        return True

    # ── change notification ──────────────────────────────────────

    def add_listener(self, listener: ChangeListener) -> None:
        """Register a callback invoked with the scope after each committed change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, scope: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(scope)
            except Exception:
                logger.exception(f"Stat change listener failed for scope {scope}")

    def _touched(self, scope: str) -> None:
        """Record a mutation; flush now unless a batch is open."""
        if scope not in self._pending:
            self._pending.append(scope)
        if self._batch_depth == 0:
            self._commit()

    def _commit(self) -> None:
        pending, self._pending = self._pending, []
        if not pending:
            return
        self.save()
        for scope in pending:
            self._notify(scope)

    @contextmanager
    def batch(self, scope: str = GLOBAL_SCOPE) -> Iterator[str]:
        """Group mutations so they persist and notify once.

        Yields the scope key so callers can write ``with store.batch(s) as s:``.
        """
        with self._lock:
            self._batch_depth += 1
            try:
                yield scope
            finally:
                self._batch_depth -= 1
                if self._batch_depth == 0:
                    self._commit()

    # ── reads ────────────────────────────────────────────────────

    def _scope(self, scope: str) -> Dict[str, StatRecord]:
        records = self._data.get(scope)
        if records is None:
            records = self._data[scope] = {}
        return records

    def scopes(self) -> List[str]:
        with self._lock:
            return list(self._data)

    def snapshot(self, scope: str = GLOBAL_SCOPE) -> List[StatRecord]:
        """Return copies of a scope's records in insertion order."""
        with self._lock:
            return [replace(rec) for rec in self._scope(scope).values()]

    def get(self, scope: str, key: str) -> Optional[StatRecord]:
        with self._lock:
            rec = self._scope(scope).get(key)
            return replace(rec) if rec else None

    def card_text(self, scope: str = GLOBAL_SCOPE) -> str:
        """Plain-text stat list written back to the host's character card."""
        return "".join(
            f"{rec.name}: {format_stat_value(rec.value, rec.unit)}\n"
            for rec in self.snapshot(scope)
        )

    # ── writes ───────────────────────────────────────────────────

    def set_record(self, scope: str, record: StatRecord) -> StatRecord:
        """Insert or replace a record under ``record.key``."""
        with self._lock:
            self._scope(scope)[record.key] = replace(record)
            self._touched(scope)
        return record

    def delete_record(self, scope: str, key: str) -> bool:
        with self._lock:
            records = self._scope(scope)
            if key not in records:
                return False
            del records[key]
            self._touched(scope)
        logger.info(f"Deleted stat {key} from {scope}")
        return True

    def reset_scope(self, scope: str) -> int:
        """Clear every record in a scope; the scope itself stays."""
        with self._lock:
            count = len(self._scope(scope))
            self._data[scope] = {}
            self._touched(scope)
        logger.info(f"Reset {count} stat(s) in {scope}")
        return count

    def create_if_absent(self, scope: str, key: str, name: str,
                         value: StatValue, unit: str = "") -> bool:
        """Create a record only when *key* is unused. Returns True if created."""
        with self._lock:
            records = self._scope(scope)
            if key in records:
                return False
            records[key] = StatRecord(key=key, name=name, value=value, unit=unit)
            self._touched(scope)
        return True

    def set_value(self, scope: str, key: str, value: StatValue,
                  name: Optional[str] = None) -> bool:
        """Set a record's value, creating it (with *name*) when missing.

        Returns:
            True if anything changed; re-setting the current value is a no-op
        """
        with self._lock:
            records = self._scope(scope)
            rec = records.get(key)
            if rec is None:
                records[key] = StatRecord(key=key, name=name or key, value=value)
            elif rec.value == value and type(rec.value) is type(value):
                return False
            else:
                rec.value = value
            self._touched(scope)
        return True

    def add_stat(self, scope: str, name: str, value_text: str,
                 unit_text: str = "") -> StatRecord:
        """Add (or overwrite) a stat from structured user input.

        Args:
            scope: Scope key
            name: Display name; the key is derived from it
            value_text: Raw value; a leading number makes the stat numeric
            unit_text: Unit without leading space ("ft")

        Raises:
            ValueError: If name or value is empty
        """
        name = (name or "").strip()
        value_text = str(value_text if value_text is not None else "").strip()
        if not name or not value_text:
            raise ValueError("Name and value required")
        record = StatRecord(
            key=stat_key(name),
            name=name,
            value=parse_stat_value(value_text),
            unit=format_unit(unit_text),
        )
        self.set_record(scope, record)
        logger.info(f"Added stat {record.key} to {scope}")
        return record

    def edit_stat(self, scope: str, key: str, name: str, value_text: str,
                  unit_text: str = "") -> StatRecord:
        """Edit a record in place. The key never changes, even if the name does.

        Raises:
            KeyError: If the record does not exist
            ValueError: If name or value is empty
        """
        name = (name or "").strip()
        value_text = str(value_text if value_text is not None else "").strip()
        if not name or not value_text:
            raise ValueError("Name and value required")
        with self._lock:
            rec = self._scope(scope).get(key)
            if rec is None:
                raise KeyError(key)
            rec.name = name
            rec.value = parse_stat_value(value_text)
            rec.unit = format_unit(unit_text)
            self._touched(scope)
            result = replace(rec)
        logger.info(f"Edited stat {key} in {scope}")
        return result

    def add_default_stat(self, scope: str, name: str) -> bool:
        """Add one of ``DEFAULT_STATS`` (value 0). No-op when it already exists.

        Raises:
            KeyError: If *name* is not a default stat
        """
        defaults = {stat_key(n): (n, unit) for n, unit in DEFAULT_STATS}
        key = stat_key(name)
        if key not in defaults:
            raise KeyError(name)
        display, unit = defaults[key]
        return self.create_if_absent(scope, key, display, 0, unit)

    def grow_stats(self, scope: str, percent: float) -> int:
        """Scale every numeric stat by ``1 + percent / 100``.

        Args:
            scope: Scope key
            percent: Growth percentage; negative values shrink

        Returns:
            Number of stats that were scaled

        Raises:
            InvalidGrowth: If percent is zero or not a number
        """
        try:
            growth = float(percent)
        except (TypeError, ValueError):
            raise InvalidGrowth(f"Invalid growth percentage: {percent!r}")
        if math.isnan(growth) or growth == 0:
            raise InvalidGrowth(f"Invalid growth percentage: {percent!r}")

        count = 0
        with self.batch(scope):
            for rec in self._scope(scope).values():
                if is_numeric(rec.value):
                    rec.value = rec.value * (1 + growth / 100)
                    count += 1
            self._touched(scope)
        logger.info(f"Grew {count} stat(s) in {scope} by {growth}%")
        return count
