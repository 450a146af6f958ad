"""Application context wiring the CharStats components together.

One ``StatsApp`` replaces the process-wide globals a host plugin would keep
(current scope, preferences, stats). Adapters (CLI, MCP server, a host
integration) create one and call into it.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, List, Optional

from .comparison import compare_first_stat
from .context import (
    DEFAULT_POLL_INTERVAL,
    CharacterContextResolver,
    ContextPoller,
    HostContext,
    StaticHostContext,
)
from .extractor import StatExtractor
from .injection import InjectionPipeline
from .preferences import PreferenceStore
from .storage import CARD_RECORD_PREFIX, KeyValueStore, SQLiteKeyValueStore
from .store import GLOBAL_SCOPE, StatStore
from .types import ComparisonReport, InjectionResult, OutboundRequest, StatChange, StatRecord

logger = logging.getLogger(__name__)


class StatsApp:
    """Explicit context object for one running CharStats instance.

    Args:
        backend: Key-value persistence; defaults to an in-memory SQLite store
        host: Host session view; defaults to a StaticHostContext with no
            active character (everything goes to the global scope)

    Example:
        >>> app = StatsApp()
        >>> app.observe_chat("Alex gained strength.")
        >>> app.summary()
        '[Character Stats: Strength: 1.00]'
    """

    def __init__(self, backend: Optional[KeyValueStore] = None,
                 host: Optional[HostContext] = None):
        self.backend = backend if backend is not None else SQLiteKeyValueStore(":memory:")
        self.host = host if host is not None else StaticHostContext()
        self.preferences = PreferenceStore(self.backend)
        self.store = StatStore(self.backend)
        self.resolver = CharacterContextResolver(self.host)
        self.extractor = StatExtractor(self.store, self.active_scope)
        self.pipeline = InjectionPipeline(
            lambda: self.preferences.prefs,
            lambda: self.store.snapshot(self.active_scope()),
        )
        self._poller: Optional[ContextPoller] = None
        self._refresh_count = 0
        self._refresh_lock = threading.Lock()

        self.store.add_listener(self._on_stats_changed)
        self.resolver.add_listener(self._on_character_changed)

    @classmethod
    def from_path(cls, db_path: str, host: Optional[HostContext] = None) -> "StatsApp":
        """Create and load an app persisted in the SQLite file at *db_path*."""
        app = cls(SQLiteKeyValueStore(db_path), host)
        app.load()
        return app

    # ── lifecycle ────────────────────────────────────────────────

    def load(self) -> None:
        """Load preferences and stats once at startup."""
        self.preferences.load()
        self.store.load()
        self.resolver.resolve()

    def start_polling(self, interval: float = DEFAULT_POLL_INTERVAL) -> ContextPoller:
        """Poll the host for character changes until ``close()``."""
        if self._poller is None:
            self._poller = ContextPoller(self.resolver, interval)
        self._poller.start()
        return self._poller

    def close(self) -> None:
        """Cancel polling, detach from the store and close the backend."""
        self.store.remove_listener(self._on_stats_changed)
        if self._poller is not None:
            self._poller.stop()
            self._poller = None
        close = getattr(self.backend, "close", None)
        if callable(close):
            close()

    # ── scope ────────────────────────────────────────────────────

    def active_scope(self) -> str:
        return self.resolver.resolve()

    @property
    def character_name(self) -> str:
        character = self.resolver.active_character()
        if character is not None and character.name:
            return character.name
        return "Character"

    @property
    def refresh_count(self) -> int:
        """How many refresh events were emitted (stat or character changes)."""
        return self._refresh_count

    def _refreshed(self) -> None:
        # the poller thread and tool calls both land here
        with self._refresh_lock:
            self._refresh_count += 1

    def _on_character_changed(self, scope: str) -> None:
        self._refreshed()

    def _on_stats_changed(self, scope: str) -> None:
        self._refreshed()
        if scope == GLOBAL_SCOPE or scope != self.resolver.current_key:
            return
        text = self.store.card_text(scope)
        if not text:
            return
        try:
            self.host.write_card_stats(text)
            self.backend.set(f"{CARD_RECORD_PREFIX}{scope}", text)
        except Exception as e:
            logger.error(f"Error saving stats to character card: {e}")

    # ── operations ───────────────────────────────────────────────

    def snapshot(self, scope: Optional[str] = None) -> List[StatRecord]:
        return self.store.snapshot(scope or self.active_scope())

    def observe_chat(self, text: str) -> List[StatChange]:
        """Host text-mutation hook for one message."""
        return self.extractor.process_text(text)

    def observe_messages(self, texts: Iterable[str]) -> List[StatChange]:
        """Host text-mutation hook when the whole transcript is re-read."""
        return self.extractor.process_messages(texts)

    def summary(self) -> Optional[str]:
        """Stats summary for the active scope (the "copy stats" action)."""
        return self.pipeline.summary()

    def prepare_request(self, request: OutboundRequest) -> InjectionResult:
        """Run an outbound request through the injection pipeline."""
        return self.pipeline.process(request)

    def compare(self) -> ComparisonReport:
        """Comparison action for the active scope.

        Raises:
            NothingToCompare: If the scope has no positive numeric stat
        """
        return compare_first_stat(self.snapshot(), subject=self.character_name)
