"""Active-character resolution.

The host application knows which character is on screen; the core only needs
a stable scope key for it. ``CharacterContextResolver`` turns the host's answer
into ``"char_<identity>"`` (or ``"global"``) and tells listeners when it
changes. Hosts that cannot push change events are polled by
``ContextPoller``.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Protocol

from .store import GLOBAL_SCOPE
from .types import CharacterInfo

logger = logging.getLogger(__name__)

SCOPE_PREFIX = "char_"
DEFAULT_POLL_INTERVAL = 1.0


class HostContext(Protocol):
    """Read-only view of the host's session, plus the card write-back hook."""

    def active_character(self) -> Optional[CharacterInfo]:
        """Return the active participant, or None when unresolved."""
        ...

    def write_card_stats(self, text: str) -> None:
        """Store the plain-text stat list on the active character's record."""
        ...


class StaticHostContext:
    """A host whose active character is set explicitly.

    Used by the CLI and MCP adapters, which have no live host session, and by
    tests. Card text written back is kept per identity in ``cards``.
    """

    def __init__(self, character: Optional[CharacterInfo] = None):
        self.character = character
        self.cards = {}

    def select(self, name: Optional[str] = None, avatar: Optional[str] = None,
               internal_id: Optional[str] = None) -> Optional[CharacterInfo]:
        """Switch the active character; all-None clears it."""
        if name is None and avatar is None and internal_id is None:
            self.character = None
        else:
            self.character = CharacterInfo(name=name, avatar=avatar, internal_id=internal_id)
        return self.character

    def active_character(self) -> Optional[CharacterInfo]:
        return self.character

    def write_card_stats(self, text: str) -> None:
        if self.character is not None and self.character.identity:
            self.cards[self.character.identity] = text


def scope_key_for(character: Optional[CharacterInfo]) -> str:
    """Map a host character to its scope key.

    Args:
        character: Host answer; None or an identity-less character means global

    Returns:
        ``"char_" + (name | avatar | internal id)`` or ``"global"``
    """
    identity = character.identity if character is not None else None
    if not identity:
        return GLOBAL_SCOPE
    return f"{SCOPE_PREFIX}{identity}"


class CharacterContextResolver:
    """Resolves the active scope and reports changes exactly once."""

    def __init__(self, host: Optional[HostContext] = None):
        self.host = host
        self.current_key = GLOBAL_SCOPE
        self._listeners: List[Callable[[str], None]] = []
        self._lock = threading.Lock()

    def add_listener(self, listener: Callable[[str], None]) -> None:
        self._listeners.append(listener)

    def active_character(self) -> Optional[CharacterInfo]:
        """Ask the host for the active character; host errors mean unresolved."""
        if self.host is None:
            return None
        try:
            return self.host.active_character()
        except Exception as e:
            logger.warning(f"Error detecting character: {e}")
            return None

    def resolve(self) -> str:
        """Return the current scope key, notifying listeners if it changed."""
        key = scope_key_for(self.active_character())
        with self._lock:
            changed = key != self.current_key
            self.current_key = key
        if changed:
            logger.info(f"Character changed to {key}")
            for listener in list(self._listeners):
                try:
                    listener(key)
                except Exception:
                    logger.exception(f"Context listener failed for {key}")
        return key


class ContextPoller:
    """Re-resolves the active character on a fixed interval until stopped."""

    def __init__(self, resolver: CharacterContextResolver,
                 interval: float = DEFAULT_POLL_INTERVAL):
        self.resolver = resolver
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="charstats-context-poller", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.resolver.resolve()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Cancel polling and wait for the thread to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
