"""Persisted process-wide preferences."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from .errors import PersistenceFailure
from .storage import PREFS_RECORD, KeyValueStore
from .types import INJECT_ROLES, Preferences

logger = logging.getLogger(__name__)


class PreferenceStore:
    """Loads preferences once and persists them on every change."""

    def __init__(self, backend: Optional[KeyValueStore] = None):
        self._backend = backend
        self.prefs = Preferences()

    def load(self) -> Preferences:
        if self._backend is None:
            return self.prefs
        try:
            raw = self._backend.get(PREFS_RECORD)
            self.prefs = Preferences.from_dict(json.loads(raw) if raw else None)
        except Exception as e:
            logger.error(f"Could not load preferences: {PersistenceFailure(PREFS_RECORD, e)}")
        return self.prefs

    def save(self) -> bool:
        if self._backend is None:
            return False
        try:
            self._backend.set(PREFS_RECORD, json.dumps(self.prefs.to_dict()))
        except Exception as e:
            logger.error(str(PersistenceFailure(PREFS_RECORD, e)))
            return False
        return True

    def update(
        self,
        enabled: Optional[bool] = None,
        auto_inject: Optional[bool] = None,
        inject_role: Optional[str] = None,
    ) -> Preferences:
        """Apply the given settings and persist.

        Raises:
            ValueError: If inject_role is not "system" or "user"
        """
        if inject_role is not None and inject_role not in INJECT_ROLES:
            raise ValueError(f"inject_role must be one of {INJECT_ROLES}, got {inject_role!r}")
        changes: dict[str, Any] = {
            "enabled": enabled,
            "auto_inject": auto_inject,
            "inject_role": inject_role,
        }
        for attr, value in changes.items():
            if value is not None:
                setattr(self.prefs, attr, value)
        self.save()
        return self.prefs
