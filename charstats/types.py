"""Type definitions for CharStats library."""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

StatValue = Union[float, str]

INJECT_ROLES = ("system", "user")


def is_numeric(value: Any) -> bool:
    """Return True for int/float values. Booleans are not stat numbers."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class StatRecord:
    """One tracked attribute of one participant.

    Attributes:
        key: Normalized identifier (lowercase, ``_``-separated)
        name: Human-readable display name
        value: A number (continuous arithmetic) or an opaque string
        unit: Free-form suffix, usually with a leading space (e.g. " ft")
    """
    key: str
    name: str
    value: StatValue
    unit: str = ""

    @property
    def is_numeric(self) -> bool:
        return is_numeric(self.value)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persisted ``{value, unit, name}`` shape."""
        return {"value": self.value, "unit": self.unit, "name": self.name}

    @classmethod
    def from_dict(cls, key: str, raw: Any) -> "StatRecord":
        """Build a record from a persisted entry.

        Older caches stored bare scalars instead of objects; those get a
        display name derived from the key ("max_hp" -> "Max Hp").
        """
        if isinstance(raw, Mapping):
            value = raw.get("value", 0)
            if not is_numeric(value):
                value = "" if value is None else str(value)
            return cls(
                key=key,
                name=str(raw.get("name") or key),
                value=value,
                unit=str(raw.get("unit") or ""),
            )
        value = raw if is_numeric(raw) else str(raw)
        name = " ".join(part.capitalize() for part in key.split("_"))
        return cls(key=key, name=name, value=value, unit="")


@dataclass
class Preferences:
    """Process-wide settings, persisted as ``{enabled, autoInject, injectRole}``."""
    enabled: bool = True
    auto_inject: bool = True
    inject_role: str = "system"

    @property
    def effective_role(self) -> str:
        """Role used for injected messages: ``user`` only when asked for."""
        return "user" if self.inject_role == "user" else "system"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "autoInject": self.auto_inject,
            "injectRole": self.inject_role,
        }

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]]) -> "Preferences":
        """Merge a persisted object over the defaults; unknown keys are ignored."""
        prefs = cls()
        if not raw:
            return prefs
        if "enabled" in raw:
            prefs.enabled = bool(raw["enabled"])
        if "autoInject" in raw:
            prefs.auto_inject = bool(raw["autoInject"])
        if raw.get("injectRole") in INJECT_ROLES:
            prefs.inject_role = raw["injectRole"]
        return prefs


@dataclass(frozen=True)
class ComparisonItem:
    """Immutable reference object with its characteristic length in cm."""
    name: str
    cm: float


@dataclass(frozen=True)
class ComparisonMatch:
    """A catalog item paired with ``subject_cm / item.cm``."""
    item: ComparisonItem
    ratio: float

    @property
    def bigger(self) -> bool:
        return self.ratio > 1

    @property
    def factor(self) -> float:
        """The multiplier shown to the user (ratio, or its reciprocal when smaller)."""
        if self.bigger:
            return self.ratio
        return 1 / self.ratio if self.ratio else math.inf


@dataclass
class ComparisonReport:
    """Result of the comparison action for one stat."""
    stat_name: str
    canonical_cm: float
    matches: List[ComparisonMatch] = field(default_factory=list)
    lines: List[str] = field(default_factory=list)

    @property
    def title(self) -> str:
        return f"{self.stat_name} Comparisons:"

    def render(self) -> str:
        return "\n".join([self.title, ""] + self.lines)


@dataclass
class StatChange:
    """A stat mutation recognized in chat text.

    Attributes:
        rule: Name of the extraction rule that fired (growth/gain/increase/now)
        key: Derived stat key
        name: Display name used if the record has to be created
        value: Value to create with, or the absolute value to set
        create_only: True when an existing record must be left untouched
    """
    rule: str
    key: str
    name: str
    value: float
    create_only: bool = False


@dataclass
class CharacterInfo:
    """What the host knows about the active participant."""
    name: Optional[str] = None
    avatar: Optional[str] = None
    internal_id: Optional[str] = None

    @property
    def identity(self) -> Optional[str]:
        for candidate in (self.name, self.avatar, self.internal_id):
            if candidate not in (None, ""):
                return str(candidate)
        return None


@dataclass
class OutboundRequest:
    """A request about to be handed to the transport.

    Only ``body`` is ever rewritten; every other attribute passes through.
    """
    method: str
    url: str
    body: Optional[Union[str, bytes]] = None
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class InjectionResult:
    """Outcome of running one request through the injection pipeline."""
    request: OutboundRequest
    intercepted: bool = False
    injected: bool = False
    target: Optional[str] = None
    reason: Optional[str] = None
