"""Error types for the CharStats library.

None of these are fatal. The request-interception and chat-observation paths
log them and degrade; user-triggered actions raise them to the caller.
"""


class CharStatsError(Exception):
    """Base class for all CharStats errors."""


class ParseFailure(CharStatsError):
    """A request or response body could not be parsed as JSON."""


class InvalidMagnitude(CharStatsError):
    """A normalized length is zero, negative or not a number."""

    def __init__(self, value: float, unit: str = ""):
        self.value = value
        self.unit = unit
        super().__init__(f"No positive length for {value!r}{unit}")


class NothingToCompare(CharStatsError):
    """The comparison action found no positive numeric stat."""


class InvalidGrowth(CharStatsError, ValueError):
    """A growth percentage was zero or not a number."""


class PersistenceFailure(CharStatsError):
    """Reading or writing a persisted record failed."""

    def __init__(self, name: str, cause: Exception):
        self.name = name
        self.cause = cause
        super().__init__(f"Persistence failure for {name!r}: {cause}")
