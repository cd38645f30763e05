"""Exception hierarchy for linked-views.

Only programming errors raise. Faults inside subscriber callbacks are
contained by the event bus and the reactive store and never surface here.
"""


class LinkedViewsError(Exception):
    """Base class for all linked-views errors."""


class EventPayloadError(LinkedViewsError, TypeError):
    """Raised when a payload does not belong to the topic it is emitted on."""

    def __init__(self, topic: str, payload: object, expected: type):
        self.topic = topic
        self.payload = payload
        self.expected = expected
        super().__init__(
            f"Topic {topic!r} expects {expected.__name__}, got {type(payload).__name__}"
        )


class InvalidSelectionModeError(LinkedViewsError, ValueError):
    """Raised when an unknown selection mode is requested."""


class InvalidFilterError(LinkedViewsError, ValueError):
    """Raised when a filter constraint is malformed (e.g. min > max)."""


class UnknownComputedError(LinkedViewsError, KeyError):
    """Raised when reading a computed value that was never defined."""


class DataLoadError(LinkedViewsError):
    """Raised when an input table cannot be turned into view rows."""
