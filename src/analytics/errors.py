"""Exception taxonomy for the analytics core.

Every error derives from ValueError so callers that already guard numeric
input with ``except ValueError`` keep working.
"""


class AnalyticsError(ValueError):
    """Base class for analytics input errors."""


class InsufficientDataError(AnalyticsError):
    """Too few observations for the requested computation."""


class InvalidWindowError(AnalyticsError):
    """Moving-average window is non-positive or longer than the series."""


class InvalidDateError(AnalyticsError):
    """A date string could not be parsed to a calendar instant."""


class LengthMismatchError(AnalyticsError):
    """Paired sequences have different lengths."""


class InvalidParameterError(AnalyticsError):
    """A scalar parameter (horizon, confidence level, ...) is out of range."""
