"""
Error types raised by the tide calendar core.

InvalidModel and InvalidWindow also derive from ValueError so callers that
already treat bad input as ValueError (the HTTP layer does) keep working.
"""


class TideCalendarError(Exception):
    """Base class for tidecal errors."""


class InvalidModel(TideCalendarError, ValueError):
    """The constituent table cannot describe a tide signal."""


class InvalidWindow(TideCalendarError, ValueError):
    """A requested time range is empty or reversed."""


class DecodeFailure(TideCalendarError):
    """A persisted calendar could not be parsed."""


class UpstreamFailure(TideCalendarError):
    """An external tide data source failed."""
