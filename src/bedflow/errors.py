"""Exceptions raised by the analytics engine.

Division-by-zero situations (no beds, no completed cleanings, no stays) are
not errors: they resolve to documented defaults and never raise.
"""


class BedflowError(Exception):
    """Base class for all errors raised by bedflow."""


class InvalidArgument(BedflowError, ValueError):
    """A caller-supplied parameter could not be parsed or is out of range."""


class NotFound(BedflowError, LookupError):
    """A bed or other referenced entity does not resolve."""


class UpstreamUnavailable(BedflowError, RuntimeError):
    """The event store or snapshot store failed to answer a query."""
