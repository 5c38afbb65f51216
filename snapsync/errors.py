"""
Exceptions raised by the snapshot sync pipeline.
"""


class SnapsyncError(Exception):
    """Base class for all snapsync errors."""


class AcquisitionError(SnapsyncError):
    """An archive could not be acquired from the host page."""


class TriggerNotFoundError(AcquisitionError):
    """No locator strategy found an export control."""


class ActionNotFoundError(AcquisitionError):
    """The menu opened but no download action showed up within the retry budget."""


class InterceptionError(AcquisitionError):
    """Retrieving the intercepted download payload failed."""


class AcquisitionTimeoutError(AcquisitionError):
    """No payload was captured before the session timeout."""


class IgnoreRuleError(SnapsyncError):
    """Ignore rules could not be built or applied. Always recovered locally."""


class TransportDecodeError(SnapsyncError, ValueError):
    """A transport payload was not valid base64."""


class ArchiveError(SnapsyncError):
    """A downloaded archive could not be unpacked."""
