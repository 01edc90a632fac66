"""Error kinds raised by the synchronization engine."""


class HubSyncError(Exception):
    """Base class for every engine failure."""


class NoIdentifier(HubSyncError):
    """Neither a DOI nor a title is available for a paper."""


class NotFound(HubSyncError):
    """The bibliographic source has no record matching the query."""


class TransportError(HubSyncError):
    """Network or HTTP level failure while talking to the source."""


class ParseError(HubSyncError):
    """An existing hub document could not be understood."""
