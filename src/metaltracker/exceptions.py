"""Exception taxonomy for the metal rate tracker.

Provider-level errors (CredentialMissing, TransportFailure, SchemaInvalid)
never leave a provider adapter: RateProvider.fetch() converts them into an
Unavailable result. StoreCorrupt never leaves the history store, which
treats unreadable data as an empty history.
"""


class TrackerError(Exception):
    """Base exception for all tracker errors."""


class ProviderError(TrackerError):
    """Base for errors raised while talking to an external price provider."""


class CredentialMissing(ProviderError):
    """Raised when a provider has no usable API key configured."""


class TransportFailure(ProviderError):
    """Raised on a network error or a non-success HTTP status."""


class SchemaInvalid(ProviderError):
    """Raised when a provider response lacks the expected fields or values."""


class StoreCorrupt(TrackerError):
    """Raised when persisted history cannot be parsed."""


class InsufficientHistory(TrackerError):
    """Raised when fewer than two history entries exist for a change computation."""
