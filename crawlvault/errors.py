class CrawlVaultError(Exception):
    """Base class for errors raised to the application layer."""


class InvalidEnvelope(CrawlVaultError, ValueError):
    """A pushed or stored envelope is malformed or misses a required field."""


class CapabilityNotSupported(CrawlVaultError):
    """The active backend or schema variant cannot perform the operation."""


class CountNotSupported(CapabilityNotSupported):
    """Full counts are disabled for this table."""
