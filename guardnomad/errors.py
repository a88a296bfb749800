"""Guard Nomad Backend - Upstream failure taxonomy.

These exceptions are raised inside source adapters and consumed by the
fallback chain. None of them escapes an adapter's ``fetch``.
"""


class SourceError(Exception):
    """Base class for recoverable upstream failures."""

    def __init__(self, source: str, message: str = ""):
        self.source = source
        super().__init__(f"{source}: {message}" if message else source)


class UpstreamUnavailable(SourceError):
    """Network or HTTP failure, missing API key, or timeout."""


class RateLimited(SourceError):
    """Local request budget exhausted, or the upstream answered 403/429."""


class MalformedResponse(SourceError):
    """Upstream payload failed parsing or structural validation."""
