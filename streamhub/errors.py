"""
Error taxonomy for the stream aggregation pipeline.

FetchError is recovered by the aggregator through the cache fallback,
ParseError is recovered per record inside an adapter, and
ConfigurationError is fatal for the affected adapter's fetch path.
"""


class StreamHubError(Exception):
    """Base class for all pipeline errors"""
    pass


class FetchError(StreamHubError):
    """Raised when an upstream request fails (transport error or non-2xx)"""

    def __init__(self, message: str, *, url: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ParseError(StreamHubError):
    """Raised when a single upstream record cannot be normalized"""
    pass


class ConfigurationError(StreamHubError):
    """Raised when an adapter is missing required configuration"""
    pass
