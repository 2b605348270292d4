"""Errors raised by the codec, the relay and the two host adapters.

Every error carries the HTTP status the server adapter answers with; the batch
runner ignores it and exits with code 1.

    ProxyError
    ├── DecodeFailure  - malformed token (recovered inside codec.decode)
    ├── MissingTarget  - no feed/media URL supplied
    ├── InvalidURL     - target is not an http(s) URL
    ├── FetchFailed    - origin unreachable or redirect chain broken
    └── UnknownAction  - batch ACTION not recognised
"""


class ProxyError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DecodeFailure(ProxyError):
    pass


class MissingTarget(ProxyError):
    status_code = 400


class InvalidURL(ProxyError):
    status_code = 400


class FetchFailed(ProxyError):
    """Raised for transport-level failures; the httpx error is chained as __cause__."""

    def __init__(self, message: str, url: str = "") -> None:
        self.url = url
        super().__init__(message)


class UnknownAction(ProxyError):
    pass
