"""
Error taxonomy for the short-link engine.

Domain code raises these; the HTTP layer in `main.py` maps them to status codes.

    ShortLinkError
     ├── ValidationError            (caller's fault, never retried)
     ├── DuplicateCodeError         (custom code taken, choose another)
     ├── AllocationExhaustedError   (random generation ran out of attempts)
     ├── LinkUnavailableError
     │    ├── NotFoundError
     │    ├── ExpiredError
     │    └── InactiveError
     └── StoreUnavailableError      (transient, safe to retry with backoff)
"""

__all__ = [
    "ShortLinkError",
    "ValidationError",
    "DuplicateCodeError",
    "AllocationExhaustedError",
    "LinkUnavailableError",
    "NotFoundError",
    "ExpiredError",
    "InactiveError",
    "StoreUnavailableError",
]


class ShortLinkError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(ShortLinkError, ValueError):
    """Malformed target URL, custom code or request field."""


class DuplicateCodeError(ShortLinkError):
    def __init__(self, code: str):
        super().__init__(f"Short code already exists: {code}")
        self.code = code


class AllocationExhaustedError(ShortLinkError):
    def __init__(self, attempts: int):
        super().__init__(f"Could not allocate a unique short code after {attempts} attempts")
        self.attempts = attempts


class LinkUnavailableError(ShortLinkError):
    """A lookup outcome that must surface to the public as "not available"."""

    reason = "unavailable"

    def __init__(self, code: str):
        super().__init__(f"Short code {code!r} is {self.reason}")
        self.code = code


class NotFoundError(LinkUnavailableError):
    reason = "not found"


class ExpiredError(LinkUnavailableError):
    reason = "expired"


class InactiveError(LinkUnavailableError):
    reason = "inactive"


class StoreUnavailableError(ShortLinkError):
    """The mapping store could not be reached or timed out."""
