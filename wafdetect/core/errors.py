"""
Error taxonomy for wafdetect.

Probe-level errors are stored on the ProbeResult that hit them; target-level
errors end up on the ScanResult. Nothing here is fatal to a batch.
"""

from typing import Optional


class WAFDetectError(Exception):
    """Base class for every error raised by the scanner."""

    kind = "UNKNOWN"
    default_message = "Unknown error occurred"

    def __init__(self, url: str = "", message: Optional[str] = None, cause: Optional[BaseException] = None):
        self.url = url
        self.message = message or self.default_message
        self.cause = cause
        super().__init__(str(self))

    def __str__(self) -> str:
        text = f"[{self.kind}] {self.url}: {self.message}" if self.url else f"[{self.kind}] {self.message}"
        if self.cause is not None:
            text += f" ({self.cause})"
        return text


class TransportError(WAFDetectError):
    """Connection, TLS or DNS failure."""

    kind = "NETWORK"
    default_message = "Network connection failed"


class ProbeTimeoutError(WAFDetectError):
    """The per-request timeout expired.

    `status_code` and `headers` are set when the response head had already
    arrived.
    """

    kind = "TIMEOUT"
    default_message = "Request timeout"

    def __init__(self, url: str = "", message: Optional[str] = None, cause: Optional[BaseException] = None,
                 status_code: int = 0, headers=None):
        self.status_code = status_code
        self.headers = headers
        super().__init__(url, message, cause)


class InvalidTargetError(WAFDetectError):
    """The target string cannot be turned into a URL."""

    kind = "INVALID_URL"
    default_message = "Invalid URL format"


class BodyReadError(WAFDetectError):
    """Headers arrived but reading the body failed."""

    kind = "PARSING"
    default_message = "Failed to read response body"

    def __init__(self, url: str = "", message: Optional[str] = None, cause: Optional[BaseException] = None,
                 status_code: int = 0, headers=None):
        self.status_code = status_code
        self.headers = headers
        super().__init__(url, message, cause)


class ScanCancelledError(WAFDetectError):
    kind = "CANCELLED"
    default_message = "Scan cancelled"


class RuleLoadError(WAFDetectError):
    """An external signature rule set is malformed or unreadable."""

    kind = "RULES"
    default_message = "Failed to load signature rules"


class ConfigError(WAFDetectError):
    kind = "CONFIG"
    default_message = "Invalid configuration"
