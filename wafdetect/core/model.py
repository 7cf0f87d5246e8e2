"""
Core models for wafdetect

Defines the probe, detection and result types shared by the prober,
detector, engine and output layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .errors import WAFDetectError


MAX_BODY_SIZE = 1024 * 1024
UNKNOWN_WAF = "Unknown WAF"


class ProbeType(str, Enum):
    """The fixed battery of probes sent to every target."""

    NORMAL = "normal"
    SQLI = "sqli"
    XSS = "xss"
    MALFORMED = "malformed"

    @classmethod
    def ordered(cls) -> List["ProbeType"]:
        return [cls.NORMAL, cls.SQLI, cls.XSS, cls.MALFORMED]

    @classmethod
    def adversarial(cls) -> List["ProbeType"]:
        return [cls.SQLI, cls.XSS, cls.MALFORMED]


@dataclass(frozen=True)
class ProbeResult:
    """Captured outcome of one probe request.

    `error` is set when the request failed. A body read that fails or times
    out still keeps the status code and headers received before it.
    """

    probe_type: ProbeType
    status_code: int = 0
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: str = ""
    body_length: int = 0
    duration: float = 0.0
    error: Optional[WAFDetectError] = None
    url: str = ""
    truncated: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    def header(self, name: str) -> str:
        """Return a header value (comma-joined if repeated) or an empty string."""
        return self.headers.get(name, "")

    def cookies(self) -> str:
        """All Set-Cookie values joined into one string."""
        return "; ".join(self.headers.get_list("set-cookie"))


ProbeSet = Dict[ProbeType, ProbeResult]


def healthy_probes(probes: ProbeSet) -> List[ProbeResult]:
    """Probes that completed without error, in issuance order."""
    return [
        probes[probe_type]
        for probe_type in ProbeType.ordered()
        if probe_type in probes and probes[probe_type] is not None and probes[probe_type].ok
    ]


@dataclass(frozen=True)
class Detection:
    """Final verdict for one target."""

    waf_detected: bool
    waf_name: str = ""
    confidence: float = 0.0
    details: str = ""
    blocked_probes: Tuple[ProbeType, ...] = ()


@dataclass
class ScanResult:
    """Per-target record handed to the output layer."""

    url: str
    waf_found: bool = False
    waf_name: Optional[str] = None
    confidence: Optional[float] = None
    details: str = ""
    error: Optional[str] = None
    scan_duration: float = 0.0  # seconds
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_detection(cls, url: str, detection: Detection, scan_duration: float) -> "ScanResult":
        return cls(
            url=url,
            waf_found=detection.waf_detected,
            waf_name=detection.waf_name or None,
            confidence=detection.confidence if detection.waf_detected else None,
            details=detection.details,
            scan_duration=scan_duration,
        )

    @classmethod
    def from_error(cls, url: str, error: BaseException, scan_duration: float) -> "ScanResult":
        return cls(url=url, waf_found=False, error=str(error), scan_duration=scan_duration)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "url": self.url,
            "waf_found": self.waf_found,
            "scan_duration": round(self.scan_duration, 3),
            "timestamp": self.timestamp.isoformat(),
        }
        if self.waf_name:
            data["waf_name"] = self.waf_name
        if self.confidence is not None:
            data["confidence"] = round(self.confidence, 4)
        if self.details:
            data["details"] = self.details
        if self.error:
            data["error"] = self.error
        return data
