"""
Declarative signatures.

A DeclarativeSignature is described by a list of Indicators (header, cookie,
body or status-code checks) and scores probes through the same Signature
interface as the hand-written rules.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from wafdetect.core.model import ProbeResult, ProbeSet, healthy_probes

from .base import Signature


class IndicatorType(str, Enum):
    HEADER = "header"
    COOKIE = "cookie"
    BODY = "body"
    STATUS_CODE = "status_code"


class IndicatorCondition(str, Enum):
    EXISTS = "exists"
    CONTAINS = "contains"
    EQUALS = "equals"
    REGEX = "regex"


@dataclass
class Indicator:
    """One atomic check contributing `confidence` when it fires."""

    type: IndicatorType
    condition: IndicatorCondition = IndicatorCondition.EXISTS
    key: str = ""
    value: str = ""
    values: List[str] = field(default_factory=list)
    status_codes: List[int] = field(default_factory=list)
    case_insensitive: bool = False
    require_all_values: bool = False
    confidence: float = 0.0

    def __post_init__(self) -> None:
        self.type = IndicatorType(self.type)
        self.condition = IndicatorCondition(self.condition)
        self._pattern: Optional[re.Pattern] = None
        if self.condition is IndicatorCondition.REGEX:
            flags = re.IGNORECASE if self.case_insensitive else 0
            self._pattern = re.compile(self.value, flags)

    # ── matching ────────────────────────────────────────────────

    def matches(self, probe: ProbeResult) -> bool:
        if self.type is IndicatorType.HEADER:
            return self._match_header(probe)
        if self.type is IndicatorType.COOKIE:
            return self._match_cookie(probe)
        if self.type is IndicatorType.BODY:
            return self._match_body(probe)
        return probe.status_code in self.status_codes

    def _match_header(self, probe: ProbeResult) -> bool:
        header_value = probe.header(self.key)
        if self.condition is IndicatorCondition.EXISTS:
            return header_value != ""
        if not header_value:
            return False
        return self._match_text(header_value)

    def _match_cookie(self, probe: ProbeResult) -> bool:
        cookies = probe.headers.get_list("set-cookie")
        if not cookies:
            return False
        if self.condition is IndicatorCondition.EXISTS:
            return any(self.key in cookie for cookie in cookies)
        if self.condition is IndicatorCondition.EQUALS:
            # Compare the value of the cookie named `key`
            for cookie in cookies:
                name, _, rest = cookie.partition("=")
                if name.strip() == self.key and self._equals(rest.split(";", 1)[0].strip()):
                    return True
            return False
        return any(self._match_text(cookie) for cookie in cookies)

    def _match_body(self, probe: ProbeResult) -> bool:
        if self.status_codes and probe.status_code not in self.status_codes:
            return False
        if self.condition is IndicatorCondition.EXISTS:
            return probe.body != ""
        return self._match_text(probe.body)

    def _match_text(self, text: str) -> bool:
        if self.condition is IndicatorCondition.CONTAINS:
            return self._contains(text)
        if self.condition is IndicatorCondition.EQUALS:
            return self._equals(text)
        if self.condition is IndicatorCondition.REGEX:
            return self._pattern.search(text) is not None
        return False

    def _contains(self, text: str) -> bool:
        if self.case_insensitive:
            text = text.lower()
        needles = self.values or ([self.value] if self.value else [])
        if not needles:
            return False
        if self.case_insensitive:
            needles = [needle.lower() for needle in needles]
        if self.require_all_values:
            return all(needle in text for needle in needles)
        return any(needle in text for needle in needles)

    def _equals(self, text: str) -> bool:
        if self.case_insensitive:
            return text.lower() == self.value.lower()
        return text == self.value


class DeclarativeSignature(Signature):
    """Signature whose evidence comes from an indicator list.

    Each indicator fires at most once, however many probes it matches. When
    fewer than `minimum_indicators` fire, the summed confidence is scaled by
    `confidence_multiplier`.
    """

    def __init__(self,
                 name: str,
                 indicators: List[Indicator],
                 enabled: bool = True,
                 minimum_indicators: int = 0,
                 confidence_multiplier: float = 0.5,
                 description: str = "",
                 vendor: str = "",
                 category: str = ""):
        self.name = name
        self.indicators = list(indicators)
        self.enabled = enabled
        self.minimum_indicators = minimum_indicators
        self.confidence_multiplier = confidence_multiplier or 0.5
        self.description = description
        self.vendor = vendor
        self.category = category

    def matched_indicators(self, probes: ProbeSet) -> List[Indicator]:
        usable = healthy_probes(probes)
        return [
            indicator for indicator in self.indicators
            if any(indicator.matches(probe) for probe in usable)
        ]

    def match(self, probes: ProbeSet) -> float:
        if not self.enabled:
            return 0.0

        matched = self.matched_indicators(probes)
        confidence = sum(indicator.confidence for indicator in matched)

        if self.minimum_indicators > 0 and len(matched) < self.minimum_indicators:
            confidence *= self.confidence_multiplier

        return max(0.0, min(1.0, confidence))
