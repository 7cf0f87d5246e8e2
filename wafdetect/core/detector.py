"""
wafdetect Detector
Combines the behavioral gate with vendor fingerprinting
"""

import logging
from typing import Optional

from wafdetect.signatures.registry import SignatureRegistry

from .heuristic import BehaviorHeuristic
from .model import UNKNOWN_WAF, Detection, ProbeSet


NO_WAF_BEHAVIOR = "No WAF-like behavior detected"
WAF_IDENTIFIED = "WAF identified based on response patterns"
WAF_BEHAVIOR = "WAF behavior detected"


class Detector:
    """Turns a ProbeSet into a Detection. Holds no per-target state."""

    def __init__(self,
                 registry: Optional[SignatureRegistry] = None,
                 heuristic: Optional[BehaviorHeuristic] = None,
                 logger: Optional[logging.Logger] = None):
        self.registry = registry or SignatureRegistry.default()
        self.heuristic = heuristic or BehaviorHeuristic()
        self.logger = logger or logging.getLogger(__name__)

    def detect(self, probes: ProbeSet) -> Detection:
        verdict = self.heuristic.evaluate(probes)

        if not verdict.baseline_available:
            return Detection(waf_detected=False, details=verdict.reason)

        if not verdict.present:
            return Detection(
                waf_detected=False,
                details=f"{NO_WAF_BEHAVIOR} ({verdict.reason})",
                blocked_probes=verdict.blocked,
            )

        if self.logger.isEnabledFor(logging.DEBUG):
            for name, score in self.registry.scores(probes):
                if score > 0:
                    self.logger.debug(f"Signature {name}: {score:.2f}")

        waf_name, confidence = self.registry.identify(probes)
        summary = WAF_BEHAVIOR if waf_name == UNKNOWN_WAF else WAF_IDENTIFIED

        return Detection(
            waf_detected=True,
            waf_name=waf_name,
            confidence=confidence,
            details=f"{summary} ({verdict.reason})",
            blocked_probes=verdict.blocked,
        )
