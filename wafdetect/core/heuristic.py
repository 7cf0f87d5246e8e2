"""
Behavioral WAF heuristic.

Decides from probe deltas alone, without any vendor knowledge, whether
something between us and the origin rejected the adversarial probes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Sequence, Tuple

from .model import ProbeResult, ProbeSet, ProbeType


BLOCK_STATUS_CODES = frozenset({403, 406, 419, 429})

BLOCK_KEYWORDS = (
    "blocked",
    "forbidden",
    "access denied",
    "security",
    "firewall",
    "not acceptable",
    "rejected",
    "suspicious",
)

NO_BASELINE = "Unable to establish baseline connection"


@dataclass(frozen=True)
class BehaviorVerdict:
    present: bool
    baseline_available: bool
    blocked: Tuple[ProbeType, ...] = ()
    evaluated: int = 0
    reason: str = ""


class BehaviorHeuristic:
    """Counts adversarial probes that look blocked compared to the baseline.

    A WAF is reported once at least `threshold` of them are blocked. The
    default of 2 keeps a single odd response (flaky origin, unrelated 404)
    from producing a detection.
    """

    def __init__(self,
                 threshold: int = 2,
                 block_status_codes: Iterable[int] = BLOCK_STATUS_CODES,
                 keywords: Sequence[str] = BLOCK_KEYWORDS):
        self.threshold = threshold
        self.block_status_codes: FrozenSet[int] = frozenset(block_status_codes)
        self.keywords = tuple(k.lower() for k in keywords)

    def is_blocked(self, probe: ProbeResult, baseline: ProbeResult) -> bool:
        if probe.status_code in self.block_status_codes:
            return True

        # Payload newly triggers a server error
        if 500 <= probe.status_code <= 599 and baseline.status_code < 400:
            return True

        if probe.status_code != baseline.status_code:
            body_lower = probe.body.lower()
            return any(keyword in body_lower for keyword in self.keywords)

        return False

    def evaluate(self, probes: ProbeSet) -> BehaviorVerdict:
        baseline: Optional[ProbeResult] = probes.get(ProbeType.NORMAL)
        if baseline is None or not baseline.ok:
            return BehaviorVerdict(present=False, baseline_available=False, reason=NO_BASELINE)

        blocked = []
        evaluated = 0
        for probe_type in ProbeType.adversarial():
            probe = probes.get(probe_type)
            if probe is None or not probe.ok:
                continue
            evaluated += 1
            if self.is_blocked(probe, baseline):
                blocked.append(probe_type)

        present = len(blocked) >= self.threshold
        reason = f"{len(blocked)}/{len(ProbeType.adversarial())} probes blocked"
        if evaluated < len(ProbeType.adversarial()):
            reason += f", {len(ProbeType.adversarial()) - evaluated} failed"

        return BehaviorVerdict(
            present=present,
            baseline_available=True,
            blocked=tuple(blocked),
            evaluated=evaluated,
            reason=reason,
        )

    def is_waf_present(self, probes: ProbeSet) -> bool:
        return self.evaluate(probes).present
