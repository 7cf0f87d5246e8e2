"""Abstract base for all WAF signatures."""

from abc import ABC, abstractmethod
from typing import Set

from wafdetect.core.model import ProbeSet


class Signature(ABC):
    """Every signature must define `name` and implement match()."""

    name: str = "Unnamed Signature"

    # ── public API ──────────────────────────────────────────────

    @abstractmethod
    def match(self, probes: ProbeSet) -> float:
        """
        Score how strongly *probes* point at this WAF.
        Must be pure and return a confidence in [0, 1].
        """
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


class Evidence:
    """Accumulates weighted indicator hits for one signature evaluation.

    Weights are summed every time an indicator fires (so the same header seen
    on several probes adds up), while `distinct` tracks which indicators fired
    at all.
    """

    def __init__(self) -> None:
        self.raw = 0.0
        self.distinct: Set[str] = set()

    def add(self, key: str, weight: float) -> None:
        self.raw += weight
        self.distinct.add(key)

    def score(self, min_indicators: int = 2, discount: float = 0.5) -> float:
        confidence = self.raw
        if len(self.distinct) < min_indicators:
            confidence *= discount
        return max(0.0, min(1.0, confidence))
