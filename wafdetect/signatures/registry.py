"""
Signature Registry for wafdetect
Holds the active signatures in order and picks the best vendor match
"""

from typing import Iterable, Iterator, List, Optional, Tuple

from wafdetect.core.model import UNKNOWN_WAF, ProbeSet

from .base import Signature
from .builtin import builtin_signatures


DEFAULT_ACCEPTANCE_FLOOR = 0.3


class SignatureRegistry:
    """Ordered collection of signatures.

    Order matters: when two signatures reach the same top score the one
    registered first is reported.
    """

    def __init__(self, signatures: Optional[Iterable[Signature]] = None,
                 acceptance_floor: float = DEFAULT_ACCEPTANCE_FLOOR):
        self.signatures: List[Signature] = []
        self.acceptance_floor = acceptance_floor
        for signature in signatures or []:
            self.register(signature)

    @classmethod
    def default(cls, acceptance_floor: float = DEFAULT_ACCEPTANCE_FLOOR) -> "SignatureRegistry":
        return cls(builtin_signatures(), acceptance_floor)

    def register(self, signature: Signature) -> None:
        self.signatures.append(signature)

    def scores(self, probes: ProbeSet) -> List[Tuple[str, float]]:
        """Every signature's confidence, in registration order."""
        return [(signature.name, signature.match(probes)) for signature in self.signatures]

    def identify(self, probes: ProbeSet) -> Tuple[str, float]:
        best_name = UNKNOWN_WAF
        best_score = 0.0

        for name, score in self.scores(probes):
            if score > best_score:
                best_name, best_score = name, score

        if best_score < self.acceptance_floor:
            return UNKNOWN_WAF, 0.0
        return best_name, best_score

    def __len__(self) -> int:
        return len(self.signatures)

    def __iter__(self) -> Iterator[Signature]:
        return iter(self.signatures)
