from .base import Evidence, Signature
from .builtin import builtin_signatures
from .declarative import DeclarativeSignature, Indicator, IndicatorCondition, IndicatorType
from .loader import BUNDLED_RULES, SignatureLoader, load_rule_set, load_signatures
from .registry import SignatureRegistry

__all__ = [
    "Evidence",
    "Signature",
    "builtin_signatures",
    "DeclarativeSignature",
    "Indicator",
    "IndicatorCondition",
    "IndicatorType",
    "BUNDLED_RULES",
    "SignatureLoader",
    "load_rule_set",
    "load_signatures",
    "SignatureRegistry",
]
