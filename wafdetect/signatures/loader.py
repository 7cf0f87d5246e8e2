"""
Signature Loader for wafdetect
Loads declarative rule sets from YAML and falls back to the built-in set
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from wafdetect.core.errors import RuleLoadError

from .base import Signature
from .builtin import builtin_signatures
from .declarative import DeclarativeSignature, Indicator, IndicatorCondition, IndicatorType


BUNDLED_RULES = Path(__file__).resolve().parent.parent / "data" / "waf_signatures.yml"

_INDICATOR_FIELDS = {
    "type", "key", "condition", "value", "values", "status_codes",
    "case_insensitive", "require_all_values", "confidence",
}


def _resolve(path: Union[str, Path]) -> Path:
    if str(path) == "bundled":
        return BUNDLED_RULES
    return Path(path)


def _parse_indicator(raw: Any, source: str, sig_name: str, index: int) -> Indicator:
    where = f"signature {sig_name!r}, indicator #{index}"
    if not isinstance(raw, dict):
        raise RuleLoadError(source, f"{where}: expected a mapping")

    unknown = set(raw) - _INDICATOR_FIELDS
    if unknown:
        raise RuleLoadError(source, f"{where}: unknown fields {sorted(unknown)}")

    try:
        indicator_type = IndicatorType(raw.get("type"))
        condition = IndicatorCondition(raw.get("condition", "exists"))
    except ValueError as e:
        raise RuleLoadError(source, f"{where}: {e}") from e

    if indicator_type in (IndicatorType.HEADER, IndicatorType.COOKIE) and not raw.get("key"):
        raise RuleLoadError(source, f"{where}: {indicator_type.value} indicators need a key")
    if indicator_type is IndicatorType.STATUS_CODE and not raw.get("status_codes"):
        raise RuleLoadError(source, f"{where}: status_code indicators need status_codes")
    if condition is IndicatorCondition.REGEX and not raw.get("value"):
        raise RuleLoadError(source, f"{where}: regex indicators need a value")

    try:
        return Indicator(
            type=indicator_type,
            condition=condition,
            key=str(raw.get("key", "")),
            value=str(raw.get("value", "")),
            values=[str(v) for v in raw.get("values") or []],
            status_codes=[int(code) for code in raw.get("status_codes") or []],
            case_insensitive=bool(raw.get("case_insensitive", False)),
            require_all_values=bool(raw.get("require_all_values", False)),
            confidence=float(raw.get("confidence", 0.0)),
        )
    except Exception as e:
        raise RuleLoadError(source, f"{where}: {e}") from e


def _parse_signature(raw: Any, source: str, index: int) -> DeclarativeSignature:
    if not isinstance(raw, dict) or not raw.get("name"):
        raise RuleLoadError(source, f"signature #{index}: expected a mapping with a name")

    name = str(raw["name"])
    indicators = raw.get("indicators") or []
    if not isinstance(indicators, list):
        raise RuleLoadError(source, f"signature {name!r}: indicators must be a list")

    try:
        minimum = int(raw.get("minimum_indicators", 0))
        multiplier = float(raw.get("confidence_multiplier", 0.5) or 0.5)
    except (TypeError, ValueError) as e:
        raise RuleLoadError(source, f"signature {name!r}: {e}") from e

    return DeclarativeSignature(
        name=name,
        indicators=[_parse_indicator(item, source, name, i) for i, item in enumerate(indicators)],
        enabled=bool(raw.get("enabled", True)),
        minimum_indicators=minimum,
        confidence_multiplier=multiplier,
        description=str(raw.get("description", "")),
        vendor=str(raw.get("vendor", "")),
        category=str(raw.get("category", "")),
    )


def parse_rule_set(data: Dict[str, Any], source: str = "<memory>") -> List[DeclarativeSignature]:
    """Build the enabled signatures of an already-parsed rule set document."""
    if not isinstance(data, dict) or not isinstance(data.get("signatures"), list):
        raise RuleLoadError(source, "expected a mapping with a 'signatures' list")

    signatures = [_parse_signature(raw, source, i) for i, raw in enumerate(data["signatures"])]
    return [sig for sig in signatures if sig.enabled]


def load_rule_set(path: Union[str, Path]) -> List[DeclarativeSignature]:
    """Load one YAML rule set. Raises RuleLoadError on any problem."""
    rule_path = _resolve(path)
    try:
        with open(rule_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise RuleLoadError(str(rule_path), "failed to read signatures file", cause=e) from e
    except yaml.YAMLError as e:
        raise RuleLoadError(str(rule_path), "failed to parse signatures YAML", cause=e) from e

    return parse_rule_set(data, str(rule_path))


class SignatureLoader:
    """Loads zero, one or many rule sets into an ordered signature list."""

    def __init__(self, logger: Optional[logging.Logger] = None,
                 min_indicators: int = 2, discount: float = 0.5):
        self.logger = logger or logging.getLogger(__name__)
        self.min_indicators = min_indicators
        self.discount = discount
        self.failed: Dict[str, str] = {}

    def load(self, paths: Iterable[Union[str, Path]] = ()) -> List[Signature]:
        signatures: List[Signature] = []
        paths = list(paths)

        for path in paths:
            try:
                loaded = load_rule_set(path)
            except RuleLoadError as e:
                self.failed[str(path)] = str(e)
                self.logger.warning(f"Skipping rule set {path}: {e}")
                continue
            self.logger.info(f"Loaded {len(loaded)} signatures from {path}")
            signatures.extend(loaded)

        if not signatures:
            if paths:
                self.logger.warning("No external signatures loaded, using built-in signatures")
            signatures = builtin_signatures(self.min_indicators, self.discount)

        return signatures


def load_signatures(paths: Iterable[Union[str, Path]] = (),
                    logger: Optional[logging.Logger] = None,
                    min_indicators: int = 2,
                    discount: float = 0.5) -> List[Signature]:
    return SignatureLoader(logger, min_indicators, discount).load(paths)
