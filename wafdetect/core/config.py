"""
Scan configuration for wafdetect.

Values are layered: built-in defaults, then a YAML config file, then
WAF_DETECTOR_* environment variables, then command line flags.
"""

import os
import re
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from .errors import ConfigError
from .model import MAX_BODY_SIZE


OUTPUT_FORMATS = ("txt", "json", "csv", "html")

ENV_PREFIX = "WAF_DETECTOR_"

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m)?\s*$")
_TRUTHY = {"1", "true", "yes", "on"}


def parse_duration(value: Union[int, float, str]) -> float:
    """Seconds from a number or a "10s" / "500ms" / "1m" string."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"invalid duration: {value!r}")

    amount = float(match.group(1))
    unit = match.group(2) or "s"
    if unit == "ms":
        return amount / 1000
    if unit == "m":
        return amount * 60
    return amount


@dataclass
class ScanConfig:
    """Every knob of a scan run."""

    targets: List[str] = field(default_factory=list)
    threads: int = 10
    timeout: float = 10.0  # seconds
    proxy: Optional[str] = None
    user_agent: str = "waf-detector/1.0"
    output_file: Optional[str] = None
    format: str = "txt"
    silent: bool = False
    no_color: bool = False
    debug: bool = False
    signature_files: List[str] = field(default_factory=list)

    # detection tuning
    block_threshold: int = 2
    min_indicators: int = 2
    single_indicator_discount: float = 0.5
    acceptance_floor: float = 0.3

    # transport limits
    max_body_size: int = MAX_BODY_SIZE
    max_redirects: int = 3

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], source: str = "<config>") -> "ScanConfig":
        return cls().merged(**cls._coerce(data, source))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ScanConfig":
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(str(path), "failed to read config file", cause=e) from e
        except yaml.YAMLError as e:
            raise ConfigError(str(path), "failed to parse config file", cause=e) from e

        if not isinstance(data, dict):
            raise ConfigError(str(path), "config file must contain a mapping")

        return cls.from_dict(data, str(path))

    @classmethod
    def env_overrides(cls, environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        """Overrides found in WAF_DETECTOR_* variables, coerced to field types."""
        environ = os.environ if environ is None else environ
        raw: Dict[str, Any] = {}

        mapping = {
            "THREADS": "threads",
            "TIMEOUT": "timeout",
            "PROXY": "proxy",
            "USER_AGENT": "user_agent",
            "OUTPUT": "output_file",
            "FORMAT": "format",
        }
        for suffix, name in mapping.items():
            value = environ.get(ENV_PREFIX + suffix)
            if value:
                raw[name] = value

        for suffix, name in (("SILENT", "silent"), ("NO_COLOR", "no_color"), ("DEBUG", "debug")):
            value = environ.get(ENV_PREFIX + suffix)
            if value:
                raw[name] = value.strip().lower() in _TRUTHY

        signatures = environ.get(ENV_PREFIX + "SIGNATURES")
        if signatures:
            raw["signature_files"] = [s.strip() for s in signatures.split(",") if s.strip()]

        return cls._coerce(raw, "environment")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ScanConfig":
        return cls().merged(**cls.env_overrides(environ))

    @classmethod
    def _coerce(cls, data: Mapping[str, Any], source: str) -> Dict[str, Any]:
        known = set(cls.field_names())
        unknown = set(data) - known
        if unknown:
            raise ConfigError(source, f"unknown config keys: {', '.join(sorted(unknown))}")

        values: Dict[str, Any] = {}
        try:
            for key, value in data.items():
                if value is None:
                    continue
                if key == "timeout":
                    values[key] = parse_duration(value)
                elif key in ("threads", "block_threshold", "min_indicators", "max_body_size", "max_redirects"):
                    values[key] = int(value)
                elif key in ("single_indicator_discount", "acceptance_floor"):
                    values[key] = float(value)
                elif key in ("silent", "no_color", "debug"):
                    values[key] = value if isinstance(value, bool) else str(value).lower() in _TRUTHY
                elif key in ("targets", "signature_files"):
                    if isinstance(value, str):
                        value = [value]
                    values[key] = [str(item) for item in value]
                else:
                    values[key] = str(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(source, f"invalid value for {key!r}", cause=e) from e

        return values

    def merged(self, **overrides: Any) -> "ScanConfig":
        """Copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self) -> "ScanConfig":
        if self.threads < 1:
            raise ConfigError(message=f"threads must be at least 1, got {self.threads}")
        if self.timeout <= 0:
            raise ConfigError(message=f"timeout must be positive, got {self.timeout}")
        if self.format not in OUTPUT_FORMATS:
            raise ConfigError(message=f"unknown output format {self.format!r}, expected one of {', '.join(OUTPUT_FORMATS)}")
        if not 1 <= self.block_threshold <= 3:
            raise ConfigError(message=f"block_threshold must be between 1 and 3, got {self.block_threshold}")
        if self.min_indicators < 0:
            raise ConfigError(message="min_indicators cannot be negative")
        if not 0.0 <= self.single_indicator_discount <= 1.0:
            raise ConfigError(message="single_indicator_discount must be within [0, 1]")
        if not 0.0 <= self.acceptance_floor <= 1.0:
            raise ConfigError(message="acceptance_floor must be within [0, 1]")
        if self.max_body_size < 1:
            raise ConfigError(message="max_body_size must be positive")
        if self.max_redirects < 0:
            raise ConfigError(message="max_redirects cannot be negative")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path: Optional[Union[str, Path]] = None,
                environ: Optional[Mapping[str, str]] = None,
                **overrides: Any) -> ScanConfig:
    """Defaults < file < environment < explicit overrides, validated."""
    config = ScanConfig.from_file(path) if path else ScanConfig()
    config = config.merged(**ScanConfig.env_overrides(environ))
    return config.merged(**overrides).validate()
