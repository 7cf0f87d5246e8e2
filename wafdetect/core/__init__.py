"""
wafdetect Core Components
Probing, behavioral analysis and the shared data model

Detector and ScanEngine depend on wafdetect.signatures and are imported from
their own modules.
"""

from .config import ScanConfig, load_config
from .heuristic import BehaviorHeuristic, BehaviorVerdict
from .http_client import FetchedResponse, HTTPClient
from .model import Detection, ProbeResult, ProbeSet, ProbeType, ScanResult
from .prober import Prober, normalize_target

__all__ = [
    "ScanConfig",
    "load_config",
    "BehaviorHeuristic",
    "BehaviorVerdict",
    "FetchedResponse",
    "HTTPClient",
    "Detection",
    "ProbeResult",
    "ProbeSet",
    "ProbeType",
    "ScanResult",
    "Prober",
    "normalize_target",
]
