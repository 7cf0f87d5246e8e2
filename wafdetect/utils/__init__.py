"""
wafdetect Utility Modules
Logging and reporting utilities
"""

from .logger import setup_logger
from .report import ReportGenerator

__all__ = [
    "setup_logger",
    "ReportGenerator",
]
