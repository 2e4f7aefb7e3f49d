"""Pengu: order lifecycle engine for an academic-assistance marketplace."""

__version__ = "0.1.0"

from .errors import ErrorCategory, ErrorCode, LifecycleError, Result
from .config import Settings, load_settings
from .engine import PenguPlatform

__all__ = [
    "__version__",
    "ErrorCategory",
    "ErrorCode",
    "LifecycleError",
    "Result",
    "Settings",
    "load_settings",
    "PenguPlatform",
]
