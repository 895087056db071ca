"""Core modules for Bank Grade Security."""

from .config import Config
from .logger import setup_logger, get_logger
from .rate_limiter import FixedDelayPacer, RateLimiter
from .target import Target, TerminalResponse, load_registry, sort_targets
from .taxonomy import EMPTY, category_of
from .report import ReportAggregator
from .scoring import score, grade
from .errors import (
    ErrorCodes,
    ErrorResponse,
    format_error,
    BankGradeError,
    RegistryError,
    ScanError,
    UnknownMetricError,
)

__all__ = [
    "Config",
    "setup_logger",
    "get_logger",
    "FixedDelayPacer",
    "RateLimiter",
    "Target",
    "TerminalResponse",
    "load_registry",
    "sort_targets",
    "EMPTY",
    "category_of",
    "ReportAggregator",
    "score",
    "grade",
    "ErrorCodes",
    "ErrorResponse",
    "format_error",
    "BankGradeError",
    "RegistryError",
    "ScanError",
    "UnknownMetricError",
]
