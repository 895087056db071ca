"""Report writers for Bank Grade Security."""

from .base import BaseReporter
from .json_reporter import JSONReporter

__all__ = [
    "BaseReporter",
    "JSONReporter",
]
