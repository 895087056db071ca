"""Base reporter class."""

import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Mapping, Optional

from ..core.config import Config
from ..core.logger import get_logger


class BaseReporter(ABC):
    """Base class for report writers."""

    # Report format identifier
    format_name: str = "base"

    # File extension
    extension: str = ".txt"

    def __init__(self, config: Config, output_dir: Optional[Path] = None):
        """
        Initialize reporter.

        Args:
            config: Configuration instance
            output_dir: Output directory (optional, uses config default)
        """
        self.config = config
        self.output_dir = Path(output_dir) if output_dir else config.output_dir
        self.logger = get_logger(f"reporter.{self.format_name}")

    @abstractmethod
    def render(self, report: Mapping[str, Any]) -> str:
        """Serialize a report aggregate."""

    def save(self, content: str, filepath: Path) -> Path:
        """
        Atomically replace ``filepath`` with ``content``.

        The content is written to a temporary file in the same directory and
        renamed over the destination, so readers never see a partial file.
        """
        filepath.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{filepath.name}.", suffix=".tmp", dir=str(filepath.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, filepath)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        self.logger.debug(f"Report saved: {filepath}")
        return filepath
