"""JSON report writer for the live report and the history archive."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional

from ..core.config import Config
from .base import BaseReporter


class JSONReporter(BaseReporter):
    """Write report aggregates as JSON documents."""

    format_name = "json"
    extension = ".json"

    def __init__(
        self,
        config: Config,
        output_dir: Optional[Path] = None,
        history_dir: Optional[Path] = None,
    ):
        super().__init__(config, output_dir)
        self.history_dir = Path(history_dir) if history_dir else config.history_dir
        self.live_path = self.output_dir / config.live_report_name
        self.history_format = config.get("output.history_format", "%Y-%m")

    def render(self, report: Mapping[str, Any]) -> str:
        return json.dumps(report, indent=2, ensure_ascii=False, default=dict)

    def write_live(self, report: Mapping[str, Any]) -> Path:
        """Replace the live report consumed by the website generator."""
        return self.save(self.render(report), self.live_path)

    def history_path(self, timestamp: datetime) -> Path:
        """
        Path of the archive file for ``timestamp``.

        The archive is append-only: when the month already has a snapshot, a
        numeric suffix is added instead of overwriting it.
        """
        key = timestamp.strftime(self.history_format)
        path = self.history_dir / f"{key}{self.extension}"
        counter = 2
        while path.exists():
            path = self.history_dir / f"{key}-{counter}{self.extension}"
            counter += 1
        return path

    def write_history(self, report: Mapping[str, Any], timestamp: datetime) -> Path:
        """Archive a snapshot under its year and month."""
        path = self.save(self.render(report), self.history_path(timestamp))
        self.logger.info(f"History snapshot saved: {path}")
        return path
