"""In-memory report aggregate shared by every probe of a scan run."""

import copy
import json
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Mapping, Optional

from .errors import ErrorCodes, format_error
from .logger import get_logger
from .taxonomy import EMPTY, MetricValue, category_of, empty_entry

if TYPE_CHECKING:
    from ..reporters.json_reporter import JSONReporter


Entry = Dict[str, Dict[str, MetricValue]]


def _freeze(entry: Entry) -> Mapping[str, Mapping[str, MetricValue]]:
    return MappingProxyType({category: MappingProxyType(dict(metrics)) for category, metrics in entry.items()})


class ReportAggregator:
    """
    Authoritative store of scan results: country code -> target name -> entry.

    All mutation goes through ``record`` under a single lock. Every mutation
    schedules a write of the live report on a single background writer;
    requests arriving while a write is pending are coalesced into it.
    """

    def __init__(self, reporter: Optional["JSONReporter"] = None):
        """
        Args:
            reporter: Writer for the live report and history archive. Without
                one, results are kept in memory only.
        """
        self._results: Dict[str, Dict[str, Entry]] = {}
        self._lock = threading.Lock()
        self._reporter = reporter
        self._flush_lock = threading.Lock()
        self._flush_pending = False
        self._writer: Optional[ThreadPoolExecutor] = None
        if reporter is not None:
            self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="report-writer")
        self.logger = get_logger("report")

    def record(
        self,
        country: str,
        name: str,
        metric: str,
        value: MetricValue,
        only_if_unset: bool = False,
    ) -> bool:
        """
        Set one metric of a target.

        The target's entry is created on first use with every metric of the
        taxonomy set to the empty placeholder. With ``only_if_unset`` the call
        is a no-op once the metric holds a value (first-seen-wins).

        Returns:
            True if the value was stored

        Raises:
            UnknownMetricError: If ``metric`` is not in the taxonomy
        """
        category = category_of(metric)

        with self._lock:
            targets = self._results.setdefault(country, {})
            entry = targets.get(name)
            if entry is None:
                entry = targets[name] = empty_entry()

            if only_if_unset and entry[category][metric] != EMPTY:
                return False
            entry[category][metric] = value

        self.logger.debug_with_data(
            "Recorded metric",
            {"country": country, "target": name, "metric": metric, "value": value},
        )
        self.persist_incremental()
        return True

    def entry(self, country: str, name: str) -> Optional[Entry]:
        """Copy of one target's entry, or None if it was never reported on."""
        with self._lock:
            entry = self._results.get(country, {}).get(name)
            return copy.deepcopy(entry) if entry is not None else None

    def snapshot(self) -> Mapping[str, Mapping[str, Entry]]:
        """
        Read-only copy of the aggregate, sorted by country code and target name.

        Every level (countries, targets, categories) is a ``MappingProxyType``
        over a private copy, so neither side can change the other.
        """
        with self._lock:
            data = {
                code: MappingProxyType({
                    name: _freeze(self._results[code][name])
                    for name in sorted(self._results[code])
                })
                for code in sorted(self._results)
            }
        return MappingProxyType(data)

    def persist_incremental(self) -> None:
        """Schedule a write of the live report without blocking the caller."""
        if self._reporter is None:
            return

        with self._flush_lock:
            if self._flush_pending:
                return
            self._flush_pending = True

        try:
            self._writer.submit(self._write_live)
        except RuntimeError:
            # Writer already shut down; results arriving late still get written
            self._write_live()

    def _write_live(self) -> None:
        with self._flush_lock:
            self._flush_pending = False
        try:
            self._reporter.write_live(self.snapshot())
        except (OSError, TypeError, ValueError) as e:
            error = ErrorCodes.with_details(ErrorCodes.IO_LIVE_WRITE_FAILED, str(e))
            self.logger.error(format_error(error))

    def flush(self) -> None:
        """Write the live report synchronously."""
        if self._reporter is not None:
            self._write_live()

    def persist_history(self, timestamp: Optional[datetime] = None) -> Optional[Path]:
        """
        Archive a snapshot keyed by year and month.

        If the archive cannot be written, the full snapshot is emitted to
        stderr so that the data can be recovered by the operator.

        Returns:
            Path of the archive file, or None if nothing was written
        """
        timestamp = timestamp or datetime.now()
        snapshot = self.snapshot()

        if self._reporter is None:
            return None

        try:
            return self._reporter.write_history(snapshot, timestamp)
        except (OSError, TypeError, ValueError) as e:
            error = ErrorCodes.with_details(ErrorCodes.IO_HISTORY_WRITE_FAILED, str(e))
            self.logger.error(f"{format_error(error)}; dumping snapshot to stderr")
            sys.stderr.write(json.dumps(snapshot, indent=2, ensure_ascii=False, default=dict))
            sys.stderr.write("\n")
            sys.stderr.flush()
            return None

    def close(self) -> None:
        """Flush the live report and stop the background writer."""
        if self._writer is not None:
            self._writer.shutdown(wait=True)
        self.flush()
