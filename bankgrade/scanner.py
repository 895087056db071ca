"""Bank Grade Security scan scheduler."""

import math
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Type

from .core.config import Config
from .core.errors import ScanError
from .core.logger import get_logger, setup_logger
from .core.rate_limiter import Clock, FixedDelayPacer, RateLimiter, Sleeper
from .core.report import ReportAggregator
from .core.target import Registry, Target, load_registry, sort_targets
from .modules.base import BaseModule
from .modules.dns_security import DNSSecurityModule
from .modules.header_analysis import HeaderAnalysisModule
from .modules.hsts import HSTSModule
from .modules.redirects import RedirectChainFollower
from .modules.tls_probe import TLSProbeModule
from .reporters import JSONReporter


class Scanner:
    """
    Drains the target queue one target at a time.

    Target starts are paced by a fixed delay. Only the analyzers of a target's
    terminal response run concurrently, on a shared thread pool; they may
    still be running while the next target's chain is followed.
    """

    # Analyzers run on every terminal response, in no particular order
    ANALYZER_CLASSES: List[Type[BaseModule]] = [
        HeaderAnalysisModule,
        TLSProbeModule,
        DNSSecurityModule,
        HSTSModule,
    ]

    def __init__(
        self,
        config: Optional[Config] = None,
        config_path: Optional[str] = None,
        report: Optional[ReportAggregator] = None,
        clock: Clock = time.monotonic,
        sleep: Sleeper = time.sleep,
    ):
        """
        Initialize scanner.

        Args:
            config: Configuration instance (optional)
            config_path: Path to config file (optional)
            report: Aggregator to record into (defaults to one writing JSON
                under the configured output directory)
            clock: Time source for pacing
            sleep: Wait function for pacing and the settle period
        """
        self.config = config or Config(config_path=config_path)

        log_config = self.config.get("logging", {})
        setup_logger(
            level=log_config.get("level", "INFO"),
            log_format=log_config.get("format", "json"),
            log_file=str(self.config.log_dir / Path(log_config.get("file", "bankgrade.log")).name),
            max_size_mb=log_config.get("max_size_mb", 10),
            backup_count=log_config.get("backup_count", 5),
        )
        self.logger = get_logger("scanner")

        self.rate_limiter = RateLimiter()
        self.rate_limiter.configure_from_dict(self.config.rate_limits)

        self.report = report or ReportAggregator(JSONReporter(self.config))

        self.executor = ThreadPoolExecutor(
            max_workers=self.config.concurrency.get("analyzer_workers", 4),
            thread_name_prefix="analyzer",
        )
        self.analyzers = self._init_analyzers()
        self.follower = RedirectChainFollower(self.config, self.report, self.analyzers, self.executor)

        self.pacer = FixedDelayPacer(self.config.scan_delay, clock=clock, sleep=sleep)
        self._sleep = sleep
        self._pending: List[Future] = []
        self.failures: Dict[Target, str] = {}

        self.logger.info("Scanner initialized")

    def _init_analyzers(self) -> List[BaseModule]:
        analyzers = []
        for module_class in self.ANALYZER_CLASSES:
            module = module_class(self.config, self.report, self.rate_limiter)
            if module.is_enabled:
                analyzers.append(module)
            self.logger.debug(f"Initialized module: {module.name} (enabled: {module.is_enabled})")
        return analyzers

    def order_targets(self, targets: Iterable[Target]) -> List[Target]:
        """Queue order: registry order for 'fifo', otherwise name then country."""
        if self.config.scan_order == "fifo":
            return list(targets)
        return sort_targets(list(targets))

    def scan_target(self, target: Target) -> bool:
        """
        Follow one target's chain and start its analyzers.

        Returns:
            False if the target's scan hit a fatal condition
        """
        self.logger.info(f"Scanning {target.label}")
        try:
            futures = self.follower.follow(target)
        except ScanError as e:
            self.logger.error_with_data(f"Scan aborted: {e}", {"target": target.name, "code": e.code})
            self.failures[target] = str(e)
            return False
        except Exception as e:
            self.logger.error(f"Unexpected error scanning {target.label}: {e}", exc_info=True)
            self.failures[target] = str(e)
            return False

        self._pending.extend(futures)
        return True

    def scan_targets(self, targets: Iterable[Target]) -> Optional[Path]:
        """
        Scan every target, then archive a dated snapshot.

        The settle period after the last target is a fixed wait, not a
        barrier: analyzers still running afterwards update the live report
        but miss the snapshot.

        Returns:
            Path of the history snapshot, if one was written
        """
        queue = deque(self.order_targets(targets))
        if not queue:
            self.logger.warning("No targets to scan")
            return None

        minutes = math.ceil(len(queue) * self.config.scan_delay / 60)
        self.logger.info(f"Scanning {len(queue)} targets, estimated time {minutes} minutes")

        while queue:
            self.pacer.wait()
            self.scan_target(queue.popleft())

        settle = self.config.settle_delay
        self.logger.info(f"Queue drained, waiting {settle:g}s for analyzers to settle")
        self._sleep(settle)

        unfinished = sum(1 for future in self._pending if not future.done())
        if unfinished:
            self.logger.warning(
                f"{unfinished} analyzers still running; their results will miss the history snapshot"
            )

        return self.report.persist_history(datetime.now())

    def load_targets(self, registry_dir: Optional[Path] = None) -> Registry:
        """Load the target registry (configured directory by default)."""
        return load_registry(registry_dir or self.config.registry_dir, self.config.registry_extension)

    def run(self, registry_dir: Optional[Path] = None) -> Registry:
        """Load the registry and scan all of its targets."""
        registry = self.load_targets(registry_dir)
        self.scan_targets(registry.targets)
        return registry

    def close(self) -> None:
        """Wait for outstanding analyzers and write the final live report."""
        self.executor.shutdown(wait=True)
        self.report.close()
        self.logger.info_with_data(
            f"Completed scanning; {len(self.failures)} targets failed",
            {"rate_limits": self.rate_limiter.get_stats()},
        )

    def __enter__(self) -> "Scanner":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False
