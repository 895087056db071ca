"""Base analyzer class for Bank Grade Security."""

from abc import ABC, abstractmethod
from typing import Any, Optional

from ..core.config import Config
from ..core.logger import get_logger
from ..core.rate_limiter import RateLimiter
from ..core.report import ReportAggregator
from ..core.target import Target, TerminalResponse
from ..core.taxonomy import MetricValue


class BaseModule(ABC):
    """
    Base class for the analyzers run once a target's redirect chain ends.

    Analyzers are independent of each other: they run concurrently, in no
    particular order, and only communicate through the report.
    """

    # Module name used in config and logging
    name: str = "base"

    # Description of what the module does
    description: str = "Base module"

    def __init__(
        self,
        config: Config,
        report: ReportAggregator,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """
        Initialize module.

        Args:
            config: Configuration instance
            report: Aggregator every result is recorded into
            rate_limiter: Rate limiter for external services (optional)
        """
        self.config = config
        self.report = report
        self.rate_limiter = rate_limiter
        self.logger = get_logger(f"module.{self.name}")
        self._module_config = config.get_module_config(self.name)

    @property
    def is_enabled(self) -> bool:
        """Check if module is enabled in configuration."""
        return self._module_config.get("enabled", True)

    @property
    def timeout(self) -> float:
        """Get module timeout setting."""
        return self._module_config.get("timeout", 10)

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a module-specific setting."""
        return self._module_config.get(key, default)

    def rate_limit(self, service: Optional[str] = None) -> None:
        """Apply rate limiting for an external service (defaults to module name)."""
        if self.rate_limiter:
            self.rate_limiter.wait(service or self.name)

    def record(self, target: Target, metric: str, value: MetricValue, only_if_unset: bool = False) -> None:
        """Record one metric for ``target``."""
        self.report.record(target.country_code, target.name, metric, value, only_if_unset=only_if_unset)

    @abstractmethod
    def execute(self, target: Target, response: TerminalResponse) -> None:
        """
        Analyze a target's terminal response.

        Implementations record their pessimistic/optimistic defaults first and
        only move a metric away from its default when a probe proves it.
        """

    def run(self, target: Target, response: TerminalResponse) -> bool:
        """
        Run the module with error handling.

        A failing probe leaves its defaults in the report and never raises
        into the analyzer fan-out.

        Returns:
            True if successful, False if errors occurred
        """
        if not self.is_enabled:
            self.logger.debug(f"Module {self.name} is disabled, skipping")
            return True

        try:
            self.logger.debug(f"Running {self.name} for {response.hostname}")
            self.execute(target, response)
            return True
        except Exception as e:
            self.logger.error_with_data(
                f"{self.name} error: {e}",
                {"target": target.name, "host": response.hostname},
                exc_info=True,
            )
            return False

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(enabled={self.is_enabled})>"
