"""Shared fixtures for the test suite."""

import pytest

from bankgrade.core.config import Config
from bankgrade.core.report import ReportAggregator
from bankgrade.core.target import Target


CONFIG_TEMPLATE = """
user_agent: "BankGradeSecurity/test"
registry:
  directory: {root}/banks
scan:
  delay_seconds: 0
  settle_seconds: 0
  order: alphabetical
http:
  timeout: 5
  max_redirects: 10
concurrency:
  analyzer_workers: 2
rate_limits:
  doh: 6000
  hstspreload: 6000
modules:
  header_analysis:
    enabled: true
  tls_probe:
    enabled: true
    timeout: 1
  dns_security:
    enabled: true
    resolver_url: https://doh.test/resolve
  hsts:
    enabled: true
    preload_api: https://preload.test/status
output:
  directory: {root}/output
logging:
  level: DEBUG
  file: {root}/logs/bankgrade.log
"""


@pytest.fixture
def config(tmp_path) -> Config:
    """Config writing everything below a temporary directory."""
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_TEMPLATE.format(root=tmp_path.as_posix()), encoding="utf-8")
    return Config(config_path=str(path))


@pytest.fixture
def report() -> ReportAggregator:
    """In-memory aggregator."""
    return ReportAggregator()


@pytest.fixture
def target() -> Target:
    return Target(country_code="gb", country_name="United Kingdom", name="Example Bank", domain="bank.example")
