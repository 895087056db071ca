"""Metric taxonomy: every metric a target is graded on, grouped by category."""

from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple, Union

from .errors import UnknownMetricError


# Value of a metric no probe has reported on yet
EMPTY = ""

MetricValue = Union[bool, str]

# Categories in display order, each with its metrics in display order
CATEGORIES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("HTTPS", (
        "Upgrade HTTP",
        "Secure Redirection Chain",
        "Accepts HTTPS",
        "HTTP Strict Transport Security",
        "HSTS Long Length",
        "HSTS Preload",
    )),
    ("TLS", (
        "Strong TLS Supported",
        "TLS 1.3 Enabled",
        "Weak TLS Disabled",
        "Forward Secrecy",
        "Strong Certificate Key",
    )),
    ("DNS", (
        "DNS Security Extensions",
        "Certification Authority Authorization",
    )),
    ("HTTP", (
        "XSS Protection",
        "Framing Protection",
        "MIME Type Sniffing Protection",
        "Referrer Policy",
        "Permissions Policy",
    )),
    ("Miscellaneous Headers", (
        "Server Header",
        "X-Powered-By Header",
        "ASP.NET Version Header",
    )),
)


def _build_index() -> Mapping[str, str]:
    index: Dict[str, str] = {}
    for category, metrics in CATEGORIES:
        for metric in metrics:
            if metric in index:
                raise ValueError(
                    f"Metric '{metric}' registered under both '{index[metric]}' and '{category}'"
                )
            index[metric] = category
    return MappingProxyType(index)


METRICS: Mapping[str, str] = _build_index()


def category_of(metric: str) -> str:
    """Return the category a metric belongs to."""
    try:
        return METRICS[metric]
    except KeyError:
        raise UnknownMetricError(metric) from None


def metric_names() -> List[str]:
    return list(METRICS)


def categories() -> List[str]:
    return [category for category, _ in CATEGORIES]


def empty_entry() -> Dict[str, Dict[str, MetricValue]]:
    """A fresh report entry with every metric set to the empty placeholder."""
    return {
        category: {metric: EMPTY for metric in metrics}
        for category, metrics in CATEGORIES
    }
