"""Probes and analyzers for Bank Grade Security."""

from .base import BaseModule
from .header_analysis import HeaderAnalysisModule, analyze_headers, parse_csp
from .tls_probe import TLSProbeModule
from .dns_security import DNSSecurityModule
from .hsts import HSTSModule, parse_hsts
from .redirects import RedirectChainFollower, resolve_location

__all__ = [
    "BaseModule",
    "HeaderAnalysisModule",
    "analyze_headers",
    "parse_csp",
    "TLSProbeModule",
    "DNSSecurityModule",
    "HSTSModule",
    "parse_hsts",
    "RedirectChainFollower",
    "resolve_location",
]
