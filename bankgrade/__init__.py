"""
Bank Grade Security - Website Security Scanner
==============================================

Probes the websites of financial institutions over HTTP(S), TLS and DNS and
produces a machine-readable report of pass/fail security metrics.
"""

__version__ = "1.0.0"
__author__ = "Security Team"
