"""Response header and Content-Security-Policy analysis."""

from typing import Dict, Iterable, Mapping

from requests.structures import CaseInsensitiveDict

from ..core.target import Target, TerminalResponse
from .base import BaseModule


FRAME_OPTIONS_DIRECTIVES = ("deny", "sameorigin", "allow-from")

# Sources that allow framing by any origin
WILDCARD_SOURCES = frozenset({"*", "http:", "https:", "http://*", "https://*"})
FRAME_OPTIONS_WILDCARDS = frozenset({"*", "http://*", "https://*"})

UNSAFE_INLINE = "'unsafe-inline'"


def parse_csp(policy: str) -> Dict[str, str]:
    """
    Split a Content-Security-Policy into directive name -> source list.

    Directive names are lower-cased; the first occurrence of a directive wins,
    as browsers ignore repeated directives.
    """
    directives: Dict[str, str] = {}
    for part in policy.split(";"):
        # Any whitespace separates the name from its sources
        words = part.split(None, 1)
        if not words:
            continue
        name = words[0].lower()
        if name not in directives:
            directives[name] = words[1].strip() if len(words) > 1 else ""
    return directives


def is_unsafe_source_list(sources: str, check_inline: bool = True) -> bool:
    """True if a source list allows any host, any scheme or inline scripts."""
    tokens = sources.lower().split()
    if check_inline and UNSAFE_INLINE in tokens:
        return True
    return any(token in WILDCARD_SOURCES for token in tokens)


def csp_verdicts(policy: str) -> Dict[str, bool]:
    """XSS and framing protection proven by a CSP value alone."""
    directives = parse_csp(policy)

    script_policy = directives.get("script-src", directives.get("default-src"))
    xss = script_policy is not None and not is_unsafe_source_list(script_policy)

    ancestors = directives.get("frame-ancestors")
    framing = ancestors is not None and not is_unsafe_source_list(ancestors, check_inline=False)

    return {"XSS Protection": xss, "Framing Protection": framing}


def frame_options_protects(value: str) -> bool:
    value = value.lower()
    if not any(directive in value for directive in FRAME_OPTIONS_DIRECTIVES):
        return False
    return not any(token in FRAME_OPTIONS_WILDCARDS for token in value.split())


def referrer_policy_protects(value: str) -> bool:
    policies = [p.strip().lower() for p in value.split(",") if p.strip()]
    # The last recognised policy wins; unsafe-url leaks full URLs everywhere
    return bool(policies) and policies[-1] != "unsafe-url"


def analyze_headers(headers: Mapping[str, str]) -> Dict[str, bool]:
    """
    Interpret security headers of a response.

    Args:
        headers: Response headers (any case)

    Returns:
        Metric name -> verdict for the HTTP category
    """
    headers = CaseInsensitiveDict(headers)

    verdicts = {
        "XSS Protection": headers.get("X-XSS-Protection", "").strip().startswith("1"),
        "Framing Protection": frame_options_protects(headers.get("X-Frame-Options", "")),
        "MIME Type Sniffing Protection": "nosniff" in headers.get("X-Content-Type-Options", "").lower(),
        "Referrer Policy": referrer_policy_protects(headers.get("Referrer-Policy", "")),
        "Permissions Policy": bool(
            headers.get("Permissions-Policy", "").strip() or headers.get("Feature-Policy", "").strip()
        ),
    }

    policy = headers.get("Content-Security-Policy")
    if policy is not None:
        for metric, safe in csp_verdicts(policy).items():
            verdicts[metric] = verdicts[metric] or safe

    return verdicts


def _first(headers: Mapping[str, str], names: Iterable[str]) -> str:
    for name in names:
        value = headers.get(name)
        if value:
            return value
    return ""


def miscellaneous_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Informational headers disclosing the server stack, when present."""
    headers = CaseInsensitiveDict(headers)
    found = {
        "Server Header": _first(headers, ("Server",)),
        "X-Powered-By Header": _first(headers, ("X-Powered-By",)),
        "ASP.NET Version Header": _first(headers, ("X-AspNet-Version", "X-AspNetMvc-Version")),
    }
    return {metric: value for metric, value in found.items() if value}


class HeaderAnalysisModule(BaseModule):
    """Grade XSS, framing, MIME sniffing, referrer and permissions protections."""

    name = "header_analysis"
    description = "Interpret security headers and Content-Security-Policy"

    DEFAULTS = (
        "XSS Protection",
        "Framing Protection",
        "MIME Type Sniffing Protection",
        "Referrer Policy",
        "Permissions Policy",
    )

    def execute(self, target: Target, response: TerminalResponse) -> None:
        for metric in self.DEFAULTS:
            self.record(target, metric, False)

        for metric, value in analyze_headers(response.headers).items():
            if value:
                self.record(target, metric, True)
