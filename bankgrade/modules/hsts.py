"""Strict-Transport-Security and HSTS preload list checks."""

from dataclasses import dataclass
from typing import Optional

import requests

from ..core.target import Target, TerminalResponse
from .base import BaseModule


# Roughly six months
LONG_MAX_AGE_DAYS = 190

SECONDS_PER_DAY = 86400


@dataclass
class HSTSPolicy:
    """Parsed Strict-Transport-Security header."""
    max_age: int = 0
    include_subdomains: bool = False
    preload: bool = False

    @property
    def enabled(self) -> bool:
        return self.max_age > 0


def parse_hsts(value: Optional[str]) -> HSTSPolicy:
    """
    Parse a Strict-Transport-Security value.

    Spaces are removed before splitting on ";". A missing or malformed
    ``max-age`` counts as 0.
    """
    policy = HSTSPolicy()
    if not value:
        return policy

    for directive in value.replace(" ", "").split(";"):
        name, _, argument = directive.partition("=")
        name = name.lower()
        if name == "max-age":
            try:
                policy.max_age = int(argument.strip('"'))
            except ValueError:
                policy.max_age = 0
        elif name == "includesubdomains":
            policy.include_subdomains = True
        elif name == "preload":
            policy.preload = True

    return policy


class HSTSModule(BaseModule):
    """Grade the HSTS header and look up the host on the preload list."""

    name = "hsts"
    description = "Strict-Transport-Security header and preload status"

    def __init__(self, *args, session: Optional[requests.Session] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": self.config.user_agent})

    @property
    def long_max_age(self) -> int:
        """Smallest max-age, in seconds, that counts as a long policy."""
        return int(self.get_setting("long_max_age_days", LONG_MAX_AGE_DAYS)) * SECONDS_PER_DAY

    @property
    def preload_api(self) -> str:
        return self.get_setting("preload_api", "https://hstspreload.org/api/v2/status")

    def execute(self, target: Target, response: TerminalResponse) -> None:
        policy = parse_hsts(response.headers.get("Strict-Transport-Security"))

        self.record(target, "HTTP Strict Transport Security", policy.enabled)
        self.record(target, "HSTS Long Length", policy.enabled and policy.max_age >= self.long_max_age)
        self.record(target, "HSTS Preload", False)

        if policy.enabled and policy.preload:
            try:
                if self.is_preloaded(response.hostname):
                    self.record(target, "HSTS Preload", True)
            except (requests.exceptions.RequestException, ValueError, TimeoutError) as e:
                self.logger.warning(f"Preload status lookup for {response.hostname} failed: {e}")

    def is_preloaded(self, host: str) -> bool:
        """Ask the preload list service whether ``host`` is preloaded."""
        self.rate_limit("hstspreload")
        reply = self.session.get(self.preload_api, params={"domain": host}, timeout=self.timeout)
        reply.raise_for_status()
        answer = reply.json()
        if not isinstance(answer, dict):
            raise ValueError(f"Unexpected preload status for {host}: {answer!r}")
        status = answer.get("status")
        self.logger.debug(f"Preload status for {host}: {status}")
        return status == "preloaded"
