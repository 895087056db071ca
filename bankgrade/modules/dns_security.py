"""DNSSEC and CAA checks over DNS-over-HTTPS."""

from typing import Any, Dict, Optional

import dns.exception
import dns.name
import requests

from ..core.target import Target, TerminalResponse
from .base import BaseModule

# A failed DS lookup must not stop the CAA walk (and vice versa)
LOOKUP_ERRORS = (
    requests.exceptions.RequestException,
    ValueError,
    TimeoutError,
    dns.exception.DNSException,
)


class DNSSecurityModule(BaseModule):
    """
    Check DNSSEC delegation and CAA coverage of the final hostname.

    Queries go to a DNS-over-HTTPS resolver speaking the JSON API
    (``Answer``, ``Authority`` and ``Question`` sections).
    """

    name = "dns_security"
    description = "DNSSEC (DS record) and CAA checks via DNS-over-HTTPS"

    def __init__(self, *args, session: Optional[requests.Session] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/dns-json",
            "User-Agent": self.config.user_agent,
        })

    @property
    def resolver_url(self) -> str:
        return self.get_setting("resolver_url", "https://dns.google/resolve")

    def execute(self, target: Target, response: TerminalResponse) -> None:
        host = response.hostname

        self.record(target, "DNS Security Extensions", False)
        self.record(target, "Certification Authority Authorization", False)

        try:
            if self.has_ds_record(host):
                self.record(target, "DNS Security Extensions", True)
        except LOOKUP_ERRORS as e:
            self.logger.warning(f"DS query for {host} failed: {e}")

        try:
            if self.has_caa_record(host):
                self.record(target, "Certification Authority Authorization", True)
        except LOOKUP_ERRORS as e:
            self.logger.warning(f"CAA lookup for {host} failed: {e}")

    def query(self, name: str, record_type: str) -> Dict[str, Any]:
        """
        Resolve one record type through the DoH resolver.

        Raises:
            requests.exceptions.RequestException: On transport or HTTP errors
            ValueError: If the resolver does not answer with a JSON object
            TimeoutError: If no DoH rate limit token became available
        """
        self.rate_limit("doh")
        response = self.session.get(
            self.resolver_url,
            params={"name": name, "type": record_type},
            timeout=self.timeout,
        )
        response.raise_for_status()
        answer = response.json()
        if not isinstance(answer, dict):
            raise ValueError(f"Unexpected DoH answer for {name} {record_type}: {answer!r}")
        return answer

    def has_ds_record(self, host: str) -> bool:
        answer = self.query(host, "DS")
        return bool(answer.get("Answer"))

    def has_caa_record(self, host: str) -> bool:
        """
        Walk up the DNS tree until a CAA record set is found.

        Each step moves to a strict ancestor of the queried name, so the walk
        ends after at most one query per label.
        """
        current = dns.name.from_text(host)

        for _ in range(len(current.labels)):
            queried = current.to_text(omit_final_dot=True)
            answer = self.query(queried, "CAA")
            if answer.get("Answer"):
                self.logger.debug(f"CAA record found at {queried} for {host}")
                return True

            parent = self._parent(current, answer)
            if parent is None:
                break
            current = parent

        return False

    @staticmethod
    def _parent(queried: dns.name.Name, answer: Dict[str, Any]) -> Optional[dns.name.Name]:
        """
        Next name of the CAA walk, or None when no further reduction is possible.

        The owner of the authority record (the enclosing zone) is preferred;
        otherwise the leftmost label is stripped.
        """
        authority = answer.get("Authority") or []
        owner_text = authority[0].get("name") if authority else None

        if owner_text:
            owner = dns.name.from_text(owner_text)
            # The root zone has no CAA records to inherit
            if owner == queried or owner == dns.name.root:
                return None
            if queried.is_subdomain(owner):
                return owner

        # A single label plus the root: its parent would be the root itself
        if len(queried.labels) <= 2:
            return None
        return queried.parent()
