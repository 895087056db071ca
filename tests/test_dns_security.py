"""Tests for the DNSSEC and CAA checks."""

import pytest
import requests

from bankgrade.core.rate_limiter import RateLimiter
from bankgrade.core.target import TerminalResponse
from bankgrade.modules.dns_security import DNSSecurityModule

from fakes import FakeResponse, FakeSession


NO_ANSWER = {"Status": 0}


def doh(zone):
    """
    DoH handler answering from ``zone``: (name, type) -> JSON body.

    Unknown questions get an empty NOERROR answer.
    """
    def handler(url, params=None, **kwargs):
        return FakeResponse(200, json_data=zone.get((params["name"], params["type"]), NO_ANSWER))
    return handler


def caa(name):
    return {"Status": 0, "Answer": [{"name": f"{name}.", "type": 257, "data": '0 issue "letsencrypt.org"'}]}


def authority(owner):
    return {"Status": 0, "Authority": [{"name": owner, "type": 6, "data": "ns1.example. hostmaster.example. 1 2 3 4 5"}]}


@pytest.fixture
def response():
    return TerminalResponse(url="https://www.bank.example/", hostname="www.bank.example", status_code=200)


def make_module(config, report, zone):
    session = FakeSession(doh(zone))
    return DNSSecurityModule(config, report, session=session), session


def queried(session):
    return [(kwargs["params"]["name"], kwargs["params"]["type"]) for _, kwargs in session.calls]


class TestCAAWalk:
    """Test the CAA tree walk."""

    def test_found_on_queried_name(self, config, report):
        module, session = make_module(config, report, {("www.bank.example", "CAA"): caa("www.bank.example")})

        assert module.has_caa_record("www.bank.example") is True
        assert len(session.calls) == 1

    def test_found_on_parent(self, config, report):
        module, session = make_module(config, report, {("bank.example", "CAA"): caa("bank.example")})

        assert module.has_caa_record("www.bank.example") is True
        assert queried(session) == [("www.bank.example", "CAA"), ("bank.example", "CAA")]

    def test_walk_terminates_without_records(self, config, report):
        """Without any answer the walk strips one label per query and stops at the TLD."""
        module, session = make_module(config, report, {})

        assert module.has_caa_record("a.b.c.bank.example") is False
        assert [name for name, _ in queried(session)] == [
            "a.b.c.bank.example", "b.c.bank.example", "c.bank.example", "bank.example", "example",
        ]

    def test_follows_authority_owner(self, config, report):
        """The enclosing zone from the authority section is the next name."""
        module, session = make_module(config, report, {
            ("a.b.c.bank.example", "CAA"): authority("bank.example."),
            ("bank.example", "CAA"): authority("bank.example."),
        })

        assert module.has_caa_record("a.b.c.bank.example") is False
        assert [name for name, _ in queried(session)] == ["a.b.c.bank.example", "bank.example"]

    def test_ignores_unrelated_authority(self, config, report):
        """An owner that is not an ancestor cannot send the walk sideways."""
        module, session = make_module(config, report, {
            ("www.bank.example", "CAA"): authority("evil.example."),
        })

        assert module.has_caa_record("www.bank.example") is False
        assert [name for name, _ in queried(session)] == ["www.bank.example", "bank.example", "example"]

    def test_root_authority_ends_walk(self, config, report):
        module, session = make_module(config, report, {
            ("www.bank.example", "CAA"): authority("."),
        })

        assert module.has_caa_record("www.bank.example") is False
        assert [name for name, _ in queried(session)] == ["www.bank.example"]


class TestDNSSecurityModule:
    """Test recording of DNS metrics."""

    def test_signed_zone_with_caa(self, config, report, target, response):
        module, session = make_module(config, report, {
            ("www.bank.example", "DS"): {"Status": 0, "AD": True, "Answer": [{"name": "www.bank.example.", "type": 43}]},
            ("bank.example", "CAA"): caa("bank.example"),
        })

        assert module.run(target, response) is True

        dns = report.entry("gb", "Example Bank")["DNS"]
        assert dns == {"DNS Security Extensions": True, "Certification Authority Authorization": True}
        assert session.calls[0][0] == "https://doh.test/resolve"

    def test_unsigned_zone_without_caa(self, config, report, target, response):
        module, _ = make_module(config, report, {})

        module.run(target, response)

        dns = report.entry("gb", "Example Bank")["DNS"]
        assert dns == {"DNS Security Extensions": False, "Certification Authority Authorization": False}

    def test_resolver_failure_keeps_defaults(self, config, report, target, response):
        """A resolver outage is logged, not raised."""
        session = FakeSession(lambda url, **kwargs: requests.exceptions.ConnectionError("resolver down"))
        module = DNSSecurityModule(config, report, session=session)

        assert module.run(target, response) is True

        dns = report.entry("gb", "Example Bank")["DNS"]
        assert dns == {"DNS Security Extensions": False, "Certification Authority Authorization": False}

    def test_http_error_keeps_defaults(self, config, report, target, response):
        session = FakeSession(lambda url, **kwargs: FakeResponse(503))
        module = DNSSecurityModule(config, report, session=session)

        assert module.run(target, response) is True
        assert report.entry("gb", "Example Bank")["DNS"]["DNS Security Extensions"] is False

    def test_session_headers(self, config, report):
        _, session = make_module(config, report, {})

        assert session.headers["Accept"] == "application/dns-json"
        assert session.headers["User-Agent"] == "BankGradeSecurity/test"

    def test_non_object_answer_keeps_defaults(self, config, report, target, response):
        """A JSON body that is not an object counts as a failed lookup."""
        session = FakeSession(lambda url, **kwargs: FakeResponse(200, json_data=["unexpected"]))
        module = DNSSecurityModule(config, report, session=session)

        assert module.run(target, response) is True
        assert report.entry("gb", "Example Bank")["DNS"]["DNS Security Extensions"] is False


class ExhaustedOnce(RateLimiter):
    """Limiter whose first DoH token never arrives."""

    def __init__(self):
        super().__init__()
        self.refused = False

    def wait(self, service, timeout=30.0):
        if service == "doh" and not self.refused:
            self.refused = True
            raise TimeoutError(f"Rate limit timeout for {service}")
        super().wait(service, timeout)


class TestLookupIndependence:
    """A failed DS lookup must not cost the target its CAA result."""

    def test_rate_limit_timeout_on_ds(self, config, report, target, response):
        zone = {
            ("www.bank.example", "DS"): {"Status": 0, "Answer": [{"name": "www.bank.example.", "type": 43}]},
            ("www.bank.example", "CAA"): caa("www.bank.example"),
        }
        session = FakeSession(doh(zone))
        module = DNSSecurityModule(config, report, rate_limiter=ExhaustedOnce(), session=session)

        assert module.run(target, response) is True

        dns = report.entry("gb", "Example Bank")["DNS"]
        assert dns == {"DNS Security Extensions": False, "Certification Authority Authorization": True}
        assert queried(session) == [("www.bank.example", "CAA")]

    def test_dns_name_error_on_caa(self, config, report, target):
        """An unparsable hostname fails the walk but keeps the DS result."""
        response = TerminalResponse(url="https://bank.example/", hostname="a..b", status_code=200)
        module, _ = make_module(config, report, {
            ("a..b", "DS"): {"Status": 0, "Answer": [{"name": "a..b.", "type": 43}]},
        })

        assert module.run(target, response) is True

        dns = report.entry("gb", "Example Bank")["DNS"]
        assert dns == {"DNS Security Extensions": True, "Certification Authority Authorization": False}
