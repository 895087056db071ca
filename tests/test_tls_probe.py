"""Tests for TLS capability probing."""

import ssl
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

from bankgrade.core.target import TerminalResponse
from bankgrade.modules.tls_probe import (
    HandshakeResult,
    TLSProbeModule,
    certificate_key_is_strong,
    is_forward_secret,
)


def make_certificate(key) -> bytes:
    """Self-signed DER certificate for ``key``."""
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "bank.example")])
    now = datetime.now(timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    return certificate.public_bytes(serialization.Encoding.DER)


@pytest.fixture(scope="module")
def strong_certificate():
    return make_certificate(rsa.generate_private_key(public_exponent=65537, key_size=2048))


@pytest.fixture(scope="module")
def weak_certificate():
    return make_certificate(rsa.generate_private_key(public_exponent=65537, key_size=1024))


@pytest.fixture
def response():
    return TerminalResponse(url="https://www.bank.example/", hostname="www.bank.example", status_code=200)


def fake_handshakes(results):
    """
    Replacement for TLSProbeModule._handshake.

    ``results`` maps the minimum version of a probe window to its outcome;
    windows without an entry fail like a refused handshake.
    """
    calls = []

    def handshake(host, minimum, maximum):
        calls.append((host, minimum, maximum))
        outcome = results.get(minimum)
        if outcome is None:
            raise ssl.SSLError("sslv3 alert handshake failure")
        return outcome

    handshake.calls = calls
    return handshake


class TestForwardSecrecy:
    """Test forward secrecy classification."""

    @pytest.mark.parametrize("version,cipher,expected", [
        ("TLSv1.2", "ECDHE-RSA-AES128-GCM-SHA256", True),
        ("TLSv1.2", "DHE-RSA-AES256-GCM-SHA384", True),
        ("TLSv1.2", "AES128-GCM-SHA256", False),
        ("TLSv1.3", "TLS_AES_256_GCM_SHA384", True),
        ("TLSv1.2", None, False),
    ])
    def test_cipher_classification(self, version, cipher, expected):
        assert is_forward_secret(HandshakeResult(version=version, cipher=cipher)) is expected


class TestCertificateKey:
    """Test certificate key strength."""

    def test_rsa_2048_is_strong(self, strong_certificate):
        assert certificate_key_is_strong(strong_certificate) is True

    def test_rsa_1024_is_weak(self, weak_certificate):
        assert certificate_key_is_strong(weak_certificate) is False

    def test_ec_p256_is_strong(self):
        der = make_certificate(ec.generate_private_key(ec.SECP256R1()))
        assert certificate_key_is_strong(der) is True

    def test_garbage_raises_value_error(self):
        with pytest.raises(ValueError):
            certificate_key_is_strong(b"not a certificate")


class TestTLSProbeModule:
    """Test probe classification with simulated handshakes."""

    def test_modern_only(self, config, report, target, response, monkeypatch, strong_certificate):
        """A modern-only server gets every TLS metric."""
        module = TLSProbeModule(config, report)
        handshake = fake_handshakes({
            ssl.TLSVersion.TLSv1_2: HandshakeResult("TLSv1.3", "TLS_AES_128_GCM_SHA256", strong_certificate),
        })
        monkeypatch.setattr(module, "_handshake", handshake)

        assert module.run(target, response) is True

        tls = report.entry("gb", "Example Bank")["TLS"]
        assert tls == {
            "Strong TLS Supported": True,
            "TLS 1.3 Enabled": True,
            "Weak TLS Disabled": True,
            "Forward Secrecy": True,
            "Strong Certificate Key": True,
        }
        assert [call[1] for call in handshake.calls] == [
            ssl.TLSVersion.TLSv1_2, ssl.TLSVersion.TLSv1, ssl.TLSVersion.SSLv3,
        ]
        assert all(call[0] == "www.bank.example" for call in handshake.calls)

    def test_legacy_accepted(self, config, report, target, response, monkeypatch, weak_certificate):
        """Accepting TLS 1.0/1.1 fails Weak TLS Disabled."""
        module = TLSProbeModule(config, report)
        monkeypatch.setattr(module, "_handshake", fake_handshakes({
            ssl.TLSVersion.TLSv1_2: HandshakeResult("TLSv1.2", "AES256-SHA", weak_certificate),
            ssl.TLSVersion.TLSv1: HandshakeResult("TLSv1", "AES256-SHA"),
        }))

        module.run(target, response)

        tls = report.entry("gb", "Example Bank")["TLS"]
        assert tls["Strong TLS Supported"] is True
        assert tls["TLS 1.3 Enabled"] is False
        assert tls["Weak TLS Disabled"] is False
        assert tls["Forward Secrecy"] is False
        assert tls["Strong Certificate Key"] is False

    def test_sslv3_accepted(self, config, report, target, response, monkeypatch):
        module = TLSProbeModule(config, report)
        monkeypatch.setattr(module, "_handshake", fake_handshakes({
            ssl.TLSVersion.SSLv3: HandshakeResult("SSLv3", "DES-CBC3-SHA"),
        }))

        module.run(target, response)

        tls = report.entry("gb", "Example Bank")["TLS"]
        assert tls["Strong TLS Supported"] is False
        assert tls["Weak TLS Disabled"] is False

    def test_unreachable_keeps_defaults(self, config, report, target, response, monkeypatch):
        """Every handshake failing leaves the pessimistic defaults."""
        module = TLSProbeModule(config, report)

        def refused(host, minimum, maximum):
            raise ConnectionRefusedError("connection refused")

        monkeypatch.setattr(module, "_handshake", refused)

        assert module.run(target, response) is True

        tls = report.entry("gb", "Example Bank")["TLS"]
        assert tls == {
            "Strong TLS Supported": False,
            "TLS 1.3 Enabled": False,
            "Weak TLS Disabled": True,
            "Forward Secrecy": False,
            "Strong Certificate Key": False,
        }

    def test_unparseable_certificate(self, config, report, target, response, monkeypatch):
        module = TLSProbeModule(config, report)
        monkeypatch.setattr(module, "_handshake", fake_handshakes({
            ssl.TLSVersion.TLSv1_2: HandshakeResult("TLSv1.2", "ECDHE-RSA-AES128-GCM-SHA256", b"\x00\x01"),
        }))

        module.run(target, response)

        assert report.entry("gb", "Example Bank")["TLS"]["Strong Certificate Key"] is False

    def test_port_setting(self, config, report):
        assert TLSProbeModule(config, report).port == 443
