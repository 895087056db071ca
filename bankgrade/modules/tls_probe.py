"""TLS protocol capability probing."""

import socket
import ssl
from dataclasses import dataclass
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa

from ..core.target import Target, TerminalResponse
from .base import BaseModule


@dataclass
class HandshakeResult:
    """What a successful handshake negotiated."""
    version: Optional[str]
    cipher: Optional[str]
    certificate: Optional[bytes] = None


# Minimum recommended key sizes
MIN_KEY_SIZES = {
    "RSA": 2048,
    "DSA": 2048,
    "EC": 256,
}

FORWARD_SECRET_PREFIXES = ("DHE", "ECDHE")


def is_forward_secret(result: HandshakeResult) -> bool:
    """Ephemeral key exchange: (EC)DHE suites, or any TLS 1.3 suite."""
    if result.version == "TLSv1.3":
        return True
    return bool(result.cipher) and result.cipher.startswith(FORWARD_SECRET_PREFIXES)


def certificate_key_is_strong(der: bytes) -> bool:
    """Check the public key of a DER certificate against MIN_KEY_SIZES."""
    public_key = x509.load_der_x509_certificate(der).public_key()

    if isinstance(public_key, rsa.RSAPublicKey):
        return public_key.key_size >= MIN_KEY_SIZES["RSA"]
    if isinstance(public_key, dsa.DSAPublicKey):
        return public_key.key_size >= MIN_KEY_SIZES["DSA"]
    if isinstance(public_key, ec.EllipticCurvePublicKey):
        return public_key.curve.key_size >= MIN_KEY_SIZES["EC"]
    return isinstance(public_key, (ed25519.Ed25519PublicKey, ed448.Ed448PublicKey))


class TLSProbeModule(BaseModule):
    """
    Classify TLS protocol support with raw handshakes on port 443.

    Three independent handshakes are attempted: modern (TLS 1.2 and up),
    legacy (TLS 1.0-1.1) and SSLv3. A handshake that fails, including one the
    local OpenSSL refuses to attempt, leaves the corresponding default in
    place, which is the intended signal.
    """

    name = "tls_probe"
    description = "Probe supported TLS versions, forward secrecy and key strength"

    MODERN = (ssl.TLSVersion.TLSv1_2, ssl.TLSVersion.MAXIMUM_SUPPORTED)
    LEGACY = (ssl.TLSVersion.TLSv1, ssl.TLSVersion.TLSv1_1)
    SSLV3 = (ssl.TLSVersion.SSLv3, ssl.TLSVersion.SSLv3)

    @property
    def port(self) -> int:
        return int(self.get_setting("port", 443))

    def execute(self, target: Target, response: TerminalResponse) -> None:
        host = response.hostname

        self.record(target, "Forward Secrecy", False)
        self.record(target, "Strong TLS Supported", False)
        self.record(target, "TLS 1.3 Enabled", False)
        self.record(target, "Weak TLS Disabled", True)
        self.record(target, "Strong Certificate Key", False)

        modern = self._probe(host, *self.MODERN)
        if modern is not None:
            self.record(target, "Strong TLS Supported", True)
            # The modern window negotiates the highest version both sides share
            if modern.version == "TLSv1.3":
                self.record(target, "TLS 1.3 Enabled", True)
            if is_forward_secret(modern):
                self.record(target, "Forward Secrecy", True)
            if modern.certificate and self._key_is_strong(modern.certificate):
                self.record(target, "Strong Certificate Key", True)

        if self._probe(host, *self.LEGACY) is not None:
            self.record(target, "Weak TLS Disabled", False)

        if self._probe(host, *self.SSLV3) is not None:
            self.record(target, "Weak TLS Disabled", False)

    def _probe(
        self,
        host: str,
        minimum: ssl.TLSVersion,
        maximum: ssl.TLSVersion,
    ) -> Optional[HandshakeResult]:
        try:
            result = self._handshake(host, minimum, maximum)
        except (OSError, ValueError) as e:
            self.logger.debug(f"{minimum.name}-{maximum.name} handshake with {host} failed: {e}")
            return None

        self.logger.debug(f"{host} negotiated {result.version} with {result.cipher}")
        return result

    def _handshake(
        self,
        host: str,
        minimum: ssl.TLSVersion,
        maximum: ssl.TLSVersion,
    ) -> HandshakeResult:
        """Open, evaluate and close one TLS connection under a version window."""
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE  # grading protocols, not the chain
        if minimum < ssl.TLSVersion.TLSv1_2:
            # OpenSSL refuses pre-1.2 protocols above security level 0
            context.set_ciphers("ALL:@SECLEVEL=0")
        context.minimum_version = minimum
        context.maximum_version = maximum

        with socket.create_connection((host, self.port), timeout=self.timeout) as sock:
            with context.wrap_socket(sock, server_hostname=host) as ssock:
                cipher = ssock.cipher()
                return HandshakeResult(
                    version=ssock.version(),
                    cipher=cipher[0] if cipher else None,
                    certificate=ssock.getpeercert(binary_form=True),
                )

    def _key_is_strong(self, der: bytes) -> bool:
        try:
            return certificate_key_is_strong(der)
        except ValueError as e:
            self.logger.debug(f"Could not parse peer certificate: {e}")
            return False
