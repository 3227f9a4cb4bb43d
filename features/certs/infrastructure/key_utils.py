"""鍵や証明書周りの共通関数"""
from __future__ import annotations

import ipaddress
import re
from typing import Iterable, Protocol

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from features.certs.domain.exceptions import (
    CertificateConfigurationError,
    CertificateParseError,
    CertificateSigningError,
    KeyGenerationError,
)
from features.certs.domain.models import normalize_host

CERTIFICATE_PEM_BLOCK_TYPE = "CERTIFICATE"
PRIVATE_KEY_PEM_BLOCK_TYPE = "RSA PRIVATE KEY"
MINIMUM_RSA_KEY_BITS = 2048

_PEM_HEADER = re.compile(rb"-----BEGIN ([A-Z0-9 ]+)-----")

IPAddressValue = ipaddress.IPv4Address | ipaddress.IPv6Address

_OID_MAP: dict[str, x509.ObjectIdentifier] = {
    "O": NameOID.ORGANIZATION_NAME,
    "OU": NameOID.ORGANIZATIONAL_UNIT_NAME,
    "CN": NameOID.COMMON_NAME,
}


class RandomSource(Protocol):
    """鍵生成とシリアル番号に使う乱数源"""

    def generate_private_key(self, key_bits: int) -> rsa.RSAPrivateKey:
        ...

    def serial_number(self) -> int:
        ...


class SystemRandomSource:
    """OpenSSL/OSの暗号論的乱数を利用する実装"""

    def generate_private_key(self, key_bits: int) -> rsa.RSAPrivateKey:
        if key_bits < MINIMUM_RSA_KEY_BITS:
            raise KeyGenerationError(
                f"RSA key size must be at least {MINIMUM_RSA_KEY_BITS} bits (got {key_bits})"
            )
        try:
            return rsa.generate_private_key(public_exponent=65537, key_size=key_bits)
        except (ValueError, MemoryError) as exc:
            raise KeyGenerationError(str(exc)) from exc

    def serial_number(self) -> int:
        return x509.random_serial_number()


class SubjectBuilder:
    """subject用のビルダー"""

    def __init__(self, subject_dict: dict[str, str] | None) -> None:
        self._subject_dict = subject_dict or {}

    def build(self) -> x509.Name:
        attributes: list[x509.NameAttribute] = []
        for key in ("CN", "OU", "O"):
            value = (self._subject_dict.get(key) or "").strip()
            if not value:
                continue
            try:
                attributes.append(x509.NameAttribute(_OID_MAP[key], value))
            except ValueError as exc:  # cryptographyの制約をドメイン例外として返す
                raise CertificateConfigurationError(
                    f"invalid subject attribute {key}: {exc}"
                ) from exc

        if not attributes:
            raise CertificateConfigurationError("certificate subject is empty")
        return x509.Name(attributes)


def sign_certificate(
    builder: x509.CertificateBuilder, signing_key: rsa.RSAPrivateKey
) -> x509.Certificate:
    """SHA-256で署名する"""

    try:
        return builder.sign(private_key=signing_key, algorithm=hashes.SHA256())
    except (ValueError, TypeError) as exc:
        raise CertificateSigningError(str(exc)) from exc


def serialize_private_key(key: rsa.RSAPrivateKey) -> bytes:
    """PKCS#1 (``RSA PRIVATE KEY``) 形式のPEM"""

    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def serialize_certificate(certificate: x509.Certificate) -> bytes:
    return certificate.public_bytes(serialization.Encoding.PEM)


def _pem_block_type(pem_bytes: bytes) -> str:
    match = _PEM_HEADER.search(pem_bytes or b"")
    if match is None:
        return ""
    return match.group(1).decode("ascii")


def parse_certificate_pem(pem_bytes: bytes) -> x509.Certificate:
    block_type = _pem_block_type(pem_bytes)
    if not block_type:
        raise CertificateParseError("invalid certificate pem encoding")
    if block_type != CERTIFICATE_PEM_BLOCK_TYPE:
        raise CertificateParseError(f"unexpected pem block type {block_type}")
    try:
        return x509.load_pem_x509_certificate(pem_bytes)
    except ValueError as exc:  # noqa: B904
        raise CertificateParseError(f"parse certificate: {exc}") from exc


def parse_rsa_private_key_pem(pem_bytes: bytes) -> rsa.RSAPrivateKey:
    block_type = _pem_block_type(pem_bytes)
    if not block_type:
        raise CertificateParseError("invalid private key pem encoding")
    if block_type != PRIVATE_KEY_PEM_BLOCK_TYPE:
        raise CertificateParseError(f"unexpected pem block type {block_type}")
    try:
        key = serialization.load_pem_private_key(pem_bytes, password=None)
    except (ValueError, TypeError) as exc:  # noqa: B904
        raise CertificateParseError(f"parse private key: {exc}") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise CertificateParseError("private key is not an RSA key")
    return key


def ensure_key_matches_certificate(
    certificate: x509.Certificate, private_key: rsa.RSAPrivateKey
) -> None:
    """証明書の公開鍵と秘密鍵が対応していることを確認"""

    public_key = certificate.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise CertificateParseError("certificate does not carry an RSA public key")
    if public_key.public_numbers() != private_key.public_key().public_numbers():
        raise CertificateParseError("private key does not match certificate")


def is_directly_issued_by(certificate: x509.Certificate, issuer: x509.Certificate) -> bool:
    if certificate.issuer != issuer.subject:
        return False
    try:
        certificate.verify_directly_issued_by(issuer)
    except (ValueError, TypeError, InvalidSignature):
        return False
    return True


def classify_hosts(hosts: Iterable[str]) -> tuple[list[str], list[IPAddressValue]]:
    """ホストをDNS名とIPアドレスに振り分ける"""

    dns_names: list[str] = []
    ip_addresses: list[IPAddressValue] = []
    for host in hosts:
        normalized = normalize_host(host)
        try:
            ip_addresses.append(ipaddress.ip_address(normalized))
        except ValueError:
            dns_names.append(normalized)
    return dns_names, ip_addresses


def build_subject_alternative_name(hosts: Iterable[str]) -> x509.SubjectAlternativeName:
    dns_names, ip_addresses = classify_hosts(hosts)
    general_names: list[x509.GeneralName] = [x509.DNSName(name) for name in dns_names]
    general_names.extend(x509.IPAddress(address) for address in ip_addresses)
    return x509.SubjectAlternativeName(general_names)


def certificate_hosts(certificate: x509.Certificate) -> frozenset[str]:
    """証明書のSANに含まれるDNS名とIPアドレスを正規化して返す"""

    try:
        extension = certificate.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return frozenset()
    names = extension.value.get_values_for_type(x509.DNSName)
    addresses = extension.value.get_values_for_type(x509.IPAddress)
    return frozenset(
        [normalize_host(name) for name in names] + [str(address) for address in addresses]
    )


__all__ = [
    "CERTIFICATE_PEM_BLOCK_TYPE",
    "PRIVATE_KEY_PEM_BLOCK_TYPE",
    "RandomSource",
    "SubjectBuilder",
    "SystemRandomSource",
    "build_subject_alternative_name",
    "certificate_hosts",
    "classify_hosts",
    "ensure_key_matches_certificate",
    "is_directly_issued_by",
    "parse_certificate_pem",
    "parse_rsa_private_key_pem",
    "serialize_certificate",
    "serialize_private_key",
    "sign_certificate",
]
