"""証明書機能で利用するドメインモデル"""
from __future__ import annotations

import ipaddress
import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Iterable

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa


def normalize_host(raw_host: str) -> str:
    """ホスト文字列を比較用の正規形に変換する

    IPアドレスは ``ipaddress`` の文字列表現 (IPv6のゾーンIDは除去)、
    DNS名は小文字化する。
    """

    host = (raw_host or "").strip()
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return host.lower().rstrip(".")
    # SANに格納できるのはアドレス部分のみ
    return str(ipaddress.ip_address(address.packed))


def normalize_hosts(hosts: Iterable[str]) -> tuple[str, ...]:
    """重複と空文字を除いた正規化済みホストを初出順で返す"""

    seen: set[str] = set()
    result: list[str] = []
    for host in hosts:
        if not host or not host.strip():
            continue
        normalized = normalize_host(host)
        if normalized in seen:
            continue
        seen.add(normalized)
        result.append(normalized)
    return tuple(result)


@dataclass(frozen=True, slots=True)
class CertificateAuthorityConfiguration:
    """ルートCAの生成・保存に関する設定"""

    directory_path: str
    certificate_file_name: str
    private_key_file_name: str
    directory_permissions: int
    certificate_file_permissions: int
    private_key_file_permissions: int
    rsa_key_bit_size: int
    certificate_validity: timedelta
    renewal_window: timedelta
    subject_common_name: str
    subject_organizational_unit: str = ""
    subject_organization: str = ""

    @property
    def certificate_path(self) -> str:
        return os.path.join(self.directory_path, self.certificate_file_name)

    @property
    def private_key_path(self) -> str:
        return os.path.join(self.directory_path, self.private_key_file_name)


@dataclass(frozen=True, slots=True)
class CertificateAuthorityMaterial:
    """読み込み済み、または生成直後のCA証明書と秘密鍵"""

    certificate: x509.Certificate
    private_key: rsa.RSAPrivateKey
    certificate_pem: bytes
    private_key_pem: bytes


@dataclass(frozen=True, slots=True)
class ServerCertificateConfiguration:
    """サーバー証明書の発行設定"""

    certificate_validity: timedelta
    renewal_window: timedelta
    private_key_bit_size: int
    certificate_file_permissions: int
    private_key_file_permissions: int


@dataclass(frozen=True, slots=True)
class ServerCertificateRequest:
    """発行対象のホストと出力先"""

    hosts: tuple[str, ...]
    certificate_path: str
    private_key_path: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "hosts", tuple(self.hosts))

    def normalized_hosts(self) -> tuple[str, ...]:
        return normalize_hosts(self.hosts)


@dataclass(frozen=True, slots=True)
class ServerCertificateMaterial:
    """TLSハンドシェイクでそのまま利用できるサーバー証明書"""

    certificate: x509.Certificate
    certificate_pem: bytes
    private_key_pem: bytes
    certificate_path: str = ""
    private_key_path: str = ""
    hosts: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class TrustStoreConfiguration:
    """OSトラストストアへのインストール設定"""

    certificate_common_name: str
    macos_keychain_path: str = ""
    linux_certificate_destination_path: str = ""
    linux_certificate_file_permissions: int = 0
    windows_certificate_store_name: str = ""
