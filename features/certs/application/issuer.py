"""CAで署名したサーバー(リーフ)証明書の発行"""
from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Optional

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from core.context import OperationContext
from core.time import Clock, ensure_aware
from features.certs.domain.exceptions import (
    CertificateConfigurationError,
    CertificateParseError,
    OperationCancelledError,
    ServerCertificateError,
)
from features.certs.domain.models import (
    CertificateAuthorityMaterial,
    ServerCertificateConfiguration,
    ServerCertificateMaterial,
    ServerCertificateRequest,
)
from features.certs.infrastructure.filesystem import FileSystem
from features.certs.infrastructure.key_utils import (
    RandomSource,
    build_subject_alternative_name,
    certificate_hosts,
    ensure_key_matches_certificate,
    is_directly_issued_by,
    parse_certificate_pem,
    parse_rsa_private_key_pem,
    serialize_certificate,
    serialize_private_key,
    sign_certificate,
)

logger = logging.getLogger("ghttp.certs.issuer")

_DIRECTORY_PERMISSIONS = 0o700


class ServerCertificateIssuer:
    """要求されたホスト向けのサーバー証明書を再利用または再発行する"""

    def __init__(
        self,
        file_system: FileSystem,
        clock: Clock,
        random_source: RandomSource,
        configuration: ServerCertificateConfiguration,
    ) -> None:
        self._file_system = file_system
        self._clock = clock
        self._random_source = random_source
        self.configuration = configuration

    def issue_server_certificate(
        self,
        context: Optional[OperationContext],
        certificate_authority: CertificateAuthorityMaterial,
        request: ServerCertificateRequest,
    ) -> ServerCertificateMaterial:
        hosts = request.normalized_hosts()
        if not hosts:
            raise CertificateConfigurationError("at least one host must be specified")
        if context is not None and context.cancelled:
            raise OperationCancelledError("issue server certificate: context cancelled")

        now = ensure_aware(self._clock.now())
        existing, reason = self._load_reusable(certificate_authority, request, hosts, now)
        if existing is not None:
            logger.debug(
                "Reusing server certificate",
                extra={
                    "event": "certs.issuer.reused",
                    "serial_number": existing.certificate.serial_number,
                },
            )
            return existing

        logger.info(
            "Issuing server certificate",
            extra={"event": "certs.issuer.generate", "reason": reason, "hosts": list(hosts)},
        )
        return self._issue(certificate_authority, request, hosts, now)

    # ------------------------------------------------------------------
    def _load_reusable(
        self,
        certificate_authority: CertificateAuthorityMaterial,
        request: ServerCertificateRequest,
        hosts: tuple[str, ...],
        now: datetime,
    ) -> tuple[Optional[ServerCertificateMaterial], Optional[str]]:
        """再利用できる既存証明書、または再発行が必要な理由を返す"""

        try:
            certificate_pem = self._file_system.read_file(request.certificate_path)
            private_key_pem = self._file_system.read_file(request.private_key_path)
            certificate = parse_certificate_pem(certificate_pem)
            private_key = parse_rsa_private_key_pem(private_key_pem)
            ensure_key_matches_certificate(certificate, private_key)
        except (CertificateParseError, OSError) as exc:
            return None, str(exc) or type(exc).__name__

        embedded_hosts = certificate_hosts(certificate)
        if embedded_hosts != frozenset(hosts):
            return None, f"host set changed from {sorted(embedded_hosts)} to {sorted(hosts)}"
        if not is_directly_issued_by(certificate, certificate_authority.certificate):
            return None, "certificate was not issued by the current certificate authority"
        not_after = certificate.not_valid_after_utc
        if not now + self.configuration.renewal_window < not_after:
            return None, f"certificate expires at {not_after.isoformat()} (within renewal window)"

        existing = ServerCertificateMaterial(
            certificate=certificate,
            certificate_pem=certificate_pem,
            private_key_pem=private_key_pem,
            certificate_path=request.certificate_path,
            private_key_path=request.private_key_path,
            hosts=hosts,
        )
        return existing, None

    def _issue(
        self,
        certificate_authority: CertificateAuthorityMaterial,
        request: ServerCertificateRequest,
        hosts: tuple[str, ...],
        now: datetime,
    ) -> ServerCertificateMaterial:
        configuration = self.configuration
        try:
            private_key = self._random_source.generate_private_key(configuration.private_key_bit_size)
            serial_number = self._random_source.serial_number()
        except Exception as exc:  # noqa: BLE001 - cryptographyからの例外のラップ
            raise ServerCertificateError(f"generate server key: {exc}") from exc

        ca_certificate = certificate_authority.certificate
        try:
            public_key = private_key.public_key()
            builder = (
                x509.CertificateBuilder()
                .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, hosts[0][:64])]))
                .issuer_name(ca_certificate.subject)
                .public_key(public_key)
                .serial_number(serial_number)
                .not_valid_before(now)
                .not_valid_after(now + configuration.certificate_validity)
                .add_extension(build_subject_alternative_name(hosts), critical=False)
                .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
                .add_extension(
                    x509.KeyUsage(
                        digital_signature=True,
                        content_commitment=False,
                        key_encipherment=True,
                        data_encipherment=False,
                        key_agreement=False,
                        key_cert_sign=False,
                        crl_sign=False,
                        encipher_only=False,
                        decipher_only=False,
                    ),
                    critical=True,
                )
                .add_extension(
                    x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]),
                    critical=False,
                )
                .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
                .add_extension(
                    x509.AuthorityKeyIdentifier.from_issuer_public_key(
                        certificate_authority.private_key.public_key()
                    ),
                    critical=False,
                )
            )
            certificate = sign_certificate(builder, certificate_authority.private_key)
        except Exception as exc:  # noqa: BLE001
            raise ServerCertificateError(f"sign server certificate: {exc}") from exc

        certificate_pem = serialize_certificate(certificate)
        private_key_pem = serialize_private_key(private_key)

        try:
            for path in (request.certificate_path, request.private_key_path):
                directory = os.path.dirname(os.path.abspath(path))
                if not self._file_system.file_exists(directory):
                    self._file_system.ensure_directory(directory, _DIRECTORY_PERMISSIONS)
            self._file_system.write_file(
                request.private_key_path,
                private_key_pem,
                configuration.private_key_file_permissions,
            )
            self._file_system.write_file(
                request.certificate_path,
                certificate_pem,
                configuration.certificate_file_permissions,
            )
        except OSError as exc:
            raise ServerCertificateError(f"write server certificate: {exc}") from exc

        return ServerCertificateMaterial(
            certificate=certificate,
            certificate_pem=certificate_pem,
            private_key_pem=private_key_pem,
            certificate_path=request.certificate_path,
            private_key_path=request.private_key_path,
            hosts=hosts,
        )


__all__ = ["ServerCertificateIssuer"]
