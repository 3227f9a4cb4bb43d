"""開発用ルートCAの確保とローテーション"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from cryptography import x509

from core.context import OperationContext
from core.time import Clock, ensure_aware
from features.certs.domain.exceptions import (
    CertificateAuthorityError,
    CertificateParseError,
    OperationCancelledError,
)
from features.certs.domain.models import (
    CertificateAuthorityConfiguration,
    CertificateAuthorityMaterial,
)
from features.certs.infrastructure.filesystem import FileSystem
from features.certs.infrastructure.key_utils import (
    RandomSource,
    SubjectBuilder,
    ensure_key_matches_certificate,
    parse_certificate_pem,
    parse_rsa_private_key_pem,
    serialize_certificate,
    serialize_private_key,
    sign_certificate,
)

logger = logging.getLogger("ghttp.certs.authority")


class CertificateAuthorityManager:
    """自己署名ルートCAを読み込み、必要に応じて再生成する

    既存のCAが読み込めて有効期限までの残りが更新猶予期間より長い限り、
    ファイルへの書き込みも乱数の消費も行わずにそのまま返す。
    """

    def __init__(
        self,
        file_system: FileSystem,
        clock: Clock,
        random_source: RandomSource,
        configuration: CertificateAuthorityConfiguration,
    ) -> None:
        self._file_system = file_system
        self._clock = clock
        self._random_source = random_source
        self.configuration = configuration

    def ensure_certificate_authority(
        self, context: Optional[OperationContext] = None
    ) -> CertificateAuthorityMaterial:
        if context is not None and context.cancelled:
            raise OperationCancelledError("ensure certificate authority: context cancelled")

        now = ensure_aware(self._clock.now())
        try:
            material = self._load_existing()
        except (CertificateParseError, OSError) as exc:
            reason = str(exc) or type(exc).__name__
        else:
            not_after = material.certificate.not_valid_after_utc
            if now + self.configuration.renewal_window < not_after:
                logger.debug(
                    "Reusing certificate authority",
                    extra={
                        "event": "certs.authority.reused",
                        "serial_number": material.certificate.serial_number,
                    },
                )
                return material
            reason = f"certificate expires at {not_after.isoformat()} (within renewal window)"

        logger.info(
            "Generating certificate authority",
            extra={
                "event": "certs.authority.generate",
                "reason": reason,
                "certificate_directory": self.configuration.directory_path,
            },
        )
        return self._generate(now)

    # ------------------------------------------------------------------
    def _load_existing(self) -> CertificateAuthorityMaterial:
        certificate_pem = self._file_system.read_file(self.configuration.certificate_path)
        private_key_pem = self._file_system.read_file(self.configuration.private_key_path)
        certificate = parse_certificate_pem(certificate_pem)
        private_key = parse_rsa_private_key_pem(private_key_pem)
        ensure_key_matches_certificate(certificate, private_key)
        try:
            constraints = certificate.extensions.get_extension_for_class(x509.BasicConstraints).value
        except x509.ExtensionNotFound:
            raise CertificateParseError("stored certificate has no basic constraints") from None
        if not constraints.ca:
            raise CertificateParseError("stored certificate is not a certificate authority")
        return CertificateAuthorityMaterial(
            certificate=certificate,
            private_key=private_key,
            certificate_pem=certificate_pem,
            private_key_pem=private_key_pem,
        )

    def _generate(self, now: datetime) -> CertificateAuthorityMaterial:
        configuration = self.configuration
        try:
            self._file_system.ensure_directory(
                configuration.directory_path, configuration.directory_permissions
            )
        except OSError as exc:
            raise CertificateAuthorityError(
                f"create certificate directory {configuration.directory_path}: {exc}"
            ) from exc

        try:
            private_key = self._random_source.generate_private_key(configuration.rsa_key_bit_size)
            serial_number = self._random_source.serial_number()
        except Exception as exc:  # noqa: BLE001 - cryptographyからの例外のラップ
            raise CertificateAuthorityError(f"generate certificate authority key: {exc}") from exc

        try:
            subject = SubjectBuilder(
                {
                    "CN": configuration.subject_common_name,
                    "OU": configuration.subject_organizational_unit,
                    "O": configuration.subject_organization,
                }
            ).build()
            public_key = private_key.public_key()
            builder = (
                x509.CertificateBuilder()
                .subject_name(subject)
                .issuer_name(subject)
                .public_key(public_key)
                .serial_number(serial_number)
                .not_valid_before(now)
                .not_valid_after(now + configuration.certificate_validity)
                .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
                .add_extension(
                    x509.KeyUsage(
                        digital_signature=True,
                        content_commitment=False,
                        key_encipherment=False,
                        data_encipherment=False,
                        key_agreement=False,
                        key_cert_sign=True,
                        crl_sign=True,
                        encipher_only=False,
                        decipher_only=False,
                    ),
                    critical=True,
                )
                .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
            )
            certificate = sign_certificate(builder, private_key)
        except Exception as exc:  # noqa: BLE001
            raise CertificateAuthorityError(f"sign certificate authority: {exc}") from exc

        certificate_pem = serialize_certificate(certificate)
        private_key_pem = serialize_private_key(private_key)

        # 鍵を先に書き込み、証明書単体が残らないようにする
        try:
            self._file_system.write_file(
                configuration.private_key_path,
                private_key_pem,
                configuration.private_key_file_permissions,
            )
            self._file_system.write_file(
                configuration.certificate_path,
                certificate_pem,
                configuration.certificate_file_permissions,
            )
        except OSError as exc:
            raise CertificateAuthorityError(f"write certificate authority: {exc}") from exc

        return CertificateAuthorityMaterial(
            certificate=certificate,
            private_key=private_key,
            certificate_pem=certificate_pem,
            private_key_pem=private_key_pem,
        )


__all__ = ["CertificateAuthorityManager"]
