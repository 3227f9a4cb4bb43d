"""証明書機能のユースケース"""
from __future__ import annotations

import logging
from typing import Optional

from core.context import OperationContext
from features.certs.application.services import CertificateServices
from features.certs.domain.exceptions import (
    CertificateError,
    CertificateStorageError,
    CertificateTeardownError,
)
from features.certs.domain.models import ServerCertificateRequest

from .dto import (
    PrepareServerCertificateInput,
    PrepareServerCertificateOutput,
    SetupCertificateAuthorityOutput,
    UninstallCertificateAuthorityOutput,
)

logger = logging.getLogger("ghttp.certs")


class SetupCertificateAuthorityUseCase:
    """CAを確保し、OSのトラストストアへ登録する"""

    def __init__(self, services: CertificateServices) -> None:
        self._services = services

    def execute(self, context: Optional[OperationContext] = None) -> SetupCertificateAuthorityOutput:
        material = self._services.authority_manager().ensure_certificate_authority(context)
        certificate_path = self._services.settings.authority_certificate_path
        installer = self._services.trust_store_installer()
        installer.install(context, certificate_path)
        logger.info(
            "Installed certificate authority",
            extra={
                "event": "certs.setup.installed",
                "certificate_path": certificate_path,
                "serial_number": material.certificate.serial_number,
            },
        )
        return SetupCertificateAuthorityOutput(
            material=material,
            certificate_path=certificate_path,
            installed=True,
        )


class PrepareServerCertificateUseCase:
    """HTTPS配信用にCAとサーバー証明書を揃える"""

    def __init__(self, services: CertificateServices) -> None:
        self._services = services

    def execute(
        self,
        payload: PrepareServerCertificateInput,
        context: Optional[OperationContext] = None,
    ) -> PrepareServerCertificateOutput:
        settings = self._services.settings
        authority = self._services.authority_manager().ensure_certificate_authority(context)
        request = ServerCertificateRequest(
            hosts=payload.hosts,
            certificate_path=settings.leaf_certificate_path,
            private_key_path=settings.leaf_private_key_path,
        )
        server_certificate = self._services.server_issuer().issue_server_certificate(
            context, authority, request
        )
        return PrepareServerCertificateOutput(
            certificate_authority=authority,
            server_certificate=server_certificate,
        )


class UninstallCertificateAuthorityUseCase:
    """トラストストアからCAを外し、証明書ファイルを削除する

    途中で失敗しても残りの手順は続行し、発生した全てのエラーを
    ``CertificateTeardownError`` にまとめて送出する。
    """

    def __init__(self, services: CertificateServices) -> None:
        self._services = services

    def execute(self, context: Optional[OperationContext] = None) -> UninstallCertificateAuthorityOutput:
        errors: list[Exception] = []
        try:
            self._services.trust_store_installer().uninstall(context)
        except CertificateError as exc:
            errors.append(exc)

        output = UninstallCertificateAuthorityOutput()
        for path in self._services.settings.managed_paths():
            try:
                self._services.file_system.remove(path)
            except OSError as exc:
                errors.append(CertificateStorageError(f"remove {path}: {exc}"))
                continue
            output.removed_paths.append(path)

        if errors:
            raise CertificateTeardownError(errors)
        logger.info(
            "Uninstalled certificate authority",
            extra={"event": "certs.uninstall.completed", "removed_paths": output.removed_paths},
        )
        return output


__all__ = [
    "PrepareServerCertificateUseCase",
    "SetupCertificateAuthorityUseCase",
    "UninstallCertificateAuthorityUseCase",
]
