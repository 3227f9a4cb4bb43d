"""OSトラストストアへのCA証明書の登録・削除

実行中のOSに応じて macOS / Windows / Linux のいずれかの実装を
構築時に一度だけ選択する。
"""
from __future__ import annotations

import logging
import sys
from dataclasses import replace
from typing import Callable, Optional, Protocol

from core.context import OperationContext
from core.errors import join_errors
from features.certs.domain.defaults import (
    LINUX_TRUSTED_CERTIFICATE_PERMISSIONS,
    MACOS_SYSTEM_KEYCHAIN_PATH,
    WINDOWS_CERTIFICATE_STORE_NAME,
)
from features.certs.domain.exceptions import (
    CertificateConfigurationError,
    CertificateError,
    TrustStoreError,
    UnsupportedPlatformError,
)
from features.certs.domain.models import TrustStoreConfiguration
from features.certs.infrastructure.command_runner import CommandRunner
from features.certs.infrastructure.filesystem import FileSystem

logger = logging.getLogger("ghttp.certs.truststore")

COMMAND_SECURITY = "security"
COMMAND_CERTUTIL = "certutil"
COMMAND_UPDATE_CA_CERTIFICATES = "update-ca-certificates"
COMMAND_TRUST = "trust"


class TrustStoreInstaller(Protocol):
    """トラストストア操作のインターフェース"""

    def install(self, context: Optional[OperationContext], certificate_path: str) -> None:
        ...

    def uninstall(self, context: Optional[OperationContext]) -> None:
        ...


def _require_certificate_path(certificate_path: str) -> None:
    if not certificate_path:
        raise CertificateConfigurationError("certificate path is required")


class MacOSTrustStoreInstaller:
    """``security`` コマンドでキーチェーンを操作する"""

    def __init__(self, command_runner: CommandRunner, configuration: TrustStoreConfiguration) -> None:
        self._command_runner = command_runner
        self.configuration = configuration

    def install(self, context: Optional[OperationContext], certificate_path: str) -> None:
        _require_certificate_path(certificate_path)
        arguments = [
            "add-trusted-cert",
            "-d",
            "-r",
            "trustRoot",
            "-k",
            self.configuration.macos_keychain_path,
            certificate_path,
        ]
        try:
            self._command_runner.run_with_privileges(context, COMMAND_SECURITY, arguments)
        except CertificateError as exc:
            raise TrustStoreError(f"install certificate in macos keychain: {exc}") from exc

    def uninstall(self, context: Optional[OperationContext]) -> None:
        arguments = [
            "delete-certificate",
            "-c",
            self.configuration.certificate_common_name,
            self.configuration.macos_keychain_path,
        ]
        try:
            self._command_runner.run_with_privileges(context, COMMAND_SECURITY, arguments)
        except CertificateError as exc:
            raise TrustStoreError(f"remove certificate from macos keychain: {exc}") from exc


class WindowsTrustStoreInstaller:
    """``certutil`` で証明書ストアを操作する"""

    def __init__(self, command_runner: CommandRunner, configuration: TrustStoreConfiguration) -> None:
        self._command_runner = command_runner
        self.configuration = configuration

    def install(self, context: Optional[OperationContext], certificate_path: str) -> None:
        _require_certificate_path(certificate_path)
        arguments = [
            "-addstore",
            "-f",
            self.configuration.windows_certificate_store_name,
            certificate_path,
        ]
        try:
            self._command_runner.run(context, COMMAND_CERTUTIL, arguments)
        except CertificateError as exc:
            raise TrustStoreError(f"install certificate in windows store: {exc}") from exc

    def uninstall(self, context: Optional[OperationContext]) -> None:
        arguments = [
            "-delstore",
            self.configuration.windows_certificate_store_name,
            self.configuration.certificate_common_name,
        ]
        try:
            self._command_runner.run(context, COMMAND_CERTUTIL, arguments)
        except CertificateError as exc:
            raise TrustStoreError(f"remove certificate from windows store: {exc}") from exc


class LinuxTrustStoreInstaller:
    """アンカーディレクトリへのコピーとCAバンドルの再生成"""

    def __init__(
        self,
        command_runner: CommandRunner,
        file_system: FileSystem,
        configuration: TrustStoreConfiguration,
    ) -> None:
        self._command_runner = command_runner
        self._file_system = file_system
        self.configuration = configuration

    def install(self, context: Optional[OperationContext], certificate_path: str) -> None:
        _require_certificate_path(certificate_path)
        destination = self.configuration.linux_certificate_destination_path
        try:
            certificate_bytes = self._file_system.read_file(certificate_path)
        except OSError as exc:
            raise TrustStoreError(f"read certificate for linux install: {exc}") from exc
        try:
            self._file_system.write_file(
                destination,
                certificate_bytes,
                self.configuration.linux_certificate_file_permissions,
            )
        except OSError as exc:
            raise TrustStoreError(f"write linux trust store certificate: {exc}") from exc

        self._refresh(context, [COMMAND_TRUST, "anchor", destination], "update linux trust store")

    def uninstall(self, context: Optional[OperationContext]) -> None:
        destination = self.configuration.linux_certificate_destination_path
        try:
            self._file_system.remove(destination)
        except OSError as exc:
            raise TrustStoreError(f"remove linux trust store certificate: {exc}") from exc

        self._refresh(
            context,
            [COMMAND_TRUST, "anchor", "--remove", destination],
            "update linux trust store removal",
        )

    def _refresh(
        self,
        context: Optional[OperationContext],
        fallback_command: list[str],
        step: str,
    ) -> None:
        try:
            self._command_runner.run(context, COMMAND_UPDATE_CA_CERTIFICATES, [])
            return
        except CertificateError as exc:
            primary_error = exc
        logger.info(
            "update-ca-certificates failed, falling back to trust anchor",
            extra={"event": "certs.truststore.fallback", "reason": str(primary_error)},
        )
        try:
            self._command_runner.run(context, fallback_command[0], fallback_command[1:])
        except CertificateError as exc:
            joined = join_errors([primary_error, exc])
            raise TrustStoreError(f"{step}: {joined}") from joined


InstallerFactory = Callable[[CommandRunner, FileSystem, TrustStoreConfiguration], TrustStoreInstaller]


def _new_macos_installer(
    command_runner: CommandRunner, _file_system: FileSystem, configuration: TrustStoreConfiguration
) -> TrustStoreInstaller:
    if not configuration.certificate_common_name:
        raise CertificateConfigurationError("macos installer requires certificate common name")
    if not configuration.macos_keychain_path:
        configuration = replace(configuration, macos_keychain_path=MACOS_SYSTEM_KEYCHAIN_PATH)
    return MacOSTrustStoreInstaller(command_runner, configuration)


def _new_linux_installer(
    command_runner: CommandRunner, file_system: FileSystem, configuration: TrustStoreConfiguration
) -> TrustStoreInstaller:
    if not configuration.linux_certificate_destination_path:
        raise CertificateConfigurationError("linux installer requires destination path")
    if not configuration.linux_certificate_file_permissions:
        configuration = replace(
            configuration,
            linux_certificate_file_permissions=LINUX_TRUSTED_CERTIFICATE_PERMISSIONS,
        )
    return LinuxTrustStoreInstaller(command_runner, file_system, configuration)


def _new_windows_installer(
    command_runner: CommandRunner, _file_system: FileSystem, configuration: TrustStoreConfiguration
) -> TrustStoreInstaller:
    if not configuration.certificate_common_name:
        raise CertificateConfigurationError("windows installer requires certificate common name")
    if not configuration.windows_certificate_store_name:
        configuration = replace(
            configuration, windows_certificate_store_name=WINDOWS_CERTIFICATE_STORE_NAME
        )
    return WindowsTrustStoreInstaller(command_runner, configuration)


SUPPORTED_FACTORIES: dict[str, InstallerFactory] = {
    "darwin": _new_macos_installer,
    "linux": _new_linux_installer,
    "win32": _new_windows_installer,
}


def create_trust_store_installer(
    command_runner: CommandRunner,
    file_system: FileSystem,
    configuration: TrustStoreConfiguration,
    *,
    platform: Optional[str] = None,
) -> TrustStoreInstaller:
    """実行中のOSに対応するインストーラを構築する"""

    platform_name = platform or sys.platform
    factory = SUPPORTED_FACTORIES.get(platform_name)
    if factory is None:
        raise UnsupportedPlatformError(f"unsupported operating system {platform_name}")
    return factory(command_runner, file_system, configuration)


__all__ = [
    "InstallerFactory",
    "LinuxTrustStoreInstaller",
    "MacOSTrustStoreInstaller",
    "SUPPORTED_FACTORIES",
    "TrustStoreInstaller",
    "WindowsTrustStoreInstaller",
    "create_trust_store_installer",
]
