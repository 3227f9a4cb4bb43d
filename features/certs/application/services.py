"""証明書機能で利用する共通サービス定義"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from core.time import Clock, SystemClock
from features.certs.application.authority import CertificateAuthorityManager
from features.certs.application.issuer import ServerCertificateIssuer
from features.certs.domain import defaults
from features.certs.domain.models import (
    CertificateAuthorityConfiguration,
    ServerCertificateConfiguration,
    TrustStoreConfiguration,
)
from features.certs.infrastructure.command_runner import CommandRunner, ExecutableRunner
from features.certs.infrastructure.filesystem import FileSystem, OperatingSystemFileSystem
from features.certs.infrastructure.key_utils import RandomSource, SystemRandomSource
from features.certs.infrastructure.truststore import (
    InstallerFactory,
    TrustStoreInstaller,
    create_trust_store_installer,
)


@dataclass(frozen=True, slots=True)
class CertificateSettings:
    """証明書ディレクトリと各種期間・鍵長の設定値"""

    certificate_directory: str
    authority_key_bits: int = defaults.CERTIFICATE_AUTHORITY_KEY_BITS
    authority_validity: timedelta = defaults.CERTIFICATE_AUTHORITY_VALIDITY
    authority_renewal_window: timedelta = defaults.CERTIFICATE_AUTHORITY_RENEWAL_WINDOW
    leaf_key_bits: int = defaults.LEAF_CERTIFICATE_KEY_BITS
    leaf_validity: timedelta = defaults.LEAF_CERTIFICATE_VALIDITY
    leaf_renewal_window: timedelta = defaults.LEAF_CERTIFICATE_RENEWAL_WINDOW
    common_name: str = defaults.DEFAULT_CERTIFICATE_AUTHORITY_COMMON_NAME
    organizational_unit: str = defaults.DEFAULT_CERTIFICATE_AUTHORITY_ORGANIZATIONAL_UNIT
    organization: str = defaults.DEFAULT_CERTIFICATE_AUTHORITY_ORGANIZATION
    macos_keychain_path: str = defaults.MACOS_SYSTEM_KEYCHAIN_PATH
    linux_certificate_destination_path: str = defaults.LINUX_TRUSTED_CERTIFICATE_PATH
    linux_certificate_file_permissions: int = defaults.LINUX_TRUSTED_CERTIFICATE_PERMISSIONS
    windows_certificate_store_name: str = defaults.WINDOWS_CERTIFICATE_STORE_NAME

    @property
    def authority_certificate_path(self) -> str:
        return os.path.join(self.certificate_directory, defaults.DEFAULT_ROOT_CERTIFICATE_FILE_NAME)

    @property
    def authority_private_key_path(self) -> str:
        return os.path.join(self.certificate_directory, defaults.DEFAULT_ROOT_PRIVATE_KEY_FILE_NAME)

    @property
    def leaf_certificate_path(self) -> str:
        return os.path.join(self.certificate_directory, defaults.DEFAULT_LEAF_CERTIFICATE_FILE_NAME)

    @property
    def leaf_private_key_path(self) -> str:
        return os.path.join(self.certificate_directory, defaults.DEFAULT_LEAF_PRIVATE_KEY_FILE_NAME)

    def managed_paths(self) -> list[str]:
        """アンインストール時に削除するファイル"""

        return [
            self.authority_certificate_path,
            self.authority_private_key_path,
            self.leaf_certificate_path,
            self.leaf_private_key_path,
        ]

    def authority_configuration(self) -> CertificateAuthorityConfiguration:
        return CertificateAuthorityConfiguration(
            directory_path=self.certificate_directory,
            certificate_file_name=defaults.DEFAULT_ROOT_CERTIFICATE_FILE_NAME,
            private_key_file_name=defaults.DEFAULT_ROOT_PRIVATE_KEY_FILE_NAME,
            directory_permissions=defaults.DIRECTORY_PERMISSIONS,
            certificate_file_permissions=defaults.CERTIFICATE_FILE_PERMISSIONS,
            private_key_file_permissions=defaults.PRIVATE_KEY_FILE_PERMISSIONS,
            rsa_key_bit_size=self.authority_key_bits,
            certificate_validity=self.authority_validity,
            renewal_window=self.authority_renewal_window,
            subject_common_name=self.common_name,
            subject_organizational_unit=self.organizational_unit,
            subject_organization=self.organization,
        )

    def server_configuration(self) -> ServerCertificateConfiguration:
        return ServerCertificateConfiguration(
            certificate_validity=self.leaf_validity,
            renewal_window=self.leaf_renewal_window,
            private_key_bit_size=self.leaf_key_bits,
            certificate_file_permissions=defaults.CERTIFICATE_FILE_PERMISSIONS,
            private_key_file_permissions=defaults.PRIVATE_KEY_FILE_PERMISSIONS,
        )

    def trust_store_configuration(self) -> TrustStoreConfiguration:
        return TrustStoreConfiguration(
            certificate_common_name=self.common_name,
            macos_keychain_path=self.macos_keychain_path,
            linux_certificate_destination_path=self.linux_certificate_destination_path,
            linux_certificate_file_permissions=self.linux_certificate_file_permissions,
            windows_certificate_store_name=self.windows_certificate_store_name,
        )


@dataclass(slots=True)
class CertificateServices:
    settings: CertificateSettings
    file_system: FileSystem
    clock: Clock
    random_source: RandomSource
    command_runner: CommandRunner
    installer_factory: InstallerFactory = field(default=create_trust_store_installer)

    def authority_manager(self) -> CertificateAuthorityManager:
        return CertificateAuthorityManager(
            self.file_system,
            self.clock,
            self.random_source,
            self.settings.authority_configuration(),
        )

    def server_issuer(self) -> ServerCertificateIssuer:
        return ServerCertificateIssuer(
            self.file_system,
            self.clock,
            self.random_source,
            self.settings.server_configuration(),
        )

    def trust_store_installer(self) -> TrustStoreInstaller:
        """トラストストアのインストーラ(未対応OSでは例外)"""

        return self.installer_factory(
            self.command_runner,
            self.file_system,
            self.settings.trust_store_configuration(),
        )


def build_certificate_services(
    settings: CertificateSettings,
    *,
    command_runner: Optional[CommandRunner] = None,
) -> CertificateServices:
    """本番用の依存関係で組み立てたサービス"""

    return CertificateServices(
        settings=settings,
        file_system=OperatingSystemFileSystem(),
        clock=SystemClock(),
        random_source=SystemRandomSource(),
        command_runner=command_runner or ExecutableRunner(),
    )


__all__ = ["CertificateServices", "CertificateSettings", "build_certificate_services"]
