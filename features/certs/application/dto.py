"""証明書機能のDTO"""
from __future__ import annotations

from dataclasses import dataclass, field

from features.certs.domain.models import (
    CertificateAuthorityMaterial,
    ServerCertificateMaterial,
)


@dataclass(slots=True)
class SetupCertificateAuthorityOutput:
    material: CertificateAuthorityMaterial
    certificate_path: str
    installed: bool


@dataclass(slots=True)
class PrepareServerCertificateInput:
    hosts: list[str] = field(default_factory=list)


@dataclass(slots=True)
class PrepareServerCertificateOutput:
    certificate_authority: CertificateAuthorityMaterial
    server_certificate: ServerCertificateMaterial


@dataclass(slots=True)
class UninstallCertificateAuthorityOutput:
    removed_paths: list[str] = field(default_factory=list)
