"""ファイルサーバーの設定モデル"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.logging_config import LOGGING_TYPE_CONSOLE

PROTOCOL_HTTP_1_0 = "HTTP/1.0"
PROTOCOL_HTTP_1_1 = "HTTP/1.1"
SUPPORTED_PROTOCOLS = (PROTOCOL_HTTP_1_0, PROTOCOL_HTTP_1_1)

SERVER_HEADER_VALUE = "ghttpd"


@dataclass(frozen=True, slots=True)
class TLSConfiguration:
    """サーバー証明書と秘密鍵のPEMファイル"""

    certificate_path: str = ""
    private_key_path: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.certificate_path) and bool(self.private_key_path)


@dataclass(frozen=True, slots=True)
class FileServerConfiguration:
    bind_address: str
    port: int
    directory_path: str
    protocol_version: str = PROTOCOL_HTTP_1_1
    enable_markdown: bool = True
    disable_directory_listing: bool = False
    logging_type: str = LOGGING_TYPE_CONSOLE
    tls: Optional[TLSConfiguration] = None

    @property
    def scheme(self) -> str:
        return "https" if self.tls is not None else "http"


__all__ = [
    "FileServerConfiguration",
    "PROTOCOL_HTTP_1_0",
    "PROTOCOL_HTTP_1_1",
    "SERVER_HEADER_VALUE",
    "SUPPORTED_PROTOCOLS",
    "TLSConfiguration",
]
