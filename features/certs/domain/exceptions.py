"""証明書機能で利用する例外定義"""
from __future__ import annotations

from typing import Sequence

from core.errors import AggregateError


class CertificateError(Exception):
    """証明書関連の基本例外"""


class CertificateConfigurationError(CertificateError):
    """設定値や入力の整合性が取れない場合の例外"""


class CertificateParseError(CertificateError):
    """PEM/DERの読み込みや鍵の不一致に関する例外"""


class CertificateStorageError(CertificateError):
    """ファイル入出力の失敗"""


class KeyGenerationError(CertificateError):
    """鍵生成時の例外"""


class CertificateSigningError(CertificateError):
    """証明書署名時の例外"""


class OperationCancelledError(CertificateError):
    """処理開始前または実行中にキャンセルされた"""


class CommandExecutionError(CertificateError):
    """外部コマンドの実行失敗"""

    def __init__(
        self,
        executable: str,
        message: str,
        *,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        self.executable = executable
        self.returncode = returncode
        self.stderr = stderr
        detail = f"execute {executable}: {message}"
        if stderr.strip():
            detail = f"{detail}: {stderr.strip()}"
        super().__init__(detail)


class CommandTimeoutError(CommandExecutionError):
    """外部コマンドが期限内に終了しなかった"""


class CertificateAuthorityError(CertificateError):
    """ルートCAの確保に失敗"""


class ServerCertificateError(CertificateError):
    """サーバー証明書の発行に失敗"""


class TrustStoreError(CertificateError):
    """OSトラストストアへの登録・削除に失敗"""


class UnsupportedPlatformError(TrustStoreError):
    """トラストストアの実装が存在しないOS"""


class CertificateTeardownError(CertificateError, AggregateError):
    """アンインストール時に発生した全ての失敗をまとめた例外"""

    def __init__(self, errors: Sequence[BaseException]) -> None:
        AggregateError.__init__(self, errors, "uninstall certificate authority")
