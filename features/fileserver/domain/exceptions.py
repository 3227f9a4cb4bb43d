"""ファイルサーバーの例外定義"""
from __future__ import annotations


class FileServerError(Exception):
    """ファイルサーバーの基本例外"""


class TLSConfigurationError(FileServerError):
    """証明書・秘密鍵の指定や読み込みの失敗"""
