"""証明書ファイルの入出力"""
from __future__ import annotations

import os
import tempfile
from typing import Protocol


class FileSystem(Protocol):
    """証明書コンポーネントが利用するファイル操作"""

    def ensure_directory(self, path: str, permissions: int) -> None:
        ...

    def read_file(self, path: str) -> bytes:
        ...

    def write_file(self, path: str, data: bytes, permissions: int) -> None:
        ...

    def remove(self, path: str) -> None:
        ...

    def file_exists(self, path: str) -> bool:
        ...


class OperatingSystemFileSystem:
    """ローカルファイルシステムに対する実装

    書き込みは同じディレクトリの一時ファイル経由で ``os.replace`` するため、
    途中でプロセスが落ちても中途半端な証明書や鍵は残らない。
    """

    def ensure_directory(self, path: str, permissions: int) -> None:
        existed = os.path.isdir(path)
        os.makedirs(path, mode=permissions, exist_ok=True)
        if not existed:
            # umaskの影響を受けないよう明示的に設定
            os.chmod(path, permissions)

    def read_file(self, path: str) -> bytes:
        with open(path, "rb") as handle:
            return handle.read()

    def write_file(self, path: str, data: bytes, permissions: int) -> None:
        directory = os.path.dirname(os.path.abspath(path))
        fd, temporary_path = tempfile.mkstemp(
            prefix=f".{os.path.basename(path)}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(temporary_path, permissions)
            os.replace(temporary_path, path)
        except BaseException:
            try:
                os.unlink(temporary_path)
            except FileNotFoundError:
                pass
            raise

    def remove(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            return

    def file_exists(self, path: str) -> bool:
        try:
            os.stat(path)
        except FileNotFoundError:
            return False
        return True


__all__ = ["FileSystem", "OperatingSystemFileSystem"]
