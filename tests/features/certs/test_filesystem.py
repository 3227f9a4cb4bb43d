import os
import stat

from features.certs.infrastructure.filesystem import OperatingSystemFileSystem


def test_write_file_replaces_atomically_with_permissions(tmp_path):
    fs = OperatingSystemFileSystem()
    target = tmp_path / "ca.key"
    target.write_bytes(b"old")

    fs.write_file(str(target), b"new", 0o600)

    assert target.read_bytes() == b"new"
    assert stat.S_IMODE(os.stat(target).st_mode) == 0o600
    assert sorted(p.name for p in tmp_path.iterdir()) == ["ca.key"]


def test_ensure_directory_creates_with_permissions(tmp_path):
    fs = OperatingSystemFileSystem()
    directory = tmp_path / "a" / "certs"

    fs.ensure_directory(str(directory), 0o700)
    fs.ensure_directory(str(directory), 0o700)

    assert directory.is_dir()
    assert stat.S_IMODE(os.stat(directory).st_mode) == 0o700


def test_remove_missing_file_is_not_an_error(tmp_path):
    fs = OperatingSystemFileSystem()
    target = tmp_path / "localhost.pem"
    target.write_bytes(b"x")

    fs.remove(str(target))
    fs.remove(str(target))

    assert not fs.file_exists(str(target))
