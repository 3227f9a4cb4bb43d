"""証明書機能の既定値"""
from __future__ import annotations

from datetime import timedelta

DEFAULT_CERTIFICATE_AUTHORITY_COMMON_NAME = "ghttp Development CA"
DEFAULT_CERTIFICATE_AUTHORITY_ORGANIZATIONAL_UNIT = "ghttp"
DEFAULT_CERTIFICATE_AUTHORITY_ORGANIZATION = "temirov"

DEFAULT_CERTIFICATE_DIRECTORY_NAME = "certs"
DEFAULT_ROOT_CERTIFICATE_FILE_NAME = "ca.pem"
DEFAULT_ROOT_PRIVATE_KEY_FILE_NAME = "ca.key"
DEFAULT_LEAF_CERTIFICATE_FILE_NAME = "localhost.pem"
DEFAULT_LEAF_PRIVATE_KEY_FILE_NAME = "localhost.key"

CERTIFICATE_AUTHORITY_KEY_BITS = 4096
LEAF_CERTIFICATE_KEY_BITS = 2048
CERTIFICATE_AUTHORITY_VALIDITY = timedelta(days=5 * 365)
CERTIFICATE_AUTHORITY_RENEWAL_WINDOW = timedelta(days=30)
LEAF_CERTIFICATE_VALIDITY = timedelta(days=30)
LEAF_CERTIFICATE_RENEWAL_WINDOW = timedelta(hours=72)

DIRECTORY_PERMISSIONS = 0o700
CERTIFICATE_FILE_PERMISSIONS = 0o600
PRIVATE_KEY_FILE_PERMISSIONS = 0o600

MACOS_SYSTEM_KEYCHAIN_PATH = "/Library/Keychains/System.keychain"
LINUX_TRUSTED_CERTIFICATE_PATH = "/usr/local/share/ca-certificates/ghttp-development-ca.crt"
LINUX_TRUSTED_CERTIFICATE_PERMISSIONS = 0o644
WINDOWS_CERTIFICATE_STORE_NAME = "Root"

DEFAULT_HTTPS_HOSTS = ("localhost", "127.0.0.1", "::1")
