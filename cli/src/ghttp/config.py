from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

from dotenv import load_dotenv

from core.logging_config import LOGGING_TYPE_CONSOLE, normalize_logging_type
from features.certs.domain.defaults import DEFAULT_HTTPS_HOSTS
from features.certs.domain.models import normalize_hosts
from features.fileserver.domain.models import PROTOCOL_HTTP_1_1, SUPPORTED_PROTOCOLS

# Load .env at import time so CLI and tests pick it up
load_dotenv()

DEFAULT_SERVE_PORT = 8000
DEFAULT_HTTPS_PORT = 8443
DEFAULT_CERTIFICATE_DIRECTORY = os.path.join("~", ".config", "ghttp", "certs")


# ---------------------------------------------------------------------------
# helpers


def _read_str(env: Mapping[str, str], key: str, default: str = "") -> str:
    raw = env.get(key)
    if raw is None:
        return default
    return raw.strip()


def _read_bool(env: Mapping[str, str], key: str, default: bool = False) -> bool:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _read_port(env: Mapping[str, str], key: str, default: int) -> Tuple[int, List[str]]:
    msgs: List[str] = []
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default, msgs
    try:
        v = int(raw)
    except ValueError:
        msgs.append(f"{key}: could not parse as integer -> using default {default}")
        return default, msgs
    if v < 1 or v > 65535:
        msgs.append(f"{key}: out of range ({v}), allowed 1..65535 -> using default {default}")
        return default, msgs
    return v, msgs


def _read_hosts(env: Mapping[str, str], key: str) -> Tuple[str, ...]:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return DEFAULT_HTTPS_HOSTS
    return normalize_hosts(raw.split(","))


def parse_port(raw: str) -> int:
    """Parse a command-line port argument, raising ``ValueError`` when invalid."""

    value = int(raw.strip())
    if value < 1 or value > 65535:
        raise ValueError(f"invalid port {raw}")
    return value


@dataclass(frozen=True)
class GhttpConfig:
    bind_address: str = ""
    serve_port: int = DEFAULT_SERVE_PORT
    https_port: int = DEFAULT_HTTPS_PORT
    directory: str = "."
    protocol: str = PROTOCOL_HTTP_1_1
    no_markdown: bool = False
    disable_directory_listing: bool = False
    logging_type: str = LOGGING_TYPE_CONSOLE
    tls_certificate: str = ""
    tls_key: str = ""
    certificate_directory: str = DEFAULT_CERTIFICATE_DIRECTORY
    https_hosts: Tuple[str, ...] = DEFAULT_HTTPS_HOSTS
    parse_warnings: Tuple[str, ...] = field(default=(), compare=False)

    # ------------------------------------------------------------------
    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> "GhttpConfig":
        env = os.environ if env is None else env

        serve_port, serve_msgs = _read_port(env, "GHTTP_SERVE_PORT", DEFAULT_SERVE_PORT)
        https_port, https_msgs = _read_port(env, "GHTTP_HTTPS_PORT", DEFAULT_HTTPS_PORT)

        return GhttpConfig(
            bind_address=_read_str(env, "GHTTP_SERVE_BIND_ADDRESS"),
            serve_port=serve_port,
            https_port=https_port,
            directory=_read_str(env, "GHTTP_SERVE_DIRECTORY") or ".",
            protocol=_read_str(env, "GHTTP_SERVE_PROTOCOL").upper() or PROTOCOL_HTTP_1_1,
            no_markdown=_read_bool(env, "GHTTP_SERVE_NO_MARKDOWN"),
            disable_directory_listing=_read_bool(env, "GHTTP_SERVE_DISABLE_DIRECTORY_LISTING"),
            logging_type=_read_str(env, "GHTTP_SERVE_LOGGING_TYPE").upper() or LOGGING_TYPE_CONSOLE,
            tls_certificate=_read_str(env, "GHTTP_SERVE_TLS_CERTIFICATE"),
            tls_key=_read_str(env, "GHTTP_SERVE_TLS_KEY"),
            certificate_directory=(
                _read_str(env, "GHTTP_HTTPS_CERTIFICATE_DIR") or DEFAULT_CERTIFICATE_DIRECTORY
            ),
            https_hosts=_read_hosts(env, "GHTTP_HTTPS_HOSTS"),
            parse_warnings=tuple(serve_msgs + https_msgs),
        )

    # ------------------------------------------------------------------
    def validate(self) -> Tuple[List[str], List[str]]:
        """Returns ``(warnings, errors)``"""
        warns: List[str] = list(self.parse_warnings)
        errs: List[str] = []

        if self.protocol not in SUPPORTED_PROTOCOLS:
            errs.append(f"GHTTP_SERVE_PROTOCOL: unsupported protocol {self.protocol}")

        try:
            normalize_logging_type(self.logging_type)
        except ValueError as exc:
            errs.append(f"GHTTP_SERVE_LOGGING_TYPE: {exc}")

        directory = Path(self.directory).expanduser()
        if not directory.is_dir():
            errs.append(f"GHTTP_SERVE_DIRECTORY: not a directory: {self.directory}")

        if bool(self.tls_certificate) != bool(self.tls_key):
            errs.append(
                "GHTTP_SERVE_TLS_CERTIFICATE/GHTTP_SERVE_TLS_KEY: must be provided together"
            )
        for key, path in [
            ("GHTTP_SERVE_TLS_CERTIFICATE", self.tls_certificate),
            ("GHTTP_SERVE_TLS_KEY", self.tls_key),
        ]:
            if path and not Path(path).expanduser().exists():
                errs.append(f"{key}: file does not exist: {path}")

        if not self.https_hosts:
            errs.append("GHTTP_HTTPS_HOSTS: at least one host must be specified")

        if self.serve_port == self.https_port:
            warns.append("GHTTP_SERVE_PORT and GHTTP_HTTPS_PORT are identical")

        return warns, errs

    # ------------------------------------------------------------------
    def masked(self) -> Dict[str, Any]:
        return {
            "bind_address": self.bind_address or "(all interfaces)",
            "serve_port": self.serve_port,
            "https_port": self.https_port,
            "directory": self.directory,
            "protocol": self.protocol,
            "no_markdown": self.no_markdown,
            "disable_directory_listing": self.disable_directory_listing,
            "logging_type": self.logging_type,
            "tls_certificate": self.tls_certificate,
            "tls_key": self.tls_key,
            "certificate_directory": self.certificate_directory,
            "https_hosts": ",".join(self.https_hosts),
        }
