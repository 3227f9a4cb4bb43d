"""ログに表示する待ち受けアドレスの整形"""
from __future__ import annotations

_LOCALHOST_ALIASES = {"", "0.0.0.0", "127.0.0.1"}


def format_host_and_port_for_logging(bind_address: str, port: int | str) -> str:
    """ブラウザでそのまま開ける ``host:port`` を返す

    空・ワイルドカード・ループバックは ``localhost`` に置き換え、
    IPv6アドレスは角括弧で囲む。
    """

    host = (bind_address or "").strip()
    if host in _LOCALHOST_ALIASES:
        host = "localhost"
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"{host}:{port}"


def format_url_for_logging(scheme: str, bind_address: str, port: int | str) -> str:
    normalized_scheme = scheme.strip()
    if normalized_scheme.endswith("://"):
        normalized_scheme = normalized_scheme[: -len("://")]
    return f"{normalized_scheme}://{format_host_and_port_for_logging(bind_address, port)}"


__all__ = ["format_host_and_port_for_logging", "format_url_for_logging"]
