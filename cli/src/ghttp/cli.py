from dataclasses import replace
from typing import List, NoReturn, Optional
import os

import typer
from rich.console import Console
from rich.table import Table

from .version import __version__
from .config import GhttpConfig, parse_port
from core.context import OperationContext
from core.logging_config import configure_logging, normalize_logging_type
from features.certs.application.dto import PrepareServerCertificateInput
from features.certs.application.services import CertificateSettings, build_certificate_services
from features.certs.application.use_cases import (
    PrepareServerCertificateUseCase,
    SetupCertificateAuthorityUseCase,
    UninstallCertificateAuthorityUseCase,
)
from features.certs.domain.exceptions import CertificateError
from features.certs.domain.models import normalize_hosts
from features.fileserver.domain.exceptions import FileServerError
from features.fileserver.domain.models import (
    SUPPORTED_PROTOCOLS,
    FileServerConfiguration,
    TLSConfiguration,
)
from features.fileserver.infrastructure.server import FileServer


console = Console()
app = typer.Typer(
    name="ghttp",
    help="ghttp: development file server with self-managed HTTPS certificates",
    no_args_is_help=True,
    add_completion=False,
)

# ---------------------------------------------------------------------------
# sub-app: https
https_app = typer.Typer(name="https", help="Manage the development certificate authority")
app.add_typer(https_app, name="https")

# sub-app: config
config_app = typer.Typer(name="config", help="Show and validate configuration")
app.add_typer(config_app, name="config")


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=lambda v: (_print_version() if v else None),
        is_eager=True,
        help="Show version and exit.",
    )
):
    return


def _print_version() -> None:
    console.print(f"[bold]ghttp[/] version {__version__}")
    raise typer.Exit(code=0)


def _fail(message: str) -> NoReturn:
    console.print(f"[red]Error[/]: {message}")
    raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# helpers


def _certificate_settings(cfg: GhttpConfig, cert_dir: Optional[str]) -> CertificateSettings:
    directory = cert_dir or cfg.certificate_directory
    return CertificateSettings(certificate_directory=os.path.abspath(os.path.expanduser(directory)))


def _resolve_port(raw: Optional[str], default: int) -> int:
    if raw is None or raw.strip() == "":
        return default
    try:
        return parse_port(raw)
    except ValueError:
        _fail(f"invalid port {raw}")


def _build_file_server_configuration(
    cfg: GhttpConfig,
    *,
    port: int,
    bind: Optional[str],
    directory: Optional[str],
    protocol: Optional[str],
    no_md: bool,
    no_listing: bool,
    logging_type: str,
    tls: Optional[TLSConfiguration] = None,
) -> FileServerConfiguration:
    directory_path = os.path.abspath(os.path.expanduser(directory or cfg.directory))
    if not os.path.isdir(directory_path):
        _fail(f"path is not a directory: {directory_path}")

    protocol_value = (protocol or cfg.protocol).strip().upper()
    if protocol_value not in SUPPORTED_PROTOCOLS:
        _fail(f"unsupported protocol {protocol_value}")

    return FileServerConfiguration(
        bind_address=(cfg.bind_address if bind is None else bind).strip(),
        port=port,
        directory_path=directory_path,
        protocol_version=protocol_value,
        enable_markdown=not (no_md or cfg.no_markdown),
        disable_directory_listing=no_listing or cfg.disable_directory_listing,
        logging_type=logging_type,
        tls=tls,
    )


def _configure_logging(cfg: GhttpConfig, logging_type: Optional[str]) -> str:
    try:
        normalized = normalize_logging_type(logging_type or cfg.logging_type)
    except ValueError as exc:
        _fail(str(exc))
    configure_logging(normalized)
    return normalized


def _prepare_server_certificate(
    cfg: GhttpConfig, cert_dir: Optional[str], hosts: Optional[List[str]]
) -> TLSConfiguration:
    requested_hosts = normalize_hosts(hosts) if hosts else cfg.https_hosts
    services = build_certificate_services(_certificate_settings(cfg, cert_dir))
    output = PrepareServerCertificateUseCase(services).execute(
        PrepareServerCertificateInput(hosts=list(requested_hosts)),
        OperationContext.background(),
    )
    leaf = output.server_certificate
    return TLSConfiguration(
        certificate_path=leaf.certificate_path,
        private_key_path=leaf.private_key_path,
    )


def _with_generated_certificate(
    configuration: FileServerConfiguration,
    cfg: GhttpConfig,
    cert_dir: Optional[str],
    hosts: Optional[List[str]],
) -> FileServerConfiguration:
    try:
        tls = _prepare_server_certificate(cfg, cert_dir, hosts)
    except CertificateError as e:
        _fail(str(e))
    return replace(configuration, tls=tls)


def _run_file_server(configuration: FileServerConfiguration) -> None:
    try:
        FileServer().serve(configuration)
    except FileServerError as e:
        _fail(str(e))


# ---------------------------------------------------------------------------
# serve


@app.command(help="Serve a directory over HTTP (or HTTPS)")
def serve(
    port: Optional[str] = typer.Argument(None, help="Port to listen on (default: 8000)"),
    bind: Optional[str] = typer.Option(None, "--bind", help="Bind address (default: all interfaces)"),
    directory: Optional[str] = typer.Option(None, "--directory", help="Directory to serve"),
    protocol: Optional[str] = typer.Option(None, "--protocol", help="HTTP/1.0 or HTTP/1.1"),
    no_md: bool = typer.Option(False, "--no-md", help="Serve Markdown files as-is"),
    no_listing: bool = typer.Option(False, "--no-listing", help="Disable directory listings"),
    logging_type: Optional[str] = typer.Option(None, "--logging-type", help="CONSOLE or JSON"),
    tls_cert: Optional[str] = typer.Option(None, "--tls-cert", help="TLS certificate (PEM)"),
    tls_key: Optional[str] = typer.Option(None, "--tls-key", help="TLS private key (PEM)"),
    https: bool = typer.Option(False, "--https", help="Serve HTTPS with a generated certificate"),
    https_host: Optional[List[str]] = typer.Option(
        None, "--https-host", help="Hostname or IP for the certificate SAN (repeatable)"
    ),
    cert_dir: Optional[str] = typer.Option(None, "--cert-dir", help="Directory for generated certificates"),
) -> None:
    cfg = GhttpConfig.from_env()
    normalized_logging = _configure_logging(cfg, logging_type)

    certificate_path = (tls_cert if tls_cert is not None else cfg.tls_certificate).strip()
    key_path = (tls_key if tls_key is not None else cfg.tls_key).strip()
    if bool(certificate_path) != bool(key_path):
        _fail("tls certificate and key must be provided together")
    if https and certificate_path:
        _fail("cannot combine https flag with tls certificate flags")
    for label, path in (("tls certificate", certificate_path), ("tls private key", key_path)):
        if path and not os.path.isfile(path):
            _fail(f"{label} not found: {path}")

    default_port = cfg.https_port if https else cfg.serve_port
    listen_port = _resolve_port(port, default_port)

    tls: Optional[TLSConfiguration] = None
    if certificate_path:
        tls = TLSConfiguration(certificate_path=certificate_path, private_key_path=key_path)

    configuration = _build_file_server_configuration(
        cfg,
        port=listen_port,
        bind=bind,
        directory=directory,
        protocol=protocol,
        no_md=no_md,
        no_listing=no_listing,
        logging_type=normalized_logging,
        tls=tls,
    )
    if https:
        configuration = _with_generated_certificate(configuration, cfg, cert_dir, https_host)
    _run_file_server(configuration)


# ---------------------------------------------------------------------------
# https subcommands


@https_app.command("setup", help="Generate and install the development certificate authority")
def https_setup(
    cert_dir: Optional[str] = typer.Option(None, "--cert-dir", help="Directory for generated certificates"),
) -> None:
    cfg = GhttpConfig.from_env()
    _configure_logging(cfg, None)
    settings = _certificate_settings(cfg, cert_dir)
    try:
        output = SetupCertificateAuthorityUseCase(build_certificate_services(settings)).execute(
            OperationContext.background()
        )
    except CertificateError as e:
        _fail(str(e))
    console.print(f"[green]OK[/] Certificate authority installed from {output.certificate_path}")


@https_app.command("serve", help="Serve HTTPS using the generated certificates")
def https_serve(
    port: Optional[str] = typer.Argument(None, help="Port to listen on (default: 8443)"),
    bind: Optional[str] = typer.Option(None, "--bind", help="Bind address (default: all interfaces)"),
    directory: Optional[str] = typer.Option(None, "--directory", help="Directory to serve"),
    protocol: Optional[str] = typer.Option(None, "--protocol", help="HTTP/1.0 or HTTP/1.1"),
    no_md: bool = typer.Option(False, "--no-md", help="Serve Markdown files as-is"),
    no_listing: bool = typer.Option(False, "--no-listing", help="Disable directory listings"),
    logging_type: Optional[str] = typer.Option(None, "--logging-type", help="CONSOLE or JSON"),
    https_host: Optional[List[str]] = typer.Option(
        None, "--https-host", help="Hostname or IP for the certificate SAN (repeatable)"
    ),
    cert_dir: Optional[str] = typer.Option(None, "--cert-dir", help="Directory for generated certificates"),
) -> None:
    cfg = GhttpConfig.from_env()
    normalized_logging = _configure_logging(cfg, logging_type)
    listen_port = _resolve_port(port, cfg.https_port)

    configuration = _build_file_server_configuration(
        cfg,
        port=listen_port,
        bind=bind,
        directory=directory,
        protocol=protocol,
        no_md=no_md,
        no_listing=no_listing,
        logging_type=normalized_logging,
    )
    configuration = _with_generated_certificate(configuration, cfg, cert_dir, https_host)
    _run_file_server(configuration)


@https_app.command("uninstall", help="Remove the development certificate authority from the trust store")
def https_uninstall(
    cert_dir: Optional[str] = typer.Option(None, "--cert-dir", help="Directory for generated certificates"),
) -> None:
    cfg = GhttpConfig.from_env()
    _configure_logging(cfg, None)
    settings = _certificate_settings(cfg, cert_dir)
    try:
        UninstallCertificateAuthorityUseCase(build_certificate_services(settings)).execute(
            OperationContext.background()
        )
    except CertificateError as e:
        _fail(str(e))
    console.print(f"[green]OK[/] Certificate authority removed ({settings.certificate_directory})")


# ---------------------------------------------------------------------------
# config subcommands


@config_app.command("show", help="Display settings loaded from environment variables")
def config_show() -> None:
    cfg = GhttpConfig.from_env()
    table = Table(title="ghttp Config")
    table.add_column("Key", style="bold")
    table.add_column("Value")

    for k, v in cfg.masked().items():
        table.add_row(k, str(v))
    console.print(table)


@config_app.command("check", help="Validate settings and show errors/warnings")
def config_check() -> None:
    cfg = GhttpConfig.from_env()
    warns, errs = cfg.validate()
    if warns:
        console.print("[yellow]WARN[/] " + " | ".join(warns))
    if errs:
        console.print("[red]ERROR[/] " + " | ".join(errs))
        raise typer.Exit(code=1)
    console.print("[green]OK[/] Configuration is valid")
