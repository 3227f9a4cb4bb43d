from datetime import datetime
import logging
import re

import pytest

from core.logging_config import LOGGING_TYPE_JSON
from features.fileserver.domain.models import FileServerConfiguration
from features.fileserver.presentation.app import create_file_server_app, format_console_request_log


@pytest.fixture
def site(tmp_path):
    (tmp_path / "hello.txt").write_text("hello world")
    (tmp_path / "notes.md").write_text("# Title\n\nline one\nline two\n")
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "README.md").write_text("# Docs readme\n")
    (tmp_path / "plain").mkdir()
    (tmp_path / "plain" / "a.txt").write_text("a")
    (tmp_path / "plain" / "sub").mkdir()
    site_dir = tmp_path / "site"
    site_dir.mkdir()
    (site_dir / "index.html").write_text("<p>index</p>")
    return tmp_path


def _client(site, **overrides):
    values = {"bind_address": "", "port": 8000, "directory_path": str(site)}
    values.update(overrides)
    return create_file_server_app(FileServerConfiguration(**values)).test_client()


def test_serves_file_with_server_header(site):
    response = _client(site).get("/hello.txt")

    assert response.status_code == 200
    assert response.data == b"hello world"
    assert response.headers["Server"] == "ghttpd"
    assert "Connection" not in response.headers


def test_http_1_0_closes_connection(site):
    response = _client(site, protocol_version="HTTP/1.0").get("/hello.txt")

    assert response.headers["Connection"] == "close"


def test_markdown_is_rendered(site):
    response = _client(site).get("/notes.md")

    assert response.status_code == 200
    assert response.mimetype == "text/html"
    body = response.get_data(as_text=True)
    assert "<h1>Title</h1>" in body
    assert "line one<br" in body
    assert "<title>notes.md</title>" in body


def test_markdown_disabled_serves_raw_file(site):
    response = _client(site, enable_markdown=False).get("/notes.md")

    assert response.get_data(as_text=True).startswith("# Title")


def test_directory_prefers_index_html(site):
    response = _client(site).get("/site/")

    assert response.get_data(as_text=True) == "<p>index</p>"


def test_directory_renders_readme(site):
    response = _client(site).get("/docs/")

    assert "<h1>Docs readme</h1>" in response.get_data(as_text=True)


def test_directory_without_trailing_slash_redirects(site):
    response = _client(site).get("/docs")

    assert response.status_code == 301
    assert response.headers["Location"].endswith("/docs/")


def test_directory_listing(site):
    response = _client(site).get("/plain/")

    body = response.get_data(as_text=True)
    assert response.status_code == 200
    assert '<a href="a.txt">a.txt</a>' in body
    assert '<a href="sub/">sub/</a>' in body


def test_directory_listing_disabled(site):
    client = _client(site, disable_directory_listing=True)

    listing = client.get("/plain/")
    readme = client.get("/docs/")

    assert listing.status_code == 403
    assert listing.get_data(as_text=True).strip() == "Directory listing disabled"
    assert readme.status_code == 200


def test_readme_not_used_when_markdown_disabled(site):
    client = _client(site, enable_markdown=False, disable_directory_listing=True)

    assert client.get("/docs/").status_code == 403


def test_path_traversal_is_rejected(site):
    client = _client(site / "docs")

    assert client.get("/../hello.txt").status_code == 404
    assert client.get("/%2e%2e/hello.txt").status_code == 404


def test_missing_file(site):
    assert _client(site).get("/missing.txt").status_code == 404


def test_console_request_log(site, caplog):
    with caplog.at_level(logging.INFO, logger="ghttp.fileserver.requests"):
        _client(site).get("/hello.txt?x=1")

    messages = [r.getMessage() for r in caplog.records if r.name == "ghttp.fileserver.requests"]
    assert len(messages) == 1
    assert re.fullmatch(
        r'127\.0\.0\.1 - - \[\d{2}/\w{3}/\d{4} \d{2}:\d{2}:\d{2}\] "GET /hello\.txt\?x=1 HTTP/1\.1" 200 11',
        messages[0],
    )


def test_json_request_log(site, caplog):
    with caplog.at_level(logging.INFO, logger="ghttp.fileserver.requests"):
        _client(site, logging_type=LOGGING_TYPE_JSON).get("/missing")

    completed = [r for r in caplog.records if r.getMessage() == "request completed"]
    assert len(completed) == 1
    record = completed[0]
    assert record.status == 404
    assert record.method == "GET"
    assert record.path == "/missing"
    assert record.duration >= 0
    assert any(r.getMessage() == "request started" for r in caplog.records)


def test_format_console_request_log_without_body():
    line = format_console_request_log("::1", datetime(2006, 1, 2, 15, 4, 5), "HEAD / HTTP/1.0", 200, 0)

    assert line == '::1 - - [02/Jan/2006 15:04:05] "HEAD / HTTP/1.0" 200 -'
