import pytest

from features.fileserver.domain.addresses import (
    format_host_and_port_for_logging,
    format_url_for_logging,
)


@pytest.mark.parametrize(
    "bind_address, expected",
    [
        ("", "localhost:8000"),
        ("0.0.0.0", "localhost:8000"),
        ("127.0.0.1", "localhost:8000"),
        ("192.168.1.5", "192.168.1.5:8000"),
        ("::1", "[::1]:8000"),
        ("example.test", "example.test:8000"),
    ],
)
def test_format_host_and_port_for_logging(bind_address, expected):
    assert format_host_and_port_for_logging(bind_address, 8000) == expected


def test_format_url_for_logging_strips_scheme_separator():
    assert format_url_for_logging("https://", "0.0.0.0", "8443") == "https://localhost:8443"
