"""Tests for URL validation, SSRF and path guards."""

import socket
from unittest.mock import patch

import pytest

from source_bundler.security import is_safe_path, is_safe_url, parse_http_url


class TestParseHttpUrl:
    @pytest.mark.parametrize(
        "raw",
        [
            "https://example.com",
            "http://example.com:8080/feed.xml?x=1",
            "  https://example.com/rss  ",
        ],
    )
    def test_valid(self, raw):
        assert parse_http_url(raw) == raw.strip()

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            "",
            "   ",
            "example.com",
            "ftp://example.com/file",
            "javascript:alert(1)",
            "https://",
            "https://exa mple.com",
            "http://example.com:notaport/",
        ],
    )
    def test_invalid(self, raw):
        assert parse_http_url(raw) is None


def _resolve_to(ip):
    return patch(
        "socket.getaddrinfo",
        return_value=[(socket.AF_INET, socket.SOCK_STREAM, 6, "", (ip, 80))],
    )


def test_ssrf_basic():
    # Loopback
    assert not is_safe_url("http://127.0.0.1")
    assert not is_safe_url("http://localhost:5000")
    assert not is_safe_url("http://[::1]")

    # Schemes
    assert not is_safe_url("ftp://example.com")
    assert not is_safe_url("file:///etc/passwd")


@pytest.mark.parametrize("ip", ["10.0.0.1", "192.168.1.100", "169.254.169.254", "127.0.0.2"])
def test_private_resolution_blocked(ip):
    with _resolve_to(ip):
        assert not is_safe_url("http://rebinding.example.com")


def test_public_resolution_allowed():
    with _resolve_to("8.8.8.8"):
        assert is_safe_url("https://example.com/path?q=1")


def test_dns_failure_is_allowed():
    with patch("socket.getaddrinfo", side_effect=socket.gaierror("nope")):
        assert is_safe_url("https://does-not-resolve.example")


def test_is_safe_path(tmp_path):
    assert is_safe_path(tmp_path / "bundle.zip", tmp_path)
    assert is_safe_path(tmp_path / "sub" / "bundle.zip", tmp_path)
    assert not is_safe_path(tmp_path / ".." / "escape.zip", tmp_path)
    assert not is_safe_path("/etc/passwd", tmp_path)
