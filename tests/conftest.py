"""Pytest configuration and fixtures."""

import io
import socket
import zipfile

import httpx
import pytest


@pytest.fixture(autouse=True)
def _public_dns(monkeypatch):
    """Resolve every hostname to a public address.

    Keeps the SSRF guard deterministic and offline: no real DNS lookups
    happen during tests.
    """

    def fake_getaddrinfo(host, *args, **kwargs):
        return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("93.184.216.34", 0))]

    monkeypatch.setattr(socket, "getaddrinfo", fake_getaddrinfo)


class Recorder:
    """httpx.MockTransport handler that records every request.

    *routes* maps a full URL to either an ``httpx.Response`` or a callable
    taking the request.  Unknown URLs answer 404.
    """

    def __init__(self, routes: dict | None = None):
        self.routes = routes or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, text="not found")
        if callable(route):
            return route(request)
        return route

    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]

    def count(self, fragment: str) -> int:
        return sum(1 for url in self.urls() if fragment in url)


@pytest.fixture
def recorder():
    """Fresh request recorder; fill ``recorder.routes`` in the test."""
    return Recorder()


@pytest.fixture
async def client(recorder):
    """AsyncClient wired to the recorder through httpx.MockTransport."""
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(recorder), follow_redirects=True
    ) as http:
        yield http


@pytest.fixture
def sample_feed_xml():
    """RSS 2.0 feed with three items of decreasing richness."""
    return b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/">
  <channel>
    <title>Example Blog</title>
    <link>https://blog.example.com</link>
    <description>Notes from the example team</description>
    <item>
      <title>First Post</title>
      <link>https://blog.example.com/first</link>
      <pubDate>Tue, 02 Jan 2024 10:00:00 GMT</pubDate>
      <description>Short teaser</description>
      <content:encoded><![CDATA[<p>Full <b>body</b> of the first post.</p><img src="https://blog.example.com/pic.png" alt="pic">]]></content:encoded>
    </item>
    <item>
      <title>Second Post</title>
      <link>https://blog.example.com/second</link>
      <description><![CDATA[<p>Only a summary here.</p>]]></description>
    </item>
    <item>
      <description></description>
    </item>
  </channel>
</rss>
"""


def _build_zip(members: dict[str, bytes | None]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in members.items():
            if content is None:
                zf.writestr(zipfile.ZipInfo(name.rstrip("/") + "/"), b"")
            else:
                zf.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def make_zip():
    """Build ZIP bytes from ``{name: content}``; None makes a directory entry."""
    return _build_zip
