"""Tests for llms.txt-based documentation resolution."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from source_bundler.config import settings
from source_bundler.errors import GenerationError, InvalidInputError, NothingFoundError
from source_bundler.models import DocLink, GenerationResult
from source_bundler.sources.docs import (
    fetch_linked_documents,
    parse_llms_header,
    parse_llms_links,
    fetch_well_known,
    resolve_docs,
)
from source_bundler.sources.generator import GenerationOutcome

ORIGIN = "https://docs.example.com"

LLMS_TXT = """# Example Docs

> Everything about the Example toolkit.

## Guides

- [Quickstart](/guides/quickstart.md): Install and run in five minutes
- [API](https://docs.example.com/api.md)
- [External](https://other.example.org/notes.txt): Hosted elsewhere
"""

FULL_TXT = "# Example Docs\n\n> Full text.\n\nAll the documentation in one file.\n"


@pytest.fixture(autouse=True)
def no_default_keys(monkeypatch):
    monkeypatch.setattr(settings, "mapping_api_key", None)
    monkeypatch.setattr(settings, "annotation_api_key", None)


@pytest.fixture
def mock_generate():
    outcome = GenerationOutcome(
        site_title="docs.example.com",
        llms_txt="# docs.example.com\n\n- [Intro Page](https://docs.example.com/intro): Intro.\n",
        llms_full_txt="# docs.example.com\n\n---\n\n## Intro Page\n\nIntro body\n",
        processed_count=1,
        mapped_count=1,
        pages=[
            GenerationResult(
                url="https://docs.example.com/intro",
                title="Intro Page",
                description="Intro.",
                markdown="Intro body",
                index=0,
            )
        ],
    )
    with patch(
        "source_bundler.sources.docs.generate_documents",
        new_callable=AsyncMock,
        return_value=outcome,
    ) as mock:
        yield mock


class TestParsing:
    def test_header(self):
        assert parse_llms_header(LLMS_TXT) == (
            "Example Docs",
            "Everything about the Example toolkit.",
        )

    def test_header_missing(self):
        assert parse_llms_header("just text\n- [a](b)") == (None, None)

    def test_links(self):
        links = parse_llms_links(LLMS_TXT, f"{ORIGIN}/llms.txt")
        assert links == [
            DocLink(
                title="Quickstart",
                url=f"{ORIGIN}/guides/quickstart.md",
                description="Install and run in five minutes",
            ),
            DocLink(title="API", url=f"{ORIGIN}/api.md", description=None),
            DocLink(
                title="External",
                url="https://other.example.org/notes.txt",
                description="Hosted elsewhere",
            ),
        ]

    def test_relative_link_without_slash(self):
        (link,) = parse_llms_links("- [Rel](docs/page.md)", f"{ORIGIN}/sub/llms.txt")
        assert link.url == f"{ORIGIN}/docs/page.md"


class TestFetchWellKnown:
    @pytest.mark.asyncio
    async def test_found(self, recorder, client):
        recorder.routes[f"{ORIGIN}/llms.txt"] = httpx.Response(200, text=LLMS_TXT)

        assert await fetch_well_known(ORIGIN, "llms.txt", client=client) == LLMS_TXT
        assert recorder.requests[0].headers["User-Agent"].startswith("LLMsTxt-Fetcher/1.0")

    @pytest.mark.asyncio
    async def test_blank_body_is_absent(self, recorder, client):
        recorder.routes[f"{ORIGIN}/llms.txt"] = httpx.Response(200, text="  \n")
        assert await fetch_well_known(ORIGIN, "llms.txt", client=client) is None

    @pytest.mark.asyncio
    async def test_html_shell_is_absent(self, recorder, client):
        recorder.routes[f"{ORIGIN}/llms.txt"] = httpx.Response(
            200, text="<!DOCTYPE html><html><body><div id='app'></div></body></html>"
        )
        assert await fetch_well_known(ORIGIN, "llms.txt", client=client) is None

    @pytest.mark.asyncio
    async def test_not_found(self, client):
        assert await fetch_well_known(ORIGIN, "llms.txt", client=client) is None


class TestResolveDocs:
    @pytest.mark.asyncio
    async def test_full_text_wins_without_mapping(self, recorder, client, mock_generate):
        recorder.routes[f"{ORIGIN}/llms-full.txt"] = httpx.Response(200, text=FULL_TXT)

        docs = await resolve_docs(
            f"{ORIGIN}/guide/intro",
            mapping_api_key="fc-key",
            annotation_api_key="llm-key",
            client=client,
        )

        assert docs.source == "llms-full.txt"
        assert docs.full_text_available is True
        assert docs.document_url == f"{ORIGIN}/llms-full.txt"
        assert docs.title == "Example Docs"
        assert docs.content == FULL_TXT
        mock_generate.assert_not_called()
        assert recorder.count("firecrawl") == 0
        assert recorder.urls() == [f"{ORIGIN}/llms-full.txt"]

    @pytest.mark.asyncio
    async def test_llms_txt_without_keys(self, recorder, client, mock_generate):
        recorder.routes[f"{ORIGIN}/llms.txt"] = httpx.Response(200, text=LLMS_TXT)

        docs = await resolve_docs(ORIGIN, client=client)

        assert docs.source == "llms.txt"
        assert docs.full_text_available is False
        assert docs.description == "Everything about the Example toolkit."
        assert len(docs.links) == 3
        assert docs.fetched_links is None
        assert [e.id for e in docs.entries] == ["01-example-docs"]
        mock_generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_llms_txt_beats_generation(self, recorder, client, mock_generate):
        recorder.routes[f"{ORIGIN}/llms.txt"] = httpx.Response(200, text=LLMS_TXT)

        docs = await resolve_docs(
            ORIGIN, mapping_api_key="fc-key", annotation_api_key="llm-key", client=client
        )

        assert docs.source == "llms.txt"
        assert docs.full_text_available is False
        mock_generate.assert_not_called()
        assert recorder.count("firecrawl") == 0

    @pytest.mark.asyncio
    async def test_generation_when_both_paths_miss(self, recorder, client, mock_generate):
        docs = await resolve_docs(
            ORIGIN,
            mapping_api_key="fc-key",
            annotation_api_key="llm-key",
            max_pages="5",
            client=client,
        )

        assert docs.source == "generated"
        assert docs.full_text_available is True
        assert docs.processed_count == 1
        assert docs.summary.startswith("# docs.example.com")
        assert docs.content.endswith("Intro body\n")
        assert [e.id for e in docs.entries] == ["01-intro-page"]
        assert docs.links[0].url == "https://docs.example.com/intro"

        args = mock_generate.call_args
        assert args.args == (ORIGIN, "fc-key", "llm-key")
        assert args.kwargs["max_pages"] == "5"
        # Both well-known paths are requested before generating
        assert recorder.urls() == [f"{ORIGIN}/llms-full.txt", f"{ORIGIN}/llms.txt"]

    @pytest.mark.asyncio
    async def test_generation_failure_is_final(self, recorder, client, mock_generate):
        mock_generate.side_effect = GenerationError("mapping failed")

        with pytest.raises(GenerationError):
            await resolve_docs(
                ORIGIN, mapping_api_key="fc-key", annotation_api_key="llm-key", client=client
            )

    @pytest.mark.asyncio
    async def test_one_key_is_not_enough(self, recorder, client, mock_generate):
        recorder.routes[f"{ORIGIN}/llms.txt"] = httpx.Response(200, text=LLMS_TXT)

        docs = await resolve_docs(ORIGIN, mapping_api_key="fc-key", client=client)

        assert docs.source == "llms.txt"
        mock_generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_keys_from_settings(self, recorder, client, mock_generate, monkeypatch):
        from pydantic import SecretStr

        monkeypatch.setattr(settings, "mapping_api_key", SecretStr("env-fc"))
        monkeypatch.setattr(settings, "annotation_api_key", SecretStr("env-llm"))

        docs = await resolve_docs(ORIGIN, client=client)

        assert docs.source == "generated"
        assert mock_generate.call_args.args[1:] == ("env-fc", "env-llm")

    @pytest.mark.asyncio
    async def test_nothing_found_hints_generation(self, client, mock_generate):
        with pytest.raises(NothingFoundError) as exc_info:
            await resolve_docs(ORIGIN, client=client)

        result = exc_info.value.to_result()
        assert result["ok"] is False
        assert result["status"] == 404
        assert result["canGenerate"] is True

    @pytest.mark.asyncio
    async def test_invalid_urls(self, recorder, client):
        with pytest.raises(InvalidInputError) as exc_info:
            await resolve_docs("", client=client)
        assert exc_info.value.status == 400

        with pytest.raises(InvalidInputError) as exc_info:
            await resolve_docs("docs.example.com", client=client)
        assert exc_info.value.status == 422
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_fetch_linked_documents(self, recorder, client):
        recorder.routes[f"{ORIGIN}/llms.txt"] = httpx.Response(200, text=LLMS_TXT)
        recorder.routes[f"{ORIGIN}/guides/quickstart.md"] = httpx.Response(
            200, text="# Quickstart\n\npip install example"
        )
        recorder.routes[f"{ORIGIN}/api.md"] = httpx.Response(500)

        def boom(request):
            raise httpx.ConnectError("refused", request=request)

        recorder.routes["https://other.example.org/notes.txt"] = boom

        docs = await resolve_docs(ORIGIN, fetch_linked=True, client=client)

        assert [r["error"] for r in docs.fetched_links] == [
            None,
            "HTTP 500",
            "Failed to fetch",
        ]
        assert docs.fetched_links[0]["content"].startswith("# Quickstart")
        assert [e.id for e in docs.entries] == ["01-example-docs", "02-quickstart"]
        assert docs.entries[1].url == f"{ORIGIN}/guides/quickstart.md"


@pytest.mark.asyncio
async def test_fetch_linked_blocks_private_targets(client, monkeypatch):
    import socket

    monkeypatch.setattr(
        socket,
        "getaddrinfo",
        lambda *a, **k: [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.0.0.5", 0))],
    )

    (record,) = await fetch_linked_documents(
        [DocLink(title="Internal", url="http://intranet.example/doc.md")], client=client
    )

    assert record["error"] == "Blocked unsafe URL"
    assert record["content"] is None
