"""Documentation-site resolution via the llms.txt convention.

Resolution order (first success wins):
1. ``/llms-full.txt`` at the site origin (full concatenated docs)
2. ``/llms.txt`` (link index only)
3. Generation (map -> scrape -> annotate), only when both well-known paths
   missed and both a mapping key and an annotation key are available

When nothing works the failure says whether generation would be possible
with credentials.
"""

import re
from dataclasses import dataclass, field
from urllib.parse import urljoin, urlparse

import httpx
from loguru import logger

from source_bundler.config import settings
from source_bundler.errors import InvalidInputError, NothingFoundError
from source_bundler.http import http_client
from source_bundler.models import DocLink, Entry
from source_bundler.security import is_safe_url, parse_http_url
from source_bundler.sources.generator import generate_documents
from source_bundler.text import create_entry_id

LLMS_FULL_TXT = "llms-full.txt"
LLMS_TXT = "llms.txt"
SOURCE_GENERATED = "generated"

DOCS_ACCEPT = "text/plain, text/markdown, */*"
LINKED_ACCEPT = "text/plain, text/markdown, text/html, */*"

_LINK_RE = re.compile(r"^-\s+\[([^\]]+)\]\(([^)]+)\)(?::\s*(.*))?$", re.MULTILINE)


@dataclass
class DocsResult:
    source: str
    full_text_available: bool
    origin: str
    hostname: str
    document_url: str
    title: str
    description: str | None
    content: str
    links: list[DocLink] = field(default_factory=list)
    fetched_links: list[dict] | None = None
    processed_count: int | None = None
    summary: str | None = None
    entries: list[Entry] = field(default_factory=list)


# ---------------------------------------------------------------------------
# llms.txt parsing
# ---------------------------------------------------------------------------


def parse_llms_header(content: str) -> tuple[str | None, str | None]:
    """Return the first ``# title`` and first ``> description`` lines."""
    title: str | None = None
    description: str | None = None
    for line in content.splitlines():
        stripped = line.strip()
        if title is None and stripped.startswith("# "):
            title = stripped[2:].strip() or None
        elif description is None and stripped.startswith("> "):
            description = stripped[2:].strip() or None
        if title and description:
            break
    return title, description


def parse_llms_links(content: str, base_url: str) -> list[DocLink]:
    """Extract ``- [title](url): description`` references.

    Relative URLs are resolved against the origin of *base_url*.
    """
    parsed_base = urlparse(base_url)
    origin = f"{parsed_base.scheme}://{parsed_base.netloc}"

    links: list[DocLink] = []
    for match in _LINK_RE.finditer(content):
        title, url, description = match.group(1), match.group(2).strip(), match.group(3)
        if url.startswith(("http://", "https://")):
            absolute = url
        else:
            try:
                absolute = urljoin(origin + "/", url)
            except ValueError:
                continue
        links.append(
            DocLink(
                title=title.strip(),
                url=absolute,
                description=(description or "").strip() or None,
            )
        )
    return links


def _looks_like_html(content: str) -> bool:
    head = content.lstrip()[:100].lower()
    return head.startswith("<!doctype") or head.startswith("<html")


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------


async def fetch_well_known(
    origin: str, filename: str, client: httpx.AsyncClient | None = None
) -> str | None:
    """GET ``{origin}/{filename}``; return its text if 2xx and non-empty."""
    url = f"{origin}/{filename}"
    try:
        async with http_client(client) as http:
            resp = await http.get(
                url,
                headers={
                    "User-Agent": settings.docs_user_agent,
                    "Accept": DOCS_ACCEPT,
                },
            )
    except httpx.HTTPError as e:
        logger.debug(f"Well-known fetch failed for {url}: {e}")
        return None

    if not resp.is_success:
        logger.debug(f"No {filename} at {origin} (HTTP {resp.status_code})")
        return None

    content = resp.text
    if not content.strip():
        logger.info(f"{url} exists but is empty")
        return None
    # SPA hosts answer every path with their HTML shell
    if _looks_like_html(content):
        logger.info(f"Skipping {url}: served an HTML page")
        return None

    logger.info(f"Found {filename} at {url} ({len(content)} chars)")
    return content


async def fetch_linked_documents(
    links: list[DocLink], client: httpx.AsyncClient | None = None
) -> list[dict]:
    """Fetch every linked document in order, recording per-link errors."""
    fetched: list[dict] = []
    async with http_client(client) as http:
        for link in links:
            record = {"title": link.title, "url": link.url, "content": None, "error": None}
            if not is_safe_url(link.url):
                record["error"] = "Blocked unsafe URL"
                fetched.append(record)
                continue
            try:
                resp = await http.get(
                    link.url,
                    headers={
                        "User-Agent": settings.docs_user_agent,
                        "Accept": LINKED_ACCEPT,
                    },
                )
                if not resp.is_success:
                    record["error"] = f"HTTP {resp.status_code}"
                elif not resp.text.strip():
                    record["error"] = "Empty document"
                else:
                    record["content"] = resp.text
            except httpx.HTTPError as e:
                logger.debug(f"Linked fetch failed for {link.url}: {e}")
                record["error"] = "Failed to fetch"
            fetched.append(record)

    ok = sum(1 for r in fetched if r["content"] is not None)
    logger.info(f"Fetched {ok}/{len(links)} linked documents")
    return fetched


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def _document_entries(
    title: str, document_url: str, content: str, fetched: list[dict] | None
) -> list[Entry]:
    entries = [
        Entry(
            id=create_entry_id(1, title),
            title=title,
            url=document_url,
            published_at=None,
            text_content=content,
        )
    ]
    for record in fetched or []:
        if record["content"] is None:
            continue
        entries.append(
            Entry(
                id=create_entry_id(len(entries) + 1, record["title"]),
                title=record["title"],
                url=record["url"],
                published_at=None,
                text_content=record["content"],
            )
        )
    return entries


async def _from_document(
    source: str,
    origin: str,
    hostname: str,
    content: str,
    fetch_linked: bool,
    client: httpx.AsyncClient,
) -> DocsResult:
    document_url = f"{origin}/{source}"
    title, description = parse_llms_header(content)
    title = title or hostname
    links = parse_llms_links(content, document_url)

    fetched = None
    if fetch_linked and links:
        fetched = await fetch_linked_documents(links, client=client)

    return DocsResult(
        source=source,
        full_text_available=source == LLMS_FULL_TXT,
        origin=origin,
        hostname=hostname,
        document_url=document_url,
        title=title,
        description=description,
        content=content,
        links=links,
        fetched_links=fetched,
        entries=_document_entries(title, document_url, content, fetched),
    )


async def resolve_docs(
    site_url: str | None,
    mapping_api_key: str | None = None,
    annotation_api_key: str | None = None,
    max_pages: object = None,
    fetch_linked: bool = False,
    client: httpx.AsyncClient | None = None,
    delay: float | None = None,
) -> DocsResult:
    """Resolve a documentation site to a single llms.txt-style document.

    Raises:
        InvalidInputError: missing or malformed site URL
        GenerationError: generation was attempted and failed
        NothingFoundError: no document and no generation (``canGenerate``)
    """
    if not site_url or not site_url.strip():
        raise InvalidInputError("Please enter a website URL.", status=400)
    valid_url = parse_http_url(site_url)
    if valid_url is None:
        raise InvalidInputError("That doesn't look like a valid URL.")

    parsed = urlparse(valid_url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    hostname = parsed.hostname or parsed.netloc
    mapping_key = settings.resolve_mapping_key(mapping_api_key)
    annotation_key = settings.resolve_annotation_key(annotation_api_key)

    async with http_client(client) as http:
        full_text = await fetch_well_known(origin, LLMS_FULL_TXT, client=http)
        if full_text is not None:
            return await _from_document(
                LLMS_FULL_TXT, origin, hostname, full_text, fetch_linked, http
            )

        short_text = await fetch_well_known(origin, LLMS_TXT, client=http)
        if short_text is not None:
            return await _from_document(
                LLMS_TXT, origin, hostname, short_text, fetch_linked, http
            )

        if mapping_key and annotation_key:
            logger.info(f"No {LLMS_FULL_TXT} or {LLMS_TXT} at {origin}, generating one")
            outcome = await generate_documents(
                valid_url,
                mapping_key,
                annotation_key,
                max_pages=max_pages,
                client=http,
                delay=delay,
            )
            entries = [
                Entry(
                    id=create_entry_id(position, page.title),
                    title=page.title,
                    url=page.url,
                    published_at=None,
                    text_content=page.markdown,
                )
                for position, page in enumerate(outcome.pages, start=1)
            ]
            return DocsResult(
                source=SOURCE_GENERATED,
                full_text_available=True,
                origin=origin,
                hostname=hostname,
                document_url=origin,
                title=outcome.site_title,
                description=(
                    f"Generated from {outcome.processed_count} pages of {origin}"
                ),
                content=outcome.llms_full_txt,
                links=[
                    DocLink(title=p.title, url=p.url, description=p.description)
                    for p in outcome.pages
                ],
                processed_count=outcome.processed_count,
                summary=outcome.llms_txt,
                entries=entries,
            )

    raise NothingFoundError(
        f"No llms.txt or llms-full.txt found at {origin}. "
        "Provide mapping and annotation API keys to generate one.",
        canGenerate=True,
    )
