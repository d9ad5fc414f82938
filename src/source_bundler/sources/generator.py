"""llms.txt generation for sites that do not publish one.

Stages:
1. Map the site to a bounded URL list (Firecrawl /v1/map)
2. For each URL, strictly in order: scrape markdown (Firecrawl /v1/scrape),
   then annotate it with a short title/description (LiteLLM)
3. Pause ``generation_delay`` seconds before the next URL to respect the
   third-party rate limits
4. Fold the per-page results into an llms.txt link list and an
   llms-full.txt document

A page whose scrape fails is skipped; a page whose annotation fails keeps
placeholder metadata.  Only an empty map (or no page surviving) is fatal.
"""

import asyncio
from dataclasses import dataclass, field
from urllib.parse import urlparse

import httpx
from loguru import logger

from source_bundler.config import settings
from source_bundler.errors import GenerationError
from source_bundler.http import http_client
from source_bundler.llm import annotate_page
from source_bundler.models import GenerationResult
from source_bundler.text import clamp_int


@dataclass
class GenerationOutcome:
    site_title: str
    llms_txt: str
    llms_full_txt: str
    processed_count: int
    mapped_count: int
    pages: list[GenerationResult] = field(default_factory=list)


def clamp_max_pages(raw: object) -> int:
    """Effective page budget in ``[1, 50]``, 20 when unparseable."""
    return clamp_int(
        raw,
        low=1,
        high=settings.max_pages_cap,
        default=settings.default_max_pages,
    )


def _auth_headers(api_key: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


async def map_site(
    site_url: str,
    api_key: str,
    limit: int,
    client: httpx.AsyncClient | None = None,
) -> list[str]:
    """Enumerate up to *limit* crawlable URLs of a site.

    Raises:
        GenerationError: the mapping service failed or answered nonsense.
    """
    endpoint = f"{settings.firecrawl_api_url.rstrip('/')}/v1/map"
    payload = {"url": site_url, "limit": limit, "includeSubdomains": False}

    try:
        async with http_client(client) as http:
            resp = await http.post(
                endpoint, headers=_auth_headers(api_key), json=payload
            )
    except httpx.HTTPError as e:
        raise GenerationError(f"Site mapping request failed: {e}") from e

    if not resp.is_success:
        raise GenerationError(
            f"Site mapping failed (status {resp.status_code}). "
            "Check the mapping API key and try again."
        )

    try:
        data = resp.json()
    except ValueError as e:
        raise GenerationError("Site mapping returned an unreadable response.") from e
    if not isinstance(data, dict):
        raise GenerationError("Site mapping returned an unreadable response.")

    links = data.get("links")
    urls: list[str] = []
    for link in links if isinstance(links, list) else []:
        # v1 returns bare strings, newer API versions return {"url": ...}
        link_url = link.get("url", "") if isinstance(link, dict) else link
        if isinstance(link_url, str) and link_url and link_url not in urls:
            urls.append(link_url)

    logger.info(f"Mapped {len(urls)} URLs for {site_url}")
    return urls[:limit]


async def scrape_page(
    url: str,
    api_key: str,
    client: httpx.AsyncClient | None = None,
) -> dict | None:
    """Scrape one page's main content as markdown.

    Returns ``{"markdown", "title", "description"}`` or None on any failure.
    """
    endpoint = f"{settings.firecrawl_api_url.rstrip('/')}/v1/scrape"
    payload = {"url": url, "formats": ["markdown"], "onlyMainContent": True}

    try:
        async with http_client(client) as http:
            resp = await http.post(
                endpoint,
                headers=_auth_headers(api_key),
                json=payload,
                timeout=settings.scrape_timeout,
            )
        if not resp.is_success:
            logger.debug(f"Scrape failed for {url}: HTTP {resp.status_code}")
            return None
        data = resp.json().get("data") or {}
    except Exception as e:
        logger.debug(f"Scrape failed for {url}: {e}")
        return None

    markdown = data.get("markdown") or ""
    if not markdown.strip():
        return None
    metadata = data.get("metadata") or {}
    return {
        "markdown": markdown,
        "title": metadata.get("title") or "",
        "description": metadata.get("description") or "",
    }


def render_llms_txt(site_title: str, origin: str, pages: list[GenerationResult]) -> str:
    lines = [
        f"# {site_title}",
        "",
        f"> Documentation generated from {len(pages)} pages of {origin}",
        "",
        "## Pages",
        "",
    ]
    lines.extend(f"- [{p.title}]({p.url}): {p.description}" for p in pages)
    return "\n".join(lines) + "\n"


def render_llms_full_txt(
    site_title: str, origin: str, pages: list[GenerationResult]
) -> str:
    header = (
        f"# {site_title}\n\n"
        f"> Full documentation generated from {len(pages)} pages of {origin}"
    )
    sections = [
        f"## {p.title}\n\nSource: {p.url}\n\n{p.markdown.strip()}" for p in pages
    ]
    return "\n\n---\n\n".join([header, *sections]) + "\n"


async def generate_documents(
    site_url: str,
    mapping_api_key: str,
    annotation_api_key: str,
    max_pages: object = None,
    client: httpx.AsyncClient | None = None,
    delay: float | None = None,
) -> GenerationOutcome:
    """Run the map -> scrape -> annotate pipeline for *site_url*.

    Raises:
        GenerationError: mapping failed, found nothing, or no page survived.
    """
    limit = clamp_max_pages(max_pages)
    pause = settings.generation_delay if delay is None else delay
    parsed = urlparse(site_url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    site_title = parsed.hostname or site_url

    async with http_client(client) as http:
        urls = await map_site(origin, mapping_api_key, limit, client=http)
        if not urls:
            raise GenerationError(
                f"Could not find any pages to process on {parsed.hostname}."
            )

        pages: list[GenerationResult] = []
        for position, url in enumerate(urls):
            logger.debug(f"Generating page {position + 1}/{len(urls)}: {url}")
            scraped = await scrape_page(url, mapping_api_key, client=http)
            if scraped is not None:
                title, description = await annotate_page(
                    url,
                    scraped["markdown"],
                    annotation_api_key,
                    fallback_title=scraped["title"],
                )
                pages.append(
                    GenerationResult(
                        url=url,
                        title=title,
                        description=description,
                        markdown=scraped["markdown"],
                        index=position,
                    )
                )
            if position < len(urls) - 1 and pause > 0:
                await asyncio.sleep(pause)

    if not pages:
        raise GenerationError(
            f"Could not scrape any of the {len(urls)} pages found on "
            f"{parsed.hostname}."
        )

    logger.info(f"Generated llms.txt from {len(pages)}/{len(urls)} pages")
    return GenerationOutcome(
        site_title=site_title,
        llms_txt=render_llms_txt(site_title, origin, pages),
        llms_full_txt=render_llms_full_txt(site_title, origin, pages),
        processed_count=len(pages),
        mapped_count=len(urls),
        pages=pages,
    )
