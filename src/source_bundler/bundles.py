"""Top-level resolvers and their uniform result contract.

Each ``bundle_*`` coroutine runs exactly one resolver, builds the archive
only after the entry list is final, and returns either
``{"ok": False, "error", "status", ...hints}`` or
``{"ok": True, ...payload, "archive": {"base64", "fileName"}}``.
They never raise.
"""

import asyncio
from pathlib import Path

import httpx
from loguru import logger

from source_bundler.archive import build_archive, summarize_entries
from source_bundler.config import settings
from source_bundler.errors import BundleError, InvalidInputError
from source_bundler.sources.docs import resolve_docs
from source_bundler.sources.feed import resolve_feed
from source_bundler.sources.repo import (
    bundle_zip,
    download_repository_zip,
    parse_repository_url,
)
from source_bundler.text import count_words


def _failure(exc: BundleError) -> dict:
    logger.warning(f"Bundle failed ({exc.status}): {exc.message}")
    return exc.to_result()


async def bundle_feed(
    feed_url: str | None,
    limit: object = None,
    fetch_articles: bool = False,
    client: httpx.AsyncClient | None = None,
    invalid_url_status: int = 422,
) -> dict:
    """Bundle the first *limit* entries of an RSS/Atom feed."""
    try:
        feed = await resolve_feed(
            feed_url,
            limit,
            fetch_articles=fetch_articles,
            client=client,
            invalid_url_status=invalid_url_status,
        )
        archive = build_archive(
            feed.entries,
            title=feed.title,
            description=feed.description,
            url=feed.url,
        )
    except BundleError as e:
        return _failure(e)

    return {
        "ok": True,
        "feed": {
            "title": feed.title,
            "description": feed.description,
            "url": feed.url,
            "totalEntries": feed.total_entries,
            "extractedEntries": len(feed.entries),
        },
        "entries": summarize_entries(feed.entries),
        "archive": archive.to_dict(),
    }


async def bundle_hackernews(
    limit: object = None, client: httpx.AsyncClient | None = None
) -> dict:
    """Bundle Hacker News front-page stories with full article text."""
    return await bundle_feed(
        settings.hackernews_feed_url,
        limit,
        fetch_articles=True,
        client=client,
        invalid_url_status=500,
    )


async def bundle_docs(
    site_url: str | None,
    mapping_api_key: str | None = None,
    annotation_api_key: str | None = None,
    max_pages: object = None,
    fetch_linked: bool = False,
    client: httpx.AsyncClient | None = None,
) -> dict:
    """Bundle a documentation site's llms-full.txt / llms.txt / generated docs."""
    try:
        docs = await resolve_docs(
            site_url,
            mapping_api_key=mapping_api_key,
            annotation_api_key=annotation_api_key,
            max_pages=max_pages,
            fetch_linked=fetch_linked,
            client=client,
        )
        archive = build_archive(
            docs.entries,
            title=docs.title,
            description=docs.description,
            url=docs.document_url,
        )
    except BundleError as e:
        return _failure(e)

    return {
        "ok": True,
        "source": docs.source,
        "fullTextAvailable": docs.full_text_available,
        "site": {
            "url": docs.origin,
            "hostname": docs.hostname,
            "documentUrl": docs.document_url,
        },
        "document": {
            "title": docs.title,
            "description": docs.description,
            "content": docs.content,
            "summary": docs.summary,
            "links": [link.to_dict() for link in docs.links],
        },
        "fetchedLinks": docs.fetched_links,
        "processedCount": docs.processed_count,
        "wordCount": count_words(docs.content),
        "entries": summarize_entries(docs.entries),
        "archive": archive.to_dict(),
    }


async def bundle_repository(
    repository_url: str | None = None,
    archive_bytes: bytes | None = None,
    archive_name: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> dict:
    """Bundle a GitHub repository (by URL) or an uploaded ZIP archive."""
    try:
        if archive_bytes is not None:
            repo = None
            data = archive_bytes
        elif repository_url and repository_url.strip():
            repo = parse_repository_url(repository_url)
            data = await download_repository_zip(repo, client=client)
        else:
            raise InvalidInputError(
                "Provide a repository URL or a ZIP archive.", status=400
            )
        bundle = await asyncio.to_thread(
            bundle_zip, data, repo, archive_name=archive_name
        )
    except BundleError as e:
        return _failure(e)

    return {
        "ok": True,
        "source": bundle.source,
        "repo": bundle.repo.to_dict() if bundle.repo else None,
        "stats": bundle.stats,
        "files": [f.to_dict() for f in bundle.files],
        "archive": bundle.archive.to_dict() if bundle.archive else None,
    }


async def bundle_repository_file(path: str) -> dict:
    """Bundle a ZIP archive read from a local path."""
    archive_path = Path(path).expanduser()
    if not archive_path.is_file():
        return InvalidInputError(f"File not found: {path}", status=400).to_result()
    data = await asyncio.to_thread(archive_path.read_bytes)
    return await bundle_repository(archive_bytes=data, archive_name=archive_path.name)
