"""Source Bundler MCP Server - Main server definition."""

import asyncio
import base64
import json
import sys
from pathlib import Path

from loguru import logger
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from source_bundler.bundles import (
    bundle_docs,
    bundle_feed,
    bundle_hackernews,
    bundle_repository,
    bundle_repository_file,
)
from source_bundler.config import settings
from source_bundler.security import is_safe_path

# Configure logging
logger.remove()
logger.add(sys.stderr, level=settings.log_level)

mcp = FastMCP(
    "source-bundler",
    instructions=(
        "Turn RSS feeds, Hacker News, documentation sites (llms.txt) and code "
        "repositories into ZIP source bundles for knowledge-base import."
    ),
)

# Grace period (seconds) given to a cancelled task to clean up resources
# before we abandon it entirely.
_CANCEL_GRACE_PERIOD = 5.0


async def _with_timeout(coro, action: str) -> dict:
    """Wrap coroutine with hard timeout.

    Uses ``asyncio.wait`` so the deadline holds even if the inner task
    swallows ``CancelledError``.  On timeout the task gets a brief grace
    period before being abandoned.
    """
    timeout = settings.tool_timeout
    if timeout <= 0:
        return await coro

    task = asyncio.create_task(coro)
    done, _pending = await asyncio.wait({task}, timeout=timeout)

    if done:
        return task.result()

    task.cancel()
    logger.warning(f"Tool '{action}' timed out after {timeout}s, cancelling...")

    try:
        await asyncio.wait_for(asyncio.shield(task), timeout=_CANCEL_GRACE_PERIOD)
    except (asyncio.CancelledError, TimeoutError, Exception):
        pass

    logger.error(f"Tool '{action}' timed out after {timeout}s")
    return {
        "ok": False,
        "error": (
            f"'{action}' timed out after {timeout}s. "
            "Increase TOOL_TIMEOUT or try simpler parameters."
        ),
        "status": 504,
    }


def _store_archive(result: dict) -> dict:
    """Write the archive to OUTPUT_DIR (when set) instead of inlining it."""
    output_dir = settings.get_output_dir()
    archive = result.get("archive")
    if not result.get("ok") or output_dir is None or not archive:
        return result

    output_dir.mkdir(parents=True, exist_ok=True)
    target = output_dir / Path(archive["fileName"]).name
    if not is_safe_path(target, output_dir):
        logger.error(f"Refusing to write archive outside {output_dir}: {target}")
        return result

    target.write_bytes(base64.b64decode(archive["base64"]))
    logger.info(f"Wrote archive to {target}")
    return {**result, "archive": {"fileName": archive["fileName"], "path": str(target)}}


# ---------------------------------------------------------------------------
# bundle tool: feed, hackernews, docs, repo
# ---------------------------------------------------------------------------


@mcp.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        openWorldHint=True,
    ),
)
async def bundle(
    action: str,
    url: str | None = None,
    limit: int | str | None = None,
    max_pages: int | str | None = None,
    mapping_api_key: str | None = None,
    annotation_api_key: str | None = None,
    fetch_linked: bool = False,
    archive_path: str | None = None,
) -> str:
    """Build a ZIP source bundle for knowledge-base import.
    - feed: Bundle the latest entries of an RSS/Atom feed (requires url, limit 1-40, default 15)
    - hackernews: Bundle Hacker News front-page stories with full article text (limit)
    - docs: Bundle a docs site via llms-full.txt, generation (needs both API keys, max_pages 1-50) or llms.txt (requires url)
    - repo: Bundle a GitHub repository (url) or a local ZIP file (archive_path)
    Returns JSON: {"ok": false, "error": ...} or {"ok": true, ..., "archive": {...}}.
    """
    match action:
        case "feed":
            result = await _with_timeout(bundle_feed(url, limit), "feed")

        case "hackernews":
            result = await _with_timeout(bundle_hackernews(limit), "hackernews")

        case "docs":
            result = await _with_timeout(
                bundle_docs(
                    url,
                    mapping_api_key=mapping_api_key,
                    annotation_api_key=annotation_api_key,
                    max_pages=max_pages,
                    fetch_linked=fetch_linked,
                ),
                "docs",
            )

        case "repo":
            if archive_path:
                result = await _with_timeout(
                    bundle_repository_file(archive_path), "repo"
                )
            else:
                result = await _with_timeout(
                    bundle_repository(repository_url=url), "repo"
                )

        case _:
            result = {
                "ok": False,
                "error": (
                    f"Unknown action '{action}'. "
                    "Valid actions: feed, hackernews, docs, repo"
                ),
                "status": 400,
            }

    return json.dumps(_store_archive(result), ensure_ascii=False, indent=2)


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


@mcp.prompt()
def bundle_documentation(site: str) -> str:
    """Generate a prompt to package a documentation site."""
    return (
        f"Package the documentation of {site} for offline reading.\n\n"
        f"1. Use the bundle tool with action='docs' and url='{site}'.\n"
        "2. If the result says canGenerate, ask for mapping and annotation "
        "API keys and retry with them.\n"
        "3. Report the source tag, page count and archive file name."
    )


def main() -> None:
    """Entry point for the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
