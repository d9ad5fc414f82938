"""Source Bundler entry point."""

import asyncio
import base64
import sys
from pathlib import Path

_USAGE = """Usage:
  source-bundler                      Run the MCP server (stdio)
  source-bundler feed URL [LIMIT]     Bundle an RSS/Atom feed
  source-bundler hackernews [LIMIT]   Bundle Hacker News front-page stories
  source-bundler docs SITE [PAGES]    Bundle a docs site (llms.txt)
  source-bundler repo URL|ZIP_PATH    Bundle a GitHub repo or local ZIP
"""


def _write_archive(result: dict, output_dir: Path) -> int:
    """Print a summary and save the archive; return the process exit code."""
    if not result.get("ok"):
        print(f"Error ({result.get('status')}): {result.get('error')}")
        return 1

    archive = result["archive"]
    target = output_dir / archive["fileName"]
    target.write_bytes(base64.b64decode(archive["base64"]))

    if "feed" in result:
        feed = result["feed"]
        print(
            f"{feed['title']}: {feed['extractedEntries']} of "
            f"{feed['totalEntries']} entries"
        )
    elif "stats" in result:
        stats = result["stats"]
        print(
            f"Included {stats['includedFiles']} of {stats['totalFiles']} files "
            f"({stats['codeFilesConverted']} code files converted)"
        )
    else:
        print(f"{result['document']['title']}: source {result['source']}")
    print(f"Saved {target}")
    return 0


def _run_command(argv: list[str]) -> int:
    """Run one resolver from the command line."""
    from source_bundler.bundles import (
        bundle_docs,
        bundle_feed,
        bundle_hackernews,
        bundle_repository,
        bundle_repository_file,
    )

    command, args = argv[0], argv[1:]
    match command:
        case "feed" if args:
            coro = bundle_feed(args[0], args[1] if len(args) > 1 else None)
        case "hackernews":
            coro = bundle_hackernews(args[0] if args else None)
        case "docs" if args:
            coro = bundle_docs(args[0], max_pages=args[1] if len(args) > 1 else None)
        case "repo" if args:
            if Path(args[0]).expanduser().is_file():
                coro = bundle_repository_file(args[0])
            else:
                coro = bundle_repository(repository_url=args[0])
        case _:
            print(_USAGE)
            return 2

    result = asyncio.run(coro)
    return _write_archive(result, Path.cwd())


def _cli() -> None:
    """CLI dispatcher: server (default) or a one-shot bundle command."""
    if len(sys.argv) >= 2 and sys.argv[1] in ("-h", "--help", "help"):
        print(_USAGE)
    elif len(sys.argv) >= 2:
        sys.exit(_run_command(sys.argv[1:]))
    else:
        from source_bundler.server import main

        main()


if __name__ == "__main__":
    _cli()
