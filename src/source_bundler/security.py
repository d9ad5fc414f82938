import ipaddress
import socket
from pathlib import Path
from urllib.parse import urlparse

from loguru import logger


def parse_http_url(raw: str | None) -> str | None:
    """Return *raw* stripped if it is a syntactically valid http(s) URL."""
    if not raw or not raw.strip():
        return None
    candidate = raw.strip()
    try:
        parsed = urlparse(candidate)
        # Accessing .port validates the netloc (raises on "host:abc")
        parsed.port  # noqa: B018
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return None
    if any(ch.isspace() for ch in candidate):
        return None
    return candidate


def is_safe_url(url: str) -> bool:
    """
    Check if a URL is safe to fetch (prevent SSRF).
    Blocks private IPs, loopback, link-local, and non-http schemes.
    """
    try:
        parsed = urlparse(url)
    except Exception:
        return False

    if parsed.scheme not in ("http", "https"):
        logger.warning(f"Blocked unsafe scheme: {parsed.scheme}")
        return False

    hostname = parsed.hostname
    if not hostname:
        return False

    if hostname.lower() in ("localhost", "localhost.localdomain", "127.0.0.1", "::1"):
        logger.warning(f"Blocked localhost: {hostname}")
        return False

    try:
        results = socket.getaddrinfo(hostname, None)

        for res in results:
            ip_str = str(res[4][0])
            try:
                # Remove scope ID for IPv6 link-local (e.g., fe80::1%eth0)
                if "%" in ip_str:
                    ip_str = ip_str.split("%")[0]

                ip = ipaddress.ip_address(ip_str)

                if (
                    ip.is_private
                    or ip.is_loopback
                    or ip.is_link_local
                    or ip.is_reserved
                    or ip.is_multicast
                ):
                    logger.warning(
                        f"Blocked private/unsafe IP: {ip} for host {hostname}"
                    )
                    return False
            except ValueError:
                continue

    except socket.gaierror:
        # Unresolvable hosts cannot be connected to either
        pass
    except Exception as e:
        logger.error(f"Error validating URL {url}: {e}")
        return False

    return True


def is_safe_path(path: str | Path, base_dir: str | Path) -> bool:
    """Check that *path* resolves inside *base_dir*."""
    try:
        resolved = Path(path).expanduser().resolve()
        base = Path(base_dir).expanduser().resolve()
    except (OSError, RuntimeError):
        return False
    return resolved.is_relative_to(base)
