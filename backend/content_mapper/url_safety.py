"""
URL checks run before anything is fetched, so the scraper cannot be pointed
at loopback, private, or link-local targets.
"""

import ipaddress
import re
import socket
from urllib.parse import urlsplit, urlunsplit

from content_mapper.errors import UnsafeUrlError

ALLOWED_SCHEMES = ("http", "https")
BLOCKED_HOSTS = {"localhost", "localhost.localdomain", "0.0.0.0", "::1", "::"}

_NUMERIC_HOST = re.compile(r"^[0-9a-fx.]+$")


def _as_ip(host: str):
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        ip = None
    if ip is None and _NUMERIC_HOST.match(host):
        # Shorthand IPv4 forms (2130706433, 127.1, 0x7f.0.0.1) that resolvers accept
        try:
            ip = ipaddress.IPv4Address(socket.inet_aton(host))
        except OSError:
            return None
    if ip is not None and ip.version == 6 and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def _is_blocked_ip(host: str) -> bool:
    ip = _as_ip(host)
    if ip is None:
        return False
    return ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_unspecified or ip.is_reserved


def is_safe_url(url: str) -> bool:
    try:
        validate_and_sanitize_url(url)
    except UnsafeUrlError:
        return False
    return True


def validate_and_sanitize_url(raw: str) -> str:
    """Return a normalized absolute http(s) URL or raise UnsafeUrlError."""
    url = (raw or "").strip()
    if not url:
        raise UnsafeUrlError("URL is required")
    if "://" not in url:
        url = "https://" + url

    try:
        parts = urlsplit(url)
        host = parts.hostname
        parts.port  # raises on a malformed port
    except ValueError:
        raise UnsafeUrlError("Invalid URL format")

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise UnsafeUrlError(f"URL scheme '{parts.scheme}' is not allowed")
    if not host:
        raise UnsafeUrlError("Invalid URL format")

    host = host.lower().rstrip(".")
    if host in BLOCKED_HOSTS or host.endswith(".localhost") or _is_blocked_ip(host):
        raise UnsafeUrlError("URL is not allowed (private or loopback address)")

    netloc = parts.netloc.rsplit("@", 1)[-1].lower()
    path = parts.path or "/"
    return urlunsplit((parts.scheme.lower(), netloc, path, parts.query, ""))
