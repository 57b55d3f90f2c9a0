"""Shared URL and filename helpers."""

from __future__ import annotations

import re
import time

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def join_url(base_url: str, path: str) -> str:
    """Join a page path onto the base URL, keeping any path prefix of the base."""
    if path.startswith(("http://", "https://")):
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def safe_filename_part(value: str) -> str:
    """Reduce an identifier to characters that are safe in a filename."""
    return _UNSAFE_FILENAME_CHARS.sub("-", value).strip("-") or "page"


def file_timestamp() -> str:
    """UTC timestamp usable in filenames, e.g. 2025-01-31T14-05-09."""
    return time.strftime("%Y-%m-%dT%H-%M-%S", time.gmtime())


def iso_timestamp() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
