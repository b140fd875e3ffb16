"""
Report file locations derived from page URLs.

    https://example.com/                      -> example.com/root/index.json
    https://example.com/about.html            -> example.com/root/about.json
    https://example.com/a/b/advanced-search/  -> example.com/a/b/advanced-search.json
"""

import hashlib
import re
from pathlib import Path
from typing import Union
from urllib.parse import urlparse

UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
PLAIN_SEGMENT = re.compile(r"^[A-Za-z0-9_-]+$")


def _sanitize(segment: str, replacement: str = "_") -> str:
    return UNSAFE_CHARS.sub(replacement, segment)


def _domain(parsed) -> str:
    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    if not host:
        raise ValueError(f"Invalid URL: {parsed.geturl()}")
    return host


def _segments(parsed) -> list[str]:
    return [part for part in parsed.path.strip("/").split("/") if part]


def _is_file_segment(segment: str) -> bool:
    return "." in segment and not PLAIN_SEGMENT.match(segment)


def report_path_for_url(url: str, base_dir: Union[str, Path] = "reports", extension: str = "json") -> Path:
    """Map a page URL to ``<base>/<domain>/<dirs>/<name>.<ext>``."""
    parsed = urlparse(url)
    domain = _domain(parsed)
    segments = _segments(parsed)

    filename = "index"
    if segments:
        last = segments.pop()
        if _is_file_segment(last):
            last = last.rsplit(".", 1)[0]
        filename = _sanitize(last).strip() or "index"

    folder = [_sanitize(segment) for segment in segments] or ["root"]
    return Path(base_dir, domain, *folder, f"{filename}.{extension}")


def error_report_path(url: str, base_dir: Union[str, Path] = "reports") -> Path:
    """Error reports sit beside the page report as ``error-<name>.json``."""
    path = report_path_for_url(url, base_dir, "json")
    return path.with_name(f"error-{path.name}")


def url_based_dir(url: str, base_dir: Union[str, Path] = "test-results") -> Path:
    """Directory for per-page artifacts: ``<base>/<domain>/<dirs>/<page-name>``."""
    parsed = urlparse(url)
    parts = [_domain(parsed)]
    segments = _segments(parsed)

    if segments and _is_file_segment(segments[-1]):
        filename = segments.pop()
        parts.extend(segments)
        parts.append(_sanitize(filename.rsplit(".", 1)[0], "-"))
    else:
        parts.extend(segments)

    return Path(base_dir, *parts)


def unique_url_based_dir(url: str, base_dir: Union[str, Path] = "test-results") -> Path:
    """Like ``url_based_dir`` but never returns an existing directory.

    Collisions get a short md5 suffix of the URL, then a counter.
    """
    path = url_based_dir(url, base_dir)
    if not path.exists():
        return path

    url_hash = hashlib.md5(url.encode("utf-8")).hexdigest()[:6]
    candidate = path.with_name(f"{path.name}-{url_hash}")
    counter = 0
    while candidate.exists():
        counter += 1
        candidate = path.with_name(f"{path.name}-{url_hash}-{counter}")
    return candidate
