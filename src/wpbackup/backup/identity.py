"""
Site identifier used to namespace backup filenames.

The identifier is the host part of the site's own ``siteurl`` option, so
several sites can share one backup directory. It is resolved once per run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


def host_from_url(url: str) -> str:
    """
    Reduce a URL to its host (and port) segment.

    >>> host_from_url("https://example.com:8080/blog/")
    'example.com:8080'
    """
    value = url.strip()
    _, sep, rest = value.partition("://")
    if sep:
        value = rest
    return value.split("/", 1)[0].strip()


def resolve_identifier(query: Callable[[], str | None]) -> str:
    """
    Resolve the site identifier with a single best-effort query.

    Args:
        query: Callable returning the site URL, or None when unavailable.

    Returns:
        The host segment of the URL, or an empty string when the query
        fails or returns nothing. Never raises for query failures.
    """
    try:
        url = query()
    except Exception as e:  # the lookup must never stop a backup
        logger.warning(f"Site address unavailable, backups will not be namespaced: {e}")
        return ""

    if not url:
        logger.warning("Site address unavailable, backups will not be namespaced")
        return ""

    identifier = host_from_url(url)
    if identifier:
        logger.info(f"Using site identifier '{identifier}'")
    return identifier
