#!/usr/bin/env python3
"""
ICON-DC Icon Search

Resolves a word to candidate icon URLs by fetching a search results page
and collecting the <img> sources it embeds. Only .svg and .png images are
kept, in document order, and at most two are returned.
"""

import asyncio
from http import HTTPStatus
from typing import List, Optional
from urllib.parse import quote, urljoin

import aiohttp
from bs4 import BeautifulSoup

from icon_errors import SearchFailure
from single_download import extract_extension


DEFAULT_SEARCH_URL = "https://thenounproject.com/search/icons/?q="
ICON_SUFFIXES = (".svg", ".png")
MAX_ICONS_PER_WORD = 2

# Characters encodeURIComponent leaves alone besides alphanumerics and "-_."
_URI_COMPONENT_SAFE = "!~*'()"


def build_search_url(word: str, base_url: str = "") -> str:
    """Interpolate the URL-encoded word into base_url, or the default search URL."""
    prefix = base_url if base_url else DEFAULT_SEARCH_URL
    return f"{prefix}{quote(word, safe=_URI_COMPONENT_SAFE)}"


def is_icon_url(url: str) -> bool:
    _, ext = extract_extension(url)
    return ext.lower() in ICON_SUFFIXES


def extract_icon_urls(html: str, page_url: str = "", limit: int = MAX_ICONS_PER_WORD) -> List[str]:
    """
    Collect icon URLs from a search results page.

    Args:
        html: Page markup
        page_url: URL the page was fetched from; relative sources are resolved against it
        limit: Maximum number of URLs to return

    Returns:
        Up to `limit` absolute URLs in document order (duplicates kept)
    """
    soup = BeautifulSoup(html, "html.parser")
    icons: List[str] = []
    for img in soup.find_all("img", src=True):
        src = img["src"].strip()
        if not src or src.startswith("data:"):
            continue
        url = urljoin(page_url, src) if page_url else src
        if not is_icon_url(url):
            continue
        icons.append(url)
        if len(icons) >= limit:
            break
    return icons


async def search_icons(
    session: aiohttp.ClientSession,
    word: str,
    base_url: str = "",
    timeout: Optional[float] = None,
) -> List[str]:
    """
    Search for icons matching a word.

    Performs exactly one GET request, no retries and no caching.

    Raises:
        SearchFailure: On transport errors, timeouts or non-200 responses
    """
    search_url = build_search_url(word, base_url)
    print(f"[Search] {word}: {search_url}")

    try:
        async with session.get(search_url, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
            if response.status != 200:
                try:
                    status_name = HTTPStatus(response.status).phrase
                except ValueError:
                    status_name = "Unknown"
                raise SearchFailure(
                    word, f"Failed to search icons for {word}: HTTP {response.status}: {status_name}"
                )
            html = await response.text(errors="replace")
    except asyncio.TimeoutError:
        raise SearchFailure(word, f"Failed to search icons for {word}: Request Timeout")
    except aiohttp.ClientError as e:
        raise SearchFailure(word, f"Failed to search icons for {word}: Connection Error: {e}")
    except ValueError as e:
        raise SearchFailure(word, f"Failed to search icons for {word}: Invalid URL: {e}")

    icons = extract_icon_urls(html, page_url=str(search_url))
    print(f"[Search] {word}: found {len(icons)} icon(s)")
    return icons
