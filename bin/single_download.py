#!/usr/bin/env python3
"""
ICON-DC Single Download Module

Helpers for saving individual icons and loading word lists.

This module is used by word_job.py and download_batch.py and provides:
- load_words(): CSV word list loader (polars)
- sanitize_word(): word -> filesystem-safe directory name
- extract_extension(): URL extension extraction
- download_image(): Core async download function for one icon
"""

import io
import os
import asyncio
import aiohttp
import polars as pl
from urllib.parse import urlparse
from http import HTTPStatus
from typing import Optional, Tuple, List

from icon_errors import FetchFailure


DEFAULT_ICON_EXT = ".png"


def sanitize_word(word) -> str:
    """
    Clean a word for use as a directory name.

    Args:
        word: Raw word from the word list

    Returns:
        Sanitized name safe for filesystem, never "." or ".."
    """
    name = str(word).strip().replace("'", "").replace('"', "").replace(" ", "_")
    name = name.replace("/", "_").replace("\\", "_").replace(os.sep, "_")
    if name in ("", ".", ".."):
        return "_"
    return name


def extract_extension(url: str) -> Tuple[str, str]:
    """
    Extract file extension from URL, handling query parameters.

    Args:
        url: Image URL

    Returns:
        Tuple of (base_url, extension) where extension includes the dot
    """
    # Parse URL to handle query parameters properly
    parsed = urlparse(str(url))
    clean_path = parsed.path
    base_url, original_ext = os.path.splitext(clean_path)

    # If no extension in path, check if URL has one
    if not original_ext:
        full_base, full_ext = os.path.splitext(str(url).split('?')[0])
        if full_ext and "/" not in full_ext:
            original_ext = full_ext

    return base_url, original_ext


def icon_filename(index: int, url: str) -> str:
    """Filename for the index-th (0-based) icon of a word, e.g. icon1.svg."""
    _, ext = extract_extension(url)
    return f"icon{index + 1}{ext or DEFAULT_ICON_EXT}"


def load_words(content: bytes) -> List[str]:
    """
    Load a flat word list from CSV content using Polars.

    The content is read headerless with standard CSV quoting, so quoted
    fields may contain commas and doubled quotes. Every field of every row
    becomes a word, row by row in file order. Fields are trimmed and empty
    fields and blank lines are dropped.

    Args:
        content: Raw CSV bytes (UTF-8, optional BOM)

    Returns:
        List of words
    """
    text = content.decode("utf-8-sig")
    lines = text.splitlines()
    if not any(line.strip() for line in lines):
        return []

    # Rows may be ragged; a quoted comma only lowers a row's field count, so
    # the widest raw line bounds the schema and short rows are null-padded.
    width = max(line.count(",") for line in lines) + 1
    schema = {f"column_{i + 1}": pl.Utf8 for i in range(width)}

    rows = pl.read_csv(
        io.BytesIO(text.encode("utf-8")),
        has_header=False,
        separator=",",
        quote_char='"',
        schema=schema,
        truncate_ragged_lines=True,
    )

    words = (
        rows
        .select(pl.concat_list(pl.all()).alias("word"))
        .explode("word")
        .with_columns(pl.col("word").str.strip_chars())
        .filter(pl.col("word").is_not_null() & (pl.col("word") != ""))
    )
    return words.get_column("word").to_list()


def load_words_file(file_path: str) -> List[str]:
    """
    Load a word list from a CSV file on disk.

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Input file {file_path} not found")
    with open(file_path, "rb") as f:
        return load_words(f.read())


def save_icon(content: bytes, file_path: str) -> Tuple[bool, Optional[str]]:
    """
    Write icon bytes to disk.

    Returns:
        Tuple of (success: bool, error: str or None)
    """
    try:
        with open(file_path, 'wb') as f:
            f.write(content)
        return True, None
    except OSError as e:
        return False, str(e)


async def download_via_http_get(
    session: aiohttp.ClientSession,
    url: str,
    timeout: Optional[float] = None
) -> Tuple[Optional[bytes], Optional[int], Optional[str]]:
    """
    Download content via standard HTTP GET request.

    Args:
        session: aiohttp ClientSession
        url: URL to download
        timeout: Request timeout in seconds (None waits indefinitely)

    Returns:
        Tuple of (content: bytes, status_code: int, error: str)
    """
    try:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
            if response.status == 200:
                content = await response.read()
                return content, response.status, None
            try:
                status_name = HTTPStatus(response.status).phrase
            except ValueError:
                status_name = "Unknown"
            return None, response.status, f"HTTP {response.status}: {status_name}"

    except asyncio.TimeoutError:
        return None, 408, "Request Timeout"
    except aiohttp.ClientError as e:
        return None, None, f"Connection Error: {str(e)}"
    except ValueError as e:
        # yarl/aiohttp reject malformed URLs with ValueError
        return None, None, f"Invalid URL: {str(e)}"


async def download_image(
    session: aiohttp.ClientSession,
    url: str,
    file_path: str,
    word: str = "",
    timeout: Optional[float] = None,
) -> int:
    """
    Download a single icon and save it to file_path.

    Args:
        session: aiohttp ClientSession
        url: Icon URL
        file_path: Destination path (parent directory must exist)
        word: Word the icon belongs to, carried on errors
        timeout: Request timeout in seconds (None waits indefinitely)

    Returns:
        Number of bytes written

    Raises:
        FetchFailure: On HTTP, transport or filesystem errors
    """
    content, status_code, error = await download_via_http_get(session, url, timeout)
    if content is None:
        raise FetchFailure(word, f"Failed to download {url}: {error}", url=url, status_code=status_code)

    ok, save_error = save_icon(content, file_path)
    if not ok:
        raise FetchFailure(word, f"Failed to save {file_path}: {save_error}", url=url, status_code=status_code)

    print(f"[Fetch] {word}: saved {url} -> {file_path} ({len(content)} bytes)")
    return len(content)
