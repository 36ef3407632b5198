#!/usr/bin/env python3
"""
ICON-DC Word Job

Turns one WordTask into exactly one WordOutcome:

    create <output_folder>/<word>/  ->  search  ->  fetch all candidates

The word directory is the unit of atomicity. If the search fails, finds
nothing, or any single download fails, the whole directory is removed
before the failure is reported, so a word either has its full icon set on
disk or nothing at all.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import shutil
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator, List, Optional

import aiohttp

from icon_errors import DirectoryError, FetchFailure, IconJobError, SearchFailure
from icon_search import search_icons
from single_download import download_image, icon_filename, sanitize_word


Searcher = Callable[..., Awaitable[List[str]]]
Fetcher = Callable[..., Awaitable[int]]


@dataclass(frozen=True)
class WordTask:
    """One word to collect icons for."""
    word: str
    output_folder: str
    base_url: str = ""

    @property
    def word_folder(self) -> str:
        return os.path.join(self.output_folder, sanitize_word(self.word))


@dataclass(frozen=True)
class WordOutcome:
    """Terminal result of a WordTask."""
    word: str
    success: bool
    error: Optional[str] = None
    files: tuple[str, ...] = ()


@contextlib.contextmanager
def word_directory(word: str, path: str) -> Iterator[str]:
    """
    Create a word directory and remove it if the body raises.

    Removal happens once, before the exception propagates, including when
    the job is cancelled or timed out.
    """
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise DirectoryError(word, f"Failed to create directory for {word}: {e}") from e

    try:
        yield path
    except BaseException:
        shutil.rmtree(path, ignore_errors=True)
        raise


async def run_word_job(
    task: WordTask,
    *,
    session: Optional[aiohttp.ClientSession],
    timeout: Optional[float] = None,
    searcher: Searcher = search_icons,
    fetcher: Fetcher = download_image,
) -> WordOutcome:
    """
    Search and download icons for one word.

    Per-word failures (DirectoryError, SearchFailure, FetchFailure) are
    returned as a failed WordOutcome. Anything else propagates to the
    caller, which for batch runs is the worker pool.
    """
    word = task.word
    print(f"[Job] Processing word: {word}")

    try:
        with word_directory(word, task.word_folder) as folder:
            icons = await searcher(session, word, task.base_url, timeout=timeout)
            if not icons:
                raise SearchFailure(word, f"no icons found for {word}")

            print(f"[Job] Downloading {len(icons)} icon(s) for {word}")
            paths = [os.path.join(folder, icon_filename(i, url)) for i, url in enumerate(icons)]
            results = await asyncio.gather(
                *(fetcher(session, url, path, word=word, timeout=timeout)
                  for url, path in zip(icons, paths)),
                return_exceptions=True,
            )

            # All downloads have settled at this point, so removing the
            # directory cannot race a write still in flight.
            for res in results:
                if isinstance(res, IconJobError):
                    raise res
                if isinstance(res, BaseException):
                    raise FetchFailure(word, f"Failed to download icon for {word}: {res}") from res

    except IconJobError as e:
        print(f"[Job] Error processing {word}: {e}")
        return WordOutcome(word=word, success=False, error=str(e))

    return WordOutcome(word=word, success=True, files=tuple(paths))
