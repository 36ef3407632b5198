#!/usr/bin/env python3
"""
ICON-DC Batch Icon Collector

Collects up to two icons per word for a whole word list and packs them into
a zip archive organized by word.

Pipeline:
    words -> WordTasks -> WorkerPool (N slots) -> run_word_job -> WordOutcome
          -> BatchReport -> zip archive + overview

Key Design Principles:
- Bounded fan-out: a fixed pool of N workers, FIFO admission
- Failure isolation: one bad word never aborts the batch
- All-or-nothing per word: a word folder is complete or absent
- Wait for everything: outcomes are collected in completion order without
  short-circuiting on the first failure

Author: ICON-DC Team
Version: 1.0.0
"""

from __future__ import annotations

import argparse
import asyncio
import functools
import json
import os
import time
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

import aiohttp
from tqdm.asyncio import tqdm

from icon_search import search_icons
from single_download import download_image, load_words_file, sanitize_word
from word_job import Fetcher, Searcher, WordOutcome, WordTask, run_word_job
from worker_pool import WorkerPool


USER_AGENT = "ICON-DC/1.0"


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def _now_ms() -> int:
    """Wall-clock milliseconds, used for archive names."""
    return int(time.time() * 1000)


def _monotonic() -> float:
    """Monotonic time for duration measurements."""
    return time.monotonic()


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class Config:
    """Batch CLI configuration."""
    input_path: str
    output_folder: str

    base_url: str = ""

    concurrent_jobs: int = 4
    timeout_sec: Optional[float] = None
    job_timeout_sec: Optional[float] = None

    # Output options
    create_zip: bool = True
    create_overview: bool = True
    show_progress: bool = True


def _optional_float(value) -> Optional[float]:
    return None if value is None else float(value)


def parse_args(argv: Optional[list[str]] = None) -> Config:
    """Parse command line arguments or JSON config file."""
    p = argparse.ArgumentParser(
        description="ICON-DC Batch Icon Collector",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python download_batch.py --config icons.json
  python download_batch.py --input words.csv --output icons/ --concurrent_jobs 8
"""
    )

    p.add_argument("--config", type=str, help="Path to JSON config file")

    # Input/Output
    p.add_argument("--input", dest="input_path", type=str, help="CSV word list")
    p.add_argument("--output", dest="output_folder", type=str, help="Output folder")
    p.add_argument("--base_url", type=str, default="",
                   help="Search URL prefix the encoded word is appended to")

    # Concurrency
    p.add_argument("--concurrent_jobs", type=int, default=4)
    p.add_argument("--timeout", dest="timeout_sec", type=float, default=None,
                   help="Per-request timeout in seconds (default: none)")
    p.add_argument("--job_timeout", dest="job_timeout_sec", type=float, default=None,
                   help="Per-word job timeout in seconds (default: none)")

    # Output options
    p.add_argument("--no_zip", action="store_true")
    p.add_argument("--no_overview", action="store_true")
    p.add_argument("--no_progress", action="store_true")

    args = p.parse_args(argv)

    # Load from JSON config if provided
    if args.config:
        cfg_path = Path(args.config)
        with cfg_path.open("r") as f:
            data = json.load(f)

        return Config(
            input_path=data.get("input", ""),
            output_folder=data.get("output", ""),
            base_url=data.get("base_url", ""),
            concurrent_jobs=int(data.get("concurrent_jobs", 4)),
            timeout_sec=_optional_float(data.get("timeout")),
            job_timeout_sec=_optional_float(data.get("job_timeout")),
            create_zip=bool(data.get("create_zip", True)),
            create_overview=bool(data.get("create_overview", True)),
            show_progress=bool(data.get("show_progress", True)),
        )

    if not args.input_path or not args.output_folder:
        p.error("--input and --output are required unless --config is provided")
    if args.concurrent_jobs < 1:
        p.error("--concurrent_jobs must be >= 1")

    return Config(
        input_path=args.input_path,
        output_folder=args.output_folder,
        base_url=args.base_url,
        concurrent_jobs=args.concurrent_jobs,
        timeout_sec=args.timeout_sec,
        job_timeout_sec=args.job_timeout_sec,
        create_zip=not args.no_zip,
        create_overview=not args.no_overview,
        show_progress=not args.no_progress,
    )


# =============================================================================
# TASK CONSTRUCTION
# =============================================================================

def build_tasks(
    words: Iterable[str],
    output_folder: str,
    base_url: str = "",
) -> tuple[list[WordTask], list[str]]:
    """
    Turn a word list into WordTasks.

    Words are trimmed and empties dropped. Two words that map to the same
    word folder would race on it, so only the first is kept.

    Returns:
        Tuple of (tasks, skipped duplicate words)
    """
    tasks: list[WordTask] = []
    skipped: list[str] = []
    seen: set[str] = set()

    for raw in words:
        word = str(raw).strip()
        if not word:
            continue
        folder = sanitize_word(word)
        if folder in seen:
            print(f"[Batch] Skipping duplicate word: {word}")
            skipped.append(word)
            continue
        seen.add(folder)
        tasks.append(WordTask(word=word, output_folder=output_folder, base_url=base_url))

    return tasks, skipped


# =============================================================================
# AGGREGATION
# =============================================================================

@dataclass(frozen=True)
class WordError:
    word: str
    reason: str


@dataclass
class BatchReport:
    """Outcomes of one batch, in the order they completed."""
    outcomes: list[WordOutcome] = field(default_factory=list)
    errors: list[WordError] = field(default_factory=list)
    skipped_duplicates: list[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> list[WordOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def error_messages(self) -> list[str]:
        return [e.reason for e in self.errors]


async def _settle(task: WordTask, future: asyncio.Future) -> WordOutcome:
    """Await a pool future, converting a rejection into a failed outcome."""
    try:
        return await future
    except Exception as e:
        reason = str(e) or type(e).__name__
        if isinstance(e, asyncio.TimeoutError):
            reason = f"job for {task.word} timed out"
        print(f"[Batch] Job for {task.word} raised: {reason}")
        return WordOutcome(word=task.word, success=False, error=reason)


async def process_batch(
    words: Iterable[str],
    base_url: str,
    output_folder: str,
    *,
    pool: WorkerPool,
    session: Optional[aiohttp.ClientSession] = None,
    timeout: Optional[float] = None,
    searcher: Searcher = search_icons,
    fetcher: Fetcher = download_image,
    show_progress: bool = False,
) -> BatchReport:
    """
    Run every word of a batch through the worker pool and report.

    All tasks are submitted before any is awaited. Every future is awaited
    regardless of the others' outcome; errors are listed in completion
    order. No cleanup happens here, run_word_job owns that.
    """
    tasks, skipped = build_tasks(words, output_folder, base_url)
    os.makedirs(output_folder, exist_ok=True)
    report = BatchReport(skipped_duplicates=skipped)

    if session is None:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=timeout),
            headers={"User-Agent": USER_AGENT},
        ) as own_session:
            await _run_tasks(tasks, report, pool, own_session, timeout, searcher, fetcher, show_progress)
    else:
        await _run_tasks(tasks, report, pool, session, timeout, searcher, fetcher, show_progress)

    print(f"[Batch] Processed {report.processed} word(s), {len(report.errors)} failed")
    return report


async def _run_tasks(
    tasks: list[WordTask],
    report: BatchReport,
    pool: WorkerPool,
    session: aiohttp.ClientSession,
    timeout: Optional[float],
    searcher: Searcher,
    fetcher: Fetcher,
    show_progress: bool,
) -> None:
    futures = [
        pool.submit(functools.partial(
            run_word_job, task,
            session=session, timeout=timeout, searcher=searcher, fetcher=fetcher,
        ))
        for task in tasks
    ]
    settled = [asyncio.ensure_future(_settle(t, f)) for t, f in zip(tasks, futures)]

    pbar = tqdm(total=len(tasks), desc="Collecting icons", unit="word", disable=not show_progress)
    for next_done in asyncio.as_completed(settled):
        outcome = await next_done
        report.outcomes.append(outcome)
        if not outcome.success:
            report.errors.append(WordError(word=outcome.word, reason=outcome.error or "unknown error"))
        pbar.update(1)
    pbar.close()


# =============================================================================
# ZIP AND OVERVIEW
# =============================================================================

def create_zip(source_folder: str, zip_path: Optional[str] = None) -> str:
    """
    Create a zip archive of the contents of source_folder.

    Word folders sit at the archive root. An empty source folder yields a
    valid, empty archive.
    """
    src = Path(source_folder)
    if not src.exists():
        raise FileNotFoundError(f"Output folder not found: {src}")

    out = Path(zip_path) if zip_path else Path(str(src) + ".zip")
    out.parent.mkdir(parents=True, exist_ok=True)

    with zipfile.ZipFile(str(out), "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        for path in sorted(src.rglob("*")):
            arcname = path.relative_to(src).as_posix()
            if path.is_dir():
                zf.write(str(path), arcname + "/")
            else:
                zf.write(str(path), arcname)

    return str(out.resolve())


def write_overview(
    *,
    cfg: Config,
    total_words: int,
    report: BatchReport,
    elapsed_sec: float,
    zip_path: Optional[str],
) -> str:
    """Write JSON overview report."""
    successes = report.succeeded

    overview = {
        "icon_dc_version": "1.0.0",
        "script_inputs": {
            "input": cfg.input_path,
            "output_folder": cfg.output_folder,
            "base_url": cfg.base_url,
            "concurrent_jobs": cfg.concurrent_jobs,
            "timeout_sec": cfg.timeout_sec,
            "job_timeout_sec": cfg.job_timeout_sec,
        },
        "summary": {
            "total_words": total_words,
            "processed_words": report.processed,
            "successful_words": len(successes),
            "failed_words": len(report.errors),
            "skipped_duplicates": report.skipped_duplicates,
            "icons_downloaded": sum(len(o.files) for o in successes),
            "success_rate_percent": round((len(successes) / report.processed) * 100.0, 2) if report.processed else 0.0,
            "elapsed_sec": round(elapsed_sec, 3),
            "zip_path": zip_path,
        },
        "errors": [{"word": e.word, "error": e.reason} for e in report.errors],
        "timestamp_local": time.strftime("%Y-%m-%d %H:%M:%S", time.localtime()),
    }

    out = Path(cfg.output_folder)
    overview_path = out.with_name(out.name + "_overview.json")

    with overview_path.open("w") as f:
        json.dump(overview, f, indent=2)

    return str(overview_path.resolve())


# =============================================================================
# MAIN
# =============================================================================

async def run(cfg: Config) -> BatchReport:
    """Run one batch from a Config: load, process, zip, report."""
    print("=" * 72)
    print("ICON-DC Batch Icon Collector")
    print("=" * 72)

    words = load_words_file(cfg.input_path)
    print(f"[Load] Words: {len(words)}")

    start = _monotonic()
    async with WorkerPool(cfg.concurrent_jobs, job_timeout=cfg.job_timeout_sec) as pool:
        report = await process_batch(
            words,
            cfg.base_url,
            cfg.output_folder,
            pool=pool,
            timeout=cfg.timeout_sec,
            show_progress=cfg.show_progress,
        )
    elapsed = _monotonic() - start

    print("\n" + "=" * 72)
    print("FINAL SUMMARY")
    print("=" * 72)
    print(f"Total words:           {len(words)}")
    print(f"Processed words:       {report.processed}")
    print(f"Successful words:      {len(report.succeeded)}")
    print(f"Failed words:          {len(report.errors)}")
    print(f"Elapsed time:          {elapsed:.2f}s")
    for err in report.errors:
        print(f"  - {err.word}: {err.reason}")

    zip_path = None
    if cfg.create_zip:
        try:
            zip_path = create_zip(cfg.output_folder)
            print(f"[Zip] Created: {zip_path}")
        except OSError as e:
            print(f"[Zip] Failed: {e}")

    if cfg.create_overview:
        try:
            overview = write_overview(
                cfg=cfg,
                total_words=len(words),
                report=report,
                elapsed_sec=elapsed,
                zip_path=zip_path,
            )
            print(f"[Report] Overview: {overview}")
        except OSError as e:
            print(f"[Report] Failed: {e}")

    print("=" * 72)
    return report


async def main() -> None:
    """Main entry point."""
    await run(parse_args())


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
