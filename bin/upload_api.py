#!/usr/bin/env python3
"""
ICON-DC Upload API

HTTP endpoints around process_batch:
- POST /api/upload : CSV in, zip bytes out
- POST /upload     : CSV in, zip saved to the public folder, JSON report out
- POST /clear      : remove leftover batch folders and published zips

The router is built around an explicitly owned WorkerPool, so every request
of one server shares the same N slots.
"""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import JSONResponse, Response

from download_batch import BatchReport, create_zip, process_batch
from icon_search import search_icons
from single_download import download_image, load_words
from word_job import Fetcher, Searcher
from worker_pool import WorkerPool


CSV_CONTENT_TYPE = "text/csv"
DOWNLOADS_ROUTE = "/downloads"


@dataclass(frozen=True)
class ServerConfig:
    """Web server configuration."""
    host: str = "0.0.0.0"
    port: int = 3000

    base_url: str = ""

    concurrent_jobs: int = 4
    timeout_sec: Optional[float] = None
    job_timeout_sec: Optional[float] = None

    work_folder: str = "downloads"
    public_folder: str = "public"


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def reserve_zip_path(folder: str) -> str:
    """Create an empty, uniquely named icons-<ms>-<random>.zip in folder and return its path."""
    fd, path = tempfile.mkstemp(prefix=f"icons-{int(time.time() * 1000)}-", suffix=".zip", dir=folder)
    os.close(fd)
    return path


def clear_outputs(cfg: ServerConfig) -> None:
    """Remove leftover batch folders from the work folder and published zips."""
    for entry in Path(cfg.work_folder).iterdir():
        if entry.is_dir():
            shutil.rmtree(entry, ignore_errors=True)
        else:
            entry.unlink(missing_ok=True)
    for entry in Path(cfg.public_folder).glob("*.zip"):
        entry.unlink(missing_ok=True)


def create_router(
    cfg: ServerConfig,
    pool: WorkerPool,
    *,
    searcher: Searcher = search_icons,
    fetcher: Fetcher = download_image,
) -> APIRouter:
    """Build the upload routes bound to one config and one worker pool."""
    router = APIRouter()
    os.makedirs(cfg.work_folder, exist_ok=True)
    os.makedirs(cfg.public_folder, exist_ok=True)

    async def read_words(file: Optional[UploadFile]) -> tuple[Optional[list[str]], Optional[JSONResponse]]:
        if file is None:
            return None, _error("No file uploaded", 400)
        content_type = (file.content_type or "").split(";")[0].strip()
        if content_type != CSV_CONTENT_TYPE:
            return None, _error("Only CSV files are allowed", 400)
        try:
            words = load_words(await file.read())
        except UnicodeDecodeError:
            return None, _error("CSV file must be UTF-8 encoded", 400)
        print(f"[Server] Parsed {len(words)} word(s) from {file.filename}")
        if not words:
            return None, _error("No words found in CSV file", 400)
        return words, None

    async def run_batch(words: list[str], base_url: str, zip_path: str) -> BatchReport:
        """Process a batch in a scratch folder, zip it, then drop the folder."""
        batch_folder = tempfile.mkdtemp(prefix="downloads-", dir=cfg.work_folder)
        print(f"[Server] Created download directory: {batch_folder}")
        print(f"[Server] Using base URL: {base_url or '(default)'}")
        try:
            report = await process_batch(
                words,
                base_url,
                batch_folder,
                pool=pool,
                timeout=cfg.timeout_sec,
                searcher=searcher,
                fetcher=fetcher,
            )
            await asyncio.to_thread(create_zip, batch_folder, zip_path)
        finally:
            await asyncio.to_thread(shutil.rmtree, batch_folder, ignore_errors=True)
        return report

    @router.post("/api/upload")
    async def upload_zip(
        file: Optional[UploadFile] = File(None),
        baseUrl: str = Form(""),
    ):
        words, err = await read_words(file)
        if err is not None:
            return err

        zip_path = reserve_zip_path(cfg.work_folder)
        try:
            report = await run_batch(words, baseUrl.strip() or cfg.base_url, zip_path)
            content = await asyncio.to_thread(Path(zip_path).read_bytes)
        except Exception as e:
            print(f"[Server] Error processing upload: {e}")
            return _error(str(e), 500)
        finally:
            await asyncio.to_thread(Path(zip_path).unlink, missing_ok=True)

        word_errors = [{"word": err.word, "error": err.reason} for err in report.errors]
        return Response(
            content=content,
            media_type="application/zip",
            headers={
                "Content-Disposition": f"attachment; filename={os.path.basename(zip_path)}",
                "X-Processed-Words": str(report.processed),
                "X-Failed-Words": str(len(report.errors)),
                # ASCII-escaped so non-Latin words survive the header encoding
                "X-Word-Errors": json.dumps(word_errors, ensure_ascii=True),
            },
        )

    @router.post("/upload")
    async def upload_report(
        file: Optional[UploadFile] = File(None),
        baseUrl: str = Form(""),
    ):
        words, err = await read_words(file)
        if err is not None:
            return err

        zip_path = reserve_zip_path(cfg.public_folder)
        zip_name = os.path.basename(zip_path)
        try:
            report = await run_batch(words, baseUrl.strip() or cfg.base_url, zip_path)
        except Exception as e:
            print(f"[Server] Error processing upload: {e}")
            await asyncio.to_thread(Path(zip_path).unlink, missing_ok=True)
            return _error(str(e), 500)

        print("[Server] Processing complete. Sending response...")
        return {
            "success": True,
            "downloadUrl": f"{DOWNLOADS_ROUTE}/{zip_name}",
            "processedWords": report.processed,
            "errors": report.error_messages,
        }

    @router.post("/clear")
    async def clear():
        try:
            await asyncio.to_thread(clear_outputs, cfg)
        except OSError as e:
            print(f"[Server] Error clearing files: {e}")
            return _error(str(e), 500)
        return {"success": True, "message": "All files cleared successfully"}

    return router
