#!/usr/bin/env python3
"""
ICON-DC Web UI - NiceGUI Frontend

Upload a CSV word list, collect icons for every word and download them as
a zip archive. The same server exposes the HTTP API from upload_api.py.
"""

import argparse
import asyncio
import json
import os
import shutil
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from nicegui import ui, app

from download_batch import create_zip, process_batch
from single_download import load_words
from upload_api import DOWNLOADS_ROUTE, ServerConfig, clear_outputs, create_router
from worker_pool import WorkerPool


# -----------------------------------------
# Configuration
# -----------------------------------------

def parse_args(argv: Optional[List[str]] = None) -> ServerConfig:
    """Parse command line arguments or JSON config file."""
    p = argparse.ArgumentParser(description="ICON-DC Web UI")
    p.add_argument("--config", type=str, help="Path to JSON config file")
    p.add_argument("--host", type=str, default="0.0.0.0")
    p.add_argument("--port", type=int, default=int(os.environ.get("PORT", 3000)))
    p.add_argument("--base_url", type=str, default="")
    p.add_argument("--concurrent_jobs", type=int, default=4)
    p.add_argument("--timeout", dest="timeout_sec", type=float, default=None)
    p.add_argument("--job_timeout", dest="job_timeout_sec", type=float, default=None)
    p.add_argument("--work_folder", type=str, default="downloads")
    p.add_argument("--public_folder", type=str, default="public")
    args = p.parse_args(argv)

    if args.config:
        with Path(args.config).open("r") as f:
            data = json.load(f)
        timeout = data.get("timeout")
        job_timeout = data.get("job_timeout")
        return ServerConfig(
            host=data.get("host", args.host),
            port=int(data.get("port", args.port)),
            base_url=data.get("base_url", ""),
            concurrent_jobs=int(data.get("concurrent_jobs", 4)),
            timeout_sec=float(timeout) if timeout is not None else None,
            job_timeout_sec=float(job_timeout) if job_timeout is not None else None,
            work_folder=data.get("work_folder", "downloads"),
            public_folder=data.get("public_folder", "public"),
        )

    if args.concurrent_jobs < 1:
        p.error("--concurrent_jobs must be >= 1")

    return ServerConfig(
        host=args.host,
        port=args.port,
        base_url=args.base_url,
        concurrent_jobs=args.concurrent_jobs,
        timeout_sec=args.timeout_sec,
        job_timeout_sec=args.job_timeout_sec,
        work_folder=args.work_folder,
        public_folder=args.public_folder,
    )


# -----------------------------------------
# Page State
# -----------------------------------------

@dataclass
class PageState:
    """State of one browser page."""
    base_url: str = ""
    is_running: bool = False
    file_name: str = ""
    processed: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    zip_bytes: Optional[bytes] = None
    zip_name: str = ""


def build_page(cfg: ServerConfig, pool: WorkerPool) -> None:
    """Register the main page, bound to the server's pool."""

    @ui.page('/')
    def main_page():
        state = PageState(base_url=cfg.base_url)

        with ui.header().classes('items-center justify-between'):
            with ui.row().classes('items-center gap-4'):
                ui.icon('collections', size='lg').classes('text-white')
                ui.label('ICON-DC').classes('text-2xl font-bold text-white')
                ui.label('Icon Batch Collector').classes('text-sm text-gray-300')

        with ui.column().classes('w-full max-w-3xl mx-auto p-4 gap-4'):
            with ui.card().classes('w-full'):
                ui.label('Word List').classes('text-xl font-bold')
                ui.input(
                    label='Search Base URL (optional)',
                    placeholder='https://thenounproject.com/search/icons/?q=',
                ).classes('w-full').bind_value(state, 'base_url')
                file_label = ui.label('').classes('text-sm text-gray-500')
                upload = ui.upload(label='CSV file', auto_upload=True, max_files=1).props('accept=.csv')

            with ui.card().classes('w-full'):
                ui.label('Result').classes('text-xl font-bold')
                spinner = ui.spinner(size='lg')
                spinner.visible = False
                stats_label = ui.label('No batch processed yet')
                with ui.row().classes('gap-2'):
                    download_button = ui.button('Download Icons', icon='download')
                    download_button.visible = False
                    clear_button = ui.button('Clear All', icon='delete_sweep').props('outline')
                error_column = ui.column().classes('w-full')

        def render_result():
            spinner.visible = state.is_running
            file_label.text = f'Selected file: {state.file_name}' if state.file_name else ''
            if state.is_running:
                stats_label.text = 'Processing...'
            elif state.processed:
                stats_label.text = f'Total words processed: {state.processed} | Errors encountered: {state.failed}'
            download_button.visible = state.zip_bytes is not None and not state.is_running
            error_column.clear()
            with error_column:
                for message in state.errors:
                    ui.label(message).classes('text-red-500')

        async def handle_upload(e):
            if state.is_running:
                ui.notify('A batch is already running', type='warning')
                return
            state.file_name = e.name
            try:
                words = load_words(e.content.read())
            except UnicodeDecodeError:
                ui.notify('CSV file must be UTF-8 encoded', type='negative')
                return
            if not words:
                ui.notify('No words found in CSV file', type='negative')
                return

            state.is_running = True
            state.errors = []
            state.zip_bytes = None
            render_result()

            batch_folder = tempfile.mkdtemp(prefix='downloads-', dir=cfg.work_folder)
            try:
                report = await process_batch(
                    words,
                    state.base_url.strip(),
                    batch_folder,
                    pool=pool,
                    timeout=cfg.timeout_sec,
                )
                zip_path = await asyncio.to_thread(create_zip, batch_folder, batch_folder + '.zip')
                state.zip_bytes = await asyncio.to_thread(Path(zip_path).read_bytes)
                await asyncio.to_thread(os.remove, zip_path)
                state.zip_name = f'icons-{int(time.time() * 1000)}.zip'
                state.processed = report.processed
                state.failed = len(report.errors)
                state.errors = report.error_messages
            except Exception as ex:
                print(f'[Server] Error processing upload: {ex}')
                state.errors = [f'Upload failed: {ex}']
            finally:
                await asyncio.to_thread(shutil.rmtree, batch_folder, ignore_errors=True)
                state.is_running = False
                upload.reset()
                render_result()

        async def handle_clear():
            if state.is_running:
                ui.notify('Wait for the running batch to finish', type='warning')
                return
            try:
                await asyncio.to_thread(clear_outputs, cfg)
            except OSError as ex:
                print(f'[Server] Error clearing files: {ex}')
                ui.notify(f'Clear failed: {ex}', type='negative')
                return
            state.file_name = ''
            state.processed = 0
            state.failed = 0
            state.errors = []
            state.zip_bytes = None
            state.zip_name = ''
            upload.reset()
            stats_label.text = 'No batch processed yet'
            render_result()
            ui.notify('All files cleared successfully', type='positive')

        upload.on_upload(handle_upload)
        clear_button.on_click(handle_clear)
        download_button.on_click(lambda: ui.download(state.zip_bytes, state.zip_name))


# -----------------------------------------
# Entry Point
# -----------------------------------------

def main() -> None:
    cfg = parse_args()
    pool = WorkerPool(cfg.concurrent_jobs, job_timeout=cfg.job_timeout_sec)

    app.include_router(create_router(cfg, pool))
    app.add_static_files(DOWNLOADS_ROUTE, cfg.public_folder)
    app.on_shutdown(pool.close)
    build_page(cfg, pool)

    print(f"[Server] Running on port {cfg.port} with {cfg.concurrent_jobs} workers")
    ui.run(
        host=cfg.host,
        title='ICON-DC',
        port=cfg.port,
        reload=False,
        dark=True,
    )


if __name__ in {"__main__", "__mp_main__"}:
    main()
