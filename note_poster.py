#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Post a markdown document to note.com as a draft or a public post.

The document body is normalised and rendered to HTML up front (pure, no
browser); then a headless Chromium session restored from a previously saved
storage-state file drives the editor through ``PublishWorkflow``.  Logging in
and saving that storage state is done by a separate interactive tool.

Every run ends with exactly one ``RunResult``.  Marker lines are printed for
callers that scrape stdout:

    SCREENSHOT=<path>
    DRAFT_URL=<url>       or   PUBLISHED_URL=<url>
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Iterable

from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from cleanup import CleanupCoordinator
from config import BROWSER_ARGS, CHROME_EXECUTABLE_PATH, NOTE_START_URL
from console_utils import emit, log
from diagnostics import DiagnosticsCollector
from errors import NavigationTimeout, SessionStateMissing, UnexpectedFault, as_run_error
from markdown_normalize import normalize_markdown, split_markdown_blocks
from markdown_render import html_from_markdown
from models import (
    Diagnostics,
    Document,
    PostConfig,
    PreparedPost,
    PublishTarget,
    RunResult,
    load_document,
    parse_tags,
)
from note_workflow import PublishWorkflow, WorkflowState
from title_resolver import first_usable_title, resolve_title


def prepare_post(document: Document, config: PostConfig) -> PreparedPost:
    canonical = normalize_markdown(document.body)
    # an explicit title that is only noise falls back to the document title
    title = resolve_title(first_usable_title((config.title, document.title)), canonical)
    blocks = tuple(split_markdown_blocks(canonical))
    html = html_from_markdown(canonical)
    log(f"INFO:POST_PREPARED title={title!r} blocks={len(blocks)} html_chars={len(html)}")
    return PreparedPost(title=title, canonical_body=canonical, blocks=blocks, html=html)


def launch_options(config: PostConfig) -> dict:
    options = {"headless": config.headless, "args": list(BROWSER_ARGS)}
    if CHROME_EXECUTABLE_PATH and os.path.exists(CHROME_EXECUTABLE_PATH):
        options["executable_path"] = CHROME_EXECUTABLE_PATH
    return options


async def run_post(document: Document, config: PostConfig, playwright_factory=async_playwright) -> RunResult:
    state_path = Path(config.session_state_path).expanduser()
    if not state_path.exists():
        error = SessionStateMissing(state_path)
        log(f"ERROR:SESSION_STATE_MISSING path={state_path}")
        return RunResult.failed(error, Diagnostics())

    post = prepare_post(document, config)
    artifact_dir = Path(config.artifact_dir).expanduser()
    artifact_dir.mkdir(parents=True, exist_ok=True)

    diagnostics = DiagnosticsCollector(artifact_dir)
    cleanup = CleanupCoordinator(diagnostics)
    cleanup.install(asyncio.get_running_loop(), main_task=asyncio.current_task())

    workflow = None
    error = None
    location = None
    try:
        try:
            playwright = await playwright_factory().start()
            cleanup.attach(playwright=playwright)
            browser = await playwright.chromium.launch(**launch_options(config))
            cleanup.attach(browser=browser)
            context = await browser.new_context(
                storage_state=str(state_path),
                locale=config.locale,
                **diagnostics.har_options(),
            )
            diagnostics.attach(context=context)
            cleanup.attach(context=context)
            await diagnostics.start_trace()

            page = await context.new_page()
            diagnostics.attach(page=page)
            cleanup.attach(page=page)
            page.set_default_timeout(config.timings.page_default_timeout * 1000)
            page.on("pageerror", diagnostics.on_page_error)

            log(f"STEP:OPEN_EDITOR url={config.start_url}")
            try:
                await page.goto(config.start_url, wait_until="domcontentloaded")
            except PlaywrightTimeoutError as exc:
                raise NavigationTimeout(f"editor did not load: {config.start_url}") from exc

            workflow = PublishWorkflow(page, context, post, config)
            location = await workflow.run()
        except asyncio.CancelledError:
            cleanup.release_main_task()
            if cleanup.signalled is None:
                raise
            current = asyncio.current_task()
            if current is not None and hasattr(current, "uncancel"):
                current.uncancel()
            error = UnexpectedFault(f"terminated by signal {cleanup.signalled}")
        except Exception as exc:
            error = as_run_error(exc)
        # from here on a signal only triggers teardown; the outcome above stands
        cleanup.release_main_task()

        if error is not None:
            log(f"ERROR:RUN_FAILED state={workflow.state.name if workflow else 'LAUNCH'} err={error}")
            await diagnostics.capture_page_state("run-error")
            await diagnostics.capture_terminal_screenshot("error")
        else:
            tag = "published" if workflow.state is WorkflowState.PUBLISHED else "draft"
            await diagnostics.capture_terminal_screenshot(tag)
    finally:
        try:
            await cleanup.teardown("error" if error is not None else "complete")
        finally:
            cleanup.uninstall()

    if error is not None:
        return RunResult.failed(error, diagnostics.report)
    if workflow.state is WorkflowState.PUBLISHED:
        emit("PUBLISHED_URL", location)
        return RunResult.published(location, diagnostics.report.screenshot)
    emit("DRAFT_URL", location)
    return RunResult.draft(location, diagnostics.report.screenshot)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Post a markdown document to note.com")
    parser.add_argument("--state", required=True, help="Path to the saved storageState JSON")
    parser.add_argument("--document", type=Path, default=Path("final.json"), help="JSON ({title, body}) or markdown file")
    parser.add_argument("--title", default=None, help="Title (derived from the body when empty)")
    parser.add_argument("--tags", default="", help="Hashtags, comma or newline separated")
    parser.add_argument("--public", action="store_true", help="Publish instead of saving a draft")
    parser.add_argument("--start-url", default=NOTE_START_URL)
    parser.add_argument("--artifact-dir", default=".", help="Where screenshots, trace.zip and network.har go")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--per-block-fallback", action="store_true", help="Insert block by block when clipboard paste fails")
    return parser.parse_args(list(argv) if argv is not None else None)


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(argv)
    document = load_document(args.document)
    config = PostConfig(
        session_state_path=args.state,
        start_url=args.start_url,
        title=args.title,
        tags=parse_tags(args.tags),
        publish_target=PublishTarget.PUBLIC if args.public else PublishTarget.DRAFT,
        headless=not args.headed,
        artifact_dir=args.artifact_dir,
        fallback_per_block=args.per_block_fallback,
    )
    result = asyncio.run(run_post(document, config))
    if not result.ok:
        log(f"ERROR:NOTE_POST_FAILED err={result.error.__class__.__name__}: {result.error}")
        return 1
    log(f"STEP:COMPLETE kind={result.kind} url={result.location}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
