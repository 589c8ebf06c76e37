from __future__ import annotations

import asyncio
import base64
import re
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from config import (
    HAR_FILENAME,
    PAGE_HTML_SNIPPET_CHARS,
    PLACEHOLDER_PNG_B64,
    SCREENSHOT_PREFIX,
    SCREENSHOT_TMP_DIRNAME,
    TRACE_FILENAME,
)
from console_utils import emit, log
from models import Diagnostics

SAFE_TAG_RE = re.compile(r"[^a-z0-9_-]+", re.I)


def now_str(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime("%Y%m%d-%H%M%S")


class DiagnosticsCollector:
    """Forensics for one run: terminal screenshot, page state, trace and HAR.

    The terminal screenshot is taken once; later calls hand back the same
    path.  The trace is stopped once.  The HAR file is written by Playwright
    when the browser context closes.
    """

    def __init__(
        self,
        artifact_dir: str | Path = ".",
        tmp_dir: str | Path | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.artifact_dir = Path(artifact_dir)
        self.tmp_dir = Path(tmp_dir) if tmp_dir else Path(tempfile.gettempdir()) / SCREENSHOT_TMP_DIRNAME
        self._clock = clock
        self.page = None
        self.context = None
        self.report = Diagnostics()
        self._screenshot_lock = asyncio.Lock()
        self._screenshot_taken = False
        self._trace_started = False
        self._trace_stopped = False

    @property
    def trace_path(self) -> Path:
        return self.artifact_dir / TRACE_FILENAME

    @property
    def har_path(self) -> Path:
        return self.artifact_dir / HAR_FILENAME

    def har_options(self) -> dict:
        """Keyword arguments for ``browser.new_context`` to record the network log."""
        return {
            "record_har_path": str(self.har_path),
            "record_har_content": "embed",
            "record_har_mode": "minimal",
        }

    def attach(self, context=None, page=None) -> None:
        if context is not None:
            self.context = context
            self.report.network = str(self.har_path)
        if page is not None:
            self.page = page

    # ------------------------------------------------------------------ trace

    async def start_trace(self) -> None:
        if self.context is None or self._trace_started:
            return
        await self.context.tracing.start(screenshots=True, snapshots=True)
        self._trace_started = True

    async def stop_trace(self) -> Optional[str]:
        if not self._trace_started or self._trace_stopped:
            return self.report.trace
        self._trace_stopped = True
        try:
            await self.context.tracing.stop(path=str(self.trace_path))
            self.report.trace = str(self.trace_path)
            log(f"INFO:TRACE_SAVED path={self.trace_path}")
        except Exception as exc:
            log(f"WARN:TRACE_STOP_FAILED err={exc}")
        return self.report.trace

    # ------------------------------------------------------------- screenshot

    def _tmp_file(self, tag: str) -> Path:
        safe_tag = SAFE_TAG_RE.sub("-", str(tag or "snapshot"))
        return self.tmp_dir / f"{SCREENSHOT_PREFIX}-{now_str(self._clock())}-{safe_tag}.png"

    def _copy_to_artifacts(self, file: Path) -> Path:
        target = self.artifact_dir / file.name
        if target.resolve() == file.resolve():
            return file
        try:
            self.artifact_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(file, target)
            return target
        except OSError as exc:
            log(f"WARN:SCREENSHOT_COPY_FAILED err={exc}")
            return file

    async def _capture(self, tag: str) -> Optional[str]:
        self.tmp_dir.mkdir(parents=True, exist_ok=True)
        tmp_file = self._tmp_file(tag)
        if self.page is not None:
            try:
                await self.page.screenshot(path=str(tmp_file), full_page=True)
                return str(self._copy_to_artifacts(tmp_file))
            except Exception as exc:
                log(f"WARN:SCREENSHOT_FAILED tag={tag} err={exc}")
        try:
            tmp_file.write_bytes(base64.b64decode(PLACEHOLDER_PNG_B64))
        except OSError as exc:
            log(f"ERROR:SCREENSHOT_PLACEHOLDER_FAILED err={exc}")
            return None
        final = self._copy_to_artifacts(tmp_file)
        log(f"WARN:SCREENSHOT_PLACEHOLDER path={final}")
        return str(final)

    async def capture_terminal_screenshot(self, tag: str = "final") -> Optional[str]:
        async with self._screenshot_lock:
            if self._screenshot_taken:
                return self.report.screenshot
            self._screenshot_taken = True
            self.report.screenshot = await self._capture(tag)
            if self.report.screenshot:
                emit("SCREENSHOT", self.report.screenshot)
            return self.report.screenshot

    async def on_page_error(self, error) -> None:
        """``pageerror`` listener: keep a screenshot of the moment the page script blew up."""
        log(f"WARN:PAGE_ERROR err={error}")
        if self.page is None:
            return
        path = self.artifact_dir / f"pageerror-{now_str(self._clock())}.png"
        try:
            await self.page.screenshot(path=str(path), full_page=True)
        except Exception:
            pass

    # ------------------------------------------------------------- page state

    async def capture_page_state(self, tag: str = "error") -> Diagnostics:
        if self.page is None:
            log(f"WARN:NO_PAGE_FOR_STATE tag={tag}")
            return self.report
        try:
            current_url = self.page.url
            self.report.url = current_url
            log(f"PAGE_URL[{tag}]={current_url}")
            html = await self.page.content()
            snippet = str(html or "")[:PAGE_HTML_SNIPPET_CHARS]
            self.report.html_snippet = snippet
            log(f"PAGE_HTML_SNIPPET[{tag}]={snippet}")
        except Exception as exc:
            log(f"ERROR:PAGE_STATE_FAILED tag={tag} err={exc}")
        return self.report
