from __future__ import annotations

import asyncio
import signal
from typing import Optional

from console_utils import log

TERMINATION_SIGNALS = tuple(
    sig for sig in (getattr(signal, "SIGINT", None), getattr(signal, "SIGTERM", None)) if sig is not None
)


class CleanupCoordinator:
    """Single-shot teardown shared by completion, faults and signals.

    The first caller of :meth:`teardown` starts the close sequence; everyone
    else awaits that same task.  Each close step is independent, so a dead
    page does not keep the browser process alive.
    """

    def __init__(self, diagnostics=None):
        self.diagnostics = diagnostics
        self.playwright = None
        self.browser = None
        self.context = None
        self.page = None
        self.reason: Optional[str] = None
        self.signalled: Optional[int] = None
        self._task: Optional[asyncio.Future] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._main_task: Optional[asyncio.Task] = None
        self._loop_signals: list[int] = []
        self._previous_handlers: dict[int, object] = {}
        self._previous_exception_handler = None
        self._unhandled_task: Optional[asyncio.Task] = None

    def attach(self, playwright=None, browser=None, context=None, page=None) -> None:
        if playwright is not None:
            self.playwright = playwright
        if browser is not None:
            self.browser = browser
        if context is not None:
            self.context = context
        if page is not None:
            self.page = page

    @property
    def started(self) -> bool:
        return self._task is not None

    def trigger(self, reason: str) -> asyncio.Future:
        """Start the teardown (if nobody did yet) and return the shared task."""
        if self._task is None:
            self.reason = reason
            log(f"STEP:CLEANUP_START reason={reason}")
            self._task = asyncio.ensure_future(self._teardown())
        else:
            log(f"INFO:CLEANUP_ALREADY_RUNNING reason={reason} first={self.reason}")
        return self._task

    async def teardown(self, reason: str = "complete") -> None:
        await asyncio.shield(self.trigger(reason))
        pending = self._unhandled_task
        if pending is not None and pending is not asyncio.current_task():
            await asyncio.gather(pending, return_exceptions=True)

    async def _teardown(self) -> None:
        steps = [
            ("stop_trace", self.diagnostics.stop_trace if self.diagnostics is not None else None),
            ("close_page", self.page.close if self.page is not None else None),
            ("close_context", self.context.close if self.context is not None else None),
            ("close_browser", self.browser.close if self.browser is not None else None),
            ("stop_playwright", self.playwright.stop if self.playwright is not None else None),
        ]
        for name, step in steps:
            if step is None:
                continue
            try:
                await step()
            except Exception as exc:
                log(f"WARN:CLEANUP_{name.upper()}_FAILED err={exc.__class__.__name__}: {exc}")
        log("STEP:CLEANUP_DONE")

    # --------------------------------------------------------------- triggers

    def install(self, loop: asyncio.AbstractEventLoop, main_task: asyncio.Task | None = None) -> None:
        self._loop = loop
        self._main_task = main_task
        for sig in TERMINATION_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
                self._loop_signals.append(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                # Windows loops have no add_signal_handler
                try:
                    self._previous_handlers[sig] = signal.signal(
                        sig, lambda s, _frame: loop.call_soon_threadsafe(self._on_signal, s)
                    )
                except ValueError:
                    pass
        self._previous_exception_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._on_unhandled)

    def uninstall(self) -> None:
        loop = self._loop
        if loop is None:
            return
        for sig in self._loop_signals:
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                pass
        for sig, handler in self._previous_handlers.items():
            try:
                signal.signal(sig, handler)
            except (TypeError, ValueError):
                pass
        loop.set_exception_handler(self._previous_exception_handler)
        self._loop_signals.clear()
        self._previous_handlers.clear()
        self._loop = None

    def release_main_task(self) -> None:
        """Stop cancelling the main task on signals; teardown is still triggered."""
        self._main_task = None

    def _on_signal(self, sig: int) -> None:
        try:
            name = signal.Signals(sig).name
        except ValueError:
            name = str(sig)
        log(f"WARN:SIGNAL_RECEIVED sig={name}")
        first = self.signalled is None
        self.signalled = sig
        self.trigger(f"signal-{name}")
        if first and self._main_task is not None and not self._main_task.done():
            self._main_task.cancel()

    def _on_unhandled(self, loop: asyncio.AbstractEventLoop, context: dict) -> None:
        exc = context.get("exception")
        log(f"ERROR:UNHANDLED_ASYNC_ERROR msg={context.get('message')} err={exc!r}")
        if self._task is None and self._unhandled_task is None:
            self._unhandled_task = loop.create_task(self._fail_and_teardown("unhandled"))

    async def _fail_and_teardown(self, tag: str) -> None:
        if self.diagnostics is not None:
            await self.diagnostics.capture_page_state(tag)
            await self.diagnostics.capture_terminal_screenshot(tag)
        await self.teardown(tag)
