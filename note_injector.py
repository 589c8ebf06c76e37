from __future__ import annotations

import asyncio
from typing import Optional, Sequence
from urllib.parse import urlsplit

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from config import SEL_NOTE
from console_utils import log
from errors import FieldNotFound, InjectionFailed
from models import Timings

CLIPBOARD_WRITE_JS = """
async ({html, plain}) => {
    const item = new ClipboardItem({
        'text/html': new Blob([html], { type: 'text/html' }),
        'text/plain': new Blob([plain], { type: 'text/plain' }),
    });
    await navigator.clipboard.write([item]);
}
"""
INSERT_HTML_JS = """
(el, html) => {
    el.focus();
    const sel = window.getSelection();
    const range = document.createRange();
    range.selectNodeContents(el);
    range.collapse(false);
    sel.removeAllRanges();
    sel.addRange(range);
    document.execCommand('insertHTML', false, html);
}
"""
CLIPBOARD_PERMISSIONS = ["clipboard-read", "clipboard-write"]


def origin_of(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


async def locate_body_region(page, timings: Timings | None = None):
    """Wait for the editor body; not finding it ends the run."""
    timings = timings or Timings()
    body = page.locator(SEL_NOTE["body"]).first
    try:
        await body.wait_for(state="visible", timeout=timings.body_wait * 1000)
    except PlaywrightTimeoutError as exc:
        log(f"ERROR:BODY_NOT_VISIBLE after {timings.body_wait}s")
        raise FieldNotFound("body", f"{SEL_NOTE['body']} not visible") from exc
    log("STEP:BODY_LOCATED editor body visible")
    return body


class ContentInjector:
    """Put rendered HTML into the editor body.

    The clipboard paste goes through note.com's own paste handling and is
    tried first.  Only when that path raises do we fall back to
    ``execCommand('insertHTML')`` at the end of the body.  A paste that
    completes but shows nothing is still counted as done.
    """

    def __init__(self, page, context, body, origin: str, timings: Timings | None = None):
        self.page = page
        self.context = context
        self.body = body
        self.origin = origin
        self.timings = timings or Timings()
        self.path: Optional[str] = None

    async def insert(self, html: str, plain: str, block_html: Sequence[str] | None = None) -> str:
        try:
            await self._paste_via_clipboard(html, plain)
        except Exception as exc:
            log(f"WARN:BODY_CLIPBOARD_FAILED err={exc.__class__.__name__}: {exc} -> insertHTML fallback")
            primary_exc = exc
        else:
            self.path = "clipboard"
            log(f"STEP:BODY_PASTED via clipboard chars={len(html)}")
            return self.path

        fragments = list(block_html) if block_html else [html]
        try:
            for fragment in fragments:
                await self._insert_html(fragment)
            await asyncio.sleep(self.timings.insert_settle)
        except Exception as exc:
            log(f"ERROR:BODY_INSERT_FAILED err={exc.__class__.__name__}: {exc}")
            raise InjectionFailed(
                f"clipboard paste failed ({primary_exc!r}) and insertHTML failed ({exc!r})"
            ) from exc
        self.path = "insert"
        log(f"STEP:BODY_INSERTED via insertHTML fragments={len(fragments)}")
        return self.path

    async def _paste_via_clipboard(self, html: str, plain: str) -> None:
        await self.context.grant_permissions(CLIPBOARD_PERMISSIONS, origin=self.origin)
        await self.page.evaluate(CLIPBOARD_WRITE_JS, {"html": html, "plain": plain})
        await self.body.click()
        await self.page.keyboard.press("Control+V")
        await asyncio.sleep(self.timings.paste_settle)

    async def _insert_html(self, html: str) -> None:
        await self.body.click()
        await self.body.evaluate(INSERT_HTML_JS, html)
