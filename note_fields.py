"""
Locate a text field in the note.com editor and put a value into it.

note.com ships a new editor build every few weeks and none of the field
attributes are a stable contract, so a field is described by its *purpose*
(keywords + test hook) and resolved through an ordered list of selector
strategies.  When none of them shows up, a last-resort heuristic runs inside
the page and picks whatever looks like the field.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from config import TITLE_KEYWORDS, TITLE_TEST_HOOK
from console_utils import log
from errors import FieldNotFound
from models import Timings

HEURISTIC_FILL_JS = """
({value, keywords}) => {
    const nodes = Array.from(document.querySelectorAll('textarea, input, [contenteditable="true"]'));
    const matchesKeyword = (n) => {
        const ph = (n.getAttribute('placeholder') || n.getAttribute('data-placeholder') || '').toLowerCase();
        const al = (n.getAttribute('aria-label') || '').toLowerCase();
        return keywords.some(k => ph.includes(k) || al.includes(k));
    };
    const looksLikeTitleBox = (n) => {
        const r = n.getBoundingClientRect();
        return r.top >= 0 && r.top < 320 && r.height > 30;
    };
    const target = nodes.find(matchesKeyword) || nodes.find(looksLikeTitleBox);
    if (!target) return false;
    target.focus();
    if (target.isContentEditable) {
        target.innerText = value;
    } else {
        target.value = value;
    }
    target.dispatchEvent(new Event('input', { bubbles: true }));
    target.dispatchEvent(new Event('change', { bubbles: true }));
    return true;
}
"""
IS_CONTENT_EDITABLE_JS = "el => !!(el && el.isContentEditable)"
NESTED_INPUT_SELECTOR = "textarea, input"


@dataclass(frozen=True)
class FieldPurpose:
    name: str
    keywords: tuple[str, ...]
    test_hook: str

    @property
    def primary_keyword(self) -> str:
        return self.keywords[0]


TITLE_FIELD = FieldPurpose("title", TITLE_KEYWORDS, TITLE_TEST_HOOK)


@dataclass(frozen=True)
class FieldStrategy:
    name: str
    selectors: tuple[str, ...]
    nested: bool = False


@dataclass(frozen=True)
class FieldMatch:
    strategy: Optional[str] = None
    selector: Optional[str] = None
    locator: Any = None

    @property
    def found(self) -> bool:
        return self.strategy is not None

    @classmethod
    def hit(cls, strategy: str, selector: Optional[str] = None, locator: Any = None) -> "FieldMatch":
        return cls(strategy=strategy, selector=selector, locator=locator)

    @classmethod
    def miss(cls) -> "FieldMatch":
        return cls()


def build_strategies(purpose: FieldPurpose) -> list[FieldStrategy]:
    kw = purpose.primary_keyword
    hook = purpose.test_hook
    return [
        FieldStrategy("placeholder", (f'textarea[placeholder*="{kw}"]', f'input[placeholder*="{kw}"]')),
        FieldStrategy("label", (f'textarea[aria-label*="{kw}"]', f'input[aria-label*="{kw}"]')),
        FieldStrategy("test-hook", (f'[data-testid*="{hook}"] textarea', f'[data-testid*="{hook}"] input')),
        FieldStrategy("nested", (f'[data-testid*="{hook}"]',), nested=True),
        FieldStrategy(
            "content-editable",
            (
                f'div[contenteditable="true"][data-placeholder*="{kw}"]',
                f'div[contenteditable="true"][aria-label*="{kw}"]',
            ),
        ),
    ]


class FieldResolver:
    def __init__(self, page, timings: Timings | None = None, clock: Callable[[], float] = time.monotonic):
        self.page = page
        self.timings = timings or Timings()
        self._clock = clock

    async def locate_and_set(self, purpose: FieldPurpose, value: str) -> FieldMatch:
        deadline = self._clock() + self.timings.field_budget
        for strategy in build_strategies(purpose):
            for selector in strategy.selectors:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    log(f"WARN:FIELD_BUDGET_EXHAUSTED purpose={purpose.name} at strategy={strategy.name}")
                    return await self._heuristic_or_fail(purpose, value)
                match = await self._try_selector(strategy, selector, value, min(self.timings.field_wait, remaining))
                if match.found:
                    log(f"STEP:FIELD_SET purpose={purpose.name} strategy={strategy.name} selector={selector}")
                    return match
        return await self._heuristic_or_fail(purpose, value)

    async def _try_selector(self, strategy: FieldStrategy, selector: str, value: str, timeout: float) -> FieldMatch:
        loc = self.page.locator(selector).first
        try:
            await loc.wait_for(state="visible", timeout=timeout * 1000)
        except PlaywrightTimeoutError:
            return FieldMatch.miss()
        try:
            await loc.scroll_into_view_if_needed()
        except PlaywrightError:
            pass
        try:
            target = loc
            if strategy.nested:
                target = await self._nested_input(loc)
                if target is None:
                    return FieldMatch.miss()
            if await self._is_editable(target):
                await target.fill(value)
                return FieldMatch.hit(strategy.name, selector, target)
            if await self._is_content_editable(target):
                await self._replace_content_editable(target, value)
                return FieldMatch.hit(strategy.name, selector, target)
        except PlaywrightError as exc:
            log(f"WARN:FIELD_STRATEGY_FAILED strategy={strategy.name} selector={selector} err={exc.__class__.__name__}")
        return FieldMatch.miss()

    async def _nested_input(self, container):
        inner = container.locator(NESTED_INPUT_SELECTOR).first
        if not await inner.count():
            return None
        try:
            await inner.wait_for(state="visible", timeout=self.timings.nested_field_wait * 1000)
        except PlaywrightTimeoutError:
            return None
        return inner

    @staticmethod
    async def _is_editable(loc) -> bool:
        try:
            return bool(await loc.is_editable())
        except PlaywrightError:
            return False

    @staticmethod
    async def _is_content_editable(loc) -> bool:
        try:
            return bool(await loc.evaluate(IS_CONTENT_EDITABLE_JS))
        except PlaywrightError:
            return False

    async def _replace_content_editable(self, loc, value: str) -> None:
        await loc.click(force=True)
        try:
            await self.page.keyboard.press("Control+A")
        except PlaywrightError:
            pass
        await self.page.keyboard.type(value)

    async def _heuristic_or_fail(self, purpose: FieldPurpose, value: str) -> FieldMatch:
        log(f"INFO:FIELD_HEURISTIC purpose={purpose.name} scanning editable nodes")
        keywords = [k.lower() for k in purpose.keywords]
        try:
            ok = await self.page.evaluate(HEURISTIC_FILL_JS, {"value": value, "keywords": keywords})
        except PlaywrightError as exc:
            log(f"WARN:FIELD_HEURISTIC_FAILED purpose={purpose.name} err={exc}")
            ok = False
        if not ok:
            log(f"ERROR:FIELD_NOT_FOUND purpose={purpose.name}")
            raise FieldNotFound(purpose.name, "no strategy or heuristic matched")
        log(f"STEP:FIELD_SET purpose={purpose.name} strategy=heuristic")
        return FieldMatch.hit("heuristic")
