#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
note.com draft / publish flow via Playwright

States:

    START -> TITLE_FILLED -> BODY_INSERTED -> DRAFT_SAVING -> DRAFT_SAVED
                                           -> PUBLISH_PROCEEDING -> TAGS_ENTERING
                                              -> PUBLISH_CONFIRMING -> PUBLISHED
    any state -> FAILED

Only the title field and the body are hard requirements.  Everything after
that (enabled buttons, save toast, publish page, tags) is waited for with a
bounded budget and the flow keeps going when the signal never comes.
"""

from __future__ import annotations

import asyncio
import re
from enum import Enum
from typing import Awaitable, Mapping, Optional

from playwright.async_api import Error as PlaywrightError

from config import PUBLISH_REVIEW_URL_RE, SEL_NOTE
from console_utils import log
from markdown_render import blocks_to_html
from models import PostConfig, PreparedPost, PublishTarget
from note_fields import TITLE_FIELD, FieldResolver
from note_injector import ContentInjector, locate_body_region, origin_of

REVIEW_URL_RE = re.compile(PUBLISH_REVIEW_URL_RE, re.I)


class WorkflowState(Enum):
    START = "start"
    TITLE_FILLED = "title-filled"
    BODY_INSERTED = "body-inserted"
    DRAFT_SAVING = "draft-saving"
    DRAFT_SAVED = "draft-saved"
    PUBLISH_PROCEEDING = "publish-proceeding"
    TAGS_ENTERING = "tags-entering"
    PUBLISH_CONFIRMING = "publish-confirming"
    PUBLISHED = "published"
    FAILED = "failed"


async def first_completed(sources: Mapping[str, Awaitable], timeout: float) -> Optional[str]:
    """Race named awaitables; return the name of the first one that succeeds.

    Sources that raise drop out of the race.  ``None`` means nothing succeeded
    before ``timeout`` seconds.  Losers are cancelled before returning.
    """
    loop = asyncio.get_running_loop()
    order = [(name, asyncio.ensure_future(aw)) for name, aw in sources.items()]
    names = {task: name for name, task in order}
    pending = set(names)
    deadline = loop.time() + timeout
    winner: Optional[str] = None
    try:
        while pending and winner is None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            done, pending = await asyncio.wait(pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
            # every finished task's exception is read, or the loop reports it as unhandled
            for name, task in order:
                if task not in done or task.cancelled():
                    continue
                exc = task.exception()
                if exc is not None:
                    log(f"INFO:RACE_SOURCE_DROPPED source={name} err={exc.__class__.__name__}")
                elif winner is None:
                    winner = name
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
    return winner


async def poll_enabled(locator, attempts: int, interval: float) -> bool:
    for _ in range(max(1, attempts)):
        try:
            if await locator.is_enabled():
                return True
        except PlaywrightError:
            pass
        await asyncio.sleep(interval)
    return False


class PublishWorkflow:
    def __init__(self, page, context, post: PreparedPost, config: PostConfig, field_resolver: FieldResolver | None = None):
        self.page = page
        self.context = context
        self.post = post
        self.config = config
        self.timings = config.timings
        self.fields = field_resolver or FieldResolver(page, self.timings)
        self.state = WorkflowState.START
        self.injection_path: Optional[str] = None
        self.tags_attempted: list[str] = []

    def _enter(self, state: WorkflowState) -> None:
        log(f"STEP:STATE {self.state.name} -> {state.name}")
        self.state = state

    async def run(self) -> str:
        """Drive the editor to a saved draft or a published post; returns the final URL."""
        try:
            await self.fields.locate_and_set(TITLE_FIELD, self.post.title)
            self._enter(WorkflowState.TITLE_FILLED)

            await self._insert_body()
            self._enter(WorkflowState.BODY_INSERTED)

            if self.config.publish_target is PublishTarget.PUBLIC:
                return await self._publish()
            return await self._save_draft()
        except BaseException:
            self._enter(WorkflowState.FAILED)
            raise

    async def _insert_body(self) -> None:
        body = await locate_body_region(self.page, self.timings)
        injector = ContentInjector(self.page, self.context, body, origin_of(self.config.start_url), self.timings)
        block_html = blocks_to_html(self.post.blocks) if self.config.fallback_per_block else None
        self.injection_path = await injector.insert(self.post.html, self.post.canonical_body, block_html)

    async def _click_when_enabled(self, locator, name: str) -> None:
        enabled = await poll_enabled(locator, self.timings.enable_poll_attempts, self.timings.enable_poll_interval)
        if not enabled:
            log(f"WARN:{name}_NOT_ENABLED clicking anyway")
        await locator.click(force=True)
        log(f"STEP:{name}_CLICKED")

    # ------------------------------------------------------------------ draft

    async def _save_draft(self) -> str:
        self._enter(WorkflowState.DRAFT_SAVING)
        save_btn = self.page.locator(SEL_NOTE["save_draft"]).first
        await save_btn.wait_for(state="visible")
        await self._click_when_enabled(save_btn, "SAVE_DRAFT")
        try:
            await self.page.locator(SEL_NOTE["draft_saved"]).first.wait_for(
                timeout=self.timings.draft_confirm_wait * 1000
            )
            log("INFO:DRAFT_SAVE_CONFIRMED")
        except PlaywrightError:
            log("WARN:DRAFT_SAVE_UNCONFIRMED no toast, continuing")
        self._enter(WorkflowState.DRAFT_SAVED)
        return self.page.url

    # ---------------------------------------------------------------- publish

    async def _publish(self) -> str:
        self._enter(WorkflowState.PUBLISH_PROCEEDING)
        proceed = self.page.locator(SEL_NOTE["proceed_publish"]).first
        await proceed.wait_for(state="visible")
        await self._click_when_enabled(proceed, "PROCEED_PUBLISH")

        surface_ms = self.timings.publish_surface_wait * 1000
        reached = await first_completed(
            {
                "review-url": self.page.wait_for_url(REVIEW_URL_RE, timeout=surface_ms),
                "publish-button": self.page.locator(SEL_NOTE["publish_btn"]).first.wait_for(
                    state="visible", timeout=surface_ms
                ),
            },
            timeout=self.timings.publish_surface_wait,
        )
        if reached:
            log(f"INFO:PUBLISH_SURFACE_READY via={reached}")
        else:
            log("WARN:PUBLISH_SURFACE_UNCONFIRMED continuing")

        self._enter(WorkflowState.TAGS_ENTERING)
        await self._enter_tags()

        self._enter(WorkflowState.PUBLISH_CONFIRMING)
        publish_btn = self.page.locator(SEL_NOTE["publish_btn"]).first
        await publish_btn.wait_for(state="visible")
        await self._click_when_enabled(publish_btn, "PUBLISH")

        timings = self.timings
        done_via = await first_completed(
            {
                "left-review": self.page.wait_for_url(
                    lambda url: not REVIEW_URL_RE.search(str(url)),
                    timeout=timings.published_url_wait * 1000,
                ),
                "confirmation": self.page.locator(SEL_NOTE["published"]).first.wait_for(
                    timeout=timings.published_text_wait * 1000
                ),
                "settle": asyncio.sleep(timings.publish_settle),
            },
            timeout=max(timings.published_url_wait, timings.published_text_wait, timings.publish_settle) + 1,
        )
        log(f"INFO:PUBLISH_DONE via={done_via or 'timeout'}")
        self._enter(WorkflowState.PUBLISHED)
        return self.page.url

    async def _locate_tag_input(self):
        selectors = SEL_NOTE["tags_input"]
        candidate = None
        for sel in selectors:
            loc = self.page.locator(sel)
            try:
                if await loc.count():
                    candidate = loc.first
                    break
            except PlaywrightError:
                continue
        if candidate is None:
            candidate = self.page.locator(selectors[-1]).first
        try:
            await candidate.wait_for(state="visible", timeout=self.timings.publish_surface_wait * 1000)
        except PlaywrightError:
            return None
        return candidate

    async def _enter_tags(self) -> None:
        tags = list(self.config.tags)
        if not tags:
            log("INFO:TAGS_SKIP no tags")
            return
        tag_input = await self._locate_tag_input()
        if tag_input is None:
            log(f"WARN:TAG_INPUT_NOT_FOUND skipping tags={tags}")
            return
        for tag in tags:
            self.tags_attempted.append(tag)
            try:
                await tag_input.click()
                await tag_input.fill(tag)
                await self.page.keyboard.press("Enter")
            except Exception as exc:
                log(f"WARN:TAG_ENTRY_FAILED tag={tag!r} err={exc.__class__.__name__}")
            await asyncio.sleep(self.timings.tag_pace)
        log(f"STEP:TAGS_ENTERED count={len(tags)}")
