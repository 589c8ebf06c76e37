from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from config import (
    BROWSER_LOCALE,
    ENABLE_POLL_ATTEMPTS,
    ENABLE_POLL_INTERVAL,
    INSERT_SETTLE,
    NOTE_START_URL,
    PAGE_DEFAULT_TIMEOUT,
    PASTE_SETTLE,
    PUBLISH_SETTLE,
    TAG_PACE,
    WAIT_BODY,
    WAIT_DRAFT_CONFIRM,
    WAIT_FIELD,
    WAIT_FIELD_BUDGET,
    WAIT_NESTED_FIELD,
    WAIT_PUBLISHED_TEXT,
    WAIT_PUBLISHED_URL,
    WAIT_PUBLISH_SURFACE,
)

TAG_SPLIT_RE = re.compile(r"[\n,]")


class PublishTarget(Enum):
    DRAFT = "draft"
    PUBLIC = "public"


@dataclass(frozen=True)
class Document:
    body: str
    title: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Document":
        title = data.get("title")
        return cls(body=str(data.get("body") or ""), title=str(title) if title is not None else None)


def load_document(path: str | Path) -> Document:
    """Read a JSON document ({"title"?, "body"}) or a plain markdown file."""
    path = Path(path).expanduser()
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return Document.from_dict(json.loads(text))
    return Document(body=text)


def parse_tags(raw: str | None) -> list[str]:
    """Split on commas/newlines; order and duplicates are kept."""
    return [token.strip() for token in TAG_SPLIT_RE.split(raw or "") if token.strip()]


@dataclass
class Timings:
    field_wait: float = WAIT_FIELD
    field_budget: float = WAIT_FIELD_BUDGET
    nested_field_wait: float = WAIT_NESTED_FIELD
    body_wait: float = WAIT_BODY
    enable_poll_attempts: int = ENABLE_POLL_ATTEMPTS
    enable_poll_interval: float = ENABLE_POLL_INTERVAL
    paste_settle: float = PASTE_SETTLE
    insert_settle: float = INSERT_SETTLE
    draft_confirm_wait: float = WAIT_DRAFT_CONFIRM
    publish_surface_wait: float = WAIT_PUBLISH_SURFACE
    tag_pace: float = TAG_PACE
    published_url_wait: float = WAIT_PUBLISHED_URL
    published_text_wait: float = WAIT_PUBLISHED_TEXT
    publish_settle: float = PUBLISH_SETTLE
    page_default_timeout: float = PAGE_DEFAULT_TIMEOUT


@dataclass
class PostConfig:
    session_state_path: str
    start_url: str = NOTE_START_URL
    title: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    publish_target: PublishTarget = PublishTarget.DRAFT
    headless: bool = True
    locale: str = BROWSER_LOCALE
    artifact_dir: str = "."
    fallback_per_block: bool = False
    timings: Timings = field(default_factory=Timings)


@dataclass(frozen=True)
class PreparedPost:
    title: str
    canonical_body: str
    blocks: tuple[str, ...]
    html: str


@dataclass
class Diagnostics:
    screenshot: Optional[str] = None
    url: Optional[str] = None
    html_snippet: Optional[str] = None
    trace: Optional[str] = None
    network: Optional[str] = None


@dataclass
class RunResult:
    kind: str  # "draft" | "published" | "failed"
    location: Optional[str] = None
    screenshot: Optional[str] = None
    error: Optional[BaseException] = None
    diagnostics: Optional[Diagnostics] = None

    @classmethod
    def draft(cls, location: str, screenshot: str | None) -> "RunResult":
        return cls(kind="draft", location=location, screenshot=screenshot)

    @classmethod
    def published(cls, location: str, screenshot: str | None) -> "RunResult":
        return cls(kind="published", location=location, screenshot=screenshot)

    @classmethod
    def failed(cls, error: BaseException, diagnostics: Diagnostics) -> "RunResult":
        return cls(kind="failed", screenshot=diagnostics.screenshot, error=error, diagnostics=diagnostics)

    @property
    def ok(self) -> bool:
        return self.kind != "failed"
