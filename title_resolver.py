from __future__ import annotations

import re
from typing import Optional

from config import DEFAULT_NOTE_TITLE

FENCE_LANG_LINE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*$")
HEADING_PREFIX_RE = re.compile(r"^#+\s*")
JSON_TOKEN_RE = re.compile(r"^json$", re.I)
BRACKETS_ONLY_RE = re.compile(r"^[{}\[\]()\s]*$")
DERIVE_HEADING_RE = re.compile(r"^#{1,3}\s+(.+)")
DERIVE_SKIP_RE = re.compile(r"^```|^>|^\* |^- |^\d+\. ")


def _strip_title_noise(value: str) -> str:
    s = (value or "").strip()
    s = FENCE_LANG_LINE_RE.sub("", s)
    s = HEADING_PREFIX_RE.sub("", s)
    s = s.strip('"').strip("'").strip("`")
    s = JSON_TOKEN_RE.sub("", s).strip()
    if BRACKETS_ONLY_RE.match(s):
        return ""
    return s


def sanitize_title(value: Optional[str], default: str = DEFAULT_NOTE_TITLE) -> str:
    """Clean up a title candidate; never returns an empty string."""
    return _strip_title_noise(str(value or "")) or default


def derive_title_from_markdown(md: str, default: str = DEFAULT_NOTE_TITLE) -> str:
    """First level 1-3 heading, else the first plain text line, else ``default``."""
    for line in re.split(r"\r?\n", str(md or "")):
        stripped = line.strip()
        if not stripped:
            continue
        heading = DERIVE_HEADING_RE.match(stripped)
        if heading:
            return sanitize_title(heading.group(1), default)
        if not DERIVE_SKIP_RE.match(stripped):
            return sanitize_title(stripped, default)
    return default


def resolve_title(raw_title: Optional[str], canonical_body: str, default: str = DEFAULT_NOTE_TITLE) -> str:
    title = sanitize_title(raw_title, default)
    if title == default:
        return derive_title_from_markdown(canonical_body, default)
    return title


def first_usable_title(candidates, default: str = DEFAULT_NOTE_TITLE) -> Optional[str]:
    """First candidate that is still a real title once its noise is stripped."""
    for candidate in candidates:
        title = sanitize_title(candidate, default)
        if title != default:
            return title
    return None
