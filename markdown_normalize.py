"""
Markdown clean-up for the note.com editor.

The body usually comes from an upstream generator (or a copy/paste out of a
chat window), so it carries soft-wrapped sentences, "•" bullets and inline
links that note.com would render as plain text.  ``normalize_markdown`` runs
the fixed pipeline:

    1. prefer_bare_urls                 embeddable links -> bare URL line
    2. normalize_bullets                 • ・ ◦ -> markdown list markers
    3. normalize_list_item_soft_breaks   wrapped list items -> one line
    4. unwrap_paragraphs                 wrapped sentences -> one line

Running the pipeline on its own output changes nothing.
"""

from __future__ import annotations

import re
from typing import Iterable
from urllib.parse import urlsplit

from config import EMBED_DOMAINS

LINK_RE = re.compile(r"\[([^\]]+)\]\((https?://[^\s)]+)\)")
BULLET_RE = re.compile(r"^[^\S\n]*[•・][ \t]?", re.M)
NESTED_BULLET_RE = re.compile(r"^[^\S\n]*◦[ \t]?", re.M)
LIST_START_RE = re.compile(r"^(\s*)(?:[-*+]\s|\d+\.\s)")
BLOCK_START_RE = re.compile(r"^\s*(?:#{1,6}\s|[-*+]\s|\d+\.\s|>\s)")
FENCE_RE = re.compile(r"^\s*```")
BARE_URL_LINE_RE = re.compile(r"^\s*https?://\S+\s*$")
SENTENCE_END_RE = re.compile(r"[。.!?)]$")
GARBAGE_LINE_RE = re.compile(r"^[\s{}\[\]()`]+$")
ZERO_WIDTH_SPACE = "\u200b"


def _split_lines(md: str) -> list[str]:
    return re.split(r"\r?\n", str(md or ""))


def _rstrip_block_line(line: str) -> str:
    stripped = line.rstrip()
    marker = BLOCK_START_RE.match(line)
    if marker and not BLOCK_START_RE.match(stripped):
        # a bare marker ("- ", "# ") keeps its separator
        return marker.group(0)
    return stripped


def is_embeddable_host(host: str, domains: Iterable[str] = EMBED_DOMAINS) -> bool:
    host = (host or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return any(host == domain or host.endswith("." + domain) for domain in domains)


def prefer_bare_urls(md: str, domains: Iterable[str] = EMBED_DOMAINS) -> str:
    """Rewrite ``[text](url)`` so note.com shows an embed card or a readable URL."""
    domains = tuple(domains)

    def _replace(match: re.Match) -> str:
        text, url = match.group(1), match.group(2)
        try:
            host = urlsplit(url).hostname
        except ValueError:
            host = None
        if not host:
            return f"{text} {url}"
        if is_embeddable_host(host, domains):
            return f"{text}\n{url}\n"
        return f"{text} ({url})"

    # link text may itself hold a link; rewrite until nothing matches
    text = str(md or "")
    while True:
        rewritten = LINK_RE.sub(_replace, text)
        if rewritten == text:
            return rewritten
        text = rewritten


def normalize_bullets(md: str) -> str:
    text = BULLET_RE.sub("- ", str(md or ""))
    return NESTED_BULLET_RE.sub("  - ", text)


def normalize_list_item_soft_breaks(md: str) -> str:
    """Join the wrapped continuation lines of a list item onto the item itself."""
    out: list[str] = []
    in_item = False
    in_fence = False
    for line in _split_lines(md):
        if FENCE_RE.match(line):
            in_fence = not in_fence
            in_item = False
            out.append(line)
            continue
        if in_fence:
            out.append(line)
            continue
        if LIST_START_RE.match(line):
            in_item = True
            out.append(_rstrip_block_line(line))
            continue
        if in_item:
            if not line.strip():
                in_item = False
                out.append(line)
                continue
            last = out.pop() if out else ""
            out.append(last + " " + line.strip())
            continue
        out.append(line)
    return "\n".join(out)


def unwrap_paragraphs(md: str) -> str:
    """Turn soft-wrapped paragraph lines back into one line.

    A line is glued to the previous one with a space, unless the previous one
    ends a sentence, in which case the newline is kept.  Headings, list items,
    quotes and bare URL lines always stay on their own line; fenced code is
    passed through untouched.
    """
    out: list[str] = []
    buf = ""
    in_fence = False

    def _flush() -> None:
        nonlocal buf
        if buf:
            out.append(buf.strip())
        buf = ""

    for raw in _split_lines(md):
        line = raw.replace(ZERO_WIDTH_SPACE, "")
        if FENCE_RE.match(line):
            if not in_fence:
                _flush()
            in_fence = not in_fence
            out.append(line)
            continue
        if in_fence:
            out.append(line)
            continue
        if not line.strip():
            _flush()
            out.append("")
            continue
        if BLOCK_START_RE.match(line) or BARE_URL_LINE_RE.match(line):
            _flush()
            out.append(_rstrip_block_line(line))
            continue
        if buf:
            buf += ("\n" if SENTENCE_END_RE.search(buf) else " ") + line.strip()
        else:
            buf = line.strip()
    _flush()
    return "\n".join(out)


def normalize_markdown(md: str) -> str:
    text = str(md or "").replace("\r\n", "\n").replace("\r", "\n").replace(ZERO_WIDTH_SPACE, "")
    text = prefer_bare_urls(text)
    text = normalize_bullets(text)
    text = normalize_list_item_soft_breaks(text)
    return unwrap_paragraphs(text)


# --------------------------------------------------------------------- blocks


def is_garbage_line(line: str) -> bool:
    return bool(GARBAGE_LINE_RE.match(line or ""))


def split_markdown_blocks(md: str) -> list[str]:
    """Split canonical markdown on blank lines; a fenced region is one block."""
    blocks: list[str] = []
    cur: list[str] = []
    in_fence = False
    for line in _split_lines(md):
        if FENCE_RE.match(line):
            cur.append(line)
            if in_fence:
                blocks.append("\n".join(cur))
                cur = []
            in_fence = not in_fence
            continue
        if in_fence:
            cur.append(line)
            continue
        if not line.strip():
            if cur:
                blocks.append("\n".join(cur))
                cur = []
            continue
        if is_garbage_line(line):
            continue
        cur.append(line)
    if cur:
        blocks.append("\n".join(cur))
    return [b for b in blocks if b.strip() and not is_garbage_line(b.strip())]


def classify_block(block: str) -> str:
    """Return ``list``, ``fenced-code``, ``paragraph`` or ``other``."""
    first = block.strip().split("\n", 1)[0] if block else ""
    if FENCE_RE.match(first):
        return "fenced-code"
    if LIST_START_RE.match(first):
        return "list"
    if not first or BLOCK_START_RE.match(first):
        return "other"
    return "paragraph"
