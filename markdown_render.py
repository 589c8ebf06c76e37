from __future__ import annotations

import re
from typing import Iterable

from markdown_it import MarkdownIt

from markdown_normalize import classify_block

# breaks=False: a single newline stays inside the paragraph
_MD_PARAGRAPHS = MarkdownIt("commonmark", {"breaks": False}).enable("table").enable("strikethrough")
# breaks=True: a manual newline becomes <br>
_MD_LINE_BREAKS = MarkdownIt("commonmark", {"breaks": True}).enable("table").enable("strikethrough")

LIST_CONTINUATION_RE = re.compile(r"\n(?![ \t]*(?:[-*+]\s|\d+\.\s))")


def html_from_markdown(md: str) -> str:
    """Render the whole canonical document (clipboard paste payload)."""
    return _MD_PARAGRAPHS.render(str(md or ""))


def block_to_html(block: str) -> str:
    """Render one block for per-block insertion.

    List blocks get their in-item newlines folded into spaces first so the
    editor does not show stray line breaks inside an item.
    """
    if classify_block(block) == "list":
        folded = LIST_CONTINUATION_RE.sub(" ", block.strip())
        return _MD_PARAGRAPHS.render(folded)
    return _MD_LINE_BREAKS.render(block)


def blocks_to_html(blocks: Iterable[str]) -> list[str]:
    return [block_to_html(block) for block in blocks]
