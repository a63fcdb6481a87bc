"""Metadata extraction from parsed and rendered notes."""

from typing import List, Optional, Sequence

from bs4 import BeautifulSoup
from markdown_it.token import Token

from obsidian_parser.core.models import TocItem

HEADING_TAGS = ['h1', 'h2', 'h3', 'h4', 'h5', 'h6']

_INLINE_TEXT_TYPES = {"text", "code_inline", "math_inline", "image"}


def _inline_text(children: Sequence[Token]) -> str:
    parts = []
    for child in children:
        if child.type in _INLINE_TEXT_TYPES:
            parts.append(child.content)
        elif child.type in ("softbreak", "hardbreak"):
            parts.append("\n")
    return "".join(parts)


def get_first_paragraph_text(tokens: Sequence[Token]) -> Optional[str]:
    """Text of the first top-level paragraph, or None if there is none."""
    for idx, token in enumerate(tokens):
        if token.type == "paragraph_open" and token.level == 0:
            inline = tokens[idx + 1]
            return _inline_text(inline.children or []).strip()
    return None


def get_toc(html: str) -> List[TocItem]:
    """Flat table of contents: every heading in document order."""
    soup = BeautifulSoup(html, 'html.parser')
    return [
        TocItem(title=heading.get_text(), depth=int(heading.name[1]), id=heading.get('id'))
        for heading in soup.find_all(HEADING_TAGS)
    ]


def get_plain_text(html: str) -> str:
    return BeautifulSoup(html, 'html.parser').get_text()
