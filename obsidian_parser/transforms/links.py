"""Wikilink resolution for Obsidian Parser.

Turns ``[[...]]`` references into output links in three steps:

1. ``parse_wikilink`` splits the bracket contents into a ``WikiLinkToken``
   (target and optional ``|alias``).
2. ``classify`` maps the target onto exactly one ``ObsidianLink`` variant.
3. ``LinkResolver.resolve`` applies the visibility gate and produces either a
   ``Hyperlink`` or a ``PlainText`` result.

``wikilinks_plugin`` hooks the resolver into markdown-it as a tree transform.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple, Union

from markdown_it import MarkdownIt
from markdown_it.rules_core import StateCore
from markdown_it.rules_inline import StateInline
from markdown_it.token import Token

from obsidian_parser.utility import to_slug as default_to_slug

logger = logging.getLogger(__name__)

# [[target]] or [[target|alias]], but not the ![[embed]] form
WIKILINK_PATTERN = re.compile(r'(?<!!)\[\[([^\[\]]+)\]\]')

SlugFunction = Callable[[str], str]


@dataclass(frozen=True)
class WikiLinkToken:
    """Raw reference as written between ``[[`` and ``]]``."""
    raw_value: str
    alias: Optional[str] = None


@dataclass(frozen=True)
class Page:
    page: str
    alias: Optional[str] = None


@dataclass(frozen=True)
class PageHeader:
    page: str
    header: str
    alias: Optional[str] = None


@dataclass(frozen=True)
class PageBlock:
    page: str
    block: str
    alias: Optional[str] = None


@dataclass(frozen=True)
class Header:
    """Header in the current document."""
    header: str
    alias: Optional[str] = None


@dataclass(frozen=True)
class Block:
    """Block in the current document."""
    block: str
    alias: Optional[str] = None


ObsidianLink = Union[Page, PageHeader, PageBlock, Header, Block]


@dataclass(frozen=True)
class Hyperlink:
    display_text: str
    uri: str


@dataclass(frozen=True)
class PlainText:
    display_text: str


LinkRenderResult = Union[Hyperlink, PlainText]


def parse_wikilink(inner: str) -> WikiLinkToken:
    """Build a token from the text between the brackets.

    Everything after the first ``|`` is the alias; an empty alias is dropped.
    """
    target, sep, alias = inner.partition('|')
    alias = alias.strip() if sep else ''
    return WikiLinkToken(raw_value=target.strip(), alias=alias or None)


_BLOCK_ONLY = re.compile(r'#\^.+', re.DOTALL)
_HEADER_ONLY = re.compile(r'#[^\^]+')


def _block(raw: str, alias: Optional[str]) -> ObsidianLink:
    return Block(block=raw[2:], alias=alias)


def _header(raw: str, alias: Optional[str]) -> ObsidianLink:
    return Header(header=raw[1:], alias=alias)


def _page_block(raw: str, alias: Optional[str]) -> ObsidianLink:
    page, _, block = raw.partition('#^')
    return PageBlock(page=page, block=block, alias=alias)


def _page_header(raw: str, alias: Optional[str]) -> ObsidianLink:
    page, _, header = raw.partition('#')
    return PageHeader(page=page, header=header, alias=alias)


def _page(raw: str, alias: Optional[str]) -> ObsidianLink:
    return Page(page=raw, alias=alias)


# Tried in order, first match wins. The last rule accepts everything.
CLASSIFICATION_RULES: List[Tuple[str, Callable[[str], bool], Callable[[str, Optional[str]], ObsidianLink]]] = [
    ("block", lambda raw: _BLOCK_ONLY.match(raw) is not None, _block),
    ("header", lambda raw: _HEADER_ONLY.match(raw) is not None, _header),
    ("page-block", lambda raw: '#^' in raw, _page_block),
    ("page-header", lambda raw: '#' in raw, _page_header),
    ("page", lambda raw: True, _page),
]


def classify(token: WikiLinkToken) -> ObsidianLink:
    """Map a wikilink token onto its link variant.

    Args:
        token: Parsed wikilink

    Returns:
        One of Page, PageHeader, PageBlock, Header, Block
    """
    for _name, matches, build in CLASSIFICATION_RULES:
        if matches(token.raw_value):
            return build(token.raw_value, token.alias)
    raise ValueError(f"Unclassifiable wikilink: {token.raw_value!r}")


def to_display_text(link: ObsidianLink) -> str:
    """Text shown for a link. An alias always wins."""
    if link.alias:
        return link.alias

    if isinstance(link, Page):
        return link.page
    if isinstance(link, PageHeader):
        return f"{link.page}#{link.header}"
    if isinstance(link, PageBlock):
        # Block ids are not shown
        return link.page
    if isinstance(link, Header):
        return f"#{link.header}"
    if isinstance(link, Block):
        return f"#^{link.block}"
    raise TypeError(f"Unknown link variant: {link!r}")


def to_uri(link: ObsidianLink, prefix: str, to_slug: SlugFunction = default_to_slug) -> str:
    """Build the href for a link.

    Block anchors are not supported in the output, so PageBlock points at the
    page and a bare Block has no URI at all.

    Args:
        link: Classified link
        prefix: Path prefix for note pages, e.g. ``/content``
        to_slug: Slug function for page and header names

    Returns:
        URI string, empty for Block
    """
    prefix = prefix.rstrip('/')

    if isinstance(link, Page):
        return f"{prefix}/{to_slug(link.page)}"
    if isinstance(link, PageHeader):
        return f"{prefix}/{to_slug(link.page)}#{to_slug(link.header)}"
    if isinstance(link, PageBlock):
        return f"{prefix}/{to_slug(link.page)}"
    if isinstance(link, Header):
        return f"#{to_slug(link.header)}"
    if isinstance(link, Block):
        return ""
    raise TypeError(f"Unknown link variant: {link!r}")


class LinkResolver:
    """Resolves wikilinks against the set of public notes.

    The allow set holds note file paths; links name notes without directory
    or extension, so a name-only view of the set is derived once here.
    """

    def __init__(
        self,
        allow_set: Iterable[Union[str, Path]],
        prefix: str = "/content",
        to_slug: SlugFunction = default_to_slug,
    ):
        """Initialize LinkResolver.

        Args:
            allow_set: Paths of notes that may be linked to
            prefix: Path prefix for note URIs
            to_slug: Slug function for page and header names
        """
        self.prefix = prefix
        self.to_slug = to_slug
        self.allowed_names = frozenset(Path(p).stem for p in allow_set)

    def is_visible(self, page: str) -> bool:
        return page in self.allowed_names

    def resolve_link(self, link: ObsidianLink) -> LinkRenderResult:
        """Apply the visibility gate to a classified link."""
        display_text = to_display_text(link)

        if isinstance(link, (Page, PageHeader, PageBlock)):
            if self.is_visible(link.page):
                return Hyperlink(display_text, to_uri(link, self.prefix, self.to_slug))
            return PlainText(display_text)
        if isinstance(link, Header):
            return Hyperlink(display_text, to_uri(link, self.prefix, self.to_slug))
        if isinstance(link, Block):
            # TODO: same-document block refs could link to the page itself like Header does
            return PlainText(display_text)
        raise TypeError(f"Unknown link variant: {link!r}")

    def resolve(self, token: WikiLinkToken) -> LinkRenderResult:
        """Classify and resolve a wikilink token."""
        return self.resolve_link(classify(token))


def _link_tokens(result: LinkRenderResult, level: int) -> List[Token]:
    if isinstance(result, Hyperlink):
        return [
            Token("link_open", "a", 1, attrs={"href": result.uri}, level=level, markup="wikilink"),
            Token("text", "", 0, content=result.display_text, level=level + 1),
            Token("link_close", "a", -1, level=level, markup="wikilink"),
        ]
    return [Token("text", "", 0, content=result.display_text, level=level)]


def _splice_wikilinks(token: Token, resolver: LinkResolver, missing: List[str]) -> Optional[List[Token]]:
    text = token.content
    if '[[' not in text:
        return None

    replacement: List[Token] = []
    last = 0
    for match in WIKILINK_PATTERN.finditer(text):
        if match.start() > last:
            replacement.append(Token("text", "", 0, content=text[last:match.start()], level=token.level))

        link = classify(parse_wikilink(match.group(1)))
        result = resolver.resolve_link(link)
        if isinstance(result, PlainText) and isinstance(link, (Page, PageHeader, PageBlock)):
            missing.append(link.page)
            logger.debug("Link target not public: %s", link.page)
        replacement.extend(_link_tokens(result, token.level))
        last = match.end()

    if not replacement:
        return None
    if last < len(text):
        replacement.append(Token("text", "", 0, content=text[last:], level=token.level))
    return replacement


def _bracket_span(state: StateInline, silent: bool) -> bool:
    src = state.src
    start = state.pos
    if src.startswith('![[', start):
        inner_start = start + 3
    elif src.startswith('[[', start):
        inner_start = start + 2
    else:
        return False

    end = src.find(']]', inner_start)
    if end <= inner_start:
        return False
    inner = src[inner_start:end]
    if '[' in inner or ']' in inner or '\n' in inner:
        return False

    if not silent:
        token = state.push("text", "", 0)
        token.content = src[start:end + 2]
    state.pos = end + 2
    return True


def bracket_spans_plugin(md: MarkdownIt) -> None:
    """Keep ``[[...]]`` and ``![[...]]`` as literal text during inline parsing.

    Without this, ``*`` or ``_`` inside a target is read as emphasis and the
    reference is split across tokens before the core rules can see it.
    """
    if "obsidian_brackets" in md.inline.ruler.get_all_rules():
        return
    md.inline.ruler.before("link", "obsidian_brackets", _bracket_span)


def wikilinks_plugin(md: MarkdownIt, resolver: LinkResolver) -> None:
    """Install a core rule that replaces wikilinks in inline text.

    Targets that degrade to plain text are collected in
    ``env["missing_links"]``.
    """

    def wikilinks(state: StateCore) -> None:
        missing = state.env.setdefault("missing_links", []) if isinstance(state.env, dict) else []
        for block_token in state.tokens:
            if block_token.type != "inline" or not block_token.children:
                continue

            children: List[Token] = []
            link_depth = 0
            for child in block_token.children:
                if child.type == "link_open":
                    link_depth += 1
                elif child.type == "link_close":
                    link_depth -= 1

                if child.type == "text" and link_depth == 0:
                    spliced = _splice_wikilinks(child, resolver, missing)
                    if spliced is not None:
                        children.extend(spliced)
                        continue
                children.append(child)
            block_token.children = children

    bracket_spans_plugin(md)
    md.core.ruler.push("obsidian_wikilinks", wikilinks)
