"""markdown-it configuration used to parse and render notes."""

import re
from typing import Callable, Dict, Optional

from bs4 import BeautifulSoup, NavigableString
from markdown_it import MarkdownIt
from markdown_it.rules_core import StateCore
from markdown_it.token import Token
from mdit_py_plugins.anchors import anchors_plugin
from mdit_py_plugins.dollarmath import dollarmath_plugin
from mdit_py_plugins.footnote import footnote_plugin
from mdit_py_plugins.tasklists import tasklists_plugin
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from obsidian_parser.transforms.links import LinkResolver, wikilinks_plugin
from obsidian_parser.transforms.media import MediaResolver, image_sources_plugin, media_plugin
from obsidian_parser.utility import to_slug

MarkdownBuilder = Callable[..., MarkdownIt]

# > [!tip] Optional title
CALLOUT_PATTERN = re.compile(r'^\[!(?P<type>[\w-]+)\][+-]?[ \t]*(?P<title>[^\n]*)')

_FORMATTER = HtmlFormatter(nowrap=True)


def highlight_code(code: str, lang: str, attrs: str) -> str:
    """Highlight a fenced code block with Pygments.

    Returns an empty string for unknown languages so markdown-it falls back
    to plain escaped output.
    """
    if not lang:
        return ""
    try:
        lexer = get_lexer_by_name(lang)
    except ClassNotFound:
        return ""
    return highlight(code, lexer, _FORMATTER)


def _render_link_open(self, tokens, idx, options, env):
    href = tokens[idx].attrGet("href")
    if isinstance(href, str) and href.startswith(("http://", "https://")):
        tokens[idx].attrSet("rel", "nofollow")
    return self.renderToken(tokens, idx, options, env)


def heading_links_plugin(md: MarkdownIt) -> None:
    """Wrap heading contents in a link to the heading's own id."""

    def heading_links(state: StateCore) -> None:
        tokens = state.tokens
        for idx, token in enumerate(tokens[:-1]):
            if token.type != "heading_open":
                continue
            slug = token.attrGet("id")
            inline = tokens[idx + 1]
            if not slug or inline.type != "inline" or not inline.children:
                continue
            # Nested anchors are invalid HTML
            if any(child.type == "link_open" for child in inline.children):
                continue
            inline.children = (
                [Token("link_open", "a", 1, attrs={"href": f"#{slug}"}, level=inline.level)]
                + inline.children
                + [Token("link_close", "a", -1, level=inline.level)]
            )

    md.core.ruler.push("heading_links", heading_links)


def build_markdown(
    link_resolver: LinkResolver,
    media_resolver: Optional[MediaResolver] = None,
    path_map: Optional[Dict[str, str]] = None,
    asset_prefix: Optional[str] = None,
    slug_func: Callable[[str], str] = to_slug,
) -> MarkdownIt:
    """Create the markdown-it instance for one vault run.

    Args:
        link_resolver: Resolver for ``[[wikilinks]]``
        media_resolver: Resolver for ``![[embeds]]`` (default: empty catalog)
        path_map: Media path map for rewriting relative ``![](...)`` sources
        asset_prefix: Prefix for relative image sources missing from the path map
        slug_func: Slug function for heading ids

    Returns:
        Configured MarkdownIt instance
    """
    md = (
        MarkdownIt("commonmark", {"highlight": highlight_code})
        .enable(["table", "strikethrough"])
        .use(footnote_plugin)
        .use(tasklists_plugin)
        .use(dollarmath_plugin)
        .use(wikilinks_plugin, link_resolver)
        .use(media_plugin, media_resolver or MediaResolver())
    )
    if path_map or asset_prefix:
        md.use(image_sources_plugin, path_map or {}, asset_prefix)

    md.use(anchors_plugin, min_level=1, max_level=6, slug_func=slug_func)
    md.use(heading_links_plugin)
    md.add_render_rule("link_open", _render_link_open)
    return md


def render_callouts(html: str) -> str:
    """Rewrite Obsidian callout blockquotes into callout divs.

    ``> [!tip] Title`` becomes::

        <div class="callout callout-tip" data-callout="tip">
          <div class="callout-title">Title</div>
          <div class="callout-content">...</div>
        </div>
    """
    if '[!' not in html:
        return html

    soup = BeautifulSoup(html, 'html.parser')
    changed = False
    for bq in soup.find_all('blockquote'):
        p_tag = bq.find('p', recursive=False)
        if p_tag is None or not p_tag.contents:
            continue
        first = p_tag.contents[0]
        if not isinstance(first, NavigableString):
            continue
        match = CALLOUT_PATTERN.match(str(first))
        if not match:
            continue

        callout_type = match.group('type').lower()
        title = match.group('title').strip() or callout_type.capitalize()

        first.replace_with(str(first)[match.end():].lstrip('\n'))
        if not p_tag.get_text(strip=True) and not p_tag.find(True):
            p_tag.decompose()

        callout_div = soup.new_tag('div', attrs={'class': f'callout callout-{callout_type}', 'data-callout': callout_type})
        title_div = soup.new_tag('div', attrs={'class': 'callout-title'})
        title_div.string = title
        content_div = soup.new_tag('div', attrs={'class': 'callout-content'})
        for element in list(bq.contents):
            content_div.append(element.extract())
        callout_div.append(title_div)
        callout_div.append(content_div)
        bq.replace_with(callout_div)
        changed = True

    return str(soup) if changed else html
