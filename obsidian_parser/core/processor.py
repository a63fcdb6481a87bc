"""Content processor for turning Obsidian notes into page results."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from markdown_it.token import Token

from obsidian_parser.core.models import PageResult, ProcessedNote
from obsidian_parser.rendering.html import get_first_paragraph_text, get_plain_text, get_toc
from obsidian_parser.rendering.markdown import MarkdownBuilder, build_markdown, render_callouts
from obsidian_parser.transforms.frontmatter import json_safe, split_frontmatter
from obsidian_parser.transforms.links import LinkResolver
from obsidian_parser.transforms.media import MediaResolver
from obsidian_parser.utility import to_slug as default_to_slug

logger = logging.getLogger(__name__)


@dataclass
class RenderedMarkdown:
    """Parsed token stream and HTML for one markdown body."""
    tokens: List[Token]
    html: str
    env: Dict[str, Any] = field(default_factory=dict)


class ContentProcessor:
    """Processes Obsidian note content for publishing.

    Handles:
    - Frontmatter extraction
    - Wikilink resolution against the allow set
    - Media embed resolution against the media catalog
    - HTML rendering and page metadata (slug, TOC, plain text)
    """

    def __init__(
        self,
        link_resolver: LinkResolver,
        media_resolver: Optional[MediaResolver] = None,
        path_map: Optional[Dict[str, str]] = None,
        asset_prefix: Optional[str] = None,
        markdown_builder: MarkdownBuilder = build_markdown,
        to_slug: Callable[[str], str] = default_to_slug,
    ):
        """Initialize ContentProcessor.

        Args:
            link_resolver: Resolver for wikilinks
            media_resolver: Resolver for media embeds (default: empty catalog)
            path_map: Media path map for relative Markdown image sources
            asset_prefix: Prefix for relative image sources missing from the path map
            markdown_builder: Factory for the markdown-it instance
            to_slug: Slug function for page slugs
        """
        self.link_resolver = link_resolver
        self.media_resolver = media_resolver or MediaResolver()
        self.to_slug = to_slug
        self.md = markdown_builder(
            link_resolver=self.link_resolver,
            media_resolver=self.media_resolver,
            path_map=path_map,
            asset_prefix=asset_prefix,
        )

    def render(self, markdown: str) -> RenderedMarkdown:
        """Parse and render a markdown body.

        Args:
            markdown: Note body without frontmatter

        Returns:
            RenderedMarkdown with the transformed tokens and HTML
        """
        env: Dict[str, Any] = {}
        tokens = self.md.parse(markdown, env)
        html = self.md.renderer.render(tokens, self.md.options, env)
        return RenderedMarkdown(tokens=tokens, html=render_callouts(html), env=env)

    def process(self, file_path: Union[str, Path], vault_root: Optional[Union[str, Path]] = None) -> ProcessedNote:
        """Process one note file into a page result.

        Args:
            file_path: Path to the markdown file
            vault_root: Vault root used for the relative path (default: file's directory)

        Returns:
            ProcessedNote with the page and any unresolved references

        Raises:
            OSError: If the file cannot be read
            yaml.YAMLError: If the frontmatter is malformed
        """
        file_path = Path(file_path)
        root = Path(vault_root) if vault_root is not None else file_path.parent

        raw_content = file_path.read_text(encoding='utf-8')
        frontmatter, body = split_frontmatter(raw_content)
        rendered = self.render(body)
        if rendered.env.get("missing_links"):
            logger.debug("%s: %d link(s) degraded to plain text", file_path.name, len(rendered.env["missing_links"]))

        file_name = file_path.stem
        page = PageResult(
            file_name=file_name,
            slug=self.to_slug(file_name),
            frontmatter=json_safe(frontmatter),
            first_paragraph_text=get_first_paragraph_text(rendered.tokens) or "",
            plain=get_plain_text(rendered.html),
            html=rendered.html,
            toc=get_toc(rendered.html),
            original_file_path=Path(os.path.relpath(file_path, root)).as_posix(),
        )

        return ProcessedNote(
            page=page,
            missing_links=list(rendered.env.get("missing_links", [])),
            missing_media=list(rendered.env.get("missing_media", [])),
        )
