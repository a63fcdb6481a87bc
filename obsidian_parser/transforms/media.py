"""Embedded media resolution for Obsidian Parser.

Replaces ``![[image.png]]`` embeds with image nodes pointing at the
optimized files produced by ``ImageOptimizer``. Resolution never fails: an
embed that cannot be matched renders as a placeholder image.

Lookup order for an embed:

1. exact key in the media path map
2. the ``path_variations`` of the key in the path map, in order
3. the catalog indexes (by path, by file name, by name using the full path)
4. the placeholder image
"""

import logging
import posixpath
import re
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import unquote

from markdown_it import MarkdownIt
from markdown_it.rules_core import StateCore
from markdown_it.token import Token

from obsidian_parser.core.models import MediaFileData, MediaVariant
from obsidian_parser.transforms.links import bracket_spans_plugin

logger = logging.getLogger(__name__)

# ![[filename.ext]] or ![[path/to/filename.ext|hint]]
MEDIA_EMBED_PATTERN = re.compile(r'!\[\[(.*?)\]\]')

# <width> or <width>x<height>
SIZE_HINT_PATTERN = re.compile(r'^(\d+)(?:x(\d+))?$')

DEFAULT_IMAGE = '/placeholder/400/300'
PLACEHOLDER_WIDTH = 400
PLACEHOLDER_HEIGHT = 300

SIZE_FALLBACKS = ['md', 'sm', 'lg', 'original']

EXTERNAL_PREFIXES = ('http://', 'https://', '//', 'data:', 'mailto:', '/')


@dataclass(frozen=True)
class MediaToken:
    """Raw embed reference as written between ``![[`` and ``]]``."""
    raw_value: str
    alias: Optional[str] = None


@dataclass(frozen=True)
class ImageNode:
    """Renderable image produced for an embed."""
    url: str
    alt: str
    title: str
    width: Optional[int] = None
    height: Optional[int] = None
    css_class: str = 'obsidian-media'
    found: bool = True


def parse_embed(inner: str) -> MediaToken:
    """Build a media token from the text between the brackets."""
    target, sep, alias = inner.partition('|')
    alias = alias.strip() if sep else ''
    return MediaToken(raw_value=target.strip(), alias=alias or None)


def _basename(raw: str) -> str:
    return posixpath.basename(raw.replace('\\', '/'))


def path_variations(raw: str) -> List[str]:
    """Alternative path-map keys for an embed, in lookup order."""
    with_leading_slash = raw if raw.startswith('/') else f"/{raw}"
    without_leading_slash = raw[1:] if raw.startswith('/') else raw
    normalized = raw.replace('\\', '/')
    return [
        with_leading_slash,
        without_leading_slash,
        normalized,
        normalized.lower(),
        _basename(raw),
    ]


@dataclass
class MediaIndex:
    """Case-insensitive lookup tables over a media catalog.

    Built once per run and handed to the resolver.
    """

    by_path: Dict[str, MediaFileData]
    by_name: Dict[str, MediaFileData]

    @classmethod
    def from_catalog(cls, media_data: Iterable[MediaFileData]) -> "MediaIndex":
        """Build the indexes from catalog entries."""
        by_path = {}
        by_name = {}

        for item in media_data:
            by_name[item.file_name.lower()] = item
            by_path[item.original_path.replace('\\', '/').lower()] = item

            name_only = _basename(item.original_path).lower()
            if name_only != item.file_name.lower():
                by_name[name_only] = item

        return cls(by_path, by_name)

    def lookup(self, raw: str) -> Optional[MediaFileData]:
        """Find the catalog entry for an embed, or None."""
        normalized_path = raw.replace('\\', '/').lower()
        normalized_name = _basename(raw).lower()
        return (
            self.by_path.get(normalized_path)
            or self.by_name.get(normalized_name)
            or self.by_name.get(normalized_path)
        )


def select_variant(entry: MediaFileData, preferred_size: str) -> Optional[Tuple[str, MediaVariant]]:
    """Pick the first variant of the first non-empty size bucket.

    Buckets are tried as ``[preferred_size, md, sm, lg, original]``. Variants
    within a bucket are already in format preference order.
    """
    for label in [preferred_size] + SIZE_FALLBACKS:
        variants = entry.sizes.get(label)
        if variants:
            return label, variants[0]
    return None


class MediaResolver:
    """Resolves embeds against the media path map and catalog."""

    def __init__(
        self,
        index: Optional[MediaIndex] = None,
        path_map: Optional[Dict[str, str]] = None,
        preferred_size: str = 'md',
        use_absolute_paths: bool = False,
        default_image: str = DEFAULT_IMAGE,
    ):
        """Initialize MediaResolver.

        Args:
            index: Catalog indexes (default: empty)
            path_map: Original relative path -> best public path
            preferred_size: Size bucket tried first on catalog hits
            use_absolute_paths: Prefer absolutePublicPath when it is set
            default_image: URL of the placeholder image
        """
        self.index = index or MediaIndex({}, {})
        self.path_map = path_map or {}
        self.preferred_size = preferred_size
        self.use_absolute_paths = use_absolute_paths
        self.default_image = default_image

    @classmethod
    def from_catalog(cls, media_data: Iterable[MediaFileData], path_map: Optional[Dict[str, str]] = None, **kwargs) -> "MediaResolver":
        return cls(MediaIndex.from_catalog(media_data), path_map, **kwargs)

    def resolve(self, raw: str) -> ImageNode:
        """Resolve an embed path to an image node. Never raises."""
        try:
            return self._resolve(raw)
        except Exception as e:
            logger.warning("Failed to resolve media %r: %s", raw, e)
            return self.placeholder(_basename(raw))

    def resolve_token(self, token: MediaToken) -> ImageNode:
        """Resolve an embed and apply its ``|alias`` as size hint or alt text."""
        node = self.resolve(token.raw_value)
        if not token.alias:
            return node

        hint = SIZE_HINT_PATTERN.match(token.alias)
        if hint is None:
            return replace(node, alt=token.alias)

        width = int(hint.group(1))
        height = int(hint.group(2)) if hint.group(2) else None
        return replace(node, width=width, height=height)

    def placeholder(self, alt: str) -> ImageNode:
        return ImageNode(
            url=self.default_image,
            alt=alt,
            title=f"Image not found: {alt}",
            width=PLACEHOLDER_WIDTH,
            height=PLACEHOLDER_HEIGHT,
            css_class='obsidian-media placeholder',
            found=False,
        )

    def _mapped(self, url: str, name: str) -> ImageNode:
        return ImageNode(url=url, alt=name, title=name, css_class='obsidian-media mapped')

    def _resolve(self, raw: str) -> ImageNode:
        name = _basename(raw)

        mapped = self.path_map.get(raw)
        if mapped:
            return self._mapped(mapped, name)

        for key in path_variations(raw):
            mapped = self.path_map.get(key)
            if mapped:
                logger.debug("Media %r matched path map key %r", raw, key)
                return self._mapped(mapped, name)

        entry = self.index.lookup(raw)
        if entry is None:
            logger.debug("Media not found: %s", raw)
            return self.placeholder(name)

        selected = select_variant(entry, self.preferred_size)
        if selected is None:
            logger.debug("Media has no variants: %s", raw)
            return self.placeholder(name)

        label, variant = selected
        url = variant.public_path
        if self.use_absolute_paths and variant.absolute_public_path:
            url = variant.absolute_public_path

        return ImageNode(
            url=url,
            alt=name,
            title=f"{name} ({variant.width}x{variant.height})",
            width=variant.width,
            height=variant.height,
            css_class=f'obsidian-media size-{label}',
        )


def image_token(node: ImageNode, level: int = 0) -> Token:
    """Convert an image node into a markdown-it image token."""
    attrs = {"src": node.url, "alt": "", "title": node.title}
    if node.width:
        attrs["width"] = str(node.width)
    if node.height:
        attrs["height"] = str(node.height)
    if node.found:
        attrs["loading"] = "lazy"
    attrs["class"] = node.css_class

    return Token(
        "image", "img", 0,
        attrs=attrs,
        children=[Token("text", "", 0, content=node.alt)],
        content=node.alt,
        level=level,
        meta={"found": node.found},
    )


def _splice_embeds(token: Token, resolver: MediaResolver) -> Optional[List[Token]]:
    text = token.content
    matches = list(MEDIA_EMBED_PATTERN.finditer(text))
    if not matches:
        return None

    replacement: List[Token] = []
    last = 0
    for match in matches:
        if match.start() > last:
            replacement.append(Token("text", "", 0, content=text[last:match.start()], level=token.level))
        node = resolver.resolve_token(parse_embed(match.group(1)))
        replacement.append(image_token(node, token.level))
        last = match.end()

    if last < len(text):
        replacement.append(Token("text", "", 0, content=text[last:], level=token.level))
    return replacement


def media_plugin(md: MarkdownIt, resolver: MediaResolver) -> None:
    """Install a core rule that replaces ``![[...]]`` embeds with images.

    Unresolved embeds are collected in ``env["missing_media"]``.
    """

    def obsidian_media(state: StateCore) -> None:
        missing = state.env.setdefault("missing_media", []) if isinstance(state.env, dict) else []
        for block_token in state.tokens:
            if block_token.type != "inline" or not block_token.children:
                continue

            children: List[Token] = []
            for child in block_token.children:
                spliced = _splice_embeds(child, resolver) if child.type == "text" else None
                if spliced is None:
                    children.append(child)
                    continue
                for new in spliced:
                    if new.type == "image" and not new.meta.get("found", True):
                        missing.append(new.content)
                children.extend(spliced)
            block_token.children = children

    bracket_spans_plugin(md)
    md.core.ruler.push("obsidian_media", obsidian_media)


def rewrite_image_source(src: str, path_map: Dict[str, str], asset_prefix: Optional[str] = None) -> str:
    """Map a relative Markdown image source onto its optimized path.

    Remote and absolute sources are returned unchanged. A relative source
    missing from the path map gets ``asset_prefix`` prepended when one is
    given, unless it climbs above the vault with ``..``. Anything else is
    left as written.
    """
    if not src or src.startswith(EXTERNAL_PREFIXES):
        return src

    decoded = unquote(src)
    normalized = posixpath.normpath(decoded.replace('\\', '/'))
    for candidate in (src, decoded, normalized):
        mapped = path_map.get(candidate)
        if mapped:
            return mapped

    # ../ sources stay as written
    if asset_prefix and normalized != '..' and not normalized.startswith('../'):
        return f"{asset_prefix.rstrip('/')}/{posixpath.normpath(src).lstrip('/')}"
    return src


def image_sources_plugin(md: MarkdownIt, path_map: Dict[str, str], asset_prefix: Optional[str] = None) -> None:
    """Install a core rule rewriting ``![alt](relative/path)`` through the path map."""

    def image_sources(state: StateCore) -> None:
        for block_token in state.tokens:
            if block_token.type != "inline" or not block_token.children:
                continue
            for child in block_token.children:
                # Embeds resolved above carry "found" in meta
                if child.type != "image" or "found" in child.meta:
                    continue
                src = child.attrGet("src")
                if isinstance(src, str):
                    child.attrSet("src", rewrite_image_source(src, path_map, asset_prefix))

    md.core.ruler.push("image_sources", image_sources)
