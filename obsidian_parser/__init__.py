"""
Obsidian Parser - Convert an Obsidian vault to JSON

Turns a vault's public notes into page records (HTML, plain text, table of
contents, frontmatter) with support for:
- Wikilink resolution against the public notes
- Media embed resolution against an optimized media catalog
- Image optimization into multiple sizes and formats
- Callouts, footnotes, task lists, math and highlighted code
"""

__version__ = "0.1.0"

from obsidian_parser.core.models import (
    DiscoveryError,
    MediaCatalog,
    MediaFileData,
    NoteError,
    PageResult,
    ProcessedNote,
    PublishResult,
)
from obsidian_parser.core.discovery import VaultDiscovery
from obsidian_parser.core.processor import ContentProcessor
from obsidian_parser.core.publisher import (
    ProcessOptions,
    PublisherConfig,
    VaultPublisher,
    process_folder,
    process_media,
)
from obsidian_parser.images.optimizer import ImageOptimizer, MediaOptions

__all__ = [
    "DiscoveryError",
    "MediaCatalog",
    "MediaFileData",
    "NoteError",
    "PageResult",
    "ProcessedNote",
    "PublishResult",
    "VaultDiscovery",
    "ContentProcessor",
    "ProcessOptions",
    "PublisherConfig",
    "VaultPublisher",
    "process_folder",
    "process_media",
    "ImageOptimizer",
    "MediaOptions",
]
