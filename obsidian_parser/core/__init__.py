"""Core components for Obsidian Parser."""

from obsidian_parser.core.models import DiscoveryError, NoteContext, NoteError, NoteMetadata, PageResult, ProcessedNote, PublishResult
from obsidian_parser.core.discovery import VaultDiscovery, iter_markdown_files
from obsidian_parser.core.processor import ContentProcessor
from obsidian_parser.core.publisher import ProcessOptions, PublisherConfig, VaultPublisher, process_folder, process_media

__all__ = [
    "DiscoveryError",
    "NoteContext",
    "NoteError",
    "NoteMetadata",
    "PageResult",
    "ProcessedNote",
    "PublishResult",
    "VaultDiscovery",
    "iter_markdown_files",
    "ContentProcessor",
    "ProcessOptions",
    "PublisherConfig",
    "VaultPublisher",
    "process_folder",
    "process_media",
]
