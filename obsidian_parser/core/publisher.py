"""Vault orchestration: discovery, media, and page processing for a whole vault."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Union

from obsidian_parser.core.discovery import AllowSetBuilder, VaultDiscovery, iter_markdown_files
from obsidian_parser.core.models import MediaCatalog, MediaFileData, NoteError, PageResult, PublishResult
from obsidian_parser.core.processor import ContentProcessor
from obsidian_parser.images.optimizer import ImageOptimizer, MediaOptions, ProgressCallback
from obsidian_parser.rendering.markdown import MarkdownBuilder, build_markdown
from obsidian_parser.transforms.links import LinkResolver
from obsidian_parser.transforms.media import DEFAULT_IMAGE, MediaResolver
from obsidian_parser.utility import json_stringify, to_slug, write_to_file

logger = logging.getLogger(__name__)


@dataclass
class ProcessOptions:
    """Settings for turning a vault's notes into pages.

    ``allow_set_builder`` replaces the default ``public: true`` rule; it gets
    the vault path and returns the note paths that may be published.
    """
    allow_set_builder: Optional[AllowSetBuilder] = None
    markdown_builder: MarkdownBuilder = build_markdown
    note_path_prefix: str = "/content"
    to_slug: Callable[[str], str] = to_slug
    required_tags: List[str] = field(default_factory=list)
    excluded_tags: List[str] = field(default_factory=list)
    media_data: List[MediaFileData] = field(default_factory=list)
    media_path_map: Dict[str, str] = field(default_factory=dict)
    use_absolute_paths: bool = False
    preferred_size: str = "md"
    default_image: str = DEFAULT_IMAGE
    asset_path_prefix: Optional[str] = None


def _build_allow_set(vault_path: Path, options: ProcessOptions, failures: List[NoteError]) -> Set[Path]:
    if options.allow_set_builder is not None:
        return {Path(p).resolve() for p in options.allow_set_builder(vault_path)}

    discovery = VaultDiscovery(
        vault_path,
        required_tags=options.required_tags,
        excluded_tags=options.excluded_tags,
    )
    allowed = discovery.build_allow_set()
    failures.extend(discovery.errors)
    return allowed


def _process_pages(vault_path: Union[str, Path], options: ProcessOptions) -> Tuple[List[PageResult], List[NoteError]]:
    vault_path = Path(vault_path)
    if not vault_path.is_dir():
        raise FileNotFoundError(f"Vault directory not found: {vault_path}")

    logger.info("Processing Obsidian vault: %s", vault_path)

    failures: List[NoteError] = []
    allowed = _build_allow_set(vault_path, options, failures)
    logger.info("Found %d allowed files to process", len(allowed))

    processor = ContentProcessor(
        link_resolver=LinkResolver(allowed, prefix=options.note_path_prefix, to_slug=options.to_slug),
        media_resolver=MediaResolver.from_catalog(
            options.media_data,
            options.media_path_map,
            preferred_size=options.preferred_size,
            use_absolute_paths=options.use_absolute_paths,
            default_image=options.default_image,
        ),
        path_map=options.media_path_map,
        asset_prefix=options.asset_path_prefix,
        markdown_builder=options.markdown_builder,
        to_slug=options.to_slug,
    )

    pages: List[PageResult] = []
    for file_path in iter_markdown_files(vault_path):
        if file_path.resolve() not in allowed:
            continue

        logger.debug("Processing file: %s", file_path)
        try:
            processed = processor.process(file_path, vault_path)
        except Exception as e:
            logger.error("Error processing %s: %s", file_path, e)
            failures.append(NoteError(path=file_path, error=str(e), title=file_path.stem))
            continue

        pages.append(processed.page)
        logger.debug("Processed: %s", processed.page.file_name)

    logger.info("Successfully processed %d files", len(pages))
    return pages, failures


def process_folder(vault_path: Union[str, Path], options: Optional[ProcessOptions] = None) -> List[PageResult]:
    """Process a vault and return page results for its public notes.

    Notes that fail to read or render are logged and left out.

    Args:
        vault_path: Vault root
        options: Processing settings (default: ProcessOptions())

    Returns:
        PageResult list in directory traversal order

    Raises:
        FileNotFoundError: If the vault directory does not exist
    """
    pages, _ = _process_pages(vault_path, options or ProcessOptions())
    return pages


def process_media(
    vault_path: Union[str, Path],
    options: Optional[MediaOptions] = None,
    progress: Optional[ProgressCallback] = None,
) -> MediaCatalog:
    """Optimize the vault's media and return the catalog.

    Args:
        vault_path: Vault root
        options: Media settings (default: MediaOptions())
        progress: Optional per-file progress callback

    Returns:
        MediaCatalog with media data and the path map
    """
    return ImageOptimizer(options).process(vault_path, progress=progress)


def pages_to_json(pages: List[PageResult], media_data: Optional[List[MediaFileData]] = None) -> List[Dict[str, Any]]:
    """Serializable page list.

    When ``media_data`` is given, the catalog is attached to the first page
    only, under ``_mediaData``.
    """
    data = [page.to_dict() for page in pages]
    if media_data and data:
        data[0]["_mediaData"] = [item.to_dict() for item in media_data]
    return data


@dataclass
class PublisherConfig:
    """Everything a full vault run needs."""
    vault_path: Path
    output_path: Path = Path("vault-output.json")
    note_path_prefix: str = "/content"
    asset_path_prefix: str = "/assets"
    skip_media: bool = False
    media: MediaOptions = field(default_factory=MediaOptions)
    media_results_path: Optional[Path] = None
    use_absolute_paths: bool = False
    preferred_size: str = "md"
    include_media_data: bool = False


class VaultPublisher:
    """Runs media optimization and page processing for one vault."""

    def __init__(self, config: PublisherConfig, progress: Optional[ProgressCallback] = None):
        """Initialize VaultPublisher.

        Args:
            config: Run settings
            progress: Per-file callback for the media loop
        """
        self.config = config
        self.progress = progress

    def run(self) -> PublishResult:
        """Process media (unless skipped) and then every public note.

        Raises:
            FileNotFoundError: If the vault directory does not exist
        """
        config = self.config
        vault_path = Path(config.vault_path)
        if not vault_path.is_dir():
            raise FileNotFoundError(f"Vault directory not found: {vault_path}")

        catalog = MediaCatalog()
        if config.skip_media:
            logger.info("Skipping media processing")
        else:
            logger.info("Processing media files...")
            catalog = process_media(vault_path, config.media, progress=self.progress)

        logger.info("Processing markdown files...")
        options = ProcessOptions(
            note_path_prefix=config.note_path_prefix,
            media_data=catalog.media_data,
            media_path_map=catalog.path_map,
            use_absolute_paths=config.use_absolute_paths,
            preferred_size=config.preferred_size,
            asset_path_prefix=config.asset_path_prefix,
        )
        pages, failures = _process_pages(vault_path, options)
        return PublishResult(pages=pages, catalog=catalog, failures=failures)

    def write(self, result: PublishResult) -> List[Path]:
        """Write the pages JSON and, if configured, the media results JSON.

        Raises:
            OSError: If an output file cannot be written
        """
        media_data = result.catalog.media_data if self.config.include_media_data else None
        written = [write_to_file(self.config.output_path, json_stringify(pages_to_json(result.pages, media_data)))]
        logger.info("Output saved to: %s", self.config.output_path)

        if self.config.media_results_path is not None:
            written.append(write_to_file(self.config.media_results_path, json_stringify(result.catalog.to_dict())))
            logger.info("Media results saved to: %s", self.config.media_results_path)

        return written
