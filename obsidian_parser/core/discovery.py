"""Vault discovery module for finding publishable notes."""

import logging
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Set, Tuple, Union

from obsidian_parser.core.models import DiscoveryError, NoteContext, NoteError, NoteMetadata
from obsidian_parser.log import TRACE
from obsidian_parser.transforms.frontmatter import extract_tags, split_frontmatter
from obsidian_parser.utility import to_slug

logger = logging.getLogger(__name__)

AllowSetBuilder = Callable[[Path], Set[Path]]


def iter_markdown_files(vault_path: Path) -> Iterator[Path]:
    """Walk a vault and yield its markdown files.

    Hidden directories (``.obsidian``, ``.git``, ...) are skipped. Entries
    are visited in name order so runs are reproducible.

    Raises:
        FileNotFoundError: If the vault directory does not exist
    """
    vault_path = Path(vault_path)
    if not vault_path.is_dir():
        raise FileNotFoundError(f"Vault directory not found: {vault_path}")

    def scan(directory: Path) -> Iterator[Path]:
        logger.log(TRACE, "Scanning directory: %s", directory)
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            if entry.is_dir():
                if entry.name.startswith('.'):
                    logger.log(TRACE, "Skipping hidden directory: %s", entry.name)
                    continue
                yield from scan(entry)
            elif entry.is_file() and entry.suffix == '.md':
                yield entry

    yield from scan(vault_path)


class VaultDiscovery:
    """Discovers and filters notes eligible for publishing from an Obsidian vault.

    A note is publishable when its frontmatter sets ``public: true``. Tag
    filters can narrow the set further.
    """

    def __init__(
        self,
        vault_path: Union[str, Path],
        required_tags: Optional[List[str]] = None,
        excluded_tags: Optional[List[str]] = None,
        fail_fast: bool = False,
    ):
        """Initialize VaultDiscovery.

        Args:
            vault_path: Path to the Obsidian vault root
            required_tags: Tags of which at least one must be present
            excluded_tags: Tags that exclude a note from publishing
            fail_fast: Raise on the first unreadable note instead of collecting errors
        """
        self.vault_path = Path(vault_path)
        self.required_tags = set(required_tags or [])
        self.excluded_tags = set(excluded_tags or [])
        self.fail_fast = fail_fast
        self.errors: List[NoteError] = []

    def discover_all(self) -> List[NoteMetadata]:
        """Find all publishable notes in the vault.

        Returns:
            List of NoteMetadata in traversal order

        Raises:
            FileNotFoundError: If the vault directory does not exist
        """
        publishable = []
        for note_path in iter_markdown_files(self.vault_path):
            metadata = self.read_note(note_path)
            if metadata is None:
                continue

            is_pub, reason = self.is_publishable(metadata)
            if is_pub:
                publishable.append(metadata)
                logger.log(TRACE, "Found public file: %s", note_path.name)
            else:
                logger.log(TRACE, "Skipping %s: %s", note_path.name, reason)

        return publishable

    def build_allow_set(self) -> Set[Path]:
        """Absolute paths of every publishable note."""
        return {note.path.resolve() for note in self.discover_all()}

    def is_publishable(self, note: NoteMetadata) -> Tuple[bool, str]:
        """Check if a note meets publishing criteria.

        Args:
            note: NoteMetadata to check

        Returns:
            Tuple of (is_publishable, reason)
        """
        if not note.is_public:
            return False, "Not marked public"

        note_tags = set(note.tags)

        if self.required_tags and not self.required_tags.intersection(note_tags):
            missing = ', '.join(sorted(self.required_tags))
            return False, f"Missing required tags: {missing}"

        excluded_found = self.excluded_tags.intersection(note_tags)
        if excluded_found:
            found = ', '.join(sorted(excluded_found))
            return False, f"Contains excluded tags: {found}"

        return True, "OK"

    def read_note(self, file_path: Path) -> Optional[NoteMetadata]:
        """Parse a note file and extract metadata.

        Note: Content is NOT stored in NoteMetadata. Use context.read_raw()
        when content is needed during processing.

        Args:
            file_path: Path to the markdown file

        Returns:
            NoteMetadata or None if reading or parsing fails
        """
        try:
            context = NoteContext(path=file_path)
            frontmatter, _ = split_frontmatter(context.read_raw())
            title = str(frontmatter.get('title', file_path.stem))

            return NoteMetadata(
                context=context,
                title=title,
                slug=to_slug(file_path.stem),
                frontmatter=frontmatter,
                tags=extract_tags(frontmatter),
                is_public=frontmatter.get('public') is True,
            )
        except Exception as e:
            if self.fail_fast:
                raise DiscoveryError(file_path, str(e)) from e
            logger.warning("Failed to parse %s: %s", file_path.name, e)
            self.errors.append(NoteError(path=file_path, error=str(e)))
            return None
