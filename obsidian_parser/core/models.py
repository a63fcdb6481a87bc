"""Data models for Obsidian Parser."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


class DiscoveryError(Exception):
    """Raised by fail-fast discovery when a note cannot be read or parsed."""

    def __init__(self, path: Path, error: str):
        super().__init__(f"{path}: {error}")
        self.path = path
        self.error = error


@dataclass
class NoteContext:
    """Cheapest possible note reference - just location.

    Provides lazy content loading to avoid reading all notes into memory
    during discovery.
    """
    path: Path

    def read_raw(self) -> str:
        """Read file contents on demand."""
        return self.path.read_text(encoding='utf-8')


@dataclass
class NoteMetadata:
    """Parsed note metadata - what we learn from reading the file once.

    Does NOT store content - get it via context.read_raw() when needed.
    """
    context: NoteContext
    title: str
    slug: str
    frontmatter: Dict[str, Any]
    tags: List[str]
    is_public: bool

    @property
    def path(self) -> Path:
        """Convenience accessor for the note's path."""
        return self.context.path


@dataclass
class NoteError:
    """An error that occurred while processing a note.

    Used for errors at any phase: discovery, processing, or publishing.
    """
    path: Path
    error: str
    title: Optional[str] = None


@dataclass(frozen=True)
class TocItem:
    """One heading of a rendered page."""
    title: str
    depth: int
    id: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "depth": self.depth, "id": self.id}


@dataclass(frozen=True)
class PageResult:
    """Output record for one published note.

    Created once per processed note and never mutated afterwards.
    """
    file_name: str
    slug: str
    frontmatter: Dict[str, Any]
    first_paragraph_text: str
    plain: str
    html: str
    toc: List[TocItem]
    original_file_path: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fileName": self.file_name,
            "slug": self.slug,
            "frontmatter": self.frontmatter,
            "firstParagraphText": self.first_paragraph_text,
            "plain": self.plain,
            "html": self.html,
            "toc": [item.to_dict() for item in self.toc],
            "originalFilePath": self.original_file_path,
        }


@dataclass
class ProcessedNote:
    """Result of processing a note.

    Contains the page record along with the references that could not be
    resolved while rendering it.
    """
    page: PageResult
    missing_links: List[str]
    missing_media: List[str]


@dataclass
class MediaVariant:
    """A single generated size/format rendition of a media file."""
    width: int
    height: int
    format: str
    output_path: str
    public_path: str
    size: int
    absolute_public_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "width": self.width,
            "height": self.height,
            "format": self.format,
            "outputPath": self.output_path,
            "publicPath": self.public_path,
            "size": self.size,
        }
        if self.absolute_public_path:
            data["absolutePublicPath"] = self.absolute_public_path
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MediaVariant":
        return cls(
            width=data.get("width", 0),
            height=data.get("height", 0),
            format=data.get("format", ""),
            output_path=data.get("outputPath", ""),
            public_path=data["publicPath"],
            size=data.get("size", 0),
            absolute_public_path=data.get("absolutePublicPath"),
        )


@dataclass
class MediaMetadata:
    """What is known about the source file itself."""
    size: int = 0
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"size": self.size}
        if self.width is not None:
            data["width"] = self.width
        if self.height is not None:
            data["height"] = self.height
        if self.format is not None:
            data["format"] = self.format
        return data


@dataclass
class MediaFileData:
    """Catalog entry for one media file found in the vault.

    ``sizes`` maps a size label (``sm``, ``md``, ``lg``, ``original``) to the
    variants generated for it, in format preference order.
    """
    original_path: str
    file_name: str
    file_ext: str
    mime_type: str
    sizes: Dict[str, List[MediaVariant]] = field(default_factory=dict)
    metadata: MediaMetadata = field(default_factory=MediaMetadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originalPath": self.original_path,
            "fileName": self.file_name,
            "fileExt": self.file_ext,
            "mimeType": self.mime_type,
            "sizes": {
                label: [variant.to_dict() for variant in variants]
                for label, variants in self.sizes.items()
            },
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MediaFileData":
        meta = data.get("metadata") or {}
        return cls(
            original_path=data["originalPath"],
            file_name=data["fileName"],
            file_ext=data.get("fileExt", ""),
            mime_type=data.get("mimeType", "application/octet-stream"),
            sizes={
                label: [MediaVariant.from_dict(v) for v in variants]
                for label, variants in (data.get("sizes") or {}).items()
            },
            metadata=MediaMetadata(
                size=meta.get("size", 0),
                width=meta.get("width"),
                height=meta.get("height"),
                format=meta.get("format"),
            ),
        )


@dataclass
class MediaCatalog:
    """Result of a media optimization run."""
    media_data: List[MediaFileData] = field(default_factory=list)
    path_map: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mediaData": [item.to_dict() for item in self.media_data],
            "mediaPathMap": dict(self.path_map),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MediaCatalog":
        return cls(
            media_data=[MediaFileData.from_dict(d) for d in data.get("mediaData", [])],
            path_map=dict(data.get("mediaPathMap", {})),
        )


@dataclass
class PublishResult:
    """Result of a full vault run."""
    pages: List[PageResult] = field(default_factory=list)
    catalog: MediaCatalog = field(default_factory=MediaCatalog)
    failures: List[NoteError] = field(default_factory=list)
