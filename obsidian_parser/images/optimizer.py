"""Media optimization for Obsidian Parser.

Walks a vault for images and videos, writes resized and re-encoded variants
into the media output folder and builds the catalog that the media resolver
consumes. Files are processed strictly one at a time.
"""

import logging
import posixpath
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from PIL import Image

from obsidian_parser.core.models import MediaCatalog, MediaFileData, MediaMetadata, MediaVariant
from obsidian_parser.log import TRACE

logger = logging.getLogger(__name__)

MEDIA_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".avif", ".svg", ".mp4", ".webm",
}

# Extensions Pillow re-encodes; everything else is copied through
RASTER_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".avif"}

MIME_TYPES = {
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.webp': 'image/webp',
    '.avif': 'image/avif',
    '.svg': 'image/svg+xml',
    '.mp4': 'video/mp4',
    '.webm': 'video/webm',
}

PILLOW_FORMATS = {
    'jpeg': 'JPEG',
    'jpg': 'JPEG',
    'png': 'PNG',
    'webp': 'WEBP',
    'avif': 'AVIF',
}

SIZE_PREFERENCE = ['md', 'sm', 'lg', 'original']
FORMAT_PREFERENCE = ['webp', 'avif', 'jpeg', 'jpg']

SKIPPED_DIRECTORIES = {"node_modules"}

ProgressCallback = Callable[[int, int, Path], None]


@dataclass(frozen=True)
class ImageSize:
    """Target size. ``width``/``height`` of None leave that axis unbounded."""
    width: Optional[int]
    suffix: str
    height: Optional[int] = None


@dataclass(frozen=True)
class ImageFormat:
    format: str
    options: Dict[str, Any] = field(default_factory=dict)


DEFAULT_IMAGE_SIZES = [
    ImageSize(width=640, suffix="sm"),
    ImageSize(width=1024, suffix="md"),
    ImageSize(width=1920, suffix="lg"),
]

DEFAULT_IMAGE_FORMATS = [
    ImageFormat("jpeg", {"quality": 85, "optimize": True, "progressive": True}),
]


@dataclass
class MediaOptions:
    """Settings for a media optimization run."""
    media_output_folder: Path = Path("public/media")
    media_path_prefix: str = "/media"
    optimize_images: bool = True
    image_sizes: List[ImageSize] = field(default_factory=lambda: list(DEFAULT_IMAGE_SIZES))
    image_formats: List[ImageFormat] = field(default_factory=lambda: list(DEFAULT_IMAGE_FORMATS))
    skip_existing: bool = False
    force_reprocess: bool = False
    domain: Optional[str] = None


def get_mime_type(ext: str) -> str:
    """MIME type for a file extension (with leading dot)."""
    return MIME_TYPES.get(ext.lower(), 'application/octet-stream')


def format_bytes(size: int) -> str:
    """Human readable byte count, e.g. ``1.5 KB``."""
    if size == 0:
        return "0 Bytes"
    value = float(size)
    for unit in ['Bytes', 'KB', 'MB']:
        if value < 1024:
            return f"{round(value, 2):g} {unit}"
        value /= 1024
    return f"{round(value, 2):g} GB"


def best_public_path(media_file: MediaFileData) -> Optional[str]:
    """Pick the path-map target for a catalog entry.

    Sizes are tried as md, sm, lg, original and, within a size, formats as
    webp, avif, jpeg, jpg, then the source extension. The absolute URL wins
    over the public path when a domain was configured.
    """
    format_preference = FORMAT_PREFERENCE + [media_file.file_ext]

    for size in SIZE_PREFERENCE:
        variants = media_file.sizes.get(size) or []
        for fmt in format_preference:
            for variant in variants:
                if variant.format == fmt:
                    return variant.absolute_public_path or variant.public_path

    original = media_file.sizes.get('original')
    if original:
        return original[0].absolute_public_path or original[0].public_path

    return None


def _flatten_for_format(img: Image.Image, fmt: str) -> Image.Image:
    """Convert image modes the target encoder cannot store."""
    if PILLOW_FORMATS.get(fmt) != 'JPEG':
        if img.mode not in ("RGB", "RGBA", "L", "LA"):
            return img.convert("RGBA")
        return img

    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if img.mode not in ("RGB", "L"):
        return img.convert("RGB")
    return img


class ImageOptimizer:
    """Builds the media catalog for a vault."""

    def __init__(self, options: Optional[MediaOptions] = None):
        """Initialize ImageOptimizer.

        Args:
            options: Media settings (default: MediaOptions())
        """
        self.options = options or MediaOptions()
        self.output_folder = Path(self.options.media_output_folder)
        self.skipped = 0

    def process(self, vault_path: Union[str, Path], progress: Optional[ProgressCallback] = None) -> MediaCatalog:
        """Process every media file in the vault.

        Args:
            vault_path: Vault root
            progress: Called as ``progress(done, total, path)`` after each file

        Returns:
            MediaCatalog with one entry per media file and the path map

        Raises:
            FileNotFoundError: If the vault directory does not exist
            OSError: If the output folder cannot be created
        """
        vault_path = Path(vault_path)
        logger.info("Scanning media files in: %s", vault_path)

        if not self.output_folder.exists():
            self.output_folder.mkdir(parents=True, exist_ok=True)
            logger.info("Created output directory: %s", self.output_folder)

        media_files = self.find_media_files(vault_path)
        total = len(media_files)
        logger.info("Found %d media files to process", total)

        catalog = MediaCatalog()
        self.skipped = 0

        for index, file_path in enumerate(media_files, start=1):
            logger.debug("Processing media file (%d/%d): %s", index, total, file_path)
            try:
                media_file = self.process_file(file_path, vault_path)
            except OSError as e:
                logger.error("Error processing media file %s: %s", file_path, e)
            else:
                catalog.media_data.append(media_file)

                relative_path = file_path.relative_to(vault_path).as_posix()
                best_path = best_public_path(media_file)
                if best_path:
                    catalog.path_map[relative_path] = best_path
                    logger.debug("Mapped %s -> %s", relative_path, best_path)

            if progress is not None:
                progress(index, total, file_path)

        logger.info("Processed %d media files (%d skipped)", len(catalog.media_data), self.skipped)
        return catalog

    def find_media_files(self, vault_path: Path) -> List[Path]:
        """All media files under the vault, skipping hidden directories.

        Raises:
            FileNotFoundError: If the vault directory does not exist
        """
        vault_path = Path(vault_path)
        if not vault_path.is_dir():
            raise FileNotFoundError(f"Vault directory not found: {vault_path}")

        media_files: List[Path] = []

        def scan(directory: Path) -> None:
            logger.log(TRACE, "Scanning directory: %s", directory)
            for entry in sorted(directory.iterdir(), key=lambda p: p.name):
                if entry.is_dir():
                    if entry.name.startswith('.') or entry.name in SKIPPED_DIRECTORIES:
                        logger.log(TRACE, "Skipping directory: %s", entry.name)
                        continue
                    scan(entry)
                elif entry.is_file() and entry.suffix.lower() in MEDIA_EXTENSIONS:
                    media_files.append(entry)
                    logger.log(TRACE, "Found media file: %s", entry.name)

        scan(vault_path)
        return media_files

    def should_skip(self, source: Path, output: Path) -> bool:
        """True when an up-to-date output can be reused instead of rewritten."""
        if not self.options.skip_existing or self.options.force_reprocess:
            return False
        if not output.exists():
            return False
        return source.stat().st_mtime <= output.stat().st_mtime

    def public_path(self, relative_dir: str, file_name: str) -> str:
        """Rooted URL path: ``<prefix>/<relative dir>/<file name>``."""
        parts = [self.options.media_path_prefix.strip('/')]
        if relative_dir not in ('', '.'):
            parts.append(relative_dir)
        parts.append(file_name)
        return posixpath.join('/', *[p for p in parts if p])

    def absolute_public_path(self, public_path: str) -> Optional[str]:
        if not self.options.domain:
            return None
        return f"{self.options.domain.rstrip('/')}{public_path}"

    def process_file(self, file_path: Path, vault_path: Path) -> MediaFileData:
        """Produce the catalog entry for one media file.

        Encode failures are logged and fall back to a copy of the source.

        Raises:
            OSError: If the source cannot be read or copied
        """
        relative = file_path.relative_to(vault_path)
        ext = file_path.suffix

        media_file = MediaFileData(
            original_path=relative.as_posix(),
            file_name=file_path.name,
            file_ext=ext[1:].lower(),
            mime_type=get_mime_type(ext),
            metadata=MediaMetadata(size=file_path.stat().st_size),
        )

        if self.options.optimize_images and ext.lower() in RASTER_EXTENSIONS:
            try:
                self._optimize(file_path, relative, media_file)
            except Exception as e:
                logger.error("Error optimizing image %s: %s", file_path, e)
                media_file.sizes = {'original': [self._copy_original(file_path, relative, media_file)]}
        else:
            media_file.sizes = {'original': [self._copy_original(file_path, relative, media_file)]}

        return media_file

    def _optimize(self, file_path: Path, relative: Path, media_file: MediaFileData) -> None:
        relative_dir = relative.parent.as_posix()
        output_dir = self.output_folder / relative.parent
        if not output_dir.exists():
            output_dir.mkdir(parents=True, exist_ok=True)
            logger.log(TRACE, "Created directory: %s", output_dir)

        with Image.open(file_path) as img:
            img.load()
            media_file.metadata.width, media_file.metadata.height = img.size
            media_file.metadata.format = (img.format or '').lower() or None
            logger.debug("Image: %s (%dx%d, %s)", file_path.name, img.width, img.height, media_file.file_ext)

            sizes: Dict[str, List[MediaVariant]] = {}
            for size in self.options.image_sizes:
                variants = []
                for fmt in self.options.image_formats:
                    if size.suffix == 'original' and PILLOW_FORMATS.get(fmt.format) != img.format:
                        logger.log(TRACE, "Skipping %s conversion for original size: %s", fmt.format, file_path.name)
                        continue

                    suffix = '' if size.suffix == 'original' else f"-{size.suffix}"
                    output_name = f"{file_path.stem}{suffix}.{fmt.format}"
                    output_path = output_dir / output_name
                    public_path = self.public_path(relative_dir, output_name)

                    if self.should_skip(file_path, output_path):
                        logger.debug("Skipping existing file: %s", output_name)
                        self.skipped += 1
                    else:
                        self._encode(img, size, fmt, output_path)

                    with Image.open(output_path) as written:
                        width, height = written.size
                    output_size = output_path.stat().st_size

                    variants.append(MediaVariant(
                        width=width,
                        height=height,
                        format=fmt.format,
                        output_path=str(output_path),
                        public_path=public_path,
                        size=output_size,
                        absolute_public_path=self.absolute_public_path(public_path),
                    ))

                    saved = media_file.metadata.size - output_size
                    ratio = saved / media_file.metadata.size * 100 if media_file.metadata.size else 0
                    logger.debug("Saved: %s (%s, %.1f%% smaller)", public_path, format_bytes(output_size), ratio)

                if variants:
                    sizes[size.suffix] = variants

        media_file.sizes = sizes

    def _encode(self, img: Image.Image, size: ImageSize, fmt: ImageFormat, output_path: Path) -> None:
        rendition = img.copy()
        if size.suffix != 'original':
            # thumbnail() keeps the aspect ratio and never enlarges
            bound_w = size.width or rendition.width
            bound_h = size.height or rendition.height
            rendition.thumbnail((bound_w, bound_h), Image.LANCZOS)

        rendition = _flatten_for_format(rendition, fmt.format)
        logger.log(TRACE, "Converting %s to %s (%s)", output_path.name, fmt.format, size.suffix)
        rendition.save(output_path, format=PILLOW_FORMATS.get(fmt.format, fmt.format.upper()), **fmt.options)

    def _copy_original(self, file_path: Path, relative: Path, media_file: MediaFileData) -> MediaVariant:
        output_dir = self.output_folder / relative.parent
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / file_path.name

        if self.should_skip(file_path, output_path):
            logger.debug("Skipping existing file: %s", file_path.name)
            self.skipped += 1
        else:
            shutil.copy2(file_path, output_path)
            logger.debug("Copied: %s (%s)", output_path, format_bytes(media_file.metadata.size))

        public_path = self.public_path(relative.parent.as_posix(), file_path.name)
        return MediaVariant(
            width=media_file.metadata.width or 0,
            height=media_file.metadata.height or 0,
            format=media_file.file_ext,
            output_path=str(output_path),
            public_path=public_path,
            size=media_file.metadata.size,
            absolute_public_path=self.absolute_public_path(public_path),
        )
