"""Command line entry point: ``obsidian-to-json``.

Converts an Obsidian vault into a JSON array of pages, optimizing the
vault's media on the way.
"""

import logging
import traceback
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn

from obsidian_parser import __version__
from obsidian_parser.core.publisher import PublisherConfig, VaultPublisher
from obsidian_parser.images.optimizer import MediaOptions, ProgressCallback
from obsidian_parser.log import configure_logging

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="obsidian-to-json",
    help="Convert an Obsidian vault to JSON",
    add_completion=False,
    pretty_exceptions_show_locals=False,
    pretty_exceptions_enable=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@contextmanager
def media_progress(console: Console, enabled: bool = True) -> Iterator[Optional[ProgressCallback]]:
    """Yield a progress callback backed by a rich progress bar."""
    if not enabled:
        yield None
        return

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Media", total=None)

        def update(done: int, total: int, path: Path) -> None:
            progress.update(task, completed=done, total=total, description=f"Media {path.name}")

        yield update


@app.command()
def convert(
    input_path: Path = typer.Option(..., "-i", "--input", help="Obsidian vault directory"),
    output: Path = typer.Option(Path("vault-output.json"), "-o", "--output", help="Output JSON file"),
    note_prefix: str = typer.Option("/notes", "-n", "--note-prefix", help="Path prefix for note links"),
    asset_prefix: str = typer.Option("/assets", "-a", "--asset-prefix", help="Path prefix for unmapped relative images"),
    debug: int = typer.Option(1, "-d", "--debug", min=0, max=3, help="Debug level 0-3"),
    media_output: Path = typer.Option(Path("public/media"), "--media-output", help="Folder for optimized media"),
    media_prefix: str = typer.Option("/media", "--media-prefix", help="Public path prefix for media"),
    optimize_images: bool = typer.Option(True, "--optimize-images/--no-optimize-images", help="Resize and re-encode images"),
    skip_media: bool = typer.Option(False, "--skip-media", help="Skip media processing"),
    skip_existing: bool = typer.Option(False, "--skip-existing", help="Reuse media outputs newer than their source"),
    force_reprocess: bool = typer.Option(False, "--force-reprocess", help="Rewrite media outputs even when --skip-existing is set"),
    domain: Optional[str] = typer.Option(None, "--domain", help="Domain for absolute media URLs"),
    media_results: Optional[Path] = typer.Option(None, "--media-results", help="Write the media catalog to this JSON file"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit"
    ),
) -> None:
    """Convert an Obsidian vault into a JSON array of pages."""
    console = Console(stderr=True)
    configure_logging(debug, RichHandler(console=console, show_path=False))

    config = PublisherConfig(
        vault_path=input_path,
        output_path=output,
        note_path_prefix=note_prefix,
        asset_path_prefix=asset_prefix,
        skip_media=skip_media,
        media=MediaOptions(
            media_output_folder=media_output,
            media_path_prefix=media_prefix,
            optimize_images=optimize_images,
            skip_existing=skip_existing,
            force_reprocess=force_reprocess,
            domain=domain,
        ),
        media_results_path=media_results,
    )

    try:
        with media_progress(console, enabled=not skip_media and debug > 0) as progress:
            publisher = VaultPublisher(config, progress=progress)
            result = publisher.run()
        publisher.write(result)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        typer.echo(traceback.format_exc(), err=True)
        raise typer.Exit(1)

    if result.failures:
        logger.warning("%d note(s) could not be processed", len(result.failures))

    logger.info(
        "Done: %d pages, %d media files", len(result.pages), len(result.catalog.media_data)
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
