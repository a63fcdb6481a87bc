"""Small helpers shared by the pipeline and the CLI."""

import json
from pathlib import Path
from typing import Any, Dict, Tuple, Union

import inflection

from obsidian_parser.transforms.frontmatter import split_frontmatter


def to_slug(text: str) -> str:
    """Turn a title into a URL-safe slug, e.g. ``"Test File"`` -> ``"test-file"``."""
    return inflection.parameterize(text)


def get_file_name(file_path: Union[str, Path]) -> str:
    """Return a file's name without directory or extension."""
    return Path(file_path).stem


def get_frontmatter_and_md(file_path: Union[str, Path]) -> Tuple[Dict[str, Any], str]:
    """Read a markdown file and split it into (frontmatter, body)."""
    raw = Path(file_path).read_text(encoding='utf-8')
    return split_frontmatter(raw)


def _to_json(obj: Any) -> Any:
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def json_stringify(data: Any) -> str:
    """Serialize results with 2-space indentation, keeping non-ASCII text."""
    return json.dumps(data, indent=2, ensure_ascii=False, default=_to_json)


def write_to_file(file_path: Union[str, Path], content: str) -> Path:
    """Write text to a file, creating parent directories as needed.

    Raises:
        OSError: If the destination cannot be written
    """
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding='utf-8')
    return path
