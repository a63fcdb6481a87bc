"""Frontmatter handling for Obsidian Parser.

Notes carry an optional YAML block delimited by ``---`` lines. The block is
passed through to the output opaquely, so values YAML decodes into types JSON
cannot carry (dates, datetimes) are converted to strings first.
"""

import datetime
from typing import Any, Dict, List, Tuple

import yaml


def split_frontmatter(raw_content: str) -> Tuple[Dict[str, Any], str]:
    """Split a note into its frontmatter dict and markdown body.

    A file without a leading ``---`` or without a closing delimiter has no
    frontmatter and the whole text is the body.

    Args:
        raw_content: Full file content

    Returns:
        Tuple of (frontmatter dict, body)

    Raises:
        yaml.YAMLError: If the frontmatter block is not valid YAML
    """
    if not raw_content.startswith('---'):
        return {}, raw_content

    parts = raw_content.split('---\n', 2)
    if len(parts) < 3:
        return {}, raw_content

    frontmatter = yaml.safe_load(parts[1])
    if not isinstance(frontmatter, dict):
        return {}, parts[2]

    return frontmatter, parts[2]


def extract_tags(frontmatter: Dict[str, Any]) -> List[str]:
    """Extract all tags from frontmatter.

    Handles both list and string formats.
    """
    tags = []

    if 'tags' in frontmatter:
        tag_data = frontmatter['tags']
        if isinstance(tag_data, list):
            tags.extend(str(tag) for tag in tag_data)
        elif isinstance(tag_data, str):
            tags.append(tag_data)

    return tags


def to_date_string(date_value) -> str:
    """Convert various date formats to string.

    Args:
        date_value: Date in various formats (str, datetime, date, None)

    Returns:
        Date string or empty string
    """
    if date_value is None:
        return ""

    if isinstance(date_value, str):
        return date_value

    if isinstance(date_value, datetime.datetime):
        return date_value.isoformat()

    if isinstance(date_value, datetime.date):
        return date_value.strftime('%Y-%m-%d')

    return str(date_value)


def json_safe(value: Any) -> Any:
    """Recursively convert frontmatter values into JSON-compatible ones."""
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [json_safe(v) for v in value]
    if isinstance(value, (datetime.date, datetime.datetime)):
        return to_date_string(value)
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)
