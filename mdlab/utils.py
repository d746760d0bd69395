"""
Utility functions for mdlab.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from rich.syntax import Syntax
from rich.text import Text

from mdlab.notebook import Cell

_IMG_SRC_RE = re.compile(
    r'(?P<prefix><img\s[^>]*?src\s*=\s*"[^"?]*)(?:\?version=(?P<version>\d+))?(?P<quote>")'
)


def bump_image_versions(text: str) -> str:
    """
    Increment the ``?version=N`` query of every ``<img src="...">``.

    Images without a query get ``?version=1``. Sources with any other query
    string are left alone.
    """
    def _bump(match: re.Match) -> str:
        version = match.group("version")
        next_version = int(version) + 1 if version else 1
        return f'{match.group("prefix")}?version={next_version}{match.group("quote")}'

    return _IMG_SRC_RE.sub(_bump, text)


def get_cell_type_icon(cell: Cell) -> str:
    """Short label for a cell: its language, or ``md`` for prose."""
    if cell.is_code:
        return cell.language or "?"
    return "md"


def get_cell_status(cell: Cell) -> tuple[str, str]:
    """
    Get status indicator and style for a cell.

    Returns:
        Tuple of (indicator_string, rich_style)
    """
    if not cell.is_code:
        return ("--", "dim")
    if cell.captured_output:
        return ("out", "green")
    return ("--", "dim")


def render_code(cell: Cell):
    """Rich renderable for a code cell's source."""
    if not cell.content.strip():
        return Text("(empty)", style="dim italic")
    try:
        return Syntax(cell.content, cell.language or "text", theme="monokai", line_numbers=True, word_wrap=True)
    except Exception:
        return Text(cell.content)


def truncate_text(text: str, max_length: int = 100) -> str:
    """Truncate text to max_length, adding ellipsis if needed."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


@dataclass
class SearchHit:
    path: Path
    line_number: int
    line: str


def search_notes(base_path: Path, query: str, limit: Optional[int] = None) -> Iterator[SearchHit]:
    """
    Case-insensitive search through Markdown notes under ``base_path``.

    Args:
        base_path: Notes directory
        query: Text to look for
        limit: Stop after this many hits
    """
    needle = query.lower()
    found = 0
    for path in sorted(Path(base_path).rglob("*.md")):
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError):
            continue
        for number, line in enumerate(lines, start=1):
            if needle in line.lower():
                yield SearchHit(path=path, line_number=number, line=line.strip())
                found += 1
                if limit is not None and found >= limit:
                    return
