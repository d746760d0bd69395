"""
Markdown <-> cells transducer.

A fenced block with a language tag is a code cell, everything between fences
is prose, and a ```text block right after a code cell is that cell's
captured output.
"""

import logging
import re
from typing import Iterable, Optional

from mdlab.directives import Directive
from mdlab.notebook import Cell, CellKind

logger = logging.getLogger(__name__)

LANG_IDS = {
    "js": "javascript",
    "ts": "typescript",
    "py": "python",
    "sh": "bash",
    "nu": "nushell",
    "ps1": "powershell",
}

LANG_ABBREVS = {lang: abbrev for abbrev, lang in LANG_IDS.items()}

OUTPUT_LANGUAGE = "text"

_LINE_SPLIT_RE = re.compile(r"\r?\n")
_FENCE_OPEN_RE = re.compile(r"^(?P<indent>    |\t)?```(?P<tag>.*\S.*)$")
_FENCE_CLOSE_RE = re.compile(r"^\s*```")


def resolve_language(tag: str) -> str:
    """Map a fence tag such as ``js`` to its language id."""
    return LANG_IDS.get(tag, tag)


def language_abbrev(language: str) -> str:
    return LANG_ABBREVS.get(language, language)


def split_fence_tag(tag: str) -> tuple[str, Optional[Directive]]:
    """Split ``rust :restart`` into ``("rust", Directive(restart))``."""
    lang, _, raw_directive = tag.partition(":")
    return lang.strip(), Directive.parse(raw_directive)


class MarkdownParser:
    """Line cursor over a document that emits cells."""

    def __init__(self, content: str):
        self.lines = _LINE_SPLIT_RE.split(content)
        self.cells: list[Cell] = []
        self.index = 0
        self._separator = ""
        self._last_was_code_block = False

    def parse(self) -> list[Cell]:
        if len(self.lines) < 2:
            return self.cells

        # Blank lines at the very start are not attributed to any cell
        while self.index < len(self.lines) and self.lines[self.index] == "":
            self.index += 1

        while self.index < len(self.lines):
            opener = _FENCE_OPEN_RE.match(self.lines[self.index])
            if opener:
                self._parse_code_block(opener.group("indent") or "", opener.group("tag"))
            else:
                self._parse_prose()

        return self.cells

    def _consume_blank_lines(self) -> None:
        """Turn the blank run at the cursor into the next separator."""
        start = self.index
        while self.index < len(self.lines) and self.lines[self.index] == "":
            self.index += 1
        count = self.index - start

        if self.index >= len(self.lines):
            if self.cells:
                self.cells[-1].trailing_whitespace = "\n" * count
            self._separator = ""
        else:
            self._separator = "\n" * (count + 1)

    def _parse_code_block(self, indent: str, tag: str) -> None:
        start = self.index + 1
        self.index = start
        end = len(self.lines)
        while self.index < len(self.lines):
            if _FENCE_CLOSE_RE.match(self.lines[self.index]):
                end = self.index
                self.index += 1
                break
            self.index += 1
        else:
            logger.debug("Unterminated code block starting at line %d", start)

        content = "\n".join(self.lines[start:end])
        tag_text, directive = split_fence_tag(tag)

        previous = self.cells[-1] if self.cells else None
        if (
            tag_text == OUTPUT_LANGUAGE
            and self._last_was_code_block
            and previous is not None
            and previous.is_code
            and previous.captured_output is None
        ):
            previous.captured_output = content
            previous.trailing_whitespace = ""
            self._last_was_code_block = False
            self._consume_blank_lines()
            return

        self.cells.append(Cell(
            kind=CellKind.CODE,
            language=resolve_language(tag_text),
            language_tag=tag_text,
            directive=directive,
            content=content,
            indentation=indent,
            leading_whitespace=self._separator,
        ))
        self._last_was_code_block = True
        self._consume_blank_lines()

    def _parse_prose(self) -> None:
        start = self.index
        while self.index < len(self.lines):
            if _FENCE_OPEN_RE.match(self.lines[self.index]):
                break
            self.index += 1

        # Trailing blank lines belong to the separator, not the paragraph
        end = self.index
        while end > start and self.lines[end - 1] == "":
            end -= 1
        content = "\n".join(self.lines[start:end]).strip()
        self.index = end

        if content:
            self.cells.append(Cell(
                kind=CellKind.PROSE,
                content=content,
                leading_whitespace=self._separator,
            ))
            self._last_was_code_block = False
            self._consume_blank_lines()
        else:
            # Whitespace-only lines: fold them into the pending separator
            separator = self._separator
            self._consume_blank_lines()
            if self.index < len(self.lines):
                self._separator = separator or self._separator


def parse_markdown(content: str) -> list[Cell]:
    """
    Parse a Markdown document into cells.

    Never raises: text that is not a fence becomes prose.
    """
    return MarkdownParser(content).parse()


def _fence_tag(cell: Cell) -> str:
    language = cell.language or ""
    if cell.language_tag is not None and resolve_language(cell.language_tag) == language:
        return cell.language_tag
    return language_abbrev(language)


def format_code_cell(cell: Cell) -> str:
    """Render a code cell and its captured output as fenced blocks."""
    tag = _fence_tag(cell)
    opener = cell.indentation + "```" + tag
    if cell.directive is not None:
        opener += (" :" if tag else ":") + str(cell.directive)

    contents = "\n".join(_LINE_SPLIT_RE.split(cell.content))
    result = opener + "\n" + contents + "\n" + cell.indentation + "```"

    output = (cell.captured_output or "").rstrip("\n")
    if output:
        result += "\n\n```" + OUTPUT_LANGUAGE + "\n" + output + "\n```"

    return result


def write_markdown(cells: Iterable[Cell]) -> str:
    """Render cells back to a Markdown document."""
    parts = []
    last: Optional[Cell] = None

    for cell in cells:
        if last is not None:
            parts.append(cell.leading_whitespace or "\n\n")

        if cell.kind == CellKind.CODE:
            parts.append(format_code_cell(cell))
        else:
            parts.append(cell.content.strip())
        last = cell

    if last is not None:
        parts.append(last.trailing_whitespace)

    return "".join(parts)
