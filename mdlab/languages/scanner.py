"""
Best-effort lexical scanning used to route cell text.

Nothing here parses a language. The scanner only tracks brace depth while
skipping string literals, character literals and comments, which is enough
to find where a top-level declaration or a ``main`` body ends. Callers must
treat a ``None`` result as "not confident" and fall back to plain routing.
"""

import re
from dataclasses import dataclass
from typing import Iterator, Optional, Pattern

_CHAR_LITERAL_RE = re.compile(r"'(?:\\.|[^\\'\n])'")


@dataclass
class ScanState:
    """Lexer state carried from one line to the next."""
    depth: int = 0
    in_block_comment: bool = False
    in_raw_string: bool = False


def iter_braces(text: str, state: ScanState) -> Iterator[tuple[int, str]]:
    """
    Yield ``(index, brace)`` for every brace outside literals and comments.

    Handles ``"..."`` strings with escapes, backtick raw strings, ``'x'``
    character literals (so Rust lifetimes are left alone), ``//`` line
    comments and ``/* */`` block comments. Block comments and raw strings
    may continue across calls through ``state``.
    """
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if state.in_block_comment:
            if text.startswith("*/", i):
                state.in_block_comment = False
                i += 2
            else:
                i += 1
            continue
        if state.in_raw_string:
            if ch == "`":
                state.in_raw_string = False
            i += 1
            continue
        if text.startswith("//", i):
            newline = text.find("\n", i)
            if newline < 0:
                return
            i = newline
            continue
        if text.startswith("/*", i):
            state.in_block_comment = True
            i += 2
            continue
        if ch == '"':
            i += 1
            while i < n and text[i] != '"' and text[i] != "\n":
                i += 2 if text[i] == "\\" else 1
            i += 1
            continue
        if ch == "`":
            state.in_raw_string = True
            i += 1
            continue
        if ch == "'":
            literal = _CHAR_LITERAL_RE.match(text, i)
            if literal:
                i = literal.end()
                continue
        if ch in "{}":
            yield i, ch
        i += 1


def scan_braces(text: str, state: Optional[ScanState] = None) -> ScanState:
    """Update the brace depth in ``state`` with the braces in ``text``."""
    state = state or ScanState()
    for _, brace in iter_braces(text, state):
        state.depth += 1 if brace == "{" else -1
    return state


def matching_brace(text: str, open_brace: int) -> Optional[int]:
    """Index of the ``}`` closing the ``{`` at ``open_brace``, or None."""
    depth = 0
    for index, brace in iter_braces(text[open_brace:], ScanState()):
        depth += 1 if brace == "{" else -1
        if depth == 0:
            return open_brace + index
    return None


@dataclass
class EntryPoint:
    """A confidently located entry-point declaration inside a cell."""
    before: str
    header: str
    body: str
    after: str
    match: re.Match


def find_braced_entry_point(text: str, pattern: Pattern) -> Optional[EntryPoint]:
    """
    Locate ``main`` declared at the start of a line with a balanced body.

    ``pattern`` must match the header up to and including the opening brace.
    """
    for match in pattern.finditer(text):
        start = match.start()
        if start and text[start - 1] != "\n":
            continue
        open_brace = match.end() - 1
        if text[open_brace] != "{":
            continue
        close = matching_brace(text, open_brace)
        if close is None:
            return None
        return EntryPoint(
            before=text[:start],
            header=match.group(0),
            body=text[open_brace + 1: close],
            after=text[close + 1:],
            match=match,
        )
    return None


def find_indented_entry_point(text: str, pattern: Pattern) -> Optional[EntryPoint]:
    """
    Locate ``main`` in an indentation-based language.

    The body is every following line that is blank or indented. A header
    with no indented body is not confident.
    """
    lines = text.split("\n")
    for index, line in enumerate(lines):
        match = pattern.match(line)
        if not match:
            continue
        end = index + 1
        while end < len(lines) and (not lines[end].strip() or lines[end][:1].isspace()):
            end += 1
        while end > index + 1 and not lines[end - 1].strip():
            end -= 1
        if end == index + 1:
            return None
        return EntryPoint(
            before="\n".join(lines[:index]),
            header=line,
            body="\n".join(lines[index + 1: end]),
            after="\n".join(lines[end:]),
            match=match,
        )
    return None


def split_top_level(text: str, is_declaration) -> tuple[list[str], list[str]]:
    """
    Split brace-language text into (declarations, statements) by line.

    A line at depth zero for which ``is_declaration(line)`` is true starts a
    declaration that runs until the brace depth returns to zero (or, for a
    braceless declaration, until the line ends). Everything else is a
    statement.
    """
    outer: list[str] = []
    inner: list[str] = []
    state = ScanState()
    in_declaration = False

    for line in text.split("\n"):
        if state.depth == 0 and not in_declaration and is_declaration(line):
            in_declaration = True
        target = outer if in_declaration else inner
        target.append(line)
        scan_braces(line + "\n", state)
        if in_declaration and state.depth <= 0 and not _continues(line):
            in_declaration = False
            state.depth = max(state.depth, 0)

    return outer, inner


def _continues(line: str) -> bool:
    """True if a depth-zero declaration line is not finished yet."""
    stripped = line.rstrip()
    if not stripped:
        return False
    # Attributes and multi-line signatures continue onto the next line
    return stripped.startswith("#[") or stripped.endswith(("(", ",", "=", "->")) or stripped.startswith("@")
