"""
Languages with an explicit ``main``: cell text is split between file scope
and the body of a generated entry point.
"""

import logging
import re
from typing import Optional, Pattern

from mdlab.directives import DirectiveKind
from mdlab.languages.base import HistoryCell, LanguageProcessor, Scaffold, SynthesisContext
from mdlab.languages.scanner import EntryPoint, find_braced_entry_point, split_top_level

logger = logging.getLogger(__name__)


class EntryPointProcessor(LanguageProcessor):
    """
    Shared routing for brace languages.

    A user-written ``main`` is renamed to ``mdlab_main_<n>`` (``n`` is the
    cell's history index), moved to file scope and called from the real
    entry point at the cell's position, so several cells may each define
    ``main``. Detection is lexical; when the body cannot be matched with
    confidence the text is routed like any other cell.
    """

    main_open: str = "fn main() {"
    main_close: str = "}"
    declaration_pattern: Optional[Pattern] = None
    import_pattern: Optional[Pattern] = None
    indent: str = ""

    def entry_point_name(self, index: int) -> str:
        return f"mdlab_main_{index}"

    def find_entry_point(self, text: str) -> Optional[EntryPoint]:
        if self.entry_point_pattern is None:
            return None
        return find_braced_entry_point(text, self.entry_point_pattern)

    def rename_entry_point(self, entry: EntryPoint, name: str) -> str:
        start, end = entry.match.span("name")
        offset = entry.match.start()
        header = entry.header[: start - offset] + name + entry.header[end - offset:]
        return header + entry.body + "}"

    def entry_point_call(self, entry: EntryPoint, name: str) -> str:
        return f"{name}();"

    def is_declaration(self, line: str) -> bool:
        return bool(self.declaration_pattern and self.declaration_pattern.match(line))

    def is_import(self, line: str) -> bool:
        return bool(self.import_pattern and self.import_pattern.match(line))

    def add_cell(self, scaffold: Scaffold, item: HistoryCell, is_current: bool) -> None:
        text = item.contents
        if item.has(DirectiveKind.GLOBAL):
            self.add_global(scaffold, text)
            return

        entry = self.find_entry_point(text)
        if entry is None:
            if self.entry_point_pattern is not None and self.entry_point_pattern.search(text):
                logger.debug(
                    "%s: cell %d looks like it declares main but its body could not be "
                    "matched; treating it as statements", self.name, item.index,
                )
            self.route(scaffold, text)
            return

        name = self.entry_point_name(item.index)
        self.route(scaffold, entry.before)
        scaffold.globals.append(self.rename_entry_point(entry, name))
        scaffold.body.append(self.entry_point_call(entry, name))
        self.route(scaffold, entry.after)

    def add_global(self, scaffold: Scaffold, text: str) -> None:
        """Place ``text`` at file scope, pulling out import lines."""
        rest = []
        for line in text.split("\n"):
            if self.is_import(line):
                self.add_import(scaffold, line.strip())
            else:
                rest.append(line)
        if "\n".join(rest).strip():
            scaffold.globals.append("\n".join(rest))

    def add_import(self, scaffold: Scaffold, line: str) -> None:
        if line not in scaffold.imports:
            scaffold.imports.append(line)

    def route(self, scaffold: Scaffold, text: str) -> None:
        """Split ``text`` into file-scope declarations and main-body statements."""
        if not text.strip():
            return
        lines = []
        for line in text.split("\n"):
            if self.is_import(line):
                self.add_import(scaffold, line.strip())
            else:
                lines.append(line)
        outer, inner = split_top_level("\n".join(lines), self.is_declaration)
        if "\n".join(outer).strip():
            scaffold.globals.append("\n".join(outer))
        if "\n".join(inner).strip():
            scaffold.body.append("\n".join(inner))

    def prelude(self, scaffold: Scaffold) -> list[str]:
        return list(scaffold.imports)

    def assemble(self, scaffold: Scaffold, context: Optional[SynthesisContext]) -> str:
        parts = self.prelude(scaffold)
        parts.extend(scaffold.globals)
        parts.append(self.main_open)
        parts.extend(_indent_block(chunk, self.indent) for chunk in scaffold.body)
        parts.append(self.main_close)
        return "\n".join(parts) + "\n"


def _indent_block(text: str, indent: str) -> str:
    return "\n".join(indent + line if line.strip() else line for line in text.split("\n"))


def compile_entry_point(header: str) -> Pattern:
    """Compile an entry-point header regex anchored at line starts."""
    return re.compile(header, re.MULTILINE)
