"""
Mojo: indentation-based, so cell statements are re-indented into
``def main():`` and top-level declarations keep their own blocks.
"""

import re
from pathlib import Path
from typing import Optional

from mdlab.languages.base import HistoryCell, Scaffold, SynthesisContext
from mdlab.languages.compiled import EntryPointProcessor
from mdlab.languages.scanner import EntryPoint, find_indented_entry_point

INDENT = "    "


class MojoProcessor(EntryPointProcessor):
    name = "mojo"
    commands = ("mojo",)
    install_url = "https://modular.com/mojo"
    workspace_dir = "mojo"
    main_file = "main.mojo"
    sentinel = 'print("{marker}")'
    main_open = "def main():"
    indent = INDENT
    entry_point_pattern = re.compile(r"^(fn|def)\s+(?P<name>main)\s*\(\s*\)[^:\n]*:\s*$")
    declaration_pattern = re.compile(r"^(fn|def|struct|trait|alias|from|import)\b|^@")

    def find_entry_point(self, text: str) -> Optional[EntryPoint]:
        return find_indented_entry_point(text, self.entry_point_pattern)

    def rename_entry_point(self, entry: EntryPoint, name: str) -> str:
        start, end = entry.match.span("name")
        return entry.header[:start] + name + entry.header[end:] + "\n" + entry.body

    def entry_point_call(self, entry: EntryPoint, name: str) -> str:
        return f"{name}()"

    def route(self, scaffold: Scaffold, text: str) -> None:
        if not text.strip():
            return
        outer: list[str] = []
        inner: list[str] = []
        in_declaration = False
        for line in text.split("\n"):
            if not line[:1].isspace() and line.strip():
                in_declaration = bool(self.declaration_pattern.match(line))
            (outer if in_declaration else inner).append(line)
        if "\n".join(outer).strip():
            scaffold.globals.append("\n".join(outer))
        if "\n".join(inner).strip():
            scaffold.body.append("\n".join(inner))

    def assemble(self, scaffold: Scaffold, context: Optional[SynthesisContext]) -> str:
        parts = list(scaffold.imports) + list(scaffold.globals)
        parts.append(self.main_open)
        parts.extend(
            "\n".join(INDENT + line if line.strip() else line for line in chunk.split("\n"))
            for chunk in scaffold.body
        )
        return "\n".join(parts) + "\n"

    def command_line(self, toolchain: str, main_path: Path) -> list[str]:
        return [toolchain, "run", str(main_path)]
