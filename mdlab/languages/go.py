"""
Go: one ``package main`` file; imports are merged, funcs and types go to
file scope and everything else runs inside ``func main``.
"""

import re
from pathlib import Path

from mdlab.languages.base import Scaffold
from mdlab.languages.compiled import EntryPointProcessor, compile_entry_point
from mdlab.languages.scanner import EntryPoint

_IMPORT_BLOCK_RE = re.compile(r"^import\s*\((?P<specs>[^)]*)\)[ \t]*$", re.MULTILINE)
_IMPORT_LINE_RE = re.compile(r'^import\s+(?P<spec>([\w.]+\s+)?"[^"]+")[ \t]*$', re.MULTILINE)
_PACKAGE_RE = re.compile(r"^package\s+\w+[ \t]*$", re.MULTILINE)


class GoProcessor(EntryPointProcessor):
    name = "go"
    aliases = ("golang",)
    commands = ("go",)
    install_url = "https://go.dev/doc/install"
    workspace_dir = "go"
    main_file = "main.go"
    sentinel = 'fmt.Println("{marker}")'
    main_open = "func main() {"
    entry_point_pattern = compile_entry_point(r"^func\s+(?P<name>main)\s*\(\s*\)\s*\{")
    declaration_pattern = re.compile(r"^(func|type)\b")

    def entry_point_name(self, index: int) -> str:
        return f"mdlabMain{index}"

    def entry_point_call(self, entry: EntryPoint, name: str) -> str:
        return f"{name}()"

    def extract_imports(self, scaffold: Scaffold, text: str) -> str:
        """Move import specs into the shared import block; return the rest."""
        text = _PACKAGE_RE.sub("", text)
        for block in _IMPORT_BLOCK_RE.finditer(text):
            for spec in block.group("specs").split("\n"):
                spec = spec.split("//")[0].strip()
                if spec:
                    self.add_import(scaffold, spec)
        text = _IMPORT_BLOCK_RE.sub("", text)
        for line in _IMPORT_LINE_RE.finditer(text):
            self.add_import(scaffold, line.group("spec").strip())
        return _IMPORT_LINE_RE.sub("", text)

    def route(self, scaffold: Scaffold, text: str) -> None:
        super().route(scaffold, self.extract_imports(scaffold, text))

    def add_global(self, scaffold: Scaffold, text: str) -> None:
        text = self.extract_imports(scaffold, text)
        if text.strip():
            scaffold.globals.append(text.strip("\n"))

    def prelude(self, scaffold: Scaffold) -> list[str]:
        specs = ['"fmt"'] + [spec for spec in scaffold.imports if spec != '"fmt"']
        block = "import (\n" + "\n".join("\t" + spec for spec in specs) + "\n)"
        return ["package main", "", block, ""]

    def command_line(self, toolchain: str, main_path: Path) -> list[str]:
        return [toolchain, "run", str(main_path)]
