"""
Python: cells are concatenated at module scope.
"""

import keyword
import logging
import re
from pathlib import Path
from typing import Optional

from mdlab.languages.base import HistoryCell, Scaffold, ScriptProcessor, SynthesisContext

logger = logging.getLogger(__name__)

_FILE_DIRECTIVE_RE = re.compile(r"^\s*#\s*file\s*:\s*(?P<name>\S+)\s*$")
_BARE_NAME_RE = re.compile(r"^!?[A-Za-z_][\w.]*(\[[^\]\n]*\])*$")


def auto_print(line: str) -> str:
    """
    Print the value of a trailing bare name, notebook style.

    ``x`` becomes ``print(x, flush=True)`` and ``!x`` pretty-prints ``x``.
    Anything that is not a bare name is returned unchanged.
    """
    if not line or line[0].isspace() or not _BARE_NAME_RE.match(line):
        return line
    name = line.lstrip("!")
    if keyword.iskeyword(name.split(".")[0].split("[")[0]):
        return line
    if line.startswith("!"):
        return f"from pprint import pprint\npprint({name})"
    return f"print({name}, flush=True)"


class PythonProcessor(ScriptProcessor):
    """Runs the history as one script with ``python -u``."""

    name = "python"
    commands = ("python3", "python")
    install_url = "https://www.python.org/downloads/"
    workspace_dir = "python"
    main_file = "mdlab.py"
    sentinel = 'print("{marker}", flush=True)'

    def __init__(self, command: Optional[str] = None):
        if command:
            self.commands = (command,)

    def add_cell(self, scaffold: Scaffold, item: HistoryCell, is_current: bool) -> None:
        lines = item.contents.split("\n")

        file_match = _FILE_DIRECTIVE_RE.match(lines[0]) if lines else None
        if file_match and file_match.group("name") != "main.py":
            # A module for later cells to import, not code to run
            scaffold.files[file_match.group("name")] = item.contents + "\n"
            logger.debug("python: cell %d written to %s", item.index, file_match.group("name"))
            return

        last = len(lines) - 1
        while last > 0 and not lines[last].strip():
            last -= 1
        lines[last] = auto_print(lines[last])
        scaffold.body.append("\n".join(lines))

    def assemble(self, scaffold: Scaffold, context: Optional[SynthesisContext]) -> str:
        header = ["import sys"]
        if context is not None:
            header.append(f"sys.path.append({str(context.document_dir)!r})")
            header.append(f"sys.path.append({str(context.temp_path / self.workspace_dir)!r})")
            header.append(f"sys.path.append({str(context.temp_path)!r})")
        header.append("from builtins import *")
        return "\n".join(header + scaffold.body) + "\n"

    def command_line(self, toolchain: str, main_path: Path) -> list[str]:
        return [toolchain, "-u", str(main_path)]

    def working_directory(self, main_path: Path, context: SynthesisContext) -> Path:
        return context.document_dir
