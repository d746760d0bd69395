"""
Zig: ``@import`` lines are collected, ``fn`` and container declarations go to
file scope, the rest runs inside ``pub fn main() !void``.
"""

import re
from pathlib import Path

from mdlab.languages.base import Scaffold
from mdlab.languages.compiled import EntryPointProcessor, compile_entry_point
from mdlab.languages.scanner import EntryPoint

_STD_IMPORT = 'const std = @import("std");'
_DECLARES_STD_RE = re.compile(r"^(pub\s+)?const\s+std\s*=")


class ZigProcessor(EntryPointProcessor):
    name = "zig"
    commands = ("zig",)
    install_url = "https://www.zvm.app/guides/install-zvm/"
    workspace_dir = "zig"
    main_file = "main.zig"
    sentinel = 'std.debug.print("{marker}\\n", .{{}});'
    main_open = "pub fn main() !void {"
    entry_point_pattern = compile_entry_point(
        r"^(pub\s+)?fn\s+(?P<name>main)\s*\(\s*\)\s*[^{\n]*\{"
    )
    import_pattern = re.compile(r"^\s*(pub\s+)?const\s+\w+\s*=\s*@import\(")
    declaration_pattern = re.compile(
        r"^(pub\s+)?(export\s+|extern\s+|inline\s+)?fn\s"
        r"|^(pub\s+)?(const|var)\s+\w+(\s*:[^=]+)?\s*=\s*[\w.]*\s*\{"
        r"|^(pub\s+)?const\s+\w+\s*=\s*(packed\s+|extern\s+)?(struct|enum|union|error)\b"
        r"|^test\s"
    )

    def entry_point_call(self, entry: EntryPoint, name: str) -> str:
        if "!" in entry.header[entry.header.rfind(")"):]:
            return f"try {name}();"
        return f"{name}();"

    def prelude(self, scaffold: Scaffold) -> list[str]:
        imports = list(scaffold.imports)
        if not any(_DECLARES_STD_RE.match(line) for line in imports):
            imports.insert(0, _STD_IMPORT)
        return imports + [""]

    def command_line(self, toolchain: str, main_path: Path) -> list[str]:
        return [toolchain, "run", str(main_path)]
