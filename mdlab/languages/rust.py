"""
Rust: a cargo project with items at crate scope and statements in ``main``.
"""

import re
from pathlib import Path
from typing import Optional

from mdlab.languages.base import Scaffold, SynthesisContext, SynthesizedProgram
from mdlab.languages.compiled import EntryPointProcessor, compile_entry_point
from mdlab.languages.scanner import EntryPoint

CARGO_TOML = """[package]
name = "mdlab"
version = "0.1.0"
edition = "2021"

[dependencies]
"""


class RustProcessor(EntryPointProcessor):
    name = "rust"
    commands = ("cargo",)
    install_url = "https://rustup.rs"
    workspace_dir = "rust"
    main_file = "src/main.rs"
    sentinel = 'println!("{marker}");'
    entry_point_pattern = compile_entry_point(r"^(pub\s+)?fn\s+(?P<name>main)\s*\(\s*\)[^{;]*\{")
    declaration_pattern = re.compile(
        r"^(pub(\([^)]*\))?\s+)?"
        r"((async\s+|const\s+|unsafe\s+|extern\s+\"[^\"]*\"\s+)*fn|struct|enum|union|impl|trait|mod|use"
        r"|static|type|extern\s+crate|macro_rules!)\b"
        r"|^(pub\s+)?const\s+[A-Z_][A-Z0-9_]*\s*:"
        r"|^#!?\["
    )

    def entry_point_call(self, entry: EntryPoint, name: str) -> str:
        # A main returning Result must still surface its error
        if "->" in entry.header:
            return f"{name}().unwrap();"
        return f"{name}();"

    def prelude(self, scaffold: Scaffold) -> list[str]:
        return ["#![allow(unused)]"] + list(scaffold.imports)

    def synthesize(self, history, context: Optional[SynthesisContext] = None) -> SynthesizedProgram:
        program = super().synthesize(history, context)
        program.files.setdefault("Cargo.toml", CARGO_TOML)
        return program

    def command_line(self, toolchain: str, main_path: Path) -> list[str]:
        manifest = main_path.parent.parent / "Cargo.toml"
        return [toolchain, "run", "--quiet", "--manifest-path", str(manifest)]

    def working_directory(self, main_path: Path, context: SynthesisContext) -> Path:
        return main_path.parent.parent
