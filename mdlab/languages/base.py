"""
LanguageProcessor: builds one runnable program from a cell history.

Every run re-creates the whole program from the same-language cells up to
and including the running cell. Before each cell's code a sentinel print is
emitted so the output stream can be split back into per-cell segments.
"""

import logging
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Pattern

from mdlab.directives import DirectiveKind
from mdlab.notebook import Cell

logger = logging.getLogger(__name__)

SENTINEL = "!!output-start-cell"


@dataclass
class HistoryCell:
    """A code cell in same-language history, with its 1-based position."""
    index: int
    cell: Cell
    position: Optional[int] = None

    @property
    def contents(self) -> str:
        return self.cell.content

    def has(self, kind: DirectiveKind) -> bool:
        return self.cell.has_directive(kind)


@dataclass
class SynthesisContext:
    """Paths a processor may bake into the generated program."""
    temp_path: Path
    document_dir: Path


@dataclass
class SynthesizedProgram:
    """A complete program plus what the kernel needs to run and split it."""
    source: str
    suppress_output: bool = False
    boundaries: int = 0
    files: dict[str, str] = field(default_factory=dict)


@dataclass
class Scaffold:
    """Program parts filled in cell by cell, then joined by ``assemble``."""
    imports: list[str] = field(default_factory=list)
    globals: list[str] = field(default_factory=list)
    body: list[str] = field(default_factory=list)
    files: dict[str, str] = field(default_factory=dict)


class LanguageProcessor(ABC):
    """
    One language family.

    Subclasses supply the sentinel syntax, how a cell's text is routed into
    the program (``add_cell``), how the parts are joined (``assemble``) and
    how the toolchain is invoked.
    """

    name: str = ""
    aliases: tuple[str, ...] = ()
    commands: tuple[str, ...] = ()
    install_url: str = ""
    workspace_dir: str = ""
    main_file: str = "main"
    single_cell: bool = False
    sentinel: str = 'print("{marker}")'
    entry_point_pattern: Optional[Pattern] = None

    def sentinel_statement(self) -> str:
        return self.sentinel.format(marker=SENTINEL)

    def resolve_toolchain(self) -> Optional[str]:
        """Full path of the first toolchain command found on PATH."""
        for command in self.commands:
            resolved = shutil.which(command)
            if resolved:
                return resolved
        return None

    @abstractmethod
    def command_line(self, toolchain: str, main_path: Path) -> list[str]:
        """Arguments used to build and run ``main_path``."""

    def working_directory(self, main_path: Path, context: SynthesisContext) -> Path:
        return main_path.parent

    def synthesize(
        self, history: list[HistoryCell], context: Optional[SynthesisContext] = None
    ) -> SynthesizedProgram:
        """
        Build the program for the last cell in ``history``.

        Cells before the last ``restart`` and ``skip`` cells only contribute
        their sentinel; ``once`` cells are left out unless they are the cell
        being run.
        """
        if not history:
            raise ValueError("history must contain the cell being run")

        restart_at = 0
        for position, item in enumerate(history):
            if item.has(DirectiveKind.RESTART):
                restart_at = position

        scaffold = Scaffold()
        last = len(history) - 1
        for position, item in enumerate(history):
            scaffold.body.append(self.sentinel_statement())
            is_current = position == last
            if position < restart_at:
                continue
            if item.has(DirectiveKind.SKIP):
                continue
            if item.has(DirectiveKind.ONCE) and not is_current:
                continue
            self.add_cell(scaffold, item, is_current)

        logger.debug(
            "%s: synthesized %d cells (restart at %d)", self.name, len(history), restart_at + 1
        )
        return SynthesizedProgram(
            source=self.assemble(scaffold, context),
            suppress_output=history[-1].has(DirectiveKind.CLEAR),
            boundaries=len(history),
            files=scaffold.files,
        )

    @abstractmethod
    def add_cell(self, scaffold: Scaffold, item: HistoryCell, is_current: bool) -> None:
        """Route one cell's text into the scaffold."""

    @abstractmethod
    def assemble(self, scaffold: Scaffold, context: Optional[SynthesisContext]) -> str:
        """Join the scaffold into the final source text."""

    def workspace(self, temp_path: Path) -> Path:
        return Path(temp_path) / self.workspace_dir if self.workspace_dir else Path(temp_path)

    def write_workspace(self, temp_path: Path, program: SynthesizedProgram) -> Path:
        """
        Write the program and its auxiliary files, overwriting earlier runs.

        Returns:
            Path to the main source file
        """
        workspace = self.workspace(temp_path)
        workspace.mkdir(parents=True, exist_ok=True)

        for relative, text in program.files.items():
            target = Path(relative) if Path(relative).is_absolute() else workspace / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")

        main_path = workspace / self.main_file
        main_path.parent.mkdir(parents=True, exist_ok=True)
        main_path.write_text(program.source, encoding="utf-8")
        return main_path


class ScriptProcessor(LanguageProcessor):
    """Languages that run top to bottom at module scope."""

    def add_cell(self, scaffold: Scaffold, item: HistoryCell, is_current: bool) -> None:
        scaffold.body.append(item.contents)

    def assemble(self, scaffold: Scaffold, context: Optional[SynthesisContext]) -> str:
        return "\n".join(scaffold.imports + scaffold.globals + scaffold.body) + "\n"


class SingleCellProcessor(LanguageProcessor):
    """
    Shell-like languages: only the running cell is executed.

    There is always exactly one segment, so the kernel reads segment 1.
    """

    single_cell = True

    def synthesize(
        self, history: list[HistoryCell], context: Optional[SynthesisContext] = None
    ) -> SynthesizedProgram:
        if not history:
            raise ValueError("history must contain the cell being run")
        current = history[-1]
        return SynthesizedProgram(
            source=self.wrap(current.contents),
            suppress_output=current.has(DirectiveKind.CLEAR),
            boundaries=1,
        )

    def wrap(self, contents: str) -> str:
        return self.sentinel_statement() + "\n" + contents + "\n"

    def add_cell(self, scaffold: Scaffold, item: HistoryCell, is_current: bool) -> None:
        scaffold.body.append(item.contents)

    def assemble(self, scaffold: Scaffold, context: Optional[SynthesisContext]) -> str:
        return "\n".join(scaffold.body) + "\n"

    def command_line(self, toolchain: str, main_path: Path) -> list[str]:
        return [toolchain, str(main_path)]
