"""
Notebook: a Markdown document viewed as a sequence of cells.
"""

from pathlib import Path
from typing import Any, Optional
from enum import Enum

from pydantic import BaseModel, Field

from mdlab.directives import Directive, DirectiveKind


class CellKind(str, Enum):
    """Kind of notebook cell."""
    CODE = "code"
    PROSE = "prose"


class Cell(BaseModel):
    """
    A single notebook cell.

    Cells have no id: their position in ``Notebook.cells`` is their identity.
    Whitespace fields hold the exact newline runs around the cell so the
    document can be written back unchanged.
    """
    kind: CellKind = CellKind.CODE
    language: Optional[str] = None
    language_tag: Optional[str] = None
    directive: Optional[Directive] = None
    content: str = ""
    indentation: str = ""
    leading_whitespace: str = ""
    trailing_whitespace: str = ""
    captured_output: Optional[str] = None

    @property
    def is_code(self) -> bool:
        return self.kind == CellKind.CODE

    @property
    def is_prose(self) -> bool:
        return self.kind == CellKind.PROSE

    def has_directive(self, kind: DirectiveKind) -> bool:
        return self.directive is not None and self.directive.kind is kind

    @classmethod
    def code(cls, language: str, content: str, directive: Optional[Directive] = None, **kwargs) -> "Cell":
        return cls(kind=CellKind.CODE, language=language, content=content, directive=directive, **kwargs)

    @classmethod
    def prose(cls, content: str, **kwargs) -> "Cell":
        return cls(kind=CellKind.PROSE, content=content, **kwargs)


class Notebook(BaseModel):
    """
    A Markdown notebook.

    A notebook contains:
    - Cells (code and prose), in document order
    - Metadata (name, path)
    """

    cells: list[Cell] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def __init__(self, **data):
        super().__init__(**data)
        if not self.metadata:
            self.metadata = {"name": "Untitled"}

    def add_cell(self, cell: Optional[Cell] = None, **kwargs) -> Cell:
        """
        Add a new cell to the notebook.

        Args:
            cell: Cell to add, or create new one
            **kwargs: Arguments for new cell if cell not provided

        Returns:
            The added cell
        """
        if cell is None:
            cell = Cell(**kwargs)
        self.cells.append(cell)
        return cell

    def get_cell(self, index: int) -> Cell:
        """Get a cell by index."""
        return self.cells[index]

    def code_cells(self, language: Optional[str] = None) -> list[tuple[int, Cell]]:
        """Code cells with their positions, optionally for one language."""
        return [
            (i, c) for i, c in enumerate(self.cells)
            if c.is_code and (language is None or c.language == language)
        ]

    def to_markdown(self) -> str:
        from mdlab.markdown import write_markdown
        return write_markdown(self.cells)

    @classmethod
    def from_markdown(cls, text: str, name: str = "Untitled") -> "Notebook":
        from mdlab.markdown import parse_markdown
        return cls(cells=parse_markdown(text), metadata={"name": name})

    def save(self, path: Optional[Path] = None) -> Path:
        """
        Save notebook as Markdown.

        Args:
            path: Path to save to, defaults to the path it was loaded from
        """
        if path is None:
            if not self.metadata.get("path"):
                raise ValueError("Notebook has no path to save to")
            path = self.metadata["path"]

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_markdown(), encoding="utf-8")
        self.metadata["path"] = str(path)
        return path

    @classmethod
    def load(cls, path: Path) -> "Notebook":
        """
        Load notebook from a Markdown file.

        Args:
            path: Path to load from

        Returns:
            Loaded notebook
        """
        path = Path(path)
        nb = cls.from_markdown(path.read_text(encoding="utf-8"), name=path.stem)
        nb.metadata["path"] = str(path)
        return nb

    @classmethod
    def new(cls, name: str = "Untitled") -> "Notebook":
        """Create a new empty notebook."""
        return cls(metadata={"name": name})
