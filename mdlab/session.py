"""
DocumentSession: state that belongs to one open document.
"""

import logging
from pathlib import Path
from typing import Optional

from mdlab.config import Settings
from mdlab.directives import Directive
from mdlab.errors import NotACodeCellError
from mdlab.languages import HistoryCell, SynthesisContext, get_processor
from mdlab.notebook import Notebook

logger = logging.getLogger(__name__)


class DocumentSession:
    """
    A notebook plus the context needed to run its cells.

    Holds the language of the last run cell, which commands such as
    "open main" read to find the generated program.
    """

    def __init__(
        self,
        notebook: Notebook,
        path: Optional[Path] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize a session.

        Args:
            notebook: The parsed document
            path: File the document was loaded from
            settings: Paths and policies, defaults to ``Settings()``
        """
        self.notebook = notebook
        self.settings = settings or Settings()
        if path is None and notebook.metadata.get("path"):
            path = Path(notebook.metadata["path"])
        self.path = Path(path) if path is not None else None
        self.last_run_language: Optional[str] = None

    @classmethod
    def open(cls, path: Path, settings: Optional[Settings] = None) -> "DocumentSession":
        """Load a Markdown document from disk."""
        path = Path(path)
        return cls(Notebook.load(path), path=path, settings=settings)

    def save(self, path: Optional[Path] = None) -> Path:
        """Write the document back as Markdown."""
        target = Path(path) if path is not None else self.path
        if target is None:
            raise ValueError("Session has no path to save to")
        saved = self.notebook.save(target)
        self.path = saved
        logger.debug("Saved %s", saved)
        return saved

    @property
    def document_dir(self) -> Path:
        if self.path is not None:
            return self.path.resolve().parent
        return Path.cwd()

    def synthesis_context(self) -> SynthesisContext:
        return SynthesisContext(temp_path=self.settings.temp_path, document_dir=self.document_dir)

    def history_for(self, index: int) -> list[HistoryCell]:
        """
        Same-language code cells up to and including ``index``.

        Returns:
            Cells relabelled with a 1-based index in document order
        """
        cell = self.notebook.get_cell(index)
        if not cell.is_code:
            raise NotACodeCellError(index)

        history = []
        for position, candidate in enumerate(self.notebook.cells[: index + 1]):
            if candidate.is_code and candidate.language == cell.language:
                history.append(HistoryCell(index=len(history) + 1, cell=candidate, position=position))
        return history

    def main_file_path(self, language: Optional[str] = None) -> Optional[Path]:
        """
        Path of the generated program for ``language``.

        Defaults to the language of the last run cell; None if nothing
        has run or the language has no processor.
        """
        processor = get_processor(language or self.last_run_language)
        if processor is None:
            return None
        return processor.workspace(self.settings.temp_path) / processor.main_file

    def set_directive(self, index: int, directive: Optional[Directive]) -> None:
        """Set or clear (``None``) the directive of a code cell."""
        cell = self.notebook.get_cell(index)
        if not cell.is_code:
            raise NotACodeCellError(index)
        cell.directive = directive
