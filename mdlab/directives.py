"""
Directives: per-cell commands written after the fence language tag.

    ```rust :restart
    ```python :create=helpers.py
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class DirectiveKind(str, Enum):
    """Closed vocabulary of cell directives."""
    RESTART = "restart"
    GLOBAL = "global"
    SKIP = "skip"
    ONCE = "once"
    CREATE = "create"
    CLEAR = "clear"


DIRECTIVE_DESCRIPTIONS = {
    DirectiveKind.RESTART: "Restart execution from this cell",
    DirectiveKind.GLOBAL: "Place code in global scope",
    DirectiveKind.SKIP: "Always skip this cell during execution",
    DirectiveKind.ONCE: "Only execute this cell when it is the current cell",
    DirectiveKind.CREATE: "Create a file from this cell (use :create=filename)",
    DirectiveKind.CLEAR: "Do not show output for this cell",
}


class Directive(BaseModel):
    """
    A directive attached to a code cell.

    Unknown names are kept so the document serializes back unchanged,
    but they have no ``kind`` and are ignored during execution.
    """
    name: str
    value: Optional[str] = None

    @property
    def kind(self) -> Optional[DirectiveKind]:
        try:
            return DirectiveKind(self.name)
        except ValueError:
            return None

    @property
    def filename(self) -> Optional[str]:
        """Target file of a ``create`` directive."""
        if self.kind is DirectiveKind.CREATE and self.value:
            return self.value.strip() or None
        return None

    def __str__(self) -> str:
        if self.value is None:
            return self.name
        return f"{self.name}={self.value}"

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["Directive"]:
        """
        Parse the text after the ``:`` in a fence tag.

        Args:
            raw: Directive text such as ``skip`` or ``create=main.py``

        Returns:
            The directive, or None for empty input
        """
        if raw is None:
            return None
        raw = raw.strip()
        if not raw:
            return None
        name, sep, value = raw.partition("=")
        return cls(name=name.strip(), value=value.strip() if sep else None)

    @classmethod
    def of(cls, kind: DirectiveKind, value: Optional[str] = None) -> "Directive":
        if kind is DirectiveKind.CREATE and not value:
            raise ValueError("create directive needs a filename")
        return cls(name=kind.value, value=value)
