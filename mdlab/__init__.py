"""
mdlab: a Markdown notebook that runs its code blocks.

This package provides:
- A parser and serializer that round-trip Markdown documents into cells
- Per-language program synthesis from the code cells above the one being run
- A kernel that runs the program and writes the cell's output back
"""

from mdlab.cancellation import CancelToken
from mdlab.config import Settings, load_settings
from mdlab.directives import Directive, DirectiveKind
from mdlab.kernel import CellExecution, ExecutionResult, ExecutionState, Kernel
from mdlab.notebook import Cell, CellKind, Notebook
from mdlab.session import DocumentSession

__version__ = "0.1.0"
__all__ = [
    "CancelToken",
    "Cell",
    "CellExecution",
    "CellKind",
    "Directive",
    "DirectiveKind",
    "DocumentSession",
    "ExecutionResult",
    "ExecutionState",
    "Kernel",
    "Notebook",
    "Settings",
    "load_settings",
]
