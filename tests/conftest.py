"""Pytest fixtures shared across all test modules."""

import sys

import pytest

from mdlab.config import Settings
from mdlab.notebook import Notebook
from mdlab.session import DocumentSession


@pytest.fixture
def settings(tmp_path):
    """Settings whose workspaces live under tmp_path and run Python with this interpreter."""
    return Settings(
        base_path=tmp_path / "notes",
        temp_path=tmp_path / "mdl",
        python_command=sys.executable,
    )


@pytest.fixture
def make_session(tmp_path, settings):
    """Write Markdown to a document file and open it as a session."""

    def _make(text: str, name: str = "doc.md") -> DocumentSession:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return DocumentSession.open(path, settings=settings)

    return _make


@pytest.fixture
def empty_notebook():
    return Notebook.new("Test")
