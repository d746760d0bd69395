"""
Errors raised by mdlab.

Problems in user code are never raised: they reach the user as the
toolchain's own output.
"""

from typing import Sequence


class MdlabError(Exception):
    """Base class for mdlab errors."""


class UnsupportedLanguageError(MdlabError):
    """No processor is registered for the cell's language."""

    def __init__(self, language: str):
        self.language = language
        super().__init__(f"language not supported: {language or '(none)'}")


class ToolchainMissingError(MdlabError):
    """The language toolchain is not on PATH."""

    def __init__(self, language: str, commands: Sequence[str], install_url: str = ""):
        self.language = language
        self.commands = tuple(commands)
        self.install_url = install_url
        names = " or ".join(self.commands) or language
        message = f"command: {names} not on path."
        if install_url:
            message += f" Add to path or install from {install_url}"
        else:
            message += " Install and add it to path"
        super().__init__(message)


class ProcessSpawnError(MdlabError):
    """The toolchain was found but the process could not be started."""


class NotACodeCellError(MdlabError, ValueError):
    """Only code cells can be executed or tagged."""

    def __init__(self, index: int):
        self.index = index
        super().__init__(f"cell {index} is not a code cell")
