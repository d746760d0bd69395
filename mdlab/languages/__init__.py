"""
Language processors, one per language family.

New languages register a factory instead of editing the kernel.
"""

from typing import Callable, Optional

from mdlab.languages.base import (
    SENTINEL,
    HistoryCell,
    LanguageProcessor,
    SynthesisContext,
    SynthesizedProgram,
)
from mdlab.languages.go import GoProcessor
from mdlab.languages.jai import JaiProcessor
from mdlab.languages.javascript import JavascriptProcessor, TypescriptProcessor
from mdlab.languages.mojo import MojoProcessor
from mdlab.languages.python import PythonProcessor
from mdlab.languages.rust import RustProcessor
from mdlab.languages.shell import (
    BashProcessor,
    FishProcessor,
    NushellProcessor,
    PowershellProcessor,
    ZshProcessor,
)
from mdlab.languages.zig import ZigProcessor

ProcessorFactory = Callable[[], LanguageProcessor]

_processors: dict[str, ProcessorFactory] = {}


def register_processor(language: str, factory: ProcessorFactory) -> None:
    """Register (or replace) the processor factory for a language id."""
    _processors[language] = factory


def get_processor(language: Optional[str]) -> Optional[LanguageProcessor]:
    """A fresh processor for ``language``, or None if it cannot be run."""
    if not language:
        return None
    factory = _processors.get(language)
    return factory() if factory else None


def supported_languages() -> list[str]:
    return sorted(_processors)


for _cls in (
    PythonProcessor,
    JavascriptProcessor,
    TypescriptProcessor,
    GoProcessor,
    RustProcessor,
    ZigProcessor,
    JaiProcessor,
    MojoProcessor,
    BashProcessor,
    ZshProcessor,
    FishProcessor,
    NushellProcessor,
    PowershellProcessor,
):
    for _name in (_cls.name,) + _cls.aliases:
        register_processor(_name, _cls)


__all__ = [
    "SENTINEL",
    "HistoryCell",
    "LanguageProcessor",
    "SynthesisContext",
    "SynthesizedProgram",
    "get_processor",
    "register_processor",
    "supported_languages",
]
