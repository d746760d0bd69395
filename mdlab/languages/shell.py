"""
Shell-like languages run only the current cell, with one sentinel in front.
"""

from pathlib import Path

from mdlab.languages.base import SingleCellProcessor


class BashProcessor(SingleCellProcessor):
    name = "bash"
    aliases = ("shellscript",)
    commands = ("bash",)
    install_url = "https://www.gnu.org/software/bash/"
    workspace_dir = "shell"
    main_file = "main.sh"
    sentinel = 'echo "{marker}"'


class ZshProcessor(BashProcessor):
    name = "zsh"
    aliases = ()
    commands = ("zsh",)
    install_url = "https://github.com/ohmyzsh/ohmyzsh/wiki/Installing-ZSH"
    main_file = "main.zsh"


class FishProcessor(BashProcessor):
    name = "fish"
    aliases = ()
    commands = ("fish",)
    install_url = "https://fishshell.com/"
    main_file = "main.fish"


class NushellProcessor(SingleCellProcessor):
    name = "nushell"
    commands = ("nu",)
    install_url = "https://www.nushell.sh/book/installation.html"
    workspace_dir = "shell"
    main_file = "main.nu"
    sentinel = 'print "{marker}"'


class PowershellProcessor(SingleCellProcessor):
    """The cell runs inside a script block so ``return`` and scoping behave."""

    name = "powershell"
    commands = ("pwsh", "powershell")
    install_url = "https://learn.microsoft.com/en-us/powershell/scripting/install/install-powershell"
    workspace_dir = "powershell"
    main_file = "main.ps1"
    sentinel = 'Write-Host "{marker}"'

    def wrap(self, contents: str) -> str:
        return self.sentinel_statement() + "\n& {" + contents + "}\n"

    def command_line(self, toolchain: str, main_path: Path) -> list[str]:
        return [toolchain, "-NoProfile", "-File", str(main_path)]
