"""
JavaScript and TypeScript: cells are concatenated at module scope.
"""

from pathlib import Path

from mdlab.languages.base import ScriptProcessor


class JavascriptProcessor(ScriptProcessor):
    name = "javascript"
    commands = ("node",)
    install_url = "https://nodejs.org/en/download/package-manager"
    workspace_dir = "javascript"
    main_file = "main.js"
    sentinel = 'console.log("{marker}");'

    def command_line(self, toolchain: str, main_path: Path) -> list[str]:
        return [toolchain, str(main_path)]


class TypescriptProcessor(JavascriptProcessor):
    """Needs a TypeScript runner such as ``esr`` (npm install -g esbuild-runner)."""

    name = "typescript"
    commands = ("esr", "tsx", "ts-node")
    install_url = "https://www.npmjs.com/package/esbuild-runner"
    workspace_dir = "typescript"
    main_file = "main.ts"
