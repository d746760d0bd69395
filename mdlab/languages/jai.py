"""
Jai: ``:global`` cells go to file scope, everything else runs inside
``main :: ()``. A small metaprogram plugin (``+mdlab``) runs the built
executable after compiling so one toolchain call both builds and runs.
"""

import re
from pathlib import Path
from typing import Optional

from mdlab.languages.base import HistoryCell, Scaffold, SynthesisContext, SynthesizedProgram
from mdlab.languages.compiled import EntryPointProcessor, compile_entry_point

METAPROGRAM = r'''//
#module_parameters (OUTPUT_EXECUTABLE_EXTENSION := DEFAULT_EXTENSION, LAUNCHER_COMMAND: [] string = DEFAULT_LAUNCHER_COMMAND) () {
    #if OS == .WINDOWS {
        DEFAULT_EXTENSION        :: ".exe";
        DEFAULT_LAUNCHER_COMMAND :: string.[];
    } else {
        DEFAULT_EXTENSION        :: "";
        DEFAULT_LAUNCHER_COMMAND :: string.[];
    }
}

run_build_result :: (w: Workspace, args: []string = .{}) {
    using options := Compiler.get_build_options(w);
    slash_or_not := "";
    if output_path {
        c := output_path[output_path.count-1];
        if c != #char "/" && c != #char "\\" {
            slash_or_not = "/";
        }
    }

    executable_name := tprint("%1%2%3%4", output_path, slash_or_not, output_executable_name, OUTPUT_EXECUTABLE_EXTENSION);

    command: [..] string;
    array_add(*command, ..LAUNCHER_COMMAND);
    array_add(*command, executable_name);
    array_add(*command, ..args);
    result := Process.run_command(..command);

    if result.exit_code != 0 {
        if result.type == {
            case .FAILED_TO_LAUNCH; Compiler.compiler_report("[mdlab] Program failed to launch.");
            case .EXITED;           Compiler.compiler_report(tprint("[mdlab] Program exited with code %.", result.exit_code));
            case .SIGNALED;         Compiler.compiler_report(tprint("[mdlab] Program quit due to signal %.", result.signal));
            case;                   Compiler.compiler_report(tprint("[mdlab] Unexpected result from running the program: %", result));
        }
    }
}

get_plugin :: () -> *Plugin {
    p := New(My);
    p.init     = init;
    p.message  = message;
    p.shutdown = shutdown;
    return p;
}

init :: (_p: *Plugin, options: [] string) -> bool {
    p := cast(*My) _p;
    p.args = options;
    return true;
}

message :: (_p: *Plugin, message: *Compiler.Message) {
    p := cast(*My) _p;
    if message.kind == .COMPLETE {
        complete := cast(*Compiler.Message_Complete) message;
        if complete.error_code != .NONE {
            p.should_run = false;
        }
    }
}

shutdown :: (_p: *Plugin) {
    p := cast(*My) _p;
    if p.should_run {
        run_build_result(p.workspace, p.args);
    } else {
        log("[mdlab] There were errors, so we are not running.\n");
    }
    free(p);
}

#scope_module

My :: struct {
    #as using base: Plugin;

    should_run := true;
    args:      [] string;
}

#import "Basic";
Compiler :: #import "Compiler";
Process  :: #import "Process";
String   :: #import "String";

Plugin   :: Compiler.Metaprogram_Plugin;
'''


class JaiProcessor(EntryPointProcessor):
    name = "jai"
    commands = ("jai", "jai-linux", "jai-macos")
    install_url = "https://github.com/Jai-Community/Jai-Community-Library/wiki/Getting-Started"
    workspace_dir = "jai"
    main_file = "main.jai"
    sentinel = 'print("{marker}\\n");'
    main_open = "main :: () {"
    entry_point_pattern = compile_entry_point(r"^(?P<name>main)\s*::\s*\(\s*\)\s*\{")
    import_pattern = re.compile(r'^\s*#import\s+"[^"]+"\s*;')

    def route(self, scaffold: Scaffold, text: str) -> None:
        # Jai allows nested declarations, so statements and procedures
        # can both stay inside main
        if not text.strip():
            return
        rest = []
        for line in text.split("\n"):
            if self.is_import(line):
                self.add_import(scaffold, line.strip())
            else:
                rest.append(line)
        scaffold.body.append("\n".join(rest))

    def prelude(self, scaffold: Scaffold) -> list[str]:
        imports = list(scaffold.imports)
        if '#import "Basic";' not in imports:
            imports.insert(0, '#import "Basic";')
        return imports + [""]

    def synthesize(
        self, history: list[HistoryCell], context: Optional[SynthesisContext] = None
    ) -> SynthesizedProgram:
        program = super().synthesize(history, context)
        program.files.setdefault("modules/mdlab.jai", METAPROGRAM)
        return program

    def command_line(self, toolchain: str, main_path: Path) -> list[str]:
        return [toolchain, str(main_path), "-quiet", "+mdlab"]
