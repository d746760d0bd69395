"""
Kernel: runs a code cell by rebuilding and executing its language's program.
"""

import logging
import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional

from mdlab.cancellation import CancelToken
from mdlab.config import Settings
from mdlab.demux import OutputDemultiplexer
from mdlab.directives import DirectiveKind
from mdlab.errors import (
    MdlabError,
    NotACodeCellError,
    ProcessSpawnError,
    ToolchainMissingError,
    UnsupportedLanguageError,
)
from mdlab.languages import LanguageProcessor, get_processor
from mdlab.languages.python import PythonProcessor
from mdlab.session import DocumentSession
from mdlab.utils import bump_image_versions

logger = logging.getLogger(__name__)

_READ_SIZE = 4096
# Seconds to wait for the output pipe to drain after a cancelled process is killed
_CANCEL_DRAIN_TIMEOUT = 2.0
_POSIX = os.name == "posix"

OutputCallback = Callable[[str], None]
EndCallback = Callable[[bool], None]


class ExecutionState(str, Enum):
    """Lifecycle of one cell run."""
    IDLE = "idle"
    STARTED = "started"
    STREAMING = "streaming"
    CLOSED = "closed"
    ERRORED = "errored"
    CANCELLED = "cancelled"


class CellExecution:
    """
    Visible state of one running cell.

    ``end`` may be reached from the process reader, the cancellation
    callback or an error path; only the first call counts.
    """

    def __init__(
        self,
        index: int,
        on_output: Optional[OutputCallback] = None,
        on_end: Optional[EndCallback] = None,
    ):
        self.index = index
        self.state = ExecutionState.IDLE
        self.output = ""
        self.success: Optional[bool] = None
        self.started_at: Optional[float] = None
        self.ended_at: Optional[float] = None
        self._on_output = on_output
        self._on_end = on_end
        self._lock = threading.Lock()

    def start(self) -> None:
        with self._lock:
            self.state = ExecutionState.STARTED
            self.started_at = time.monotonic()

    def replace_output(self, text: str) -> None:
        """Show ``text`` as the cell's output so far."""
        with self._lock:
            if self.ended:
                return
            if text == self.output:
                return
            self.output = text
            self.state = ExecutionState.STREAMING
        if self._on_output:
            self._on_output(text)

    def end(self, success: bool, state: ExecutionState) -> bool:
        """
        Finish the execution.

        Returns:
            True if this call ended it, False if it had already ended
        """
        with self._lock:
            if self.ended:
                return False
            self.success = success
            self.state = state
            self.ended_at = time.monotonic()
        if self._on_end:
            self._on_end(success)
        return True

    @property
    def ended(self) -> bool:
        return self.ended_at is not None

    @property
    def duration(self) -> float:
        if self.started_at is None:
            return 0.0
        return (self.ended_at or time.monotonic()) - self.started_at


@dataclass
class ExecutionResult:
    """Result of executing a code cell."""
    success: bool
    state: ExecutionState = ExecutionState.CLOSED
    output: str = ""
    returncode: Optional[int] = None
    error: Optional[str] = None
    language: Optional[str] = None
    duration: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "success": self.success,
            "state": self.state.value,
            "output": self.output,
            "returncode": self.returncode,
            "error": self.error,
            "language": self.language,
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExecutionResult":
        """Create from dictionary."""
        return cls(
            success=data["success"],
            state=ExecutionState(data.get("state", ExecutionState.CLOSED.value)),
            output=data.get("output", ""),
            returncode=data.get("returncode"),
            error=data.get("error"),
            language=data.get("language"),
            duration=data.get("duration", 0.0),
        )


def _terminate(process: subprocess.Popen) -> None:
    """Send SIGTERM to the process and everything it started."""
    if not _POSIX:
        process.terminate()
        return
    try:
        os.killpg(process.pid, signal.SIGTERM)
    except ProcessLookupError:
        logger.debug("Process group %d already gone", process.pid)


class Kernel:
    """
    Runs cells of a ``DocumentSession``.

    Nothing persists between runs: each run writes the whole same-language
    history to the temp workspace and starts a fresh process. The workspace
    is shared, so one cell runs at a time.

    Paths come from the session's settings; the kernel's own settings decide
    the Python interpreter and whether a non-zero exit code fails a run.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    def processor_for(self, language: Optional[str]) -> LanguageProcessor:
        """
        Look up the processor for a language.

        Raises:
            UnsupportedLanguageError: if no processor is registered
        """
        if language == PythonProcessor.name and self.settings.python_command:
            return PythonProcessor(self.settings.python_command)
        processor = get_processor(language)
        if processor is None:
            raise UnsupportedLanguageError(language or "")
        return processor

    def execute_cell(
        self,
        session: DocumentSession,
        index: int,
        token: Optional[CancelToken] = None,
        on_output: Optional[OutputCallback] = None,
        on_end: Optional[EndCallback] = None,
    ) -> ExecutionResult:
        """
        Execute one code cell and write its output back into the document.

        Args:
            session: Document holding the cell
            index: Position of the cell in the document
            token: Cancels the run from another thread
            on_output: Called with the cell's visible output as it streams
            on_end: Called once with the success flag

        Returns:
            ExecutionResult describing the run
        """
        cell = session.notebook.get_cell(index)
        if not cell.is_code:
            raise NotACodeCellError(index)

        execution = CellExecution(index, on_output=on_output, on_end=on_end)
        execution.start()

        if cell.has_directive(DirectiveKind.CREATE):
            return self._create_file(session, index, execution)
        if cell.has_directive(DirectiveKind.SKIP):
            logger.info("Cell %d is marked skip", index)
            execution.end(True, ExecutionState.CLOSED)
            return self._result(execution, cell.language)

        cell.captured_output = None

        try:
            processor = self.processor_for(cell.language)
            toolchain = processor.resolve_toolchain()
            if toolchain is None:
                raise ToolchainMissingError(processor.name, processor.commands, processor.install_url)

            context = session.synthesis_context()
            program = processor.synthesize(session.history_for(index), context)
            main_path = processor.write_workspace(context.temp_path, program)
            session.last_run_language = processor.name
            logger.debug("Cell %d: wrote %s", index, main_path)

            args = processor.command_line(toolchain, main_path)
            cwd = processor.working_directory(main_path, context)
        except MdlabError as e:
            logger.error("Cell %d: %s", index, e)
            execution.end(False, ExecutionState.ERRORED)
            return self._result(execution, cell.language, error=str(e))

        target = 1 if processor.single_cell else program.boundaries
        demux = OutputDemultiplexer(target)

        try:
            process = self._spawn(args, cwd)
        except ProcessSpawnError as e:
            logger.error("Cell %d: %s", index, e)
            execution.end(False, ExecutionState.ERRORED)
            return self._result(execution, cell.language, error=str(e))

        returncode = self._stream(process, demux, execution, program.suppress_output, token)

        if execution.ended:
            # Cancelled while running
            return self._result(execution, cell.language, returncode=returncode)

        output = demux.finish().strip()
        if self.settings.strict_exit_code:
            success = returncode == 0
        else:
            success = demux.has_output or returncode == 0
        if returncode != 0:
            logger.warning("Cell %d: %s exited with code %s", index, processor.name, returncode)

        if not program.suppress_output:
            execution.replace_output(output)
        if success:
            cell.captured_output = None if program.suppress_output else (output or None)
            self._bump_next_images(session, index)

        execution.end(success, ExecutionState.CLOSED)
        return self._result(execution, cell.language, returncode=returncode)

    def execute_cells(
        self,
        session: DocumentSession,
        indices: Optional[Iterable[int]] = None,
        token: Optional[CancelToken] = None,
        on_output: Optional[Callable[[int, str], None]] = None,
        on_end: Optional[Callable[[int, bool], None]] = None,
    ) -> list[tuple[int, ExecutionResult]]:
        """
        Execute several cells in order.

        Args:
            indices: Cells to run, every code cell when None

        Returns:
            List of (index, result) pairs
        """
        if indices is None:
            indices = [i for i, _ in session.notebook.code_cells()]

        results = []
        for index in indices:
            if token is not None and token.is_cancelled:
                break
            result = self.execute_cell(
                session,
                index,
                token=token,
                on_output=(lambda text, i=index: on_output(i, text)) if on_output else None,
                on_end=(lambda ok, i=index: on_end(i, ok)) if on_end else None,
            )
            results.append((index, result))
        return results

    def _create_file(self, session: DocumentSession, index: int, execution: CellExecution) -> ExecutionResult:
        cell = session.notebook.get_cell(index)
        filename = cell.directive.filename if cell.directive else None
        if not filename:
            execution.end(False, ExecutionState.ERRORED)
            return self._result(execution, cell.language, error="create directive needs a filename")

        target = session.settings.temp_path / filename
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(cell.content, encoding="utf-8")
        except OSError as e:
            logger.error("Cell %d: could not write %s: %s", index, target, e)
            execution.end(False, ExecutionState.ERRORED)
            return self._result(execution, cell.language, error=str(e))

        logger.info("Cell %d: created %s", index, target)
        execution.end(True, ExecutionState.CLOSED)
        return self._result(execution, cell.language)

    def _spawn(self, args: list[str], cwd) -> subprocess.Popen:
        logger.debug("Running %s in %s", args, cwd)
        try:
            return subprocess.Popen(
                args,
                cwd=str(cwd),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                start_new_session=_POSIX,
            )
        except OSError as e:
            raise ProcessSpawnError(f"could not start {args[0]}: {e}") from e

    def _stream(
        self,
        process: subprocess.Popen,
        demux: OutputDemultiplexer,
        execution: CellExecution,
        suppress_output: bool,
        token: Optional[CancelToken],
    ) -> Optional[int]:
        """Pump the combined output into the demultiplexer until the process exits."""
        lock = threading.Lock()

        def pump(stream):
            for chunk in iter(lambda: stream.read1(_READ_SIZE), b""):
                with lock:
                    segment = demux.feed(chunk)
                if not suppress_output:
                    execution.replace_output(segment.strip())
            stream.close()

        def cancel():
            if execution.end(False, ExecutionState.CANCELLED):
                logger.info("Cell %d: cancelled", execution.index)
            if process.poll() is None:
                _terminate(process)

        unregister = token.on_cancel(cancel) if token is not None else None

        reader = threading.Thread(target=pump, args=(process.stdout,), daemon=True)
        reader.start()
        try:
            returncode = process.wait()
            reader.join(_CANCEL_DRAIN_TIMEOUT if execution.state == ExecutionState.CANCELLED else None)
        finally:
            if unregister is not None:
                unregister()
        return returncode

    def _bump_next_images(self, session: DocumentSession, index: int) -> None:
        cells = session.notebook.cells
        if index + 1 < len(cells) and cells[index + 1].is_prose:
            following = cells[index + 1]
            following.content = bump_image_versions(following.content)

    @staticmethod
    def _result(
        execution: CellExecution,
        language: Optional[str],
        returncode: Optional[int] = None,
        error: Optional[str] = None,
    ) -> ExecutionResult:
        return ExecutionResult(
            success=bool(execution.success),
            state=execution.state,
            output=execution.output,
            returncode=returncode,
            error=error,
            language=language,
            duration=execution.duration,
        )
