"""
Tests for the Kernel.

Python cells run for real with the interpreter running the tests
(``settings.python_command``). Cancellation races use a fake process so
their timing is deterministic.
"""

import os
import shutil
import threading
import time
from contextlib import contextmanager
from unittest.mock import patch

import pytest

from mdlab.cancellation import CancelToken
from mdlab.errors import NotACodeCellError
from mdlab.kernel import CellExecution, ExecutionResult, ExecutionState, Kernel
from mdlab.languages import SENTINEL

MARK = (SENTINEL + "\n").encode()

TWO_CELLS = """# Demo

```python
greeting = "hello"
print(greeting)
```

```python
print(greeting.upper())
```
"""


class FakeStream:
    """Pipe that returns queued chunks, then blocks until the process exits."""

    def __init__(self, chunks, exited: threading.Event):
        self.chunks = list(chunks)
        self.exited = exited

    def read1(self, size=-1):
        if self.chunks:
            return self.chunks.pop(0)
        self.exited.wait(5)
        return b""

    def close(self):
        pass


class FakeProcess:

    def __init__(self, chunks, hang: bool = False, returncode: int = 0):
        self.exited = threading.Event()
        if not hang:
            self.exited.set()
        self.stdout = FakeStream(chunks, self.exited)
        self._returncode = returncode
        self.terminated = 0

    def poll(self):
        return self._returncode if self.exited.is_set() else None

    def terminate(self):
        self.terminated += 1
        self._returncode = -15
        self.exited.set()

    def wait(self):
        self.exited.wait(5)
        return self._returncode


@contextmanager
def spawned(fake):
    """Make the kernel start ``fake`` instead of a real process."""
    with patch("mdlab.kernel.subprocess.Popen", return_value=fake), \
            patch("mdlab.kernel._terminate", side_effect=lambda process: process.terminate()):
        yield


class TestPythonExecution:
    """End to end runs of Python cells."""

    def test_runs_history_and_captures_target_output(self, make_session, settings):
        session = make_session(TWO_CELLS)
        result = Kernel(settings).execute_cell(session, 2)

        assert result.success
        assert result.state == ExecutionState.CLOSED
        assert result.returncode == 0
        assert result.output == "HELLO"
        assert session.notebook.cells[2].captured_output == "HELLO"
        assert session.notebook.cells[1].captured_output is None
        assert session.last_run_language == "python"

    def test_output_is_saved_into_document(self, make_session, settings):
        session = make_session(TWO_CELLS)
        Kernel(settings).execute_cell(session, 1)
        session.save()

        text = session.path.read_text(encoding="utf-8")
        assert '```python\ngreeting = "hello"\nprint(greeting)\n```\n\n```text\nhello\n```\n' in text

    def test_program_written_to_workspace(self, make_session, settings):
        session = make_session(TWO_CELLS)
        Kernel(settings).execute_cell(session, 2)

        main_path = session.main_file_path()
        assert main_path == settings.temp_path / "python" / "mdlab.py"
        assert main_path.read_text().count(SENTINEL) == 2

    def test_error_output_is_captured(self, make_session, settings):
        session = make_session("```python\nraise ValueError('boom')\n```\n")
        result = Kernel(settings).execute_cell(session, 0)

        assert result.returncode == 1
        assert "ValueError: boom" in result.output
        # Output was produced, so the run still counts as a success
        assert result.success
        assert "ValueError: boom" in session.notebook.cells[0].captured_output

    def test_strict_exit_code(self, make_session, settings):
        settings.strict_exit_code = True
        session = make_session("```python\nraise ValueError('boom')\n```\n")
        result = Kernel(settings).execute_cell(session, 0)

        assert not result.success
        assert "ValueError: boom" in result.output
        assert session.notebook.cells[0].captured_output is None

    def test_crash_in_earlier_cell_is_shown(self, make_session, settings):
        session = make_session(
            "```python\nraise RuntimeError('early')\n```\n\n```python\nprint('later')\n```\n"
        )
        result = Kernel(settings).execute_cell(session, 1)
        assert "RuntimeError: early" in result.output
        assert "later" not in result.output

    def test_silent_cell_with_zero_exit_succeeds(self, make_session, settings):
        session = make_session("```python\nx = 1\n```\n")
        result = Kernel(settings).execute_cell(session, 0)
        assert result.success
        assert result.output == ""
        assert session.notebook.cells[0].captured_output is None

    def test_stale_output_replaced(self, make_session, settings):
        session = make_session("```python\nprint('new')\n```\n\n```text\nold\n```\n")
        assert session.notebook.cells[0].captured_output == "old"
        Kernel(settings).execute_cell(session, 0)
        assert session.notebook.cells[0].captured_output == "new"

    def test_callbacks(self, make_session, settings):
        session = make_session(TWO_CELLS)
        outputs, ends = [], []
        Kernel(settings).execute_cell(session, 2, on_output=outputs.append, on_end=ends.append)
        assert outputs[-1] == "HELLO"
        assert ends == [True]

    def test_execute_cells_runs_every_code_cell(self, make_session, settings):
        session = make_session(TWO_CELLS)
        ended = {}
        results = Kernel(settings).execute_cells(session, on_end=lambda i, ok: ended.__setitem__(i, ok))

        assert [i for i, _ in results] == [1, 2]
        assert all(r.success for _, r in results)
        assert ended == {1: True, 2: True}
        assert session.notebook.cells[1].captured_output == "hello"
        assert session.notebook.cells[2].captured_output == "HELLO"


class TestDirectives:

    def test_clear_hides_output(self, make_session, settings):
        session = make_session("```python :clear\nprint('hidden')\n```\n\n```text\nstale\n```\n")
        result = Kernel(settings).execute_cell(session, 0)
        assert result.success
        assert result.output == ""
        assert session.notebook.cells[0].captured_output is None

    def test_create_writes_file(self, make_session, settings):
        session = make_session("```python :create=notes/helpers.txt\nhello file\n```\n")
        with patch("mdlab.kernel.subprocess.Popen") as popen:
            result = Kernel(settings).execute_cell(session, 0)
        assert result.success
        popen.assert_not_called()
        assert (settings.temp_path / "notes" / "helpers.txt").read_text() == "hello file"

    def test_created_module_is_importable(self, make_session, settings):
        session = make_session(
            "```python :create=helpers.py\ndef hi():\n    return 'hi from helpers'\n```\n\n"
            "```python\nimport helpers\nprint(helpers.hi())\n```\n"
        )
        kernel = Kernel(settings)
        assert kernel.execute_cell(session, 0).success
        result = kernel.execute_cell(session, 1)

        assert result.returncode == 0
        assert result.output == "hi from helpers"

    def test_skip_does_not_run(self, make_session, settings):
        session = make_session("```python :skip\nprint('never')\n```\n")
        with patch("mdlab.kernel.subprocess.Popen") as popen:
            result = Kernel(settings).execute_cell(session, 0)
        assert result.success
        assert result.state == ExecutionState.CLOSED
        popen.assert_not_called()


class TestFailures:

    def test_unsupported_language(self, make_session, settings):
        session = make_session("```cobol\nDISPLAY 'HI'.\n```\n")
        ends = []
        result = Kernel(settings).execute_cell(session, 0, on_end=ends.append)
        assert not result.success
        assert result.state == ExecutionState.ERRORED
        assert "cobol" in result.error
        assert ends == [False]

    def test_missing_toolchain(self, make_session, settings):
        session = make_session("```rust\nprintln!(\"hi\");\n```\n")
        with patch("mdlab.languages.base.shutil.which", return_value=None):
            result = Kernel(settings).execute_cell(session, 0)
        assert result.state == ExecutionState.ERRORED
        assert "cargo" in result.error
        assert "https://rustup.rs" in result.error
        assert session.last_run_language is None

    def test_spawn_failure(self, make_session, settings):
        session = make_session("```python\nprint(1)\n```\n")
        with patch("mdlab.kernel.subprocess.Popen", side_effect=OSError("no such file")):
            result = Kernel(settings).execute_cell(session, 0)
        assert result.state == ExecutionState.ERRORED
        assert "could not start" in result.error

    def test_prose_cell_is_rejected(self, make_session, settings):
        session = make_session(TWO_CELLS)
        with pytest.raises(NotACodeCellError):
            Kernel(settings).execute_cell(session, 0)


class TestCancellation:

    def test_cancel_running_process(self, make_session, settings):
        session = make_session(
            "```python\nimport time\nprint('started', flush=True)\ntime.sleep(30)\n```\n"
        )
        token = CancelToken()
        ends = []

        def on_output(text):
            if "started" in text:
                token.cancel()

        result = Kernel(settings).execute_cell(session, 0, token=token, on_output=on_output, on_end=ends.append)

        assert result.state == ExecutionState.CANCELLED
        assert not result.success
        assert result.duration < 30
        assert ends == [False]
        assert session.notebook.cells[0].captured_output is None

    @pytest.mark.skipif(os.name != "posix" or shutil.which("bash") is None, reason="needs bash")
    def test_cancel_stops_child_processes(self, make_session, settings):
        session = make_session("```bash\necho started\nsleep 20\n```\n")
        token = CancelToken()
        ends = []

        def on_output(text):
            if "started" in text:
                token.cancel()

        began = time.monotonic()
        result = Kernel(settings).execute_cell(session, 0, token=token, on_output=on_output, on_end=ends.append)

        assert time.monotonic() - began < 10
        assert result.state == ExecutionState.CANCELLED
        assert ends == [False]

    def test_cancel_while_streaming_ends_once(self, make_session, settings):
        session = make_session("```python\nprint('x')\n```\n")
        fake = FakeProcess([MARK + b"working\n"], hang=True)
        token = CancelToken()
        ends = []

        with spawned(fake):
            result = Kernel(settings).execute_cell(
                session, 0, token=token, on_output=lambda text: token.cancel(), on_end=ends.append
            )

        assert ends == [False]
        assert result.state == ExecutionState.CANCELLED
        assert fake.terminated == 1
        assert session.notebook.cells[0].captured_output is None

    def test_cancel_after_exit_is_ignored(self, make_session, settings):
        session = make_session("```python\nprint('x')\n```\n")
        fake = FakeProcess([MARK + b"done\n"])
        token = CancelToken()
        ends = []

        with spawned(fake):
            result = Kernel(settings).execute_cell(session, 0, token=token, on_end=ends.append)
        token.cancel()

        assert result.success
        assert ends == [True]
        assert fake.terminated == 0
        assert session.notebook.cells[0].captured_output == "done"

    def test_token_cancelled_before_start(self, make_session, settings):
        session = make_session("```python\nprint('x')\n```\n")
        fake = FakeProcess([], hang=True)
        token = CancelToken()
        token.cancel()
        ends = []

        with spawned(fake):
            result = Kernel(settings).execute_cell(session, 0, token=token, on_end=ends.append)

        assert result.state == ExecutionState.CANCELLED
        assert ends == [False]

    def test_execute_cells_stops_after_cancel(self, make_session, settings):
        session = make_session(TWO_CELLS)
        token = CancelToken()
        token.cancel()
        assert Kernel(settings).execute_cells(session, token=token) == []


class TestImageRefresh:

    def test_next_prose_images_bumped(self, make_session, settings):
        session = make_session(
            "```python\nprint('plot')\n```\n\n<img src=\"plot.png\">\n"
        )
        kernel = Kernel(settings)
        kernel.execute_cell(session, 0)
        assert session.notebook.cells[1].content == '<img src="plot.png?version=1">'
        kernel.execute_cell(session, 0)
        assert session.notebook.cells[1].content == '<img src="plot.png?version=2">'


class TestCellExecution:

    def test_end_is_idempotent(self):
        ends = []
        execution = CellExecution(0, on_end=ends.append)
        execution.start()
        assert execution.end(True, ExecutionState.CLOSED)
        assert not execution.end(False, ExecutionState.CANCELLED)
        assert execution.state == ExecutionState.CLOSED
        assert ends == [True]

    def test_output_ignored_after_end(self):
        outputs = []
        execution = CellExecution(0, on_output=outputs.append)
        execution.start()
        execution.replace_output("a")
        execution.end(True, ExecutionState.CLOSED)
        execution.replace_output("b")
        assert outputs == ["a"]
        assert execution.output == "a"


def test_execution_result_dict():
    result = ExecutionResult(success=False, state=ExecutionState.ERRORED, error="x", language="go")
    restored = ExecutionResult.from_dict(result.to_dict())
    assert restored == result
    assert result.to_dict()["state"] == "errored"
