"""
Tests for the Markdown parser and serializer.

Documents must survive parse -> write unchanged, apart from the few
normalizations (CRLF line endings, the gap before an output block, leading
blank lines) that the writer applies on purpose.
"""

import pytest

from mdlab.directives import Directive, DirectiveKind
from mdlab.markdown import (
    format_code_cell,
    language_abbrev,
    parse_markdown,
    resolve_language,
    split_fence_tag,
    write_markdown,
)
from mdlab.notebook import Cell, CellKind, Notebook


def roundtrip(text: str) -> str:
    return write_markdown(parse_markdown(text))


DOCUMENT = """# Notes

Some prose with `inline code`.

```rust
let x = 5;
println!("{}", x);
```

```text
5
```

More prose.
Still the same paragraph.


```python :skip
print("not run")
```
"""


class TestParse:
    """Cell boundaries, kinds and fields."""

    def setup_method(self):
        self.cells = parse_markdown(DOCUMENT)

    def test_cell_kinds_in_order(self):
        kinds = [c.kind for c in self.cells]
        assert kinds == [CellKind.PROSE, CellKind.CODE, CellKind.PROSE, CellKind.CODE]

    def test_prose_content(self):
        assert self.cells[0].content == "# Notes\n\nSome prose with `inline code`."
        assert self.cells[2].content == "More prose.\nStill the same paragraph."

    def test_code_content_excludes_fences(self):
        assert self.cells[1].language == "rust"
        assert self.cells[1].content == 'let x = 5;\nprintln!("{}", x);'

    def test_output_block_folds_into_code_cell(self):
        assert self.cells[1].captured_output == "5"

    def test_directive_is_parsed(self):
        cell = self.cells[3]
        assert cell.language == "python"
        assert cell.directive == Directive(name="skip")
        assert cell.has_directive(DirectiveKind.SKIP)

    def test_separator_is_recorded(self):
        assert self.cells[1].leading_whitespace == "\n\n"
        assert self.cells[3].leading_whitespace == "\n\n\n"

    def test_trailing_newline_on_last_cell(self):
        assert self.cells[-1].trailing_whitespace == "\n"


class TestRoundTrip:
    """write(parse(doc)) reproduces the document."""

    def test_mixed_document(self):
        assert roundtrip(DOCUMENT) == DOCUMENT

    @pytest.mark.parametrize("text", [
        "# Title\n\n```python\nx = 1\n```\n",
        "```python\nx\n```\n\n\n\n```python\ny\n```\n",
        "a\n\n\n\nb\n",
        "```go\nfmt.Println(1)\n```",
        "    ```python\n    indented = True\n    ```\n",
        "```js\nconsole.log(1)\n```\n",
        "```rust :create=src/lib.rs\npub fn f() {}\n```\n",
        "```:skip\nx\n```\n",
        "```python\nprint('x')\n```\n\n```text\nx\n```\n\ntrailing prose\n\n\n",
    ])
    def test_documents_are_reproduced(self, text):
        assert roundtrip(text) == text

    def test_second_pass_is_stable(self):
        text = "\n\nintro\n```python\nprint(1)\n```\n```text\n1\n\n\n```\nend"
        once = roundtrip(text)
        assert roundtrip(once) == once

    def test_crlf_is_normalized(self):
        text = "```python\r\nx = 1\r\n```\r\n"
        cells = parse_markdown(text)
        assert cells[0].content == "x = 1"
        assert roundtrip(text) == "```python\nx = 1\n```\n"

    def test_leading_blank_lines_are_dropped(self):
        assert roundtrip("\n\n# Title\n") == "# Title\n"

    def test_gap_before_output_is_normalized(self):
        text = "```python\nprint(1)\n```\n```text\n1\n```\n"
        assert roundtrip(text) == "```python\nprint(1)\n```\n\n```text\n1\n```\n"


class TestOutputBlocks:
    """Which ```text blocks are treated as captured output."""

    def test_text_after_prose_is_a_code_cell(self):
        cells = parse_markdown("Look:\n\n```text\nplain\n```\n")
        assert len(cells) == 2
        assert cells[1].is_code
        assert cells[1].language == "text"
        assert cells[1].content == "plain"

    def test_second_text_block_is_not_folded(self):
        text = "```python\nprint(1)\n```\n\n```text\n1\n```\n\n```text\nother\n```\n"
        cells = parse_markdown(text)
        assert len(cells) == 2
        assert cells[0].captured_output == "1"
        assert cells[1].language == "text"
        assert cells[1].content == "other"

    def test_captured_output_serialized_with_one_newline(self):
        cell = Cell.code("python", "print(1)", captured_output="1\n\n\n")
        assert format_code_cell(cell) == "```python\nprint(1)\n```\n\n```text\n1\n```"

    def test_empty_output_is_dropped(self):
        cell = Cell.code("python", "pass", captured_output="\n")
        assert format_code_cell(cell) == "```python\npass\n```"


class TestFences:
    """Fence recognition edge cases."""

    def test_bare_fence_is_prose(self):
        cells = parse_markdown("```\nnot code\n```\n")
        assert len(cells) == 1
        assert cells[0].is_prose

    def test_unterminated_block_runs_to_end(self):
        cells = parse_markdown("```python\nx = 1\ny = 2\n")
        assert len(cells) == 1
        assert cells[0].content == "x = 1\ny = 2\n"

    def test_abbreviation_resolves_and_is_kept(self):
        cells = parse_markdown("```ts\nlet a = 1\n```\n")
        assert cells[0].language == "typescript"
        assert cells[0].language_tag == "ts"

    def test_new_cell_uses_abbreviation(self):
        cell = Cell.code("javascript", "1")
        assert format_code_cell(cell).startswith("```js\n")

    def test_directive_written_after_tag(self):
        cell = Cell.code("rust", "fn f() {}", directive=Directive.of(DirectiveKind.GLOBAL))
        assert format_code_cell(cell).startswith("```rust :global\n")

    def test_empty_document(self):
        assert parse_markdown("") == []
        assert write_markdown([]) == ""


def test_split_fence_tag():
    assert split_fence_tag("python :create=a.py") == ("python", Directive(name="create", value="a.py"))
    assert split_fence_tag("go") == ("go", None)


def test_language_maps():
    assert resolve_language("sh") == "bash"
    assert resolve_language("zig") == "zig"
    assert language_abbrev("powershell") == "ps1"
    assert language_abbrev("rust") == "rust"


def test_notebook_markdown_helpers(tmp_path):
    nb = Notebook.from_markdown(DOCUMENT, name="doc")
    path = nb.save(tmp_path / "doc.md")
    assert path.read_text(encoding="utf-8") == DOCUMENT

    loaded = Notebook.load(path)
    assert loaded.metadata["name"] == "doc"
    assert loaded.metadata["path"] == str(path)
    assert [i for i, _ in loaded.code_cells()] == [1, 3]
    assert [i for i, _ in loaded.code_cells("rust")] == [1]
