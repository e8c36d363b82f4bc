"""
Unit tests for code snippet evaluation.
"""

import sys

from booksite.books.model import Block, Page
from booksite.books.snippets import SnippetRunner

from conftest import make_book


def code_block(text, language="python", evaluate=True, block_id="c1"):
    return Block(id=block_id, type="code", language=language, eval=evaluate, text=text)


class TestSnippetRunner:
    """Tests for SnippetRunner class."""

    def test_run_python(self, tmp_path):
        runner = SnippetRunner(tmp_path)

        output = runner.run(code_block("print(6 * 7)"))

        assert output == "42\n"
        assert runner.runs == 1

    def test_output_cached(self, tmp_path):
        """Test that an unchanged snippet runs only once."""
        runner = SnippetRunner(tmp_path)
        block = code_block("print('once')")

        runner.run(block)
        output = runner.run(block)

        assert output == "once\n"
        assert runner.runs == 1
        assert runner.cache_hits == 1
        assert runner.cache_path(block).exists()

    def test_cache_key_depends_on_language(self):
        assert SnippetRunner.cache_key(code_block("x", "python")) != SnippetRunner.cache_key(code_block("x", "sh"))

    def test_stderr_captured(self, tmp_path):
        runner = SnippetRunner(tmp_path)

        output = runner.run(code_block("import sys; sys.stderr.write('oops')"))

        assert "oops" in output

    def test_unknown_language(self, tmp_path):
        runner = SnippetRunner(tmp_path)

        assert runner.run(code_block("fn main() {}", language="rust")) is None
        assert runner.runs == 0

    def test_timeout(self, tmp_path):
        runner = SnippetRunner(tmp_path, timeout=0.5)

        assert runner.run(code_block("import time; time.sleep(10)")) is None
        assert list(tmp_path.iterdir()) == []

    def test_evaluate_page(self, tmp_path, config):
        page = Page(id="p", title="P", book=make_book("go", config), blocks=[
            code_block("print('a')", block_id="c1"),
            code_block("print('b')", evaluate=False, block_id="c2"),
            Block(id="t1", type="text", text="print('c')"),
        ])
        runner = SnippetRunner(tmp_path)

        assert runner.evaluate_page(page) == 1
        assert page.blocks[0].output == "a\n"
        assert page.blocks[1].output == ""

    def test_interpreter_is_current_python(self):
        from booksite.books.snippets import INTERPRETERS

        assert INTERPRETERS["python"][0] == sys.executable
