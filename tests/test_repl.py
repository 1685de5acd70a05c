"""
Tests for the Repl session.
"""

import asyncio
from unittest.mock import patch

from polyrepl.cancellation import CancellationToken
from polyrepl.notebook import Document, DocumentElement
from polyrepl.repl import NOTEBOOK_FAILED_EXIT_CODE, Repl
from polyrepl.themes import FSHARP_THEME

from tests.conftest import console_text


def _document(*sources, kernel_name="csharp") -> Document:
    return Document(elements=[DocumentElement(kernel_name=kernel_name, contents=s) for s in sources])


class ExitCode:
    def __init__(self):
        self.values = []

    def __call__(self, code):
        self.values.append(code)

    @property
    def last(self):
        return self.values[-1]


class TestRunDocument:
    """Test running a notebook through the session."""

    def test_runs_all_elements(self, composite_kernel, console):
        repl = Repl(composite_kernel, console)
        doc = _document("a", "b", "c")

        assert asyncio.run(repl.run_document(doc)) is True
        assert composite_kernel.get("csharp").executed == ["a", "b", "c"]

        out = console_text(console)
        assert "Cell 1/3" in out
        assert "csharp: c" in out

    def test_stops_at_first_failure(self, composite_kernel, console):
        repl = Repl(composite_kernel, console)
        doc = _document("a", "fail here", "c")

        assert asyncio.run(repl.run_document(doc)) is False
        assert composite_kernel.get("csharp").executed == ["a", "fail here"]
        assert "Error" in console_text(console)

    def test_uses_element_kernel(self, composite_kernel, console):
        repl = Repl(composite_kernel, console)
        doc = Document(elements=[
            DocumentElement(kernel_name="fsharp", contents="let x = 1"),
            DocumentElement(kernel_name="markdown", contents="# skipped"),
            DocumentElement(kernel_name="sql", contents="SELECT 1"),
        ])

        asyncio.run(repl.run_document(doc))

        assert composite_kernel.get("fsharp").executed == ["let x = 1"]
        assert composite_kernel.get("sql").executed == ["SELECT 1"]
        assert composite_kernel.get("csharp").executed == []

    def test_stops_when_cancelled(self, composite_kernel, console):
        token = CancellationToken()
        repl = Repl(composite_kernel, console, cancellation=token)
        token.cancel()

        assert asyncio.run(repl.run_document(_document("a"))) is None
        assert composite_kernel.get("csharp").executed == []


class TestRun:
    """Test Repl.run()."""

    def test_exit_after_run_skips_interactive(self, composite_kernel, console):
        repl = Repl(composite_kernel, console)
        exit_code = ExitCode()

        with patch.object(console, "input") as mock_input:
            asyncio.run(repl.run(exit_code, _document("a", "b", "c"), exit_after_run=True))

        mock_input.assert_not_called()
        assert exit_code.last == 0
        assert composite_kernel.get("csharp").executed == ["a", "b", "c"]
        assert repl.running is False

    def test_failed_notebook_sets_exit_code(self, composite_kernel, console):
        repl = Repl(composite_kernel, console)
        exit_code = ExitCode()

        asyncio.run(repl.run(exit_code, _document("fail"), exit_after_run=True))

        assert exit_code.last == NOTEBOOK_FAILED_EXIT_CODE

    def test_cancel_between_cells_keeps_exit_code(self, composite_kernel, console):
        """Stopping a notebook on cancellation is not reported as a failed cell."""
        token = CancellationToken()
        repl = Repl(composite_kernel, console, cancellation=token)
        exit_code = ExitCode()
        csharp = composite_kernel.get("csharp")
        execute = csharp.execute

        async def execute_then_cancel(code):
            result = await execute(code)
            token.cancel()
            return result

        with patch.object(csharp, "execute", side_effect=execute_then_cancel):
            asyncio.run(repl.run(exit_code, _document("a", "b"), exit_after_run=True))

        assert csharp.executed == ["a"]
        assert exit_code.values == [0]

    def test_notebook_then_interactive(self, composite_kernel, console):
        repl = Repl(composite_kernel, console)
        exit_code = ExitCode()

        with patch.object(console, "input", side_effect=["typed", "#!quit"]):
            asyncio.run(repl.run(exit_code, _document("from notebook")))

        assert composite_kernel.get("csharp").executed == ["from notebook", "typed"]
        assert exit_code.last == 0

    def test_exit_after_run_without_notebook_is_interactive(self, composite_kernel, console):
        repl = Repl(composite_kernel, console)

        with patch.object(console, "input", side_effect=["x", EOFError()]) as mock_input:
            asyncio.run(repl.run(ExitCode(), None, exit_after_run=True))

        assert mock_input.call_count == 2
        assert composite_kernel.get("csharp").executed == ["x"]

    def test_eof_ends_loop(self, composite_kernel, console):
        repl = Repl(composite_kernel, console)
        exit_code = ExitCode()

        with patch.object(console, "input", side_effect=EOFError()):
            asyncio.run(repl.run(exit_code))

        assert exit_code.last == 0
        assert repl.running is False

    def test_keyboard_interrupt_cancels(self, composite_kernel, console):
        token = CancellationToken()
        repl = Repl(composite_kernel, console, cancellation=token)

        with patch.object(console, "input", side_effect=KeyboardInterrupt()):
            asyncio.run(repl.run(ExitCode()))

        assert token.is_cancelled

    def test_interactive_errors_do_not_change_exit_code(self, composite_kernel, console):
        repl = Repl(composite_kernel, console)
        exit_code = ExitCode()

        with patch.object(console, "input", side_effect=["fail", "#!quit"]):
            asyncio.run(repl.run(exit_code))

        assert exit_code.values == [0]

    def test_close_stops_loop(self, composite_kernel, console):
        repl = Repl(composite_kernel, console)

        def read(prompt):
            repl.close()
            return "after close"

        with patch.object(console, "input", side_effect=read) as mock_input:
            asyncio.run(repl.run(ExitCode()))

        assert mock_input.call_count == 1
        assert repl.is_closed

    def test_close_is_idempotent(self, composite_kernel, console):
        repl = Repl(composite_kernel, console)
        repl.close()
        repl.close()
        assert repl.is_closed


class TestHandleInput:
    """Test prompt commands."""

    def test_switch_kernel(self, composite_kernel, console):
        repl = Repl(composite_kernel, console)

        asyncio.run(repl.handle_input("#!sql"))
        asyncio.run(repl.handle_input("SELECT 1"))

        assert repl.current_kernel_name == "sql"
        assert composite_kernel.get("sql").executed == ["SELECT 1"]

    def test_unknown_switch_is_submitted(self, composite_kernel, console):
        repl = Repl(composite_kernel, console)

        asyncio.run(repl.handle_input("#!ruby"))

        assert repl.current_kernel_name == "csharp"
        assert composite_kernel.get("csharp").executed == ["#!ruby"]

    def test_blank_line_ignored(self, composite_kernel, console):
        repl = Repl(composite_kernel, console)
        asyncio.run(repl.handle_input("   "))
        assert composite_kernel.get("csharp").executed == []

    def test_quit(self, composite_kernel, console):
        repl = Repl(composite_kernel, console)
        repl.running = True
        asyncio.run(repl.handle_input("#!quit"))
        assert repl.running is False

    def test_prompt_uses_theme(self, composite_kernel, console):
        repl = Repl(composite_kernel, console, theme=FSHARP_THEME)

        with patch.object(console, "input", side_effect=EOFError()) as mock_input:
            asyncio.run(repl.run(ExitCode()))

        prompt = mock_input.call_args[0][0]
        assert "csharp" in prompt
        assert FSHARP_THEME.prompt_style in prompt
