"""
Repl: the interactive session bound to one kernel and one console.
"""

import logging
import re
from typing import Callable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.status import Status
from rich.syntax import Syntax

from polyrepl.cancellation import CancellationToken
from polyrepl.kernel import CompositeKernel, ExecutionResult
from polyrepl.notebook import Document
from polyrepl.themes import DEFAULT_THEME, Theme
from polyrepl.utils import format_rich_output, lexer_for


logger = logging.getLogger(__name__)

QUIT_COMMAND = "#!quit"
NOTEBOOK_FAILED_EXIT_CODE = 2

_SWITCH_LINE = re.compile(r"^#!(?P<name>[\w.-]+)$")


class Repl:
    """
    Interactive session.

    Owns the kernel and console for the lifetime of the process. A loaded
    notebook runs first; the read-evaluate-print loop follows unless the
    caller asked to exit after the notebook.
    """

    def __init__(
        self,
        kernel: CompositeKernel,
        console: Console,
        theme: Optional[Theme] = None,
        cancellation: Optional[CancellationToken] = None,
    ):
        self.kernel = kernel
        self.console = console
        self.theme = theme or DEFAULT_THEME
        self.cancellation = cancellation
        self.current_kernel_name = kernel.default_kernel_name
        self.running = False
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _stopped(self) -> bool:
        if self._closed:
            return True
        return self.cancellation is not None and self.cancellation.is_cancelled

    async def submit(self, code: str, kernel_name: Optional[str] = None) -> ExecutionResult:
        """Run code on a subkernel and print its outputs."""
        name = kernel_name or self.current_kernel_name
        with Status(f"[bold]Running ({name})...[/bold]", console=self.console, spinner="dots"):
            result = await self.kernel.execute(code, kernel_name=name)

        for output in result.outputs:
            rich_out = format_rich_output(output)
            if output.get("type") == "error":
                self.console.print(Panel(
                    rich_out,
                    title="[red]Error[/red]",
                    title_align="left",
                    border_style="red",
                    padding=(0, 1),
                ))
            else:
                self.console.print(rich_out)

        if not result.success and not any(o.get("type") == "error" for o in result.outputs):
            self.console.print(f"[red]Error: {result.error}[/red]")

        return result

    async def run_document(self, document: Document) -> Optional[bool]:
        """
        Run the document's executable elements in order.

        Returns:
            True if every element succeeded, False if one failed (execution
            stops there), None if the session was stopped before the end
        """
        elements = document.executable_elements
        for i, element in enumerate(elements):
            if self._stopped():
                logger.info("Notebook run stopped before cell %d", i)
                return None

            self.console.print(Rule(f"[dim]Cell {i + 1}/{len(elements)} ({element.kernel_name})[/dim]", style="dim"))
            self.console.print(Syntax(
                element.contents,
                lexer_for(element.kernel_name),
                theme="monokai",
                line_numbers=True,
            ))

            result = await self.submit(element.contents, kernel_name=element.kernel_name)
            if not result.success:
                logger.info("Notebook cell %d failed: %s", i, result.error)
                return False

        return True

    async def handle_input(self, line: str):
        """Process one line typed at the prompt."""
        text = line.strip()
        if not text:
            return

        if text == QUIT_COMMAND:
            self.running = False
            return

        match = _SWITCH_LINE.match(text)
        if match and match.group("name") in self.kernel.subkernel_names:
            self.current_kernel_name = match.group("name")
            return

        await self.submit(line)

    async def run(
        self,
        set_exit_code: Callable[[int], None],
        document: Optional[Document] = None,
        exit_after_run: bool = False,
    ):
        """
        Run the session until it ends or is cancelled.

        Args:
            set_exit_code: Receives the process exit code
            document: Notebook to run before the interactive loop
            exit_after_run: Skip the interactive loop once the document has run
        """
        set_exit_code(0)
        self.running = True

        if document is not None:
            if await self.run_document(document) is False:
                set_exit_code(NOTEBOOK_FAILED_EXIT_CODE)
            if exit_after_run:
                self.running = False
                return

        while self.running and not self._stopped():
            try:
                line = self.console.input(self.theme.prompt(self.current_kernel_name))
            except EOFError:
                break
            except KeyboardInterrupt:
                if self.cancellation is not None:
                    self.cancellation.cancel()
                break

            if self._stopped():
                break
            await self.handle_input(line)

        self.running = False

    def close(self):
        """End the session. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.running = False
        logger.info("Session closed")
