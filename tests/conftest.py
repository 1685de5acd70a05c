"""Pytest fixtures shared across all test modules."""

import io

import pytest
from rich.console import Console

from polyrepl.config import KERNEL_NAMES
from polyrepl.kernel import CompositeKernel, ExecutionResult, KernelRegistry


class EchoKernel:
    """Language kernel stand-in: echoes code, fails on code containing 'fail'."""

    def __init__(self, name: str):
        self.name = name
        self.executed: list[str] = []
        self.close_count = 0

    async def execute(self, code: str) -> ExecutionResult:
        self.executed.append(code)
        if "fail" in code:
            return ExecutionResult(
                success=False,
                outputs=[{"type": "error", "ename": "Failure", "evalue": code, "traceback": []}],
                error=code,
            )
        return ExecutionResult(
            success=True,
            outputs=[{"type": "stream", "name": "stdout", "text": f"{self.name}: {code}\n"}],
        )

    def close(self):
        self.close_count += 1


def make_console() -> Console:
    return Console(file=io.StringIO(), force_terminal=False, width=240)


def console_text(console: Console) -> str:
    return console.file.getvalue()


@pytest.fixture
def console():
    return make_console()


@pytest.fixture
def registry():
    """Registry with an EchoKernel for every supported language."""
    reg = KernelRegistry()
    for name in KERNEL_NAMES:
        reg.register(name, lambda name=name: EchoKernel(name))
    return reg


@pytest.fixture
def composite_kernel():
    subkernels = {name: EchoKernel(name) for name in KERNEL_NAMES}
    return CompositeKernel(subkernels, "csharp")
