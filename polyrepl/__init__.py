"""
polyrepl: An interactive shell for polyglot notebook kernels.

This package starts a REPL around a pluggable language kernel:
- The default language is picked on the command line or from the environment
- A notebook can be run at startup, optionally exiting afterwards
- Every resource acquired at startup is released exactly once, whether the
  session ends normally or is interrupted
"""

__version__ = "0.1.0"

from polyrepl.cancellation import CancellationToken
from polyrepl.config import KERNEL_NAMES, StartupOptions, resolve_startup_options
from polyrepl.kernel import CompositeKernel, ExecutionResult, KernelRegistry
from polyrepl.lifecycle import CompositeDisposable
from polyrepl.notebook import Document, DocumentElement
from polyrepl.repl import Repl
from polyrepl.startup import start_repl

__all__ = [
    "CancellationToken",
    "CompositeDisposable",
    "CompositeKernel",
    "Document",
    "DocumentElement",
    "ExecutionResult",
    "KERNEL_NAMES",
    "KernelRegistry",
    "Repl",
    "StartupOptions",
    "resolve_startup_options",
    "start_repl",
]
