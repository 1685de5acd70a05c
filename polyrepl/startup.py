"""
start_repl: brings up the kernel, runs the notebook and the session, and
tears everything down once.
"""

import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

from rich.console import Console

from polyrepl.cancellation import CancellationToken
from polyrepl.config import StartupOptions
from polyrepl.kernel import CompositeKernel, create_kernel
from polyrepl.lifecycle import CompositeDisposable
from polyrepl.notebook import Document, read_document
from polyrepl.repl import Repl
from polyrepl.themes import DEFAULT_THEME, Theme, announce, get_theme, render_splash


logger = logging.getLogger(__name__)

KernelFactory = Callable[[StartupOptions], Awaitable[CompositeKernel]]
DocumentLoader = Callable[[Path, CompositeKernel], Awaitable[Document]]
ThemeSelector = Callable[[str], Optional[Theme]]


async def start_repl(
    options: StartupOptions,
    console: Console,
    cancellation: CancellationToken,
    set_exit_code: Callable[[int], None],
    *,
    kernel_factory: KernelFactory = create_kernel,
    document_loader: DocumentLoader = read_document,
    theme_selector: ThemeSelector = get_theme,
    session_factory: Callable[..., Repl] = Repl,
) -> CompositeDisposable:
    """
    Run the REPL described by options.

    Resources are registered with a CompositeDisposable as they are
    acquired: the kernel as soon as it exists, then the session, so the
    session is released first. The registry is disposed either by the
    cancellation token or when this function returns, whichever comes
    first; it is returned so the caller can attach more resources (which
    are then released immediately).

    Args:
        options: Validated startup options
        console: Console the session renders to
        cancellation: Fired on external interrupt
        set_exit_code: Receives the exit code captured by the run loop
        kernel_factory: Builds the kernel for options
        document_loader: Parses a notebook using the kernel
        theme_selector: Maps a kernel name to its theme
        session_factory: Builds the session

    Raises:
        KernelConstructionError: If the kernel cannot be built
        NotebookLoadError: If the notebook cannot be parsed
    """
    disposable = CompositeDisposable()

    theme = theme_selector(options.default_kernel_name) or DEFAULT_THEME
    render_splash(console, theme)

    cancellation.register(disposable.dispose)

    try:
        logger.info("Starting kernel %s", options.default_kernel_name)
        kernel = await kernel_factory(options)
        disposable.add(kernel, name="kernel")

        if cancellation.is_cancelled:
            logger.info("Cancelled during kernel startup")
            return disposable

        document = None
        if options.notebook is not None:
            logger.info("Loading notebook %s", options.notebook)
            document = await document_loader(options.notebook, kernel)
            if document.executable_elements:
                announce(console, f"📓 Running notebook: {options.notebook}")

            if cancellation.is_cancelled:
                logger.info("Cancelled while loading notebook")
                return disposable

        session = session_factory(kernel, console, theme=theme, cancellation=cancellation)
        disposable.add(session, name="session")

        await session.run(set_exit_code, document, options.exit_after_run)
        logger.info("Session finished")
    finally:
        disposable.dispose()

    return disposable
