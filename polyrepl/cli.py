"""
CLI entry point for polyrepl.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import click
from rich.console import Console

from polyrepl import __version__
from polyrepl.cancellation import CancellationToken, interrupt_handler
from polyrepl.config import (
    DEFAULT_KERNEL_ENV,
    FALLBACK_KERNEL,
    KERNEL_NAMES,
    ConfigurationError,
    resolve_startup_options,
)
from polyrepl.kernel import KernelConstructionError
from polyrepl.logs import configure_file_logging
from polyrepl.notebook import NotebookLoadError
from polyrepl.startup import start_repl


logger = logging.getLogger(__name__)


def create_command(
    console: Optional[Console] = None,
    start: Optional[Callable[..., Any]] = None,
    register_for_disposal: Optional[Callable[[Any], None]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> click.Command:
    """
    Build the polyrepl command.

    Args:
        console: Console to render to (defaults to a new rich Console)
        start: Coroutine function replacing start_repl
        register_for_disposal: Receives the registry returned by start
        environ: Environment used for the default kernel (defaults to os.environ)
    """
    start = start or start_repl

    @click.command(name="polyrepl", context_settings={"help_option_names": ["-h", "--help"]})
    @click.option(
        "--log-path",
        type=click.Path(file_okay=False, path_type=Path),
        metavar="PATH",
        help="Enable file logging to the specified directory",
    )
    @click.option(
        "--default-kernel",
        type=click.Choice(KERNEL_NAMES),
        default=None,
        help=f"The default language for the kernel [default: ${DEFAULT_KERNEL_ENV} or {FALLBACK_KERNEL}]",
    )
    @click.option(
        "--notebook",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        metavar="PATH",
        help="After starting the REPL, run all of the cells in the specified notebook file",
    )
    @click.option(
        "--exit-after-run",
        is_flag=True,
        help="Exit the REPL when the specified notebook has run",
    )
    @click.option(
        "--working-dir",
        type=click.Path(exists=True, file_okay=False, path_type=Path),
        metavar="PATH",
        help="Working directory to which to change after launching the kernel [default: current directory]",
    )
    @click.version_option(__version__, prog_name="polyrepl")
    @click.pass_context
    def command(ctx, log_path, default_kernel, notebook, exit_after_run, working_dir):
        """polyrepl: an interactive shell for polyglot notebook kernels."""
        try:
            options = resolve_startup_options(
                default_kernel=default_kernel,
                working_dir=working_dir,
                notebook=notebook,
                exit_after_run=exit_after_run,
                log_path=log_path,
                environ=environ,
            )
        except ConfigurationError as e:
            raise click.UsageError(str(e), ctx=ctx) from e

        if options.log_path is not None:
            configure_file_logging(options.log_path)

        exit_code = 0

        def set_exit_code(code: int):
            nonlocal exit_code
            exit_code = code

        token = CancellationToken()
        try:
            with interrupt_handler(token):
                disposable = asyncio.run(start(options, console or Console(), token, set_exit_code))
        except KeyboardInterrupt:
            logger.info("Interrupted, exit code %d", exit_code)
        except (KernelConstructionError, NotebookLoadError) as e:
            logger.error("Startup failed: %s", e)
            raise click.ClickException(str(e)) from e
        else:
            if register_for_disposal is not None:
                register_for_disposal(disposable)

        ctx.exit(exit_code)

    return command


main = create_command()


if __name__ == "__main__":
    main()
