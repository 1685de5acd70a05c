"""
StartupOptions: validated, immutable startup configuration.
"""

import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator


KERNEL_NAMES = ("csharp", "fsharp", "pwsh", "sql")
DEFAULT_KERNEL_ENV = "POLYREPL_DEFAULT_KERNEL"
FALLBACK_KERNEL = "csharp"


class ConfigurationError(ValueError):
    """Raised when startup options fail validation."""

    def __init__(self, errors: list[tuple[str, str]]):
        self.errors = errors
        super().__init__("; ".join(f"{field}: {message}" for field, message in errors))


class StartupOptions(BaseModel):
    """Options the orchestrator is started with. Never mutated after resolution."""

    model_config = ConfigDict(frozen=True)

    default_kernel_name: str = FALLBACK_KERNEL
    working_dir: Path
    notebook: Optional[Path] = None
    exit_after_run: bool = False
    log_path: Optional[Path] = None

    @field_validator("default_kernel_name")
    @classmethod
    def _known_kernel(cls, value: str) -> str:
        if value not in KERNEL_NAMES:
            raise ValueError(
                f"'{value}' is not one of {', '.join(repr(n) for n in KERNEL_NAMES)}"
            )
        return value

    @field_validator("working_dir")
    @classmethod
    def _existing_directory(cls, value: Path) -> Path:
        if not value.is_dir():
            raise ValueError(f"directory '{value}' does not exist")
        return value.resolve()

    @field_validator("notebook")
    @classmethod
    def _existing_file(cls, value: Optional[Path]) -> Optional[Path]:
        if value is None:
            return None
        if not value.is_file():
            raise ValueError(f"file '{value}' does not exist")
        return value.resolve()

    @field_validator("log_path")
    @classmethod
    def _log_directory(cls, value: Optional[Path]) -> Optional[Path]:
        if value is not None and value.exists() and not value.is_dir():
            raise ValueError(f"'{value}' is not a directory")
        return value


def default_kernel_name(environ: Optional[Mapping[str, str]] = None) -> str:
    """Kernel used when --default-kernel is not given."""
    if environ is None:
        environ = os.environ
    return environ.get(DEFAULT_KERNEL_ENV) or FALLBACK_KERNEL


def resolve_startup_options(
    default_kernel: Optional[str] = None,
    working_dir: Optional[Path] = None,
    notebook: Optional[Path] = None,
    exit_after_run: bool = False,
    log_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
) -> StartupOptions:
    """
    Build StartupOptions from raw option values.

    Args:
        default_kernel: Explicit kernel name; the environment is only read when this is None
        working_dir: Directory to change into after the kernel starts (defaults to cwd)
        notebook: Notebook file to run at startup
        exit_after_run: Exit once the notebook has run
        log_path: Directory for diagnostic logs
        environ: Environment mapping (defaults to os.environ)
        cwd: Current directory (defaults to Path.cwd())

    Returns:
        Validated StartupOptions

    Raises:
        ConfigurationError: If any value fails validation
    """
    if default_kernel is None:
        default_kernel = default_kernel_name(environ)
    if working_dir is None:
        working_dir = cwd if cwd is not None else Path.cwd()

    try:
        return StartupOptions(
            default_kernel_name=default_kernel,
            working_dir=Path(working_dir),
            notebook=Path(notebook) if notebook is not None else None,
            exit_after_run=exit_after_run,
            log_path=Path(log_path) if log_path is not None else None,
        )
    except ValidationError as e:
        raise ConfigurationError([
            (".".join(str(part) for part in error["loc"]), error["msg"].removeprefix("Value error, "))
            for error in e.errors()
        ]) from e
