"""
Kernels: the per-language execution engines hosted by the REPL.

Language kernels are not part of this package. They are registered with a
KernelRegistry, either in code or through the ``polyrepl.kernels`` entry
point group, and combined into a single CompositeKernel at startup.
"""

import inspect
import logging
import os
from dataclasses import dataclass, field
from importlib.metadata import entry_points
from typing import Any, Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

from polyrepl.config import KERNEL_NAMES, StartupOptions


logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "polyrepl.kernels"


class KernelConstructionError(RuntimeError):
    """Raised when the kernel for the requested language cannot be built."""


@dataclass
class ExecutionResult:
    """Result of submitting code to a kernel."""
    success: bool
    outputs: list[dict[str, Any]] = field(default_factory=list)
    execution_count: int = 0
    error: Optional[str] = None
    kernel_name: Optional[str] = None


@runtime_checkable
class Kernel(Protocol):
    """What a language kernel must provide."""

    name: str

    async def execute(self, code: str) -> ExecutionResult:
        ...

    def close(self) -> None:
        ...


KernelConstructor = Callable[[], Union[Kernel, Awaitable[Kernel]]]


class KernelRegistry:
    """Maps language names to kernel constructors."""

    def __init__(self):
        self._constructors: dict[str, KernelConstructor] = {}

    def register(self, name: str, constructor: KernelConstructor):
        """Register a constructor; a later registration for the same name wins."""
        self._constructors[name] = constructor

    def names(self) -> list[str]:
        return list(self._constructors)

    def __contains__(self, name: str) -> bool:
        return name in self._constructors

    async def create(self, name: str) -> Kernel:
        """Construct the kernel registered under name."""
        if name not in self._constructors:
            raise KernelConstructionError(f"No kernel is installed for '{name}'")

        try:
            kernel = self._constructors[name]()
            if inspect.isawaitable(kernel):
                kernel = await kernel
        except KernelConstructionError:
            raise
        except Exception as e:
            raise KernelConstructionError(f"Failed to start the '{name}' kernel: {e}") from e

        return kernel

    @classmethod
    def from_entry_points(cls, group: str = ENTRY_POINT_GROUP) -> "KernelRegistry":
        """Build a registry from installed kernel plugins."""
        registry = cls()
        for ep in entry_points(group=group):
            try:
                registry.register(ep.name, ep.load())
            except Exception:
                logger.exception("Could not load kernel plugin %s", ep.value)
        return registry


class CompositeKernel:
    """
    A kernel made of one subkernel per language.

    Submissions go to the default subkernel unless a kernel name is given.
    Closing the composite closes every subkernel, most recently added first.
    """

    def __init__(self, subkernels: dict[str, Kernel], default_kernel_name: str):
        if default_kernel_name not in subkernels:
            raise KernelConstructionError(f"No subkernel named '{default_kernel_name}'")
        self.subkernels = dict(subkernels)
        self.default_kernel_name = default_kernel_name
        self.name = "composite"
        self.execution_count = 0
        self._closed = False

    @property
    def subkernel_names(self) -> list[str]:
        return list(self.subkernels)

    def get(self, name: str) -> Kernel:
        return self.subkernels[name]

    async def execute(self, code: str, kernel_name: Optional[str] = None) -> ExecutionResult:
        """
        Submit code to a subkernel.

        Args:
            code: Source to run
            kernel_name: Subkernel to use (defaults to default_kernel_name)

        Returns:
            ExecutionResult numbered by this composite
        """
        name = kernel_name or self.default_kernel_name
        self.execution_count += 1

        subkernel = self.subkernels.get(name)
        if subkernel is None:
            message = f"Unknown kernel '{name}'"
            return ExecutionResult(
                success=False,
                outputs=[{"type": "error", "ename": "KernelNotFound", "evalue": message, "traceback": []}],
                execution_count=self.execution_count,
                error=message,
                kernel_name=name,
            )

        try:
            result = await subkernel.execute(code)
        except Exception as e:
            logger.exception("Kernel %s raised while executing", name)
            result = ExecutionResult(
                success=False,
                outputs=[{"type": "error", "ename": type(e).__name__, "evalue": str(e), "traceback": []}],
                error=str(e),
            )

        result.execution_count = self.execution_count
        result.kernel_name = name
        return result

    def close(self):
        if self._closed:
            return
        self._closed = True
        for name, subkernel in reversed(list(self.subkernels.items())):
            try:
                subkernel.close()
            except Exception:
                logger.exception("Failed to close kernel %s", name)


async def create_kernel(
    options: StartupOptions,
    registry: Optional[KernelRegistry] = None,
) -> CompositeKernel:
    """
    Start the composite kernel for options.

    Every supported language with an installed kernel becomes a subkernel;
    the requested default language must be among them. The process changes
    into options.working_dir once the kernel is up.

    Raises:
        KernelConstructionError: If the default kernel is missing or fails to start
    """
    if registry is None:
        registry = KernelRegistry.from_entry_points()

    if options.default_kernel_name not in registry:
        installed = [n for n in KERNEL_NAMES if n in registry]
        raise KernelConstructionError(
            f"No kernel is installed for '{options.default_kernel_name}' "
            f"(installed: {', '.join(installed) or 'none'})"
        )

    subkernels: dict[str, Kernel] = {}
    try:
        for name in KERNEL_NAMES:
            if name not in registry:
                continue
            try:
                subkernels[name] = await registry.create(name)
            except KernelConstructionError:
                if name == options.default_kernel_name:
                    raise
                logger.exception("Skipping kernel %s", name)
    except BaseException:
        for subkernel in reversed(list(subkernels.values())):
            subkernel.close()
        raise

    kernel = CompositeKernel(subkernels, options.default_kernel_name)
    logger.info("Kernel started: default=%s subkernels=%s", kernel.default_kernel_name, kernel.subkernel_names)

    os.chdir(options.working_dir)
    return kernel
