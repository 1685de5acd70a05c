"""
Document: notebook files read into an ordered list of kernel-tagged elements.

Two formats are read:
- ``.dib``: plain text, cells separated by ``#!<kernel>`` lines
- ``.ipynb``: Jupyter JSON, cell language taken from cell or notebook metadata

Only reading is supported; notebooks are never written back.
"""

import json
import re
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from polyrepl.kernel import CompositeKernel


MARKDOWN = "markdown"
META = "meta"

_NON_EXECUTABLE = {MARKDOWN, META}
_MAGIC_LINE = re.compile(r"^#!(?P<name>[\w.-]+)\s*$")

# Jupyter language names to kernel names
_LANGUAGE_ALIASES = {
    "c#": "csharp",
    "csharp": "csharp",
    "f#": "fsharp",
    "fsharp": "fsharp",
    "powershell": "pwsh",
    "pwsh": "pwsh",
    "sql": "sql",
    "markdown": MARKDOWN,
    "md": MARKDOWN,
}


class NotebookLoadError(RuntimeError):
    """Raised when a notebook file cannot be read or parsed."""


class DocumentElement(BaseModel):
    """A single cell: source text and the kernel that should run it."""
    kernel_name: str
    contents: str = ""

    @property
    def is_executable(self) -> bool:
        return self.kernel_name not in _NON_EXECUTABLE and bool(self.contents.strip())


class Document(BaseModel):
    """An ordered sequence of elements loaded from a notebook file."""
    elements: list[DocumentElement] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    path: Optional[Path] = None

    @property
    def executable_elements(self) -> list[DocumentElement]:
        return [e for e in self.elements if e.is_executable]


def _normalize_language(name: Optional[str]) -> Optional[str]:
    if not isinstance(name, str) or not name:
        return None
    return _LANGUAGE_ALIASES.get(name.strip().lower(), name.strip().lower())


def parse_dib(text: str, kernel_names: list[str], default_kernel_name: str) -> Document:
    """
    Parse .dib text.

    A line ``#!name`` opens a new element only when name is a known kernel,
    ``markdown`` or ``meta``; any other ``#!`` line is ordinary content.
    Text before the first marker belongs to the default kernel.

    Args:
        text: File contents
        kernel_names: Subkernels the running kernel knows about
        default_kernel_name: Kernel for unmarked leading text

    Returns:
        Parsed document
    """
    known = set(kernel_names) | _NON_EXECUTABLE
    elements = []
    metadata: dict[str, Any] = {}

    current_kernel = default_kernel_name
    lines: list[str] = []

    def flush():
        contents = "\n".join(lines).strip("\n")
        if current_kernel == META:
            try:
                metadata.update(json.loads(contents or "{}"))
            except json.JSONDecodeError as e:
                raise NotebookLoadError(f"Invalid #!meta block: {e}") from e
        elif contents.strip():
            elements.append(DocumentElement(kernel_name=current_kernel, contents=contents))

    for line in text.splitlines():
        match = _MAGIC_LINE.match(line)
        if match and match.group("name") in known:
            flush()
            current_kernel = match.group("name")
            lines = []
        else:
            lines.append(line)
    flush()

    return Document(elements=elements, metadata=metadata)


def _mapping(value: Any, where: str) -> dict:
    """Treat a missing section as empty; anything but an object is malformed."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise NotebookLoadError(f"Notebook {where} must be a JSON object")
    return value


def parse_ipynb(text: str, kernel_names: list[str], default_kernel_name: str) -> Document:
    """
    Parse Jupyter notebook JSON.

    A code cell's kernel comes from, in order: its dotnet_interactive or
    polyglot_notebook metadata, the notebook's kernelspec or language_info,
    then default_kernel_name.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise NotebookLoadError(f"Invalid notebook JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("cells", []), list):
        raise NotebookLoadError("Notebook JSON must be an object with a 'cells' list")

    metadata = _mapping(data.get("metadata"), "metadata")
    notebook_language = (
        _normalize_language(_mapping(metadata.get("kernelspec"), "kernelspec").get("language"))
        or _normalize_language(_mapping(metadata.get("language_info"), "language_info").get("name"))
    )
    if notebook_language not in kernel_names:
        notebook_language = default_kernel_name

    elements = []
    for i, cell in enumerate(data.get("cells", [])):
        cell = _mapping(cell, f"cell {i}")
        source = cell.get("source", "")
        if isinstance(source, list) and all(isinstance(line, str) for line in source):
            source = "".join(source)
        if not isinstance(source, str):
            raise NotebookLoadError(f"Notebook cell {i} source must be text")

        cell_type = cell.get("cell_type", "code")
        if cell_type == "markdown":
            kernel_name = MARKDOWN
        elif cell_type == "code":
            where = f"cell {i} metadata"
            cell_meta = _mapping(cell.get("metadata"), where)
            kernel_name = (
                _normalize_language(_mapping(cell_meta.get("dotnet_interactive"), where).get("language"))
                or _normalize_language(_mapping(cell_meta.get("polyglot_notebook"), where).get("kernelName"))
                or notebook_language
            )
        else:
            continue

        elements.append(DocumentElement(kernel_name=kernel_name, contents=source))

    return Document(elements=elements, metadata=metadata)


_PARSERS = {
    ".dib": parse_dib,
    ".dotnet-interactive": parse_dib,
    ".ipynb": parse_ipynb,
}


async def read_document(path: Path, kernel: CompositeKernel) -> Document:
    """
    Load a notebook file using the kernel's languages for cell detection.

    Raises:
        NotebookLoadError: If the file type is unsupported, unreadable or malformed
    """
    path = Path(path)
    parser = _PARSERS.get(path.suffix.lower())
    if parser is None:
        raise NotebookLoadError(
            f"Unsupported notebook type '{path.suffix}' (expected one of: {', '.join(_PARSERS)})"
        )

    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise NotebookLoadError(f"Could not read {path}: {e}") from e

    document = parser(text, kernel.subkernel_names, kernel.default_kernel_name)
    document.path = path
    return document
