"""
Rendering helpers for kernel outputs.
"""

import json
from typing import Any

from rich.syntax import Syntax
from rich.text import Text


# Kernel names to pygments lexers
SYNTAX_LEXERS = {
    "csharp": "csharp",
    "fsharp": "fsharp",
    "pwsh": "powershell",
    "sql": "sql",
}


def lexer_for(kernel_name: str) -> str:
    return SYNTAX_LEXERS.get(kernel_name, "text")


def _preferred_text(data: dict[str, Any]) -> tuple[str, str]:
    """Pick the richest textual representation in a MIME bundle."""
    if "application/json" in data:
        val = data["application/json"]
        return ("json", json.dumps(val, indent=2) if not isinstance(val, str) else val)
    for mime_type in ("text/markdown", "text/html"):
        if mime_type in data:
            return ("text", data[mime_type])
    return ("text", data.get("text/plain", str(data)))


def format_rich_output(output: dict[str, Any]):
    """
    Format an output dictionary as a Rich renderable.

    Args:
        output: Output dictionary from ExecutionResult

    Returns:
        Rich renderable object for console display
    """
    output_type = output.get("type", "")

    if output_type == "stream":
        text = output.get("text", "")
        if output.get("name") == "stderr":
            return Text(text.rstrip("\n"), style="yellow")
        return Text(text.rstrip("\n"))

    elif output_type in ("execute_result", "display_data"):
        kind, text = _preferred_text(output.get("data", {}))
        if kind == "json":
            return Syntax(text, "json", theme="monokai", line_numbers=False)
        return Text(text, style="cyan")

    elif output_type == "error":
        error_text = Text()
        error_text.append(output.get("ename", "Error"), style="bold red")
        error_text.append(f": {output.get('evalue', '')}", style="red")
        for tb_line in output.get("traceback", []):
            if isinstance(tb_line, str):
                error_text.append(f"\n{tb_line}", style="dim red")
        return error_text

    return Text(str(output), style="dim")
