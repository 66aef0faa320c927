"""Shared utilities and conventions for CLI commands.

Every command prints through the one console defined here and formats
status lines with the same prefixes.
"""

from typing import Optional

from rich.console import Console

# Shared console instance for consistent CLI output formatting
console = Console()

# Color scheme
COLOR_SUCCESS = "green"
COLOR_ERROR = "red"
COLOR_INFO = "cyan"

# Symbols
SYMBOL_SUCCESS = "✓"
SYMBOL_ERROR = "✗"

PREFIX_SUCCESS = f"[{COLOR_SUCCESS}]{SYMBOL_SUCCESS}[/{COLOR_SUCCESS}]"
PREFIX_ERROR = f"[{COLOR_ERROR}]{SYMBOL_ERROR}[/{COLOR_ERROR}]"


def success_message(text: str) -> str:
    """Format a success message with standard styling."""
    return f"{PREFIX_SUCCESS} {text}"


def error_message(text: str) -> str:
    """Format an error message with standard styling."""
    return f"{PREFIX_ERROR} {text}"


def format_size(num_bytes: Optional[int]) -> str:
    """
    Render a byte count in the largest sensible unit.

    Args:
        num_bytes: Size in bytes or None

    Returns:
        Human-readable size such as "1.5 GB", or "N/A" if unknown
    """
    if num_bytes is None:
        return "N/A"
    size = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def print_connection_test(service: str) -> None:
    console.print(f"[{COLOR_INFO}]Testing {service} connection…[/{COLOR_INFO}]")


def print_connection_success(service: str, details: str = "") -> None:
    """
    Print a connection success message.

    Args:
        service: Name of service
        details: Optional additional details
    """
    message = f"{PREFIX_SUCCESS} {service} connection successful"
    if details:
        message += f" ({details})"
    console.print(f"{message}\n")


def print_connection_failure(service: str, hint: str = "") -> None:
    """
    Print a connection failure message.

    Args:
        service: Name of service
        hint: Optional hint for resolution
    """
    console.print(f"{PREFIX_ERROR} Failed to connect to {service}")
    if hint:
        console.print(f"  [dim]{hint}[/dim]")


__all__ = [
    "console",
    "COLOR_SUCCESS",
    "COLOR_ERROR",
    "COLOR_INFO",
    "PREFIX_SUCCESS",
    "PREFIX_ERROR",
    "success_message",
    "error_message",
    "format_size",
    "print_connection_test",
    "print_connection_success",
    "print_connection_failure",
]
