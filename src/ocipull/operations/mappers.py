"""
Error mapping and CLI utilities.

Provides centralized exception-to-exit-code mapping and CLI command wrappers
to ensure consistent error handling across all Typer commands.
"""
from __future__ import annotations

import typer
from typing import Callable, TypeVar

from ..storage.oci_errors import error_chain

T = TypeVar('T')

EXIT_CODES = {
    "OciNotFound": 1,
    "ValidationError": 2,
    "ValueError": 2,
    "OciDecodeError": 2,
    "OciRateLimited": 3,
    "OciHttpError": 3,
    "OciTransportError": 3,
    "OciAuthError": 4,
    "NoMatchingPlatform": 5,
    "UnsupportedHost": 5,
    "OciDigestMalformed": 6,
    "OciDigestMismatch": 6,
    "LayoutWriteError": 7,
}

FALLBACK_EXIT_CODE = 3


def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to standardized exit code.

    Walks the cause chain outermost first and returns the code of the first
    exception whose class (or a base class) is mapped, so a ``PullFailed``
    reports the code of the error that caused it.

    Returns exit codes:
    - 1: Image, manifest or blob not found (OciNotFound)
    - 2: Invalid input or undecodable document (ValueError, OciDecodeError)
    - 3: Registry or network error, or unknown error
    - 4: Token exchange failed (OciAuthError)
    - 5: No manifest for this platform (NoMatchingPlatform, UnsupportedHost)
    - 6: Digest malformed or content mismatch
    - 7: Image layout could not be written (LayoutWriteError)

    Args:
        exc: Exception to map

    Returns:
        Exit code (3 as fallback for unknown exceptions)
    """
    for err in error_chain(exc):
        for cls in type(err).__mro__:
            code = EXIT_CODES.get(cls.__name__)
            if code is not None:
                return code
    return FALLBACK_EXIT_CODE


def format_error(exc: BaseException) -> str:
    """Render an error and its causes, one per line."""
    lines = []
    for depth, err in enumerate(error_chain(exc)):
        message = str(err) or type(err).__name__
        prefix = "Error: " if depth == 0 else "  caused by: "
        lines.append(f"{prefix}{message}")
    return "\n".join(lines)


def run_and_exit(func: Callable[[], T]) -> T:
    """
    Unified error wrapper for CLI commands.

    Executes the given function, prints the full error chain on failure and
    maps the exception to an exit code using typer.Exit. This centralizes
    error handling so CLI commands don't need individual try/except blocks.

    Args:
        func: Function to execute

    Returns:
        Function result if successful

    Raises:
        typer.Exit: With appropriate exit code if function raises exception
    """
    try:
        return func()
    except Exception as e:
        typer.echo(format_error(e), err=True)
        raise typer.Exit(code=exit_code_for(e)) from e
