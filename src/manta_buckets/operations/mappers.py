"""
Error mapping and CLI utilities.

Provides centralized exception-to-exit-code mapping and a CLI command wrapper
so every Typer command handles client errors the same way.
"""
from __future__ import annotations

import typer
from typing import Callable, TypeVar

T = TypeVar('T')

# Exit codes keyed by error class name; subclasses fall back to their bases.
EXIT_CODES = {
    "NotFoundError": 1,
    "InvalidArgument": 2,
    "ValueError": 2,
    "TransportError": 3,
    "HTTPStatusError": 4,
    "DecodeError": 5,
    "PayloadStreamError": 6,
    "ClientClosedError": 7,
    "ChecksumMismatch": 8,
}

FALLBACK_EXIT_CODE = 3


def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to standardized exit code.

    Returns:
    - 1: Bucket or object not found (NotFoundError)
    - 2: Bad input (InvalidArgument, ValueError)
    - 3: Network failure (TransportError) or unknown error
    - 4: Other service error status (HTTPStatusError)
    - 5: Malformed listing (DecodeError)
    - 6: Local upload source failed (PayloadStreamError)
    - 7: Client already closed (ClientClosedError)
    - 8: Downloaded bytes do not match content-md5 (ChecksumMismatch)

    The most specific class in the exception's MRO wins, so NotFoundError maps
    to 1 even though it is also an HTTPStatusError.
    """
    for cls in type(exc).__mro__:
        code = EXIT_CODES.get(cls.__name__)
        if code is not None:
            return code
    return FALLBACK_EXIT_CODE


def run_and_exit(func: Callable[[], T]) -> T:
    """
    Unified error wrapper for CLI commands.

    Executes the given function, reports any exception on stderr and maps it
    to an exit code using typer.Exit.

    Raises:
        typer.Exit: With the mapped exit code if the function raises
    """
    try:
        return func()
    except typer.Exit:
        raise
    except Exception as e:
        from .printers import print_error
        print_error(e)
        raise typer.Exit(code=exit_code_for(e)) from e
