"""Error presentation utilities.

Centralized error formatting and exit code mapping for the CLI.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from relkit.core.errors import ErrorCode
from relkit.output.console import Style
from relkit.release.errors import (
    BootValidationError,
    ConfigurationError,
    ConfigValidationError,
    GraphResolutionError,
    ReleaseError,
)

if TYPE_CHECKING:
    from relkit.output.console import ConsoleProtocol

__all__ = ["print_release_error", "release_error_exit_code"]


def print_release_error(error: Exception, console: ConsoleProtocol) -> None:
    """Print a pipeline failure with its hint, if any."""
    match error:
        case ReleaseError(message=message, hint=hint):
            console.error(message)
            if hint:
                console.print(f"hint: {hint}", Style.DIM)
        case OSError(filename=filename, strerror=strerror) if filename:
            console.error(f"{strerror}: {filename}")
        case _:
            console.error(str(error))


def release_error_exit_code(error: Exception) -> int:
    """Get the exit code for a pipeline failure."""
    match error:
        case ConfigurationError():
            return int(ErrorCode.CONFIG_ERROR)
        case GraphResolutionError():
            return int(ErrorCode.RESOLUTION_ERROR)
        case BootValidationError() | ConfigValidationError():
            return int(ErrorCode.BOOT_ERROR)
        case OSError():
            return int(ErrorCode.IO_ERROR)
        case ReleaseError():
            return int(ErrorCode.BOOT_ERROR)
    return int(ErrorCode.USER_ERROR)
