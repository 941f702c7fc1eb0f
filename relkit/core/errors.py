"""Error codes for CLI exit status.

These values are used as process exit codes and should remain stable.
Each fatal error family of the release pipeline maps to exactly one code.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    - 0: Success
    - 1: User error (bad arguments, unknown release)
    - 2: Configuration error (invalid release name, version, steps)
    - 3: Resolution error (missing component, mode conflict)
    - 4: Boot error (invalid boot sequence, bad runtime configuration)
    - 5: I/O error (file not found, permission denied)
    """

    OK = 0
    USER_ERROR = 1
    CONFIG_ERROR = 2
    RESOLUTION_ERROR = 3
    BOOT_ERROR = 4
    IO_ERROR = 5
