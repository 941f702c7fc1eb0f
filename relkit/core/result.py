"""Result type for errors the caller is expected to aggregate.

Fatal pipeline errors are raised as exceptions; operations whose failures a
caller may want to collect and report together (boot scripts, runtime
configuration, project file loading) return ``Ok`` or ``Err`` instead.

Usage:
    match make_boot_script(release, path, modes):
        case Ok(written):
            console.success(str(written))
        case Err(message):
            console.error(message)
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Ok[T]:
    """A successful result carrying ``value``."""

    value: T

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err[E]:
    """A failed result carrying ``error``."""

    error: E

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


type Result[T, E] = Ok[T] | Err[E]
