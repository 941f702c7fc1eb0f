"""Lifecycle mode merging."""

from __future__ import annotations

from relkit.release.errors import ModeConflictError
from relkit.release.model import Mode

__all__ = ["merge_mode", "boot_mode"]


def merge_mode(component: str, left: Mode, right: Mode) -> Mode:
    """Combine two mode requests for the same component.

    The stronger request wins: ``permanent > transient > temporary > load > none``.
    ``included`` only merges with itself.

    Raises:
        ModeConflictError: If exactly one side is ``included``.
    """
    if left == right:
        return left
    if Mode.INCLUDED in (left, right):
        raise ModeConflictError(component)
    return left if left.rank >= right.rank else right


def boot_mode(mode: Mode) -> Mode:
    """Mode used in a boot sequence; included components are only loaded."""
    return Mode.LOAD if mode == Mode.INCLUDED else mode
