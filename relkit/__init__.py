"""Assemble self-contained releases from resolved components."""

__version__ = "0.1.0"
