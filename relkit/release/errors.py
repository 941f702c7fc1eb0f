"""Error types for the release pipeline.

Every fatal failure raises a ``ReleaseError`` subclass carrying a single
descriptive message. The CLI maps each family to an exit code; library
callers decide whether to abort or continue with the next independent step.
"""

from __future__ import annotations

from collections.abc import Sequence


class ReleaseError(Exception):
    """Base class for release pipeline failures."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint


class ConfigurationError(ReleaseError):
    """Invalid release name, version, options or step list."""


# -----------------------------------------------------------------------------
# Graph resolution
# -----------------------------------------------------------------------------


class GraphResolutionError(ReleaseError):
    """The component closure could not be computed."""

    def __init__(self, component: str, message: str, *, hint: str | None = None) -> None:
        super().__init__(message, hint=hint)
        self.component = component


class UnresolvedComponentError(GraphResolutionError):
    def __init__(self, component: str, reason: str | None = None) -> None:
        message = f"Could not find application {component}"
        if reason:
            message = f"Could not load {component}.app. Reason: {reason}"
        super().__init__(component, message)


class ModeConflictError(GraphResolutionError):
    def __init__(self, component: str) -> None:
        super().__init__(
            component,
            f"{component} is listed both as a regular application and as an included application",
        )


# -----------------------------------------------------------------------------
# Boot validation
# -----------------------------------------------------------------------------


class BootValidationError(ReleaseError):
    """A boot sequence is not safe to compile."""

    def __init__(self, component: str, message: str, *, dependency: str | None = None) -> None:
        super().__init__(message)
        self.component = component
        self.dependency = dependency


class UnknownModeError(BootValidationError):
    def __init__(self, component: str, mode: str, valid: Sequence[str]) -> None:
        super().__init__(
            component,
            f"Unknown mode {mode} for {component}. Valid modes are: {', '.join(valid)}",
        )
        self.mode = mode


class DanglingDependencyError(BootValidationError):
    def __init__(self, component: str, dependency: str) -> None:
        super().__init__(
            component,
            f"Application {component} is listed in the release boot, "
            f"but it depends on {dependency}, which isn't",
            dependency=dependency,
        )


class UnsafeModeCombinationError(BootValidationError):
    def __init__(self, component: str, mode: str, dependency: str, dependency_mode: str) -> None:
        super().__init__(
            component,
            f"Application {component} has mode {mode} but it depends on {dependency} which is "
            f"set to {dependency_mode}. If you really want to set such mode for {dependency} "
            f"make sure that all applications that depend on it are also set to load or none, "
            f"otherwise your release will fail to boot",
            dependency=dependency,
        )


# -----------------------------------------------------------------------------
# Runtime configuration
# -----------------------------------------------------------------------------


class ConfigValidationError(ReleaseError):
    """The runtime configuration contains non-literal values."""

    def __init__(self, invalid: Sequence[tuple[str, str, object]], reason: str) -> None:
        self.invalid = tuple(invalid)
        if not self.invalid:
            message = f"Could not read configuration file. Reason: {reason}"
        else:
            entries = "".join(
                f"\n\nApplication: {app}\nKey: {key}\nValue: {value!r}"
                for app, key, value in self.invalid
            )
            message = (
                "Could not read configuration file. It has invalid configuration terms "
                "such as functions, references, and pids. Please make sure your configuration "
                "is made of numbers, atoms, strings, maps, tuples and lists. "
                f"The following entries are wrong:{entries}"
            )
        super().__init__(message)
