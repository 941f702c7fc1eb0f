"""Release assembly pipeline.

- descriptor: building the release from the project file
- resolver / storage: component graph closure
- boot / compiler: boot sequences and boot scripts
- sys_config: runtime configuration
- packager / beam: copying and stripping compiled artifacts
- pipeline: running the release steps
"""

from __future__ import annotations

from .errors import (
    BootValidationError,
    ConfigurationError,
    ConfigValidationError,
    DanglingDependencyError,
    GraphResolutionError,
    ModeConflictError,
    ReleaseError,
    UnknownModeError,
    UnresolvedComponentError,
    UnsafeModeCombinationError,
)
from .model import ComponentManifest, CustomStep, Mode, Release, ReleaseOptions, Stage

__all__ = [
    "BootValidationError",
    "ComponentManifest",
    "ConfigValidationError",
    "ConfigurationError",
    "CustomStep",
    "DanglingDependencyError",
    "GraphResolutionError",
    "Mode",
    "ModeConflictError",
    "Release",
    "ReleaseError",
    "ReleaseOptions",
    "Stage",
    "UnknownModeError",
    "UnresolvedComponentError",
    "UnsafeModeCombinationError",
]
