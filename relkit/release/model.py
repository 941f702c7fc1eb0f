"""Release descriptor and the values threaded through the pipeline."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from relkit.release.errors import ConfigurationError

__all__ = [
    "BootEntry",
    "ComponentManifest",
    "CustomStep",
    "Mode",
    "Release",
    "ReleaseOptions",
    "Stage",
    "Step",
    "StripOptions",
    "validate_steps",
]


class Mode(Enum):
    """How a component is started or loaded when the release boots."""

    PERMANENT = "permanent"
    TRANSIENT = "transient"
    TEMPORARY = "temporary"
    LOAD = "load"
    NONE = "none"
    INCLUDED = "included"

    def __str__(self) -> str:
        return self.value

    @property
    def is_safe(self) -> bool:
        """Started modes; a safe component cannot depend on an unsafe one."""
        return self in (Mode.PERMANENT, Mode.TRANSIENT, Mode.TEMPORARY)

    @property
    def is_unsafe(self) -> bool:
        return self in (Mode.LOAD, Mode.NONE)

    @property
    def rank(self) -> int:
        """Precedence among mergeable modes (higher wins)."""
        return _RANK[self]

    @classmethod
    def parse(cls, text: str) -> Mode:
        try:
            return cls(text.strip().lstrip(":"))
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ConfigurationError(f"Unknown mode {text!r}. Valid modes are: {valid}") from None


_RANK = {
    Mode.NONE: 0,
    Mode.LOAD: 1,
    Mode.TEMPORARY: 2,
    Mode.TRANSIENT: 3,
    Mode.PERMANENT: 4,
    Mode.INCLUDED: -1,
}

BootEntry = tuple[str, Mode]


@dataclass(frozen=True, slots=True)
class ComponentManifest:
    """One resolved component of the release."""

    name: str
    version: str
    path: Path
    mode: Mode
    applications: tuple[str, ...] = ()
    optional_applications: tuple[str, ...] = ()
    included_applications: tuple[str, ...] = ()
    # (component, key path, value) captured when the component was compiled
    compile_env: tuple[object, ...] = ()
    modules: tuple[str, ...] = ()
    # Provided by the platform runtime rather than the project build
    otp_app: bool = False


@dataclass(frozen=True, slots=True)
class StripOptions:
    """How compiled artifacts are stripped while packaging."""

    keep: tuple[str, ...] = ()
    compress: bool = False


@dataclass(frozen=True, slots=True)
class ReleaseOptions:
    overwrite: bool = False
    quiet: bool = False
    # False: byte-copy; True: strip with defaults; StripOptions: strip with extras
    strip_beams: bool | StripOptions = True
    skip_mode_validation_for: frozenset[str] = frozenset()
    reboot_system_after_config: bool = False
    start_distribution_during_config: bool = False
    prune_runtime_sys_config_after_boot: bool = False
    validate_compile_env: bool = True
    extra: Mapping[str, object] = field(default_factory=dict)

    @property
    def strip_options(self) -> StripOptions | None:
        """Normalized strip settings; None means artifacts are byte-copied."""
        if self.strip_beams is False:
            return None
        if self.strip_beams is True:
            return StripOptions()
        return self.strip_beams


class Stage(Enum):
    """Built-in pipeline stages."""

    ASSEMBLE = "assemble"
    TAR = "tar"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class CustomStep:
    """A user function receiving the release and returning the next one."""

    fn: Callable[[Release], Release]
    name: str = "custom"

    def __call__(self, release: Release) -> Release:
        return self.fn(release)


type Step = Stage | CustomStep


def validate_steps(steps: tuple[Step, ...]) -> tuple[Step, ...]:
    """Check the step list once, at construction.

    Raises:
        ConfigurationError: Unless there is exactly one ASSEMBLE, at most one
            TAR, and TAR does not come before ASSEMBLE.
    """
    for step in steps:
        if not isinstance(step, Stage | CustomStep):
            raise ConfigurationError(
                "The steps option must be a list of custom step functions "
                f"or the stages assemble and tar, got: {step!r}"
            )

    if steps.count(Stage.ASSEMBLE) != 1:
        raise ConfigurationError(
            f"The steps option must contain the stage assemble once, got: {_describe(steps)}"
        )

    if steps.count(Stage.TAR) > 1:
        raise ConfigurationError("The steps option can only contain the stage tar once")

    if Stage.TAR in steps and steps.index(Stage.TAR) < steps.index(Stage.ASSEMBLE):
        raise ConfigurationError("The tar step must come after assemble")

    return steps


def _describe(steps: tuple[Step, ...]) -> str:
    return "[" + ", ".join(str(s) if isinstance(s, Stage) else s.name for s in steps) + "]"


@dataclass(frozen=True, slots=True)
class Release:
    """The release descriptor.

    Pipeline steps never mutate a release; they return a new value built with
    ``dataclasses.replace``.
    """

    name: str
    version: str
    path: Path
    version_path: Path
    applications: Mapping[str, ComponentManifest]
    boot_scripts: Mapping[str, tuple[BootEntry, ...]]
    erts_source: Path | None
    erts_version: str
    config_providers: tuple[tuple[str, object], ...] = ()
    options: ReleaseOptions = field(default_factory=ReleaseOptions)
    overlays: tuple[str, ...] = ()
    steps: tuple[Step, ...] = (Stage.ASSEMBLE,)
