"""Boot sequences and boot scripts.

``build_start_boot`` and ``build_start_clean_boot`` compute the ordered
``(component, mode)`` plans stored on the release. ``make_boot_script``
validates one plan, compiles it and writes both the declarative ``.rel`` file
and the rewritten ``.script`` instruction file.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from pathlib import Path

from relkit.core.result import Err, Ok, Result
from relkit.core.terms import write_consultable
from relkit.release.compiler import (
    Apply,
    CompileOptions,
    Instruction,
    ReleaseSpec,
    Script,
    ScriptCompiler,
    SetPaths,
    SpecEntry,
    compile_script,
)
from relkit.release.errors import (
    BootValidationError,
    DanglingDependencyError,
    UnknownModeError,
    UnsafeModeCombinationError,
)
from relkit.release.model import BootEntry, ComponentManifest, Mode, Release
from relkit.release.modes import boot_mode

__all__ = [
    "CONFIG_PROVIDER_MODULE",
    "build_release_spec",
    "build_start_boot",
    "build_start_clean_boot",
    "make_boot_script",
    "post_stdlib_applies",
    "prepend_paths_to_script",
    "validate_mode",
]

CONFIG_PROVIDER_MODULE = "Elixir.Config.Provider"
BOOT_MODES = (Mode.PERMANENT, Mode.TEMPORARY, Mode.TRANSIENT, Mode.LOAD, Mode.NONE)


def build_start_boot(
    applications: Mapping[str, ComponentManifest], roots: Sequence[BootEntry]
) -> tuple[BootEntry, ...]:
    """Roots first, in the given order, then every pulled-in component by name."""
    specified = {name for name, _ in roots}
    pulled = sorted(
        (name, boot_mode(manifest.mode))
        for name, manifest in applications.items()
        if name not in specified
    )
    return (*roots, *pulled)


def build_start_clean_boot(boot: Sequence[BootEntry]) -> tuple[BootEntry, ...]:
    """Everything only loaded, except ``none`` entries and the two foundations."""
    rest = [
        (name, Mode.NONE if mode == Mode.NONE else Mode.LOAD)
        for name, mode in boot
        if name not in ("kernel", "stdlib")
    ]
    return (("kernel", Mode.PERMANENT), ("stdlib", Mode.PERMANENT), *rest)


def validate_mode(
    name: str,
    mode: Mode,
    modes: Mapping[str, Mode],
    manifest: ComponentManifest,
) -> None:
    """Check one boot entry against the modes of its dependencies.

    Raises:
        UnknownModeError: ``mode`` cannot appear in a boot sequence.
        DanglingDependencyError: A required dependency is not booted at all.
        UnsafeModeCombinationError: A started component needs one that is not.
    """
    if mode not in BOOT_MODES:
        raise UnknownModeError(name, str(mode), [m.value for m in BOOT_MODES])

    optional = set(manifest.optional_applications)
    for child in manifest.applications:
        child_mode = modes.get(child)
        if child_mode is None:
            if child not in optional:
                raise DanglingDependencyError(name, child)
            continue
        if mode.is_safe and child_mode.is_unsafe:
            raise UnsafeModeCombinationError(name, str(mode), child, str(child_mode))


def build_release_spec(release: Release, modes: Sequence[BootEntry]) -> ReleaseSpec:
    """Validate a boot plan and turn it into the declarative release spec.

    Components listed in the ``skip_mode_validation_for`` option are not
    validated.

    Raises:
        BootValidationError: The plan names an unknown component or fails
            ``validate_mode``.
    """
    skip = release.options.skip_mode_validation_for
    by_name = dict(modes)
    entries: list[SpecEntry] = []

    for name, mode in modes:
        manifest = release.applications.get(name)
        if manifest is None:
            raise BootValidationError(name, f"Unknown application {name}")
        if name not in skip:
            validate_mode(name, mode, by_name, manifest)
        entries.append(SpecEntry(name, manifest.version, mode, manifest.included_applications))

    return ReleaseSpec(release.name, release.version, release.erts_version, tuple(entries))


def post_stdlib_applies(
    instructions: Sequence[Instruction], release: Release
) -> tuple[Instruction, ...]:
    """Run the configuration providers right after stdlib starts.

    Instructions are returned unchanged when no provider is registered.

    Raises:
        ValueError: Providers are registered but stdlib is never started.
    """
    if not release.config_providers:
        return tuple(instructions)

    for index, instruction in enumerate(instructions):
        if isinstance(instruction, Apply) and instruction.starts("stdlib"):
            boot = Apply(CONFIG_PROVIDER_MODULE, "boot")
            return (*instructions[: index + 1], boot, *instructions[index + 1 :])

    raise ValueError("stdlib is not started by the boot script, cannot run config providers")


def prepend_paths_to_script(
    instructions: Sequence[Instruction],
    prepend_paths: Sequence[str],
    *,
    marker: str = "$RELEASE_LIB",
) -> tuple[Instruction, ...]:
    """Put ``prepend_paths`` ahead of every search path list that uses ``marker``."""
    if not prepend_paths:
        return tuple(instructions)

    out: list[Instruction] = []
    for instruction in instructions:
        if isinstance(instruction, SetPaths) and any(
            p.startswith(marker) for p in instruction.paths
        ):
            instruction = SetPaths((*prepend_paths, *instruction.paths))
        out.append(instruction)
    return tuple(out)


def make_boot_script(
    release: Release,
    path: Path,
    modes: Sequence[BootEntry],
    prepend_paths: Sequence[str] = (),
    *,
    compiler: ScriptCompiler = compile_script,
) -> Result[Path, str]:
    """Write ``<path>.rel`` and ``<path>.script`` for one boot plan.

    ``path`` has no extension, e.g. ``releases/0.1.0/start``. Errors are
    returned rather than raised so several boot scripts can be attempted and
    their failures reported together.

    Returns:
        Ok with the ``.rel`` path, or Err with a descriptive message.
    """
    try:
        spec = build_release_spec(release, modes)
    except BootValidationError as e:
        return Err(e.message)

    rel_path = path.with_name(path.name + ".rel")
    write_consultable(rel_path, spec.to_term())

    compiled = compiler(spec, CompileOptions(manifests=release.applications))
    if isinstance(compiled, Err):
        return Err(compiled.error.strip())

    script: Script = compiled.value
    try:
        instructions = post_stdlib_applies(script.instructions, release)
    except ValueError as e:
        return Err(str(e))
    instructions = prepend_paths_to_script(instructions, prepend_paths)

    write_consultable(
        path.with_name(path.name + ".script"), replace(script, instructions=instructions).to_term()
    )
    return Ok(rel_path)
