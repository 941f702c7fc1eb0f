"""Boot instructions and the compiler that produces them.

A ``ReleaseSpec`` is the declarative boot sequence written to ``<name>.rel``.
A compiler turns it into a ``Script``: the ordered low-level instructions the
platform runs at boot, written to ``<name>.script``. The pipeline only depends
on the ``ScriptCompiler`` call signature; ``compile_script`` is the default.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass

from relkit.core.result import Err, Ok, Result
from relkit.core.terms import Atom, Charlist
from relkit.release.model import ComponentManifest, Mode

__all__ = [
    "Apply",
    "CompileOptions",
    "Directive",
    "Instruction",
    "ReleaseSpec",
    "Script",
    "ScriptCompiler",
    "SetPaths",
    "SpecEntry",
    "compile_script",
    "start_instruction",
]

MANDATORY = ("kernel", "stdlib")


@dataclass(frozen=True, slots=True)
class SpecEntry:
    name: str
    version: str
    mode: Mode
    included: tuple[str, ...] = ()

    def to_term(self) -> tuple[object, ...]:
        base = (Atom(self.name), Charlist(self.version), Atom(self.mode.value))
        if self.included:
            return (*base, [Atom(name) for name in self.included])
        return base


@dataclass(frozen=True, slots=True)
class ReleaseSpec:
    """Bundle name, version, runtime version and the ordered components."""

    name: str
    version: str
    erts_version: str
    entries: tuple[SpecEntry, ...]

    def to_term(self) -> tuple[object, ...]:
        return (
            Atom("release"),
            (Charlist(self.name), Charlist(self.version)),
            (Atom("erts"), Charlist(self.erts_version)),
            [entry.to_term() for entry in self.entries],
        )


# -----------------------------------------------------------------------------
# Instructions
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SetPaths:
    paths: tuple[str, ...]

    def to_term(self) -> object:
        return (Atom("path"), [Charlist(p) for p in self.paths])


@dataclass(frozen=True, slots=True)
class Apply:
    module: str
    function: str
    args: tuple[object, ...] = ()

    def to_term(self) -> object:
        return (Atom("apply"), (Atom(self.module), Atom(self.function), list(self.args)))

    def starts(self, name: str) -> bool:
        """True if this is the start directive of component ``name``."""
        return (
            self.module == "application"
            and self.function == "start_boot"
            and len(self.args) >= 1
            and self.args[0] == Atom(name)
        )


@dataclass(frozen=True, slots=True)
class Directive:
    """Any other instruction, kept as its raw term."""

    term: object

    def to_term(self) -> object:
        return self.term


type Instruction = SetPaths | Apply | Directive


def start_instruction(name: str, mode: Mode) -> Apply:
    return Apply("application", "start_boot", (Atom(name), Atom(mode.value)))


def instruction_from_term(term: object) -> Instruction:
    match term:
        case (Atom("path"), list(paths)) if all(isinstance(p, str) for p in paths):
            return SetPaths(tuple(str(p) for p in paths))
        case (Atom("apply"), (Atom(module), Atom(function), list(args))):
            return Apply(module, function, tuple(args))
        case _:
            return Directive(term)


@dataclass(frozen=True, slots=True)
class Script:
    name: str
    version: str
    instructions: tuple[Instruction, ...]

    def to_term(self) -> object:
        return (
            Atom("script"),
            (Charlist(self.name), Charlist(self.version)),
            [instruction.to_term() for instruction in self.instructions],
        )

    @classmethod
    def from_term(cls, term: object) -> Script:
        match term:
            case (Atom("script"), (str(name), str(version)), list(instructions)):
                return cls(name, version, tuple(instruction_from_term(i) for i in instructions))
        raise ValueError(f"not a boot script: {term!r}")


# -----------------------------------------------------------------------------
# Compiler
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CompileOptions:
    """What the compiler needs beyond the release spec."""

    manifests: Mapping[str, ComponentManifest]
    # Boot variable that prefixes non-platform component paths
    lib_variable: str = "RELEASE_LIB"


type ScriptCompiler = Callable[[ReleaseSpec, CompileOptions], Result[Script, str]]


def _ebin_path(entry: SpecEntry, manifest: ComponentManifest, options: CompileOptions) -> str:
    prefix = "$ROOT/lib" if manifest.otp_app else f"${options.lib_variable}"
    return f"{prefix}/{entry.name}-{entry.version}/ebin"


def compile_script(spec: ReleaseSpec, options: CompileOptions) -> Result[Script, str]:
    """Compile a release spec into boot instructions.

    Kernel and stdlib are loaded first, then every component is added to the
    search path, loaded (unless its mode is ``none``) and started in entry
    order (unless its mode is ``load`` or ``none``).
    """
    by_name: dict[str, SpecEntry] = {}
    for entry in spec.entries:
        if entry.name in by_name:
            return Err(f"Duplicate application {entry.name} in release {spec.name}")
        if entry.name not in options.manifests:
            return Err(f"Could not find application {entry.name}")
        by_name[entry.name] = entry

    for name in MANDATORY:
        if name not in by_name:
            return Err(f"Mandatory application {name} must be specified in the release")

    paths = {
        entry.name: _ebin_path(entry, options.manifests[entry.name], options)
        for entry in spec.entries
    }

    instructions: list[Instruction] = [
        Directive((Atom("progress"), Atom("preloaded"))),
        SetPaths(tuple(paths[name] for name in MANDATORY)),
        Directive(
            (
                Atom("primLoad"),
                [Atom(m) for name in MANDATORY for m in options.manifests[name].modules],
            )
        ),
        Directive((Atom("kernel_load_completed"),)),
        Directive((Atom("progress"), Atom("modules_loaded"))),
        SetPaths(tuple(paths[entry.name] for entry in spec.entries)),
        Directive((Atom("progress"), Atom("init_kernel_started"))),
    ]

    for entry in spec.entries:
        if entry.name != "kernel" and entry.mode != Mode.NONE:
            instructions.append(Apply("application", "load", (Atom(entry.name),)))
    instructions.append(Directive((Atom("progress"), Atom("applications_loaded"))))

    ordered = [by_name["kernel"], by_name["stdlib"]] + [
        e for e in spec.entries if e.name not in MANDATORY
    ]
    for entry in ordered:
        if entry.mode.is_safe:
            instructions.append(start_instruction(entry.name, entry.mode))

    instructions.append(Apply("c", "erlangrc"))
    instructions.append(Directive((Atom("progress"), Atom("started"))))
    return Ok(Script(spec.name, spec.version, tuple(instructions)))
