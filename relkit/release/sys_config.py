"""Runtime configuration (``sys.config``).

Static configuration is merged with the fragment produced by initializing the
release's configuration providers. When the system must reboot after the
providers run, distribution is disabled for the first boot and re-enabled by
the deferred fragment the providers apply afterwards.

The written file must only hold literal terms. It is validated by reading it
back; on failure every offending ``(component, key, value)`` is reported.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from relkit.core.result import Err, Ok, Result
from relkit.core.terms import Atom, TermSyntaxError, consult_file, is_literal, write_consultable
from relkit.release.errors import ConfigValidationError
from relkit.release.model import Release, ReleaseOptions

__all__ = [
    "DistributionPhases",
    "ProviderInitOptions",
    "SysConfig",
    "build_runtime_config",
    "deep_merge",
    "init_config_providers",
    "invalid_entries",
    "make_sys_config",
    "read_sys_config",
    "start_distribution",
    "validate_compile_env",
]

type SysConfig = dict[str, dict[str, object]]


@dataclass(frozen=True, slots=True)
class DistributionPhases:
    reboot: bool
    # Merged into sys.config for the first boot
    first_boot: SysConfig
    # Applied by the providers once configuration is loaded
    deferred: SysConfig


@dataclass(frozen=True, slots=True)
class ProviderInitOptions:
    extra_config: SysConfig
    prune_runtime_sys_config_after_boot: bool
    reboot_system_after_config: bool
    validate_compile_env: list[object] | Literal[False]


type ProviderInitializer = Callable[
    [Sequence[tuple[str, object]], object, ProviderInitOptions], SysConfig
]


def start_distribution(options: ReleaseOptions) -> DistributionPhases:
    reboot = options.reboot_system_after_config
    if not reboot or options.start_distribution_during_config:
        return DistributionPhases(reboot, {}, {})
    return DistributionPhases(
        True,
        first_boot={"kernel": {"start_distribution": False}},
        deferred={"kernel": {"start_distribution": True}},
    )


def validate_compile_env(release: Release) -> list[object] | Literal[False]:
    """Compile-time configuration to re-check at boot, or False to skip."""
    if not release.options.validate_compile_env:
        return False
    captured = [
        triplet for manifest in release.applications.values() for triplet in manifest.compile_env
    ]
    return captured or False


def provider_module(reference: str) -> Atom:
    """``Config.Reader`` names the module atom ``Elixir.Config.Reader``."""
    if reference[:1].isupper() and not reference.startswith("Elixir."):
        return Atom(f"Elixir.{reference}")
    return Atom(reference)


def to_terms(config: Mapping[str, Mapping[str, object]]) -> list[object]:
    """The on-disk shape: ``[{app, [{key, value}, ...]}, ...]``."""
    return [
        (Atom(app), [(Atom(key), value) for key, value in entries.items()])
        for app, entries in config.items()
    ]


def init_config_providers(
    providers: Sequence[tuple[str, object]],
    config_path: object,
    opts: ProviderInitOptions,
) -> SysConfig:
    """Default provider initialization.

    Records everything the providers need at boot under
    ``elixir.config_provider_init``.
    """
    return {
        "elixir": {
            "config_provider_init": {
                Atom("providers"): [(provider_module(ref), init) for ref, init in providers],
                Atom("config_path"): config_path,
                Atom("extra_config"): to_terms(opts.extra_config),
                Atom("prune_runtime_sys_config_after_boot"): (
                    opts.prune_runtime_sys_config_after_boot
                ),
                Atom("reboot_system_after_config"): opts.reboot_system_after_config,
                Atom("validate_compile_env"): opts.validate_compile_env,
            }
        }
    }


def _is_keyword(value: object) -> bool:
    return isinstance(value, list) and all(
        isinstance(item, tuple) and len(item) == 2 and isinstance(item[0], Atom) for item in value
    )


def _merge_keyword(
    left: list[tuple[Atom, object]], right: list[tuple[Atom, object]]
) -> list[object]:
    right_keys = {key for key, _ in right}
    previous = dict(left)
    out: list[object] = [(k, v) for k, v in left if k not in right_keys]
    for key, value in right:
        old = previous.get(key)
        if key in previous and _is_keyword(old) and _is_keyword(value):
            value = _merge_keyword(old, value)  # type: ignore[arg-type]
        out.append((key, value))
    return out


def deep_merge(
    left: Mapping[str, Mapping[str, object]], right: Mapping[str, Mapping[str, object]]
) -> SysConfig:
    """Merge two configurations; right wins, nested keyword lists are merged."""
    merged: SysConfig = {app: dict(entries) for app, entries in left.items()}
    for app, entries in right.items():
        target = merged.setdefault(app, {})
        for key, value in entries.items():
            old = target.get(key)
            if key in target and _is_keyword(old) and _is_keyword(value):
                value = _merge_keyword(old, value)  # type: ignore[arg-type]
            target[key] = value
    return merged


def build_runtime_config(
    release: Release,
    sys_config: Mapping[str, Mapping[str, object]],
    config_path: object,
    *,
    init: ProviderInitializer = init_config_providers,
) -> tuple[SysConfig, bool]:
    """Merge static configuration with the providers' boot fragment.

    Returns:
        The merged configuration and whether runtime configuration (a reboot
        after the providers run) is active. Without providers the static
        configuration passes through unchanged.
    """
    if not release.config_providers:
        return {app: dict(entries) for app, entries in sys_config.items()}, False

    phases = start_distribution(release.options)
    opts = ProviderInitOptions(
        extra_config=phases.deferred,
        prune_runtime_sys_config_after_boot=release.options.prune_runtime_sys_config_after_boot,
        reboot_system_after_config=phases.reboot,
        validate_compile_env=validate_compile_env(release),
    )
    provided = init(release.config_providers, config_path, opts)
    return deep_merge(sys_config, deep_merge(provided, phases.first_boot)), phases.reboot


def invalid_entries(config: Mapping[str, Mapping[str, object]]) -> list[tuple[str, str, object]]:
    return [
        (app, key, value)
        for app, entries in config.items()
        for key, value in entries.items()
        if not is_literal(value)
    ]


def make_sys_config(
    release: Release,
    sys_config: Mapping[str, Mapping[str, object]],
    config_path: object,
    *,
    init: ProviderInitializer = init_config_providers,
) -> Result[Path, ConfigValidationError]:
    """Write ``<version_path>/sys.config`` and check that it reads back."""
    config, runtime_config = build_runtime_config(release, sys_config, config_path, init=init)
    path = release.version_path / "sys.config"
    header = f"%% RUNTIME_CONFIG={'true' if runtime_config else 'false'}\n"
    write_consultable(path, to_terms(config), header=header)

    try:
        terms = consult_file(path)
    except TermSyntaxError as e:
        return Err(ConfigValidationError(invalid_entries(config), e.reason))
    if len(terms) != 1:
        return Err(ConfigValidationError((), f"expected a single term, got {len(terms)}"))
    return Ok(path)


def read_sys_config(path: Path) -> SysConfig:
    """Read a ``sys.config`` back into the mapping it was written from.

    Raises:
        TermSyntaxError: The file is not a literal configuration list.
    """
    terms = consult_file(path)
    match terms:
        case [list(apps)]:
            pass
        case _:
            raise TermSyntaxError("expected a single configuration list", 1)

    config: SysConfig = {}
    for entry in apps:
        match entry:
            case (Atom(app), list(pairs)):
                config[app] = {}
                for pair in pairs:
                    match pair:
                        case (Atom(key), value):
                            config[app][key] = value
                        case _:
                            raise TermSyntaxError(f"invalid entry for {app}: {pair!r}", 1)
            case _:
                raise TermSyntaxError(f"invalid application entry: {entry!r}", 1)
    return config
