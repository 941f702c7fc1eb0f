"""Tests for relkit.release.sys_config module."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from relkit.core.result import Err, Ok
from relkit.core.terms import Atom
from relkit.release.model import ComponentManifest, Mode, Release, ReleaseOptions
from relkit.release.sys_config import (
    ProviderInitOptions,
    SysConfig,
    build_runtime_config,
    deep_merge,
    init_config_providers,
    make_sys_config,
    provider_module,
    read_sys_config,
    start_distribution,
    validate_compile_env,
)

CONFIG_PATH = (Atom("system"), "RELEASE_ROOT", "/releases/0.1.0/runtime.exs")
PROVIDERS: tuple[tuple[str, object], ...] = (
    ("Config.Reader", CONFIG_PATH),
    ("my_provider", [(Atom("url"), "https://config")]),
)


def _release(
    tmp_path: Path, *, providers: tuple[tuple[str, object], ...] = (), **options: bool
) -> Release:
    demo = ComponentManifest(
        name="demo",
        version="0.1.0",
        path=tmp_path / "src",
        mode=Mode.PERMANENT,
        compile_env=((Atom("demo"), [Atom("level")], (Atom("ok"), Atom("info"))),),
    )
    return Release(
        name="demo",
        version="0.1.0",
        path=tmp_path,
        version_path=tmp_path / "releases" / "0.1.0",
        applications={"demo": demo},
        boot_scripts={},
        erts_source=None,
        erts_version="14.2",
        config_providers=providers,
        options=ReleaseOptions(**options),
    )


class TestStartDistribution:
    def test_reboot_defers_distribution(self) -> None:
        phases = start_distribution(ReleaseOptions(reboot_system_after_config=True))

        assert phases.reboot is True
        assert phases.first_boot == {"kernel": {"start_distribution": False}}
        assert phases.deferred == {"kernel": {"start_distribution": True}}

    def test_distribution_during_config(self) -> None:
        phases = start_distribution(
            ReleaseOptions(reboot_system_after_config=True, start_distribution_during_config=True)
        )

        assert phases.reboot is True
        assert phases.first_boot == {}
        assert phases.deferred == {}

    def test_no_reboot(self) -> None:
        phases = start_distribution(ReleaseOptions())
        assert (phases.reboot, phases.first_boot, phases.deferred) == (False, {}, {})


class TestBuildRuntimeConfig:
    def test_two_providers_with_reboot(self, tmp_path: Path) -> None:
        release = _release(tmp_path, providers=PROVIDERS, reboot_system_after_config=True)
        static: SysConfig = {"demo": {"level": Atom("info")}}

        config, reboot = build_runtime_config(release, static, CONFIG_PATH)

        assert reboot is True
        assert config["kernel"] == {"start_distribution": False}
        assert config["demo"] == {"level": Atom("info")}
        init = config["elixir"]["config_provider_init"]
        assert isinstance(init, dict)
        assert init[Atom("extra_config")] == [
            (Atom("kernel"), [(Atom("start_distribution"), True)])
        ]
        assert init[Atom("reboot_system_after_config")] is True
        assert init[Atom("config_path")] == CONFIG_PATH
        assert init[Atom("providers")] == [
            (Atom("Elixir.Config.Reader"), CONFIG_PATH),
            (Atom("my_provider"), [(Atom("url"), "https://config")]),
        ]

    def test_without_providers_passes_through(self, tmp_path: Path) -> None:
        static: SysConfig = {"demo": {"level": Atom("info")}}

        config, reboot = build_runtime_config(_release(tmp_path), static, CONFIG_PATH)

        assert config == static
        assert config is not static
        assert reboot is False

    def test_custom_initializer(self, tmp_path: Path) -> None:
        release = _release(tmp_path, providers=PROVIDERS, validate_compile_env=False)
        seen: list[ProviderInitOptions] = []

        def init(
            providers: object, config_path: object, opts: ProviderInitOptions
        ) -> SysConfig:
            seen.append(opts)
            return {"demo": {"from_provider": True}}

        config, reboot = build_runtime_config(release, {"demo": {"a": 1}}, CONFIG_PATH, init=init)

        assert config == {"demo": {"a": 1, "from_provider": True}}
        assert reboot is False
        assert seen[0].validate_compile_env is False
        assert seen[0].extra_config == {}


class TestValidateCompileEnv:
    def test_collects_captured_entries(self, tmp_path: Path) -> None:
        release = _release(tmp_path)
        assert validate_compile_env(release) == [
            (Atom("demo"), [Atom("level")], (Atom("ok"), Atom("info")))
        ]

    def test_disabled(self, tmp_path: Path) -> None:
        assert validate_compile_env(_release(tmp_path, validate_compile_env=False)) is False

    def test_nothing_captured(self, tmp_path: Path) -> None:
        release = _release(tmp_path)
        bare = replace(release.applications["demo"], compile_env=())
        assert validate_compile_env(replace(release, applications={"demo": bare})) is False


class TestDeepMerge:
    def test_nested_keyword_lists(self) -> None:
        left: SysConfig = {
            "demo": {
                "endpoint": [(Atom("port"), 4000), (Atom("http"), [(Atom("ip"), "0.0.0.0")])],
                "level": Atom("debug"),
            }
        }
        right: SysConfig = {
            "demo": {
                "endpoint": [(Atom("http"), [(Atom("compress"), True)])],
                "level": Atom("info"),
            },
            "logger": {"console": True},
        }

        merged = deep_merge(left, right)

        assert merged["demo"]["endpoint"] == [
            (Atom("port"), 4000),
            (Atom("http"), [(Atom("ip"), "0.0.0.0"), (Atom("compress"), True)]),
        ]
        assert merged["demo"]["level"] == Atom("info")
        assert merged["logger"] == {"console": True}

    def test_non_keyword_values_are_replaced(self) -> None:
        merged = deep_merge({"demo": {"hosts": ["a", "b"]}}, {"demo": {"hosts": ["c"]}})
        assert merged["demo"]["hosts"] == ["c"]

    def test_inputs_untouched(self) -> None:
        left: SysConfig = {"demo": {"a": 1}}
        deep_merge(left, {"demo": {"b": 2}})
        assert left == {"demo": {"a": 1}}


class TestMakeSysConfig:
    def test_round_trip(self, tmp_path: Path) -> None:
        static: SysConfig = {
            "demo": {"level": Atom("info"), "name": "demo", "ports": [4000, 4001]},
            "logger": {"handlers": {Atom("default"): (Atom("ok"), 1.5)}},
        }

        result = make_sys_config(_release(tmp_path), static, CONFIG_PATH)

        path = tmp_path / "releases" / "0.1.0" / "sys.config"
        assert result == Ok(path)
        assert path.read_text(encoding="utf-8").startswith(
            "%% coding: utf-8\n%% RUNTIME_CONFIG=false\n"
        )
        assert read_sys_config(path) == static

    def test_runtime_config_header(self, tmp_path: Path) -> None:
        release = _release(tmp_path, providers=PROVIDERS, reboot_system_after_config=True)

        result = make_sys_config(release, {}, CONFIG_PATH)

        assert isinstance(result, Ok)
        assert "%% RUNTIME_CONFIG=true\n" in result.value.read_text(encoding="utf-8")
        config = read_sys_config(result.value)
        assert config["kernel"] == {"start_distribution": False}
        init = config["elixir"]["config_provider_init"]
        assert isinstance(init, dict)
        assert Atom("providers") in init

    def test_every_invalid_entry_is_reported(self, tmp_path: Path) -> None:
        def callback() -> None:
            pass

        marker = object()
        static: SysConfig = {
            "demo": {"callback": callback, "ok": 1},
            "other": {"ref": [marker]},
        }

        result = make_sys_config(_release(tmp_path), static, CONFIG_PATH)

        assert isinstance(result, Err)
        assert result.error.invalid == (("demo", "callback", callback), ("other", "ref", [marker]))
        assert "Application: demo\nKey: callback" in result.error.message
        assert "Application: other\nKey: ref" in result.error.message


def test_provider_module() -> None:
    assert provider_module("Config.Reader") == Atom("Elixir.Config.Reader")
    assert provider_module("Elixir.Config.Reader") == Atom("Elixir.Config.Reader")
    assert provider_module("my_provider") == Atom("my_provider")


def test_init_config_providers_records_options() -> None:
    opts = ProviderInitOptions(
        extra_config={},
        prune_runtime_sys_config_after_boot=True,
        reboot_system_after_config=False,
        validate_compile_env=False,
    )

    fragment = init_config_providers(PROVIDERS[:1], CONFIG_PATH, opts)

    init = fragment["elixir"]["config_provider_init"]
    assert init == {
        Atom("providers"): [(Atom("Elixir.Config.Reader"), CONFIG_PATH)],
        Atom("config_path"): CONFIG_PATH,
        Atom("extra_config"): [],
        Atom("prune_runtime_sys_config_after_boot"): True,
        Atom("reboot_system_after_config"): False,
        Atom("validate_compile_env"): False,
    }
