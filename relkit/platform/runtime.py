"""The platform runtime a release is built against.

Only the CLI looks at the process environment. Everything below it receives a
``PlatformRuntime`` value explicitly.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from relkit.core.config import ConfigError, PlatformConfig
from relkit.core.result import Err, Ok, Result

__all__ = ["ENV_ERTS_VERSION", "ENV_PLATFORM_ROOT", "PlatformRuntime"]

ENV_PLATFORM_ROOT = "RELKIT_PLATFORM_ROOT"
ENV_ERTS_VERSION = "RELKIT_ERTS_VERSION"


@dataclass(frozen=True, slots=True)
class PlatformRuntime:
    """Root of an installed runtime (``lib/`` and ``erts-<vsn>/``) and its version."""

    root: Path
    erts_version: str

    @property
    def lib_dir(self) -> Path:
        return self.root / "lib"

    @property
    def erts_dir(self) -> Path:
        return self.root / f"erts-{self.erts_version}"

    @classmethod
    def from_settings(
        cls, settings: PlatformConfig, environ: Mapping[str, str]
    ) -> Result[PlatformRuntime, ConfigError]:
        """Combine project settings with environment fallbacks.

        The project file wins over the environment. When no version is given,
        the newest ``erts-*`` directory under the root is used.
        """
        root = settings.root
        if root is None and environ.get(ENV_PLATFORM_ROOT):
            root = Path(environ[ENV_PLATFORM_ROOT]).expanduser()
        if root is None:
            return Err(
                ConfigError(
                    f"No platform root configured (set [platform].root or {ENV_PLATFORM_ROOT})"
                )
            )

        version = settings.erts_version or environ.get(ENV_ERTS_VERSION) or None
        if version is None:
            found = sorted(p.name for p in root.glob("erts-*") if p.is_dir())
            if not found:
                return Err(ConfigError(f"Could not find an erts-* directory in {root}"))
            version = found[-1].split("-", 1)[1]

        return Ok(cls(root=root, erts_version=version))
