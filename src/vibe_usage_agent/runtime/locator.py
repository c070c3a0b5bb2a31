from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from vibe_usage_agent.core.models import DEFAULT_PACKAGE


class RuntimeKind(str, Enum):
    """Supported JavaScript runtimes, in preference order."""

    FAST = "bun"
    FALLBACK = "npx"


RUNTIME_PREFERENCE: List[RuntimeKind] = [RuntimeKind.FAST, RuntimeKind.FALLBACK]


class RuntimeDescriptor(BaseModel):
    """A resolved runtime executable and how to run a published package with it."""

    model_config = ConfigDict(frozen=True)

    executable_path: str
    kind: RuntimeKind
    package: str = DEFAULT_PACKAGE

    @property
    def directory(self) -> str:
        return os.path.dirname(self.executable_path)

    def invocation_args(self, command: Sequence[str]) -> List[str]:
        """Return argv (without the executable) that runs `package command...`."""
        if self.kind == RuntimeKind.FAST:
            prefix = ["x"]
        else:
            # npx would otherwise prompt before installing the package.
            prefix = ["--yes"]
        return [*prefix, self.package, *command]


def well_known_runtime_dirs(home_dir: Path) -> List[str]:
    """Install locations of common per-user JS toolchains that a GUI launch may not have on PATH."""
    return [
        str(home_dir / ".bun" / "bin"),
        str(home_dir / ".nvm" / "versions" / "node" / "current" / "bin"),
        str(home_dir / ".volta" / "bin"),
        str(home_dir / ".fnm" / "current" / "bin"),
        "/usr/local/bin",
        "/opt/homebrew/bin",
        "/opt/local/bin",
    ]


def is_executable_file(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


class RuntimeLocator:
    """Finds bun (preferred) or npx on PATH and in well-known install directories.

    Only cheap filesystem checks are made, so ``detect()`` is safe to call on
    every sync tick. The search list is rebuilt on every call because the host
    environment may change between ticks.
    """

    def __init__(
        self,
        path_env: Optional[str] = None,
        home_dir: Optional[Path] = None,
        extra_dirs: Optional[Sequence[str]] = None,
        environ: Optional[Mapping[str, str]] = None,
        package: str = DEFAULT_PACKAGE,
    ) -> None:
        self.path_env = path_env
        self.home_dir = home_dir
        self.extra_dirs = list(extra_dirs) if extra_dirs is not None else None
        self.environ = environ
        self.package = package

    def search_paths(self) -> List[str]:
        path_env = self.path_env
        if path_env is None:
            environ = self.environ if self.environ is not None else os.environ
            path_env = environ.get("PATH", "")

        paths = [entry for entry in path_env.split(os.pathsep) if entry]

        if self.extra_dirs is not None:
            paths.extend(self.extra_dirs)
        else:
            paths.extend(well_known_runtime_dirs(self.home_dir or Path.home()))

        return paths

    def find_executable(self, name: str, search_paths: Optional[Sequence[str]] = None) -> Optional[str]:
        for directory in search_paths if search_paths is not None else self.search_paths():
            candidate = os.path.join(directory, name)
            if is_executable_file(candidate):
                return candidate
        return None

    def detect(self) -> Optional[RuntimeDescriptor]:
        """Return the preferred runtime, or None when no supported runtime is installed."""
        search_paths = self.search_paths()
        for kind in RUNTIME_PREFERENCE:
            executable_path = self.find_executable(kind.value, search_paths)
            if executable_path is not None:
                return RuntimeDescriptor(executable_path=executable_path, kind=kind, package=self.package)
        return None

