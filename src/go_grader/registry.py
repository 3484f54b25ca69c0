"""
Run-scoped lookup table of compiled helper binaries.

Test code inside the workspace finds companion executables through one
environment variable instead of invoking the toolchain itself. The variable
holds a JSON object mapping package import paths to binary paths.
"""

import json
import os
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType

from go_grader.config import settings


class BinaryRegistry(Mapping[str, Path]):
    """Read-only name -> path mapping; safe to share between readers."""

    def __init__(self, binaries: Mapping[str, Path | str] | None = None) -> None:
        self._binaries: Mapping[str, Path] = MappingProxyType(
            {name: Path(path) for name, path in (binaries or {}).items()}
        )

    def lookup(self, name: str) -> tuple[Path | None, bool]:
        path = self._binaries.get(name)
        return path, path is not None

    def __getitem__(self, name: str) -> Path:
        return self._binaries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._binaries)

    def __len__(self) -> int:
        return len(self._binaries)

    def __repr__(self) -> str:
        return f"BinaryRegistry({dict(self._binaries)!r})"

    def to_env_value(self) -> str:
        return json.dumps(
            {name: str(path) for name, path in self._binaries.items()},
            sort_keys=True,
        )

    @classmethod
    def from_env_value(cls, value: str) -> "BinaryRegistry":
        data = json.loads(value) if value.strip() else {}
        if not isinstance(data, dict):
            raise ValueError("binary registry must be a JSON object")
        return cls({str(k): str(v) for k, v in data.items()})

    @classmethod
    def from_environ(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        variable: str | None = None,
    ) -> "BinaryRegistry":
        """Load the registry a grading run injected into this process."""
        environ = os.environ if environ is None else environ
        value = environ.get(variable or settings.binaries_env, "")
        return cls.from_env_value(value)
