"""
Per-run scratch directories and the overlay materializer that fills the
workspace.

Every directory created here belongs to exactly one grading run and is
removed when the run's `RunScratch` context exits, however it exits.
"""

import os
import shutil
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any

from loguru import logger as _default_logger
from slugify import slugify

from go_grader.config import Settings, settings
from go_grader.errors import InfrastructureError
from go_grader.models import OverlayLayer

if TYPE_CHECKING:  # pragma: no cover
    from loguru import Logger
else:  # pragma: no cover
    Logger = Any


@dataclass(frozen=True)
class RunPaths:
    workspace: Path
    binary_cache: Path
    go_cache: Path
    profiles: Path

    def all(self) -> tuple[Path, ...]:
        return (self.workspace, self.binary_cache, self.go_cache, self.profiles)


class RunScratch:
    """
    Owns the ephemeral directories of one grading run.

    Usage:
        with RunScratch("sum") as paths:
            ...  # paths.workspace, paths.binary_cache, ...
        # every directory is gone here
    """

    # (attribute, prefix suffix, mode). Caches written by unprivileged
    # children must be world-writable.
    _LAYOUT = (
        ("workspace", "", 0o755),
        ("binary_cache", "bincache-", 0o755),
        ("go_cache", "gocache-", 0o777),
        ("profiles", "coverprofiles-", 0o777),
    )

    def __init__(
        self,
        problem_id: str,
        *,
        config: Settings = settings,
        logger: Logger | None = None,
    ) -> None:
        self._prefix = f"{slugify(problem_id) or 'problem'}-"
        self._root = config.scratch_root
        self._logger = logger or _default_logger
        self._created: list[Path] = []

    def __enter__(self) -> RunPaths:
        try:
            created: dict[str, Path] = {}
            for attribute, suffix, mode in self._LAYOUT:
                path = Path(
                    tempfile.mkdtemp(prefix=self._prefix + suffix, dir=self._root)
                )
                self._created.append(path)
                os.chmod(path, mode)
                created[attribute] = path
        except OSError as e:
            self.cleanup()
            raise InfrastructureError(
                f"cannot create scratch directories under {self._root}"
            ) from e

        paths = RunPaths(**created)
        self._logger.info(f"Testing submission in {paths.workspace}")
        return paths

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        while self._created:
            path = self._created.pop()
            shutil.rmtree(path, ignore_errors=True)
            self._logger.debug(f"Removed {path}")

    def __repr__(self) -> str:
        return f"RunScratch(prefix={self._prefix!r}, root={self._root!r})"


class CopyOverlayMaterializer:
    """
    Materializes overlay layers by copying.

    Symlinks are skipped rather than followed or recreated: the workspace must
    never alias, or leak, anything outside the layer roots. A later layer
    replaces whatever an earlier one left at the same path, whatever its type.
    """

    def __init__(self, *, logger: Logger | None = None) -> None:
        self._logger = logger or _default_logger

    def materialize(self, layers: Sequence[OverlayLayer], destination: Path) -> None:
        for layer in layers:
            self._logger.info(f"Copying {layer.name} files")
            for rel_path in layer.paths:
                try:
                    self._copy(layer.base_dir, rel_path, destination)
                except OSError as e:
                    raise InfrastructureError(
                        f"copying {layer.base_dir / rel_path} failed: {e}"
                    ) from e

    def _make_dirs(self, directory: Path, destination: Path) -> None:
        """Create `directory`, replacing files an earlier layer left in its way."""
        current = destination
        for part in directory.relative_to(destination).parts:
            current = current / part
            if current.is_symlink() or (current.exists() and not current.is_dir()):
                self._logger.debug(f"Replacing file {current} with a directory")
                current.unlink()
            current.mkdir(exist_ok=True)

    def _copy(self, base_dir: Path, rel_path: Path, destination: Path) -> None:
        source = base_dir / rel_path
        target = destination / rel_path
        if source.is_symlink():
            self._logger.warning(f"⚠️ Skipping symlink {source}")
            return
        if source.is_dir():
            self._make_dirs(target, destination)
            for child in sorted(source.iterdir()):
                self._copy(base_dir, rel_path / child.name, destination)
            return
        if not source.is_file():
            return

        self._make_dirs(target.parent, destination)
        if target.is_dir() and not target.is_symlink():
            self._logger.debug(f"Replacing directory {target} with a file")
            shutil.rmtree(target)
        elif target.is_symlink():
            target.unlink()
        shutil.copyfile(source, target)
        shutil.copymode(source, target)
