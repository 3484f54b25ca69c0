import posixpath
import uuid
from collections.abc import Callable
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger as _default_logger

from go_grader.config import Settings, settings
from go_grader.domain.services.ports import Toolchain
from go_grader.models import (
    ArtifactKind,
    BuildArtifact,
    CoverageRequirement,
    Problem,
    TestSuite,
)
from go_grader.registry import BinaryRegistry

if TYPE_CHECKING:  # pragma: no cover
    from loguru import Logger
else:  # pragma: no cover
    Logger = Any


@dataclass(frozen=True)
class BuildOutput:
    """Everything the run needs from the build stage."""

    registry: BinaryRegistry
    suites: list[TestSuite] = field(default_factory=list)
    artifacts: list[BuildArtifact] = field(default_factory=list)


def random_name() -> str:
    return uuid.uuid4().hex


def coverage_packages(
    module_path: str, problem_id: str, requirement: CoverageRequirement
) -> list[str]:
    """Expand problem-relative package names into import paths."""
    if not requirement.enabled:
        return []
    return [
        posixpath.normpath(posixpath.join(module_path, problem_id, pkg))
        for pkg in requirement.packages
    ]


class ArtifactBuilder:
    """
    Compiles helper binaries and, for each test package, a plain and a
    race-instrumented test binary into the run's binary cache.

    Any compile failure aborts the whole build; nothing is retried.
    """

    def __init__(
        self,
        toolchain: Toolchain,
        *,
        binary_cache: Path,
        config: Settings = settings,
        logger: Logger | None = None,
    ) -> None:
        self._toolchain = toolchain
        self._binary_cache = binary_cache
        self._workers = config.build_workers
        self._logger = logger or _default_logger

    def _artifact(self, package: str, kind: ArtifactKind) -> BuildArtifact:
        return BuildArtifact(
            name=package, kind=kind, path=self._binary_cache / random_name()
        )

    def build(self, workspace: Path, problem: Problem) -> BuildOutput:
        """
        Build every artifact of `problem` from the assembled `workspace`.

        Raises
        ------
        BuildError
            For the first package that fails to compile.
        """
        module = self._toolchain.module_path(workspace)
        cover_pkgs = coverage_packages(module, problem.problem_id, problem.coverage)
        if problem.coverage.enabled:
            self._logger.info(f"Required coverage: {problem.coverage.percent:.2f}%")

        packages = self._toolchain.list_packages(
            workspace, f"./{problem.problem_id}/..."
        )

        jobs: list[tuple[BuildArtifact, Callable[[], None]]] = []
        helpers: dict[str, Path] = {}
        suites: list[TestSuite] = []

        for pkg in packages:
            if not pkg.is_command:
                continue
            artifact = self._artifact(pkg.import_path, ArtifactKind.HELPER)
            helpers[pkg.import_path] = artifact.path
            jobs.append(
                (
                    artifact,
                    lambda a=artifact: self._toolchain.build_binary(
                        a.name, a.path, cwd=workspace
                    ),
                )
            )

        for pkg in packages:
            if not pkg.has_tests:
                continue
            test = self._artifact(pkg.import_path, ArtifactKind.TEST)
            race = self._artifact(pkg.import_path, ArtifactKind.RACE_TEST)
            suites.append(
                TestSuite(
                    package=pkg.import_path, directory=pkg.dir, test=test, race=race
                )
            )
            jobs.append(
                (
                    test,
                    lambda a=test: self._toolchain.build_test(
                        a.name, a.path, cwd=workspace, cover_packages=cover_pkgs
                    ),
                )
            )
            jobs.append(
                (
                    race,
                    lambda a=race: self._toolchain.build_test(
                        a.name, a.path, cwd=workspace, race=True
                    ),
                )
            )

        if not suites:
            self._logger.warning(
                f"⚠️ No test packages found under {problem.problem_id}"
            )

        self._run_jobs([job for _, job in jobs])
        self._logger.info(
            f"✅ Built {len(helpers)} helper binaries and {len(suites)} test suites."
        )
        return BuildOutput(
            registry=BinaryRegistry(helpers),
            suites=suites,
            artifacts=[artifact for artifact, _ in jobs],
        )

    def _run_jobs(self, jobs: list[Callable[[], None]]) -> None:
        if self._workers <= 1:
            for job in jobs:
                job()
            return

        with ThreadPoolExecutor(max_workers=self._workers) as executor:
            futures: list[Future[None]] = [executor.submit(job) for job in jobs]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in pending:
                future.cancel()
            # Surface the earliest submitted failure for a stable message.
            errors = [
                error
                for future in futures
                if future in done and (error := future.exception()) is not None
            ]
            if errors:
                raise errors[0]
