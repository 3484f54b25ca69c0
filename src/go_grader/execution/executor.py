import os
from collections.abc import Mapping
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from docker.errors import DockerException
from loguru import logger as _default_logger

from go_grader.config import Settings, settings
from go_grader.docker.manager import DockerManager
from go_grader.domain.services.ports import ExecutionStrategy
from go_grader.errors import InfrastructureError, RuntimeTestFailure
from go_grader.models import CommandResult, TestSuite
from go_grader.registry import BinaryRegistry
from go_grader.workspace import RunPaths

from .strategies import DirectExecution, DockerExecution, RestrictedExecution

if TYPE_CHECKING:  # pragma: no cover
    from loguru import Logger
else:  # pragma: no cover
    Logger = Any


class RunKind(StrEnum):
    CORRECTNESS = "correctness"
    RACE = "race"
    BENCHMARK = "benchmark"


def build_child_environment(
    registry: BinaryRegistry,
    go_cache: Path,
    *,
    config: Settings = settings,
    parent_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """
    The complete environment of a submission-controlled process.

    Nothing else from the grader's environment is inherited.
    """
    parent_env = os.environ if parent_env is None else parent_env
    return {
        "PATH": parent_env.get("PATH", os.defpath),
        "HOME": parent_env.get("HOME", "/"),
        "GOCACHE": str(go_cache),
        config.binaries_env: registry.to_env_value(),
    }


def select_execution_strategy(
    paths: RunPaths,
    *,
    config: Settings = settings,
    docker_manager: DockerManager | None = None,
    euid: int | None = None,
) -> ExecutionStrategy:
    """Pick the isolation backend once for a whole run."""
    backend = config.sandbox_backend
    if backend == "auto":
        euid = os.geteuid() if euid is None else euid
        backend = "restricted" if euid == 0 else "direct"

    if backend == "direct":
        return DirectExecution()
    if backend == "restricted":
        return RestrictedExecution(config=config)

    if docker_manager is None:
        try:
            docker_manager = DockerManager(quiet_init=False)
        except DockerException as e:
            raise InfrastructureError(str(e)) from e
    return DockerExecution(
        docker_manager,
        writable_mounts=[paths.go_cache, paths.profiles],
        readonly_mounts=[paths.workspace, paths.binary_cache],
        config=config,
    )


class SandboxedExecutor:
    """
    Runs the test binaries of a suite with a minimal, explicit environment.

    A non-zero exit or a failure to launch is a verdict on the submission and
    raises `RuntimeTestFailure`.
    """

    def __init__(
        self,
        strategy: ExecutionStrategy,
        *,
        registry: BinaryRegistry,
        go_cache: Path,
        config: Settings = settings,
        logger: Logger | None = None,
    ) -> None:
        self._strategy = strategy
        self._config = config
        self._env = build_child_environment(registry, go_cache, config=config)
        self._logger = logger or _default_logger

    @property
    def environment(self) -> dict[str, str]:
        return dict(self._env)

    def run_correctness(
        self, suite: TestSuite, *, coverage_profile: Path | None = None
    ) -> CommandResult:
        argv = [str(suite.test.path)]
        if coverage_profile is not None:
            argv += ["-test.coverprofile", str(coverage_profile)]
        return self._execute(suite, RunKind.CORRECTNESS, argv)

    def run_race(self, suite: TestSuite) -> CommandResult:
        return self._execute(
            suite, RunKind.RACE, [str(suite.race.path), "-test.bench=."]
        )

    def run_benchmarks(self, suite: TestSuite) -> CommandResult:
        """Benchmarks only; stdout is returned verbatim for parsing."""
        argv = [
            str(suite.test.path),
            "-test.bench=.",
            "-test.run=^$",
            f"-test.count={self._config.benchmark_count}",
        ]
        return self._execute(suite, RunKind.BENCHMARK, argv, echo_stdout=False)

    def _execute(
        self,
        suite: TestSuite,
        kind: RunKind,
        argv: list[str],
        *,
        echo_stdout: bool = True,
    ) -> CommandResult:
        self._logger.info(f"Running {kind} tests of {suite.package}")
        self._logger.debug(f"> {argv} ({self._strategy.name}, cwd={suite.directory})")
        try:
            result = self._strategy.run(argv, cwd=suite.directory, env=self._env)
        except OSError as e:
            raise RuntimeTestFailure(suite.package, kind, f"cannot start: {e}") from e

        for line in result.stdout.splitlines():
            if echo_stdout:
                self._logger.info(f"  | {line}")
            else:
                self._logger.debug(f"  | {line}")
        for line in result.stderr.splitlines():
            self._logger.info(f"  | {line}")

        if not result.success:
            raise RuntimeTestFailure(
                suite.package, kind, f"exit status {result.exit_code}"
            )
        return result
