"""
The grading pipeline.

    AssembleWorkspace -> BuildArtifacts
      -> per package: RunCorrectness -> RunRaceAndBench -> RunBenchmarkOnly
                      -> CompareBaseline (when the package has benchmarks)
      -> AggregateCoverage (when required) -> RunLint -> Done

Every transition is fail-fast. A `SubmissionFailure` ends the run with a
"failed" result naming the stage; `InputError` and `InfrastructureError`
propagate to the caller untouched. Scratch directories are released on every
path out.
"""

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger as _default_logger

from go_grader.benchmarks import (
    BenchmarkRegression,
    assert_no_regression,
    reports_no_benchmarks,
)
from go_grader.builder import ArtifactBuilder, random_name
from go_grader.config import Settings, settings
from go_grader.coverage import CoverageAggregator
from go_grader.domain.services.ports import (
    CoveragePolicySource,
    ExecutionStrategy,
    LintChecker,
    OverlayMaterializer,
    Toolchain,
)
from go_grader.errors import BuildError, LintFailure, SubmissionFailure
from go_grader.execution.executor import SandboxedExecutor
from go_grader.models import (
    BenchmarkComparison,
    CoverageSummary,
    PipelineResult,
    Problem,
    Stage,
    utc_now,
)
from go_grader.problems import build_overlay_layers, discover_problem
from go_grader.workspace import RunPaths, RunScratch

if TYPE_CHECKING:  # pragma: no cover
    from loguru import Logger
else:  # pragma: no cover
    Logger = Any

StrategyFactory = Callable[[RunPaths], ExecutionStrategy]


@dataclass
class _RunState:
    stage: Stage = Stage.ASSEMBLE_WORKSPACE
    comparisons: list[BenchmarkComparison] = field(default_factory=list)
    coverage: CoverageSummary | None = None


def describe_failure(failure: SubmissionFailure) -> str:
    if isinstance(failure, BuildError) and failure.output:
        return f"{failure}\n{failure.output}"
    return str(failure)


class GradingPipeline:
    """Sequences every grading stage for one problem at a time."""

    def __init__(
        self,
        *,
        toolchain: Toolchain,
        materializer: OverlayMaterializer,
        linter: LintChecker,
        coverage_source: CoveragePolicySource,
        strategy_factory: StrategyFactory,
        config: Settings = settings,
        logger: Logger | None = None,
    ) -> None:
        self._toolchain = toolchain
        self._materializer = materializer
        self._linter = linter
        self._coverage_source = coverage_source
        self._strategy_factory = strategy_factory
        self._config = config
        self._logger = logger or _default_logger

    def grade(
        self,
        problem_id: str,
        submission_root: Path,
        private_root: Path,
        *,
        run_id: str | None = None,
    ) -> PipelineResult:
        """
        Grade the submission for `problem_id`.

        Raises
        ------
        InputError
            If the problem id is not a directory name or a root lacks the
            problem directory. Nothing is created on disk.
        InfrastructureError
            If the workspace or an external tool fails independently of the
            submission.
        """
        run_id = run_id or uuid.uuid4().hex
        started_at = utc_now()
        problem = discover_problem(
            problem_id,
            submission_root,
            private_root,
            coverage_source=self._coverage_source,
            config=self._config,
        )

        state = _RunState()
        try:
            with RunScratch(
                problem.problem_id, config=self._config, logger=self._logger
            ) as paths:
                self._run_stages(problem, paths, state)
        except SubmissionFailure as failure:
            self._logger.error(f"❌ {state.stage.value} failed: {failure}")
            return PipelineResult(
                run_id=run_id,
                problem_id=problem.problem_id,
                status="failed",
                failed_stage=state.stage,
                category=failure.category,
                detail=describe_failure(failure),
                coverage=state.coverage,
                comparisons=state.comparisons,
                started_at=started_at,
            )

        self._logger.success(f"✅ Submission for {problem.problem_id} passed.")
        return PipelineResult(
            run_id=run_id,
            problem_id=problem.problem_id,
            status="passed",
            coverage=state.coverage,
            comparisons=state.comparisons,
            started_at=started_at,
        )

    def _run_stages(self, problem: Problem, paths: RunPaths, state: _RunState) -> None:
        state.stage = Stage.ASSEMBLE_WORKSPACE
        self._materializer.materialize(
            build_overlay_layers(problem, self._config), paths.workspace
        )

        state.stage = Stage.BUILD_ARTIFACTS
        build = ArtifactBuilder(
            self._toolchain,
            binary_cache=paths.binary_cache,
            config=self._config,
            logger=self._logger,
        ).build(paths.workspace, problem)

        executor = SandboxedExecutor(
            self._strategy_factory(paths),
            registry=build.registry,
            go_cache=paths.go_cache,
            config=self._config,
            logger=self._logger,
        )
        regression = BenchmarkRegression(
            tolerance=self._config.slowdown_tolerance, logger=self._logger
        )

        profiles: list[Path] = []
        for suite in build.suites:
            profile = None
            if problem.coverage.enabled:
                profile = paths.profiles / f"{random_name()}.out"

            state.stage = Stage.RUN_CORRECTNESS
            executor.run_correctness(suite, coverage_profile=profile)
            if profile is not None:
                profiles.append(profile)

            state.stage = Stage.RUN_RACE_AND_BENCH
            executor.run_race(suite)

            state.stage = Stage.RUN_BENCHMARK_ONLY
            bench = executor.run_benchmarks(suite)
            if reports_no_benchmarks(bench.stdout):
                self._logger.info(f"No benchmarks in {suite.package}; skipping.")
                continue

            state.stage = Stage.COMPARE_BASELINE
            baseline = self._toolchain.run_baseline_benchmarks(
                suite.package, problem.private_root
            )
            comparisons = regression.compare(suite.package, baseline, bench.stdout)
            state.comparisons.extend(comparisons)
            assert_no_regression(comparisons)

        if problem.coverage.enabled:
            state.stage = Stage.AGGREGATE_COVERAGE
            state.coverage = CoverageAggregator(logger=self._logger).enforce(
                profiles, problem.coverage
            )

        state.stage = Stage.RUN_LINT
        verdict = self._linter.check(paths.workspace, problem.problem_id)
        if not verdict.passed:
            raise LintFailure(verdict.detail)

        state.stage = Stage.DONE
