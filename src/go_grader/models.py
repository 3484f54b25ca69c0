from datetime import UTC, datetime, timedelta
from enum import StrEnum
from pathlib import Path
from typing import Literal, NewType, Self

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)

from go_grader.errors import FailureCategory


def utc_now() -> datetime:
    """Returns the current time in UTC."""
    return datetime.now(UTC)


ProblemID = NewType("ProblemID", str)


# --- Execution Models ---


class CommandResult(BaseModel):
    """
    Result of a single external command (toolchain, linter or test binary).

    Timestamps are expected to be timezone-aware (UTC). Use `.success` for a
    semantic success check (exit_code == 0).
    """

    command: str = Field(..., description="The exact command that was executed.")
    exit_code: int = Field(
        ..., description="The exit code of the command. 0 typically means success."
    )
    stdout: str = Field(
        default="", description="The captured standard output (stdout) of the command."
    )
    stderr: str = Field(
        default="", description="The captured standard error (stderr) of the command."
    )
    start_time: AwareDatetime = Field(
        ..., description="The UTC timestamp when the command started."
    )
    end_time: AwareDatetime = Field(
        ..., description="The UTC timestamp when the command finished."
    )

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def success(self) -> bool:
        """Convenience predicate: True iff `exit_code == 0`."""
        return self.exit_code == 0


# --- Problem Models ---


class CoverageRequirement(BaseModel):
    """
    Per-problem statement coverage policy.

    `packages` are relative to the problem directory ("." is the problem
    package itself). A disabled requirement is never enforced.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    percent: float = Field(default=0.0, ge=0.0, le=100.0)
    packages: tuple[str, ...] = ()

    @classmethod
    def disabled(cls) -> Self:
        return cls()


def is_single_directory_name(name: str) -> bool:
    return bool(name) and "/" not in name and name not in (".", "..")


class Problem(BaseModel):
    """
    One gradable exercise, identified by a directory name shared by the
    submission and private roots.

    File lists are relative to `private_root` so they can be replayed into a
    workspace with the same layout.
    """

    model_config = ConfigDict(frozen=True)

    problem_id: ProblemID = Field(..., min_length=1)
    submission_root: Path
    private_root: Path
    test_files: tuple[Path, ...] = ()
    protected_files: tuple[Path, ...] = ()
    testdata_dir: Path | None = None
    coverage: CoverageRequirement = Field(default_factory=CoverageRequirement)

    @field_validator("problem_id")
    @classmethod
    def validate_problem_id(cls, v: str) -> str:
        if not is_single_directory_name(v):
            raise ValueError("problem_id must be a single directory name")
        return v

    @property
    def submission_dir(self) -> Path:
        return self.submission_root / self.problem_id

    @property
    def private_dir(self) -> Path:
        return self.private_root / self.problem_id


class GoPackage(BaseModel):
    """The subset of `go list -json` output the grader relies on."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    import_path: str = Field(..., alias="ImportPath")
    name: str = Field(default="", alias="Name")
    dir: Path = Field(..., alias="Dir")
    test_go_files: list[str] = Field(default_factory=list, alias="TestGoFiles")
    xtest_go_files: list[str] = Field(default_factory=list, alias="XTestGoFiles")

    @property
    def is_command(self) -> bool:
        return self.name == "main"

    @property
    def has_tests(self) -> bool:
        return bool(self.test_go_files or self.xtest_go_files)


# --- Build Models ---


class ArtifactKind(StrEnum):
    HELPER = "helper"
    TEST = "test"
    RACE_TEST = "race_test"


class BuildArtifact(BaseModel):
    """One compiled binary in the run's binary cache."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Import path of the compiled package.")
    kind: ArtifactKind
    path: Path


class TestSuite(BaseModel):
    """Both test binaries of one package, plus the directory they run in."""

    __test__ = False  # not a pytest class

    model_config = ConfigDict(frozen=True)

    package: str
    directory: Path
    test: BuildArtifact
    race: BuildArtifact


# --- Measurement Models ---


class BenchmarkSample(BaseModel):
    """Mean of every measurement of one benchmark in one unit."""

    model_config = ConfigDict(frozen=True)

    name: str
    unit: str
    mean: float
    runs: int = Field(default=1, ge=1)


class BenchmarkVerdict(StrEnum):
    OK = "ok"
    REGRESSED = "regressed"


class BenchmarkComparison(BaseModel):
    model_config = ConfigDict(frozen=True)

    package: str = ""
    name: str
    unit: str
    old_mean: float
    new_mean: float
    verdict: BenchmarkVerdict

    @property
    def ratio(self) -> float | None:
        if self.old_mean == 0:
            return None
        return self.new_mean / self.old_mean


class CoverageSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    covered: int = Field(..., ge=0)
    total: int = Field(..., ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def percent(self) -> float:
        if self.total == 0:
            return 0.0
        return 100.0 * self.covered / self.total


# --- Pipeline Models ---


class Stage(StrEnum):
    ASSEMBLE_WORKSPACE = "assemble_workspace"
    BUILD_ARTIFACTS = "build_artifacts"
    RUN_CORRECTNESS = "run_correctness"
    RUN_RACE_AND_BENCH = "run_race_and_bench"
    RUN_BENCHMARK_ONLY = "run_benchmark_only"
    COMPARE_BASELINE = "compare_baseline"
    AGGREGATE_COVERAGE = "aggregate_coverage"
    RUN_LINT = "run_lint"
    DONE = "done"


class PipelineResult(BaseModel):
    """
    Final outcome of one grading run.

    - "passed": every stage succeeded.
    - "failed": the submission was rejected; `failed_stage`, `category` and
      `detail` say where and why.
    - "error": the grader itself failed. Only produced by callers that catch
      `InputError`/`InfrastructureError` to write a report; never a verdict.
    """

    run_id: str
    problem_id: ProblemID
    status: Literal["passed", "failed", "error"]
    failed_stage: Stage | None = None
    category: FailureCategory | None = None
    detail: str | None = None
    coverage: CoverageSummary | None = None
    comparisons: list[BenchmarkComparison] = Field(default_factory=list)
    started_at: AwareDatetime
    ended_at: AwareDatetime = Field(default_factory=utc_now)

    @property
    def passed(self) -> bool:
        return self.status == "passed"


# --- Collaborator Models ---


class OverlayLayer(BaseModel):
    """
    One layer of the workspace overlay.

    `paths` are relative to `base_dir` and may name files or directories; the
    relative layout is preserved in the workspace.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    base_dir: Path
    paths: tuple[Path, ...]


class LintVerdict(BaseModel):
    passed: bool
    detail: str = ""
