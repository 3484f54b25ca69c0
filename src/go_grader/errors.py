"""
Exception hierarchy for the grading pipeline.

Two families exist. `InputError` and `InfrastructureError` mean the grader
could not do its job and must never be reported as a verdict on the
submission. Every `SubmissionFailure` subclass is a verdict: the submission
was graded and rejected.
"""

from enum import StrEnum


class FailureCategory(StrEnum):
    BUILD = "build"
    RUNTIME_TEST = "runtime_test"
    COVERAGE_SHORTFALL = "coverage_shortfall"
    COVERAGE_CONFIGURATION = "coverage_configuration"
    BENCHMARK_REGRESSION = "benchmark_regression"
    LINT = "lint"


class GradingError(Exception):
    """Base for all errors raised by go-grader."""


class InputError(GradingError):
    """The problem directory is missing from the submission or private root."""


class InfrastructureError(GradingError):
    """A workspace operation or external tool failed for reasons unrelated to
    the submission (missing executable, I/O error, broken reference solution).
    """


class SubmissionFailure(GradingError):
    """Base for every outcome that rejects the submission."""

    category: FailureCategory


class BuildError(SubmissionFailure):
    category = FailureCategory.BUILD

    def __init__(self, package: str, output: str = "") -> None:
        self.package = package
        self.output = output
        super().__init__(f"error building {package}")


class RuntimeTestFailure(SubmissionFailure):
    """A correctness, race or benchmark run exited non-zero or could not start."""

    category = FailureCategory.RUNTIME_TEST

    def __init__(self, package: str, run_kind: str, cause: str) -> None:
        self.package = package
        self.run_kind = run_kind
        self.cause = cause
        super().__init__(f"{run_kind} run failed in {package}: {cause}")


class CoverageShortfall(SubmissionFailure):
    category = FailureCategory.COVERAGE_SHORTFALL

    def __init__(self, percent: float, threshold: float) -> None:
        self.percent = percent
        self.threshold = threshold
        super().__init__(
            f"poor coverage {percent:.2f}%; expected at least {threshold:.2f}%"
        )


class CoverageConfigurationError(SubmissionFailure):
    """No coverable statements exist under the declared package set."""

    category = FailureCategory.COVERAGE_CONFIGURATION


class BenchmarkRegressionFailure(SubmissionFailure):
    category = FailureCategory.BENCHMARK_REGRESSION

    def __init__(
        self, benchmark: str, old_mean: float, new_mean: float, unit: str
    ) -> None:
        self.benchmark = benchmark
        self.old_mean = old_mean
        self.new_mean = new_mean
        self.unit = unit
        super().__init__(
            f"solution is worse than baseline on benchmark {benchmark!r}: "
            f"{new_mean:g} {unit} vs baseline {old_mean:g} {unit}"
        )


class LintFailure(SubmissionFailure):
    category = FailureCategory.LINT

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"linter failed: {detail}" if detail else "linter failed")
