from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from go_grader.errors import FailureCategory
from go_grader.models import (
    BenchmarkComparison,
    BenchmarkVerdict,
    CoverageRequirement,
    CoverageSummary,
    GoPackage,
    PipelineResult,
    Problem,
    ProblemID,
    Stage,
    utc_now,
)

from ..utils import create_command_output


@pytest.mark.unit
class TestCommandResult:
    def test_success_and_duration(self) -> None:
        start = utc_now()
        result = create_command_output(
            "go test", 0, start_time=start, end_time=start + timedelta(seconds=2)
        )
        assert result.success is True
        assert result.duration == timedelta(seconds=2)

    def test_non_zero_exit_is_not_success(self) -> None:
        assert create_command_output("go test", 2).success is False


@pytest.mark.unit
class TestProblem:
    @pytest.mark.parametrize("bad_id", ["", "a/b", ".", ".."])
    def test_rejects_non_directory_ids(self, bad_id: str) -> None:
        with pytest.raises(ValidationError):
            Problem(
                problem_id=ProblemID(bad_id),
                submission_root=Path("/s"),
                private_root=Path("/p"),
            )

    def test_problem_dirs(self) -> None:
        problem = Problem(
            problem_id=ProblemID("sum"),
            submission_root=Path("/s"),
            private_root=Path("/p"),
        )
        assert problem.submission_dir == Path("/s/sum")
        assert problem.private_dir == Path("/p/sum")
        assert problem.coverage == CoverageRequirement.disabled()


@pytest.mark.unit
class TestCoverageRequirement:
    def test_percent_bounds(self) -> None:
        with pytest.raises(ValidationError):
            CoverageRequirement(enabled=True, percent=101)


@pytest.mark.unit
class TestGoPackage:
    def test_parses_go_list_fields(self) -> None:
        pkg = GoPackage.model_validate(
            {
                "ImportPath": "m/sum/cmd/sumcli",
                "Name": "main",
                "Dir": "/ws/sum/cmd/sumcli",
                "Imports": ["fmt"],
            }
        )
        assert pkg.is_command is True
        assert pkg.has_tests is False
        assert pkg.dir == Path("/ws/sum/cmd/sumcli")


@pytest.mark.unit
class TestCoverageSummary:
    def test_percent(self) -> None:
        assert CoverageSummary(covered=1, total=4).percent == 25.0

    def test_empty_is_zero_percent(self) -> None:
        assert CoverageSummary(covered=0, total=0).percent == 0.0

    def test_percent_is_serialized(self) -> None:
        data = CoverageSummary(covered=1, total=2).model_dump()
        assert data == {"covered": 1, "total": 2, "percent": 50.0}


@pytest.mark.unit
class TestPipelineResult:
    def test_failed_result_round_trips_through_json(self) -> None:
        result = PipelineResult(
            run_id="r1",
            problem_id=ProblemID("sum"),
            status="failed",
            failed_stage=Stage.COMPARE_BASELINE,
            category=FailureCategory.BENCHMARK_REGRESSION,
            detail="solution is worse than baseline",
            comparisons=[
                BenchmarkComparison(
                    name="BenchmarkSum",
                    unit="ns/op",
                    old_mean=100,
                    new_mean=300,
                    verdict=BenchmarkVerdict.REGRESSED,
                )
            ],
            started_at=utc_now(),
        )

        restored = PipelineResult.model_validate_json(result.model_dump_json())

        assert restored.passed is False
        assert restored.failed_stage is Stage.COMPARE_BASELINE
        assert restored.category is FailureCategory.BENCHMARK_REGRESSION
        assert restored.comparisons[0].ratio == pytest.approx(3.0)
