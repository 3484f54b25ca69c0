"""
End-to-end grading runs against the real Go toolchain.

These tests compile and run actual test binaries, so they need `go` (and a C
compiler for the race detector) on PATH. They are skipped otherwise.

To run these tests: `pytest -m integration`
"""

import shutil
from functools import partial
from pathlib import Path

import pytest

from go_grader.config import Settings
from go_grader.coverage import CommentCoveragePolicy
from go_grader.errors import FailureCategory
from go_grader.execution import select_execution_strategy
from go_grader.models import Stage
from go_grader.toolchain import GoToolchain
from go_grader.use_cases.grade_submission import GradingPipeline
from go_grader.workspace import CopyOverlayMaterializer
from tests.conftest import RepoFactory

from ..fakes import FakeLinter

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(shutil.which("go") is None, reason="go is not installed"),
    pytest.mark.skipif(
        shutil.which("gcc") is None, reason="the race detector needs a C compiler"
    ),
]

WRONG_SOURCE = """//go:build !solution

package sum

func Sum(a, b int64) int64 {
\treturn a - b
}
"""

BROKEN_SOURCE = """//go:build !solution

package sum

func Sum(a, b int64) int64 {
\treturn a +
}
"""


@pytest.fixture
def pipeline(grader_settings: Settings) -> GradingPipeline:
    return GradingPipeline(
        toolchain=GoToolchain(config=grader_settings),
        materializer=CopyOverlayMaterializer(),
        linter=FakeLinter(),
        coverage_source=CommentCoveragePolicy(),
        strategy_factory=partial(select_execution_strategy, config=grader_settings),
        config=grader_settings,
    )


def test_correct_submission_passes(
    pipeline: GradingPipeline, repo_factory: RepoFactory, scratch_root: Path
) -> None:
    repos = repo_factory.create()

    result = pipeline.grade(
        repos.problem_id, repos.submission_root, repos.private_root
    )

    assert result.passed, result.detail
    assert list(scratch_root.iterdir()) == []


def test_wrong_answer_fails_correctness(
    pipeline: GradingPipeline, repo_factory: RepoFactory
) -> None:
    repos = repo_factory.create(student_source=WRONG_SOURCE)

    result = pipeline.grade(
        repos.problem_id, repos.submission_root, repos.private_root
    )

    assert result.status == "failed"
    assert result.failed_stage is Stage.RUN_CORRECTNESS
    assert result.category is FailureCategory.RUNTIME_TEST


def test_syntax_error_fails_build(
    pipeline: GradingPipeline, repo_factory: RepoFactory
) -> None:
    repos = repo_factory.create(student_source=BROKEN_SOURCE)

    result = pipeline.grade(
        repos.problem_id, repos.submission_root, repos.private_root
    )

    assert result.failed_stage is Stage.BUILD_ARTIFACTS
    assert result.category is FailureCategory.BUILD
    assert result.detail is not None
    assert "sum.go" in result.detail


def test_coverage_is_measured(
    pipeline: GradingPipeline, repo_factory: RepoFactory
) -> None:
    repos = repo_factory.create(coverage_line="// min coverage: . 100%")

    result = pipeline.grade(
        repos.problem_id, repos.submission_root, repos.private_root
    )

    assert result.passed, result.detail
    assert result.coverage is not None
    assert result.coverage.percent == pytest.approx(100.0)
