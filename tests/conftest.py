"""Shared test fixtures and utilities."""

from dataclasses import dataclass
from pathlib import Path

import pytest

from go_grader.config import Settings

from .utils import write_file

PROBLEM = "sum"

GO_MOD = "module gitlab.com/course/tasks\n\ngo 1.20\n"

STUB_SOURCE = """//go:build !solution

package sum

func Sum(a, b int64) int64 {
\tpanic("implement me")
}
"""

SOLUTION_SOURCE = """//go:build solution

package sum

func Sum(a, b int64) int64 {
\treturn a + b
}
"""

STUDENT_SOURCE = """//go:build !solution

package sum

func Sum(a, b int64) int64 {
\treturn a + b
}
"""

PRIVATE_TEST = """package sum

import "testing"

func TestSum(t *testing.T) {
\tif got := Sum(2, 3); got != 5 {
\t\tt.Fatalf("Sum(2, 3) = %d, want 5", got)
\t}
}
"""

PROTECTED_MAIN = """//go:build !change

package main

import (
\t"fmt"

\t"gitlab.com/course/tasks/sum"
)

func main() {
\tfmt.Println(sum.Sum(1, 2))
}
"""


@dataclass
class GradingRepos:
    submission_root: Path
    private_root: Path
    problem_id: str = PROBLEM

    @property
    def private_problem(self) -> Path:
        return self.private_root / self.problem_id

    @property
    def submission_problem(self) -> Path:
        return self.submission_root / self.problem_id


class RepoFactory:
    """Lays out a private repository and a student repository on disk."""

    def __init__(self, base: Path) -> None:
        self._base = base
        self._count = 0

    def create(
        self,
        *,
        student_source: str = STUDENT_SOURCE,
        private_test: str = PRIVATE_TEST,
        coverage_line: str | None = None,
    ) -> GradingRepos:
        self._count += 1
        root = self._base / f"repos-{self._count}"
        private = root / "private"
        student = root / "student"

        write_file(private / "go.mod", GO_MOD)
        write_file(private / ".golangci.yml", "run:\n  timeout: 5m\n")
        write_file(private / PROBLEM / "sum.go", STUB_SOURCE)
        write_file(private / PROBLEM / "sum_solution.go", SOLUTION_SOURCE)
        test_source = private_test
        if coverage_line is not None:
            test_source = f"{coverage_line}\n\n{private_test}"
        write_file(private / PROBLEM / "sum_test.go", test_source)
        write_file(private / PROBLEM / "cmd" / "sumcli" / "main.go", PROTECTED_MAIN)
        write_file(private / PROBLEM / "testdata" / "cases.txt", "2 3 5\n")

        write_file(student / "go.mod", "module example.com/tampered\n")
        write_file(student / PROBLEM / "sum.go", student_source)
        write_file(student / PROBLEM / "sum_test.go", "package sum\n// tampered\n")
        write_file(
            student / PROBLEM / "cmd" / "sumcli" / "main.go", "package main\n// x\n"
        )
        return GradingRepos(submission_root=student, private_root=private)


@pytest.fixture
def repo_factory(tmp_path: Path) -> RepoFactory:
    """Factory fixture for creating private/student repository pairs."""
    return RepoFactory(tmp_path)


@pytest.fixture
def grading_repos(repo_factory: RepoFactory) -> GradingRepos:
    return repo_factory.create()


@pytest.fixture
def scratch_root(tmp_path: Path) -> Path:
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def grader_settings(scratch_root: Path) -> Settings:
    """Settings that keep every run directory inside the test's tmp_path."""
    return Settings(scratch_root=scratch_root, sandbox_backend="direct")
