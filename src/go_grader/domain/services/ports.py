from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol

from go_grader.models import (
    CommandResult,
    CoverageRequirement,
    GoPackage,
    LintVerdict,
    OverlayLayer,
)


class OverlayMaterializer(Protocol):
    """Copies overlay layers into a workspace, later layers winning."""

    def materialize(self, layers: Sequence[OverlayLayer], destination: Path) -> None:
        ...


class Toolchain(Protocol):
    """Abstracts the compiler used to turn packages into binaries."""

    def module_path(self, root: Path) -> str:
        """Return the module path declared by `root/go.mod`."""
        ...

    def list_packages(self, root: Path, pattern: str) -> list[GoPackage]:
        ...

    def build_binary(self, package: str, output: Path, *, cwd: Path) -> None:
        """Compile a command package. Raises BuildError on compile failure."""
        ...

    def build_test(
        self,
        package: str,
        output: Path,
        *,
        cwd: Path,
        race: bool = False,
        cover_packages: Sequence[str] = (),
    ) -> None:
        """Compile a test binary. Raises BuildError on compile failure."""
        ...

    def run_baseline_benchmarks(self, package: str, private_root: Path) -> str:
        """Benchmark the reference implementation and return its stdout."""
        ...


class ExecutionStrategy(Protocol):
    """Runs one submission-controlled binary in some isolation context."""

    name: str

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str],
    ) -> CommandResult:
        """
        Run `argv` to completion and return its captured output.

        Raises OSError when the process cannot be launched and
        InfrastructureError when the isolation context itself is broken.
        """
        ...


class CoveragePolicySource(Protocol):
    def load(self, private_problem_dir: Path) -> CoverageRequirement:
        ...


class LintChecker(Protocol):
    def check(self, workspace: Path, problem_id: str) -> LintVerdict:
        ...
