"""
Problem discovery: what the private repository says about one exercise, and
which files of which repository make up its workspace.
"""

from pathlib import Path

from loguru import logger

from go_grader.config import Settings, settings
from go_grader.domain.services.ports import CoveragePolicySource
from go_grader.errors import InputError
from go_grader.models import (
    OverlayLayer,
    Problem,
    ProblemID,
    is_single_directory_name,
)


def problem_dir_exists(root: Path, problem_id: str) -> bool:
    """Check that the repository root contains the problem subdirectory."""
    return (root / problem_id).is_dir()


def _regular_files(directory: Path) -> list[Path]:
    return sorted(
        p for p in directory.rglob("*") if p.is_file() and not p.is_symlink()
    )


def _in_testdata(path: Path, problem_dir: Path, testdata_name: str) -> bool:
    return testdata_name in path.relative_to(problem_dir).parts


def is_protected(path: Path, marker: str) -> bool:
    """
    A Go file is protected when its header (the comment block before the
    `package` clause, build constraints included) carries the marker.
    """
    with path.open(encoding="utf-8", errors="replace") as f:
        for line in f:
            stripped = line.strip()
            if stripped.startswith("package "):
                return False
            if stripped.startswith("//") and marker in stripped:
                return True
    return False


def list_test_files(problem_dir: Path, config: Settings = settings) -> list[Path]:
    return [
        p
        for p in _regular_files(problem_dir)
        if p.name.endswith(config.test_file_suffix)
        and not _in_testdata(p, problem_dir, config.testdata_dir_name)
    ]


def list_protected_files(problem_dir: Path, config: Settings = settings) -> list[Path]:
    return [
        p
        for p in _regular_files(problem_dir)
        if p.suffix == ".go"
        and not p.name.endswith(config.test_file_suffix)
        and not _in_testdata(p, problem_dir, config.testdata_dir_name)
        and is_protected(p, config.protected_marker)
    ]


def discover_problem(
    problem_id: str,
    submission_root: Path,
    private_root: Path,
    *,
    coverage_source: CoveragePolicySource,
    config: Settings = settings,
) -> Problem:
    """
    Validate the input roots and collect everything the grader needs to know
    about the problem.

    Raises
    ------
    InputError
        If the problem id is not a single directory name, or either root has
        no directory named after the problem.
    """
    if not is_single_directory_name(problem_id):
        raise InputError(f"{problem_id!r} is not a problem directory name")

    submission_root = submission_root.resolve()
    private_root = private_root.resolve()

    for root in (submission_root, private_root):
        if not problem_dir_exists(root, problem_id):
            raise InputError(f"{root} does not have {problem_id} directory")

    private_problem = private_root / problem_id
    testdata = private_problem / config.testdata_dir_name

    problem = Problem(
        problem_id=ProblemID(problem_id),
        submission_root=submission_root,
        private_root=private_root,
        test_files=tuple(
            p.relative_to(private_root)
            for p in list_test_files(private_problem, config)
        ),
        protected_files=tuple(
            p.relative_to(private_root)
            for p in list_protected_files(private_problem, config)
        ),
        testdata_dir=testdata.relative_to(private_root) if testdata.is_dir() else None,
        coverage=coverage_source.load(private_problem),
    )
    logger.debug(
        f"Problem {problem_id}: {len(problem.test_files)} test file(s), "
        f"{len(problem.protected_files)} protected file(s)"
    )
    return problem


def build_overlay_layers(
    problem: Problem, config: Settings = settings
) -> list[OverlayLayer]:
    """Workspace layers in application order; later layers win on conflicts."""
    shared = tuple(
        Path(name)
        for name in config.shared_files
        if (problem.private_root / name).is_file()
    )
    return [
        OverlayLayer(
            name="submission",
            base_dir=problem.submission_root,
            paths=(Path(problem.problem_id),),
        ),
        OverlayLayer(
            name="tests", base_dir=problem.private_root, paths=problem.test_files
        ),
        OverlayLayer(
            name="protected",
            base_dir=problem.private_root,
            paths=problem.protected_files,
        ),
        OverlayLayer(
            name="testdata",
            base_dir=problem.private_root,
            paths=(problem.testdata_dir,) if problem.testdata_dir else (),
        ),
        OverlayLayer(name="shared", base_dir=problem.private_root, paths=shared),
    ]
