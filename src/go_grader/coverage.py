"""
Statement coverage: per-problem policy and profile aggregation.

A problem opts into coverage enforcement with a comment in any of its private
Go files:

    // min coverage: . 90%
    // min coverage: ., internal/queue 75.5%

The package list is optional and defaults to the problem package itself.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger as _default_logger

from go_grader.errors import (
    CoverageConfigurationError,
    CoverageShortfall,
    InfrastructureError,
)
from go_grader.models import CoverageRequirement, CoverageSummary

if TYPE_CHECKING:  # pragma: no cover
    from loguru import Logger
else:  # pragma: no cover
    Logger = Any

_REQUIREMENT_RE = re.compile(
    r"^\s*//\s*min coverage:\s*(?:(?P<packages>[^%]+?)\s+)?"
    r"(?P<percent>\d+(?:\.\d+)?)%\s*$"
)
_BLOCK_RE = re.compile(
    r"^(?P<file>.+):(?P<l0>\d+)\.(?P<c0>\d+),(?P<l1>\d+)\.(?P<c1>\d+) "
    r"(?P<stmts>\d+) (?P<count>\d+)$"
)


def parse_requirement(text: str) -> CoverageRequirement | None:
    """Return the first coverage declaration found in `text`, if any."""
    for line in text.splitlines():
        match = _REQUIREMENT_RE.match(line)
        if match is None:
            continue
        raw_packages = match.group("packages") or "."
        packages = tuple(
            p.strip() for p in raw_packages.replace(",", " ").split() if p.strip()
        )
        return CoverageRequirement(
            enabled=True,
            percent=float(match.group("percent")),
            packages=packages,
        )
    return None


class CommentCoveragePolicy:
    """Reads the coverage declaration from the private problem's Go files."""

    def load(self, private_problem_dir: Path) -> CoverageRequirement:
        for path in sorted(private_problem_dir.rglob("*.go")):
            if not path.is_file() or path.is_symlink():
                continue
            requirement = parse_requirement(path.read_text(encoding="utf-8"))
            if requirement is not None:
                return requirement
        return CoverageRequirement.disabled()


@dataclass(frozen=True)
class Block:
    """One basic block of a cover profile, identified by its source span."""

    file: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    statements: int


def parse_profile(text: str, *, source: str = "<profile>") -> list[tuple[Block, int]]:
    """
    Parse a Go cover profile into (block, hit count) pairs.

    The first non-empty line must be the `mode:` header.
    """
    entries: list[tuple[Block, int]] = []
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        return entries
    if not lines[0].startswith("mode:"):
        raise InfrastructureError(f"{source}: missing 'mode:' header")

    for line_num, line in enumerate(lines[1:], 2):
        match = _BLOCK_RE.match(line)
        if match is None:
            raise InfrastructureError(
                f"{source}:{line_num}: malformed cover profile line {line!r}"
            )
        block = Block(
            file=match.group("file"),
            start_line=int(match.group("l0")),
            start_col=int(match.group("c0")),
            end_line=int(match.group("l1")),
            end_col=int(match.group("c1")),
            statements=int(match.group("stmts")),
        )
        entries.append((block, int(match.group("count"))))
    return entries


class CoverageAggregator:
    """Merges per-package cover profiles into one statement coverage figure."""

    def __init__(self, *, logger: Logger | None = None) -> None:
        self._logger = logger or _default_logger

    def merge(self, profiles: Iterable[Path]) -> CoverageSummary:
        # Hit counts are summed, so a block covered anywhere counts as covered.
        hits: dict[Block, int] = {}
        for profile in profiles:
            if not profile.is_file():
                self._logger.warning(f"⚠️ Coverage profile {profile} was not written")
                continue
            try:
                text = profile.read_text(encoding="utf-8")
            except OSError as e:
                raise InfrastructureError(
                    f"cannot read coverage profile {profile}"
                ) from e
            for block, count in parse_profile(text, source=str(profile)):
                hits[block] = hits.get(block, 0) + count

        total = sum(block.statements for block in hits)
        covered = sum(block.statements for block, count in hits.items() if count > 0)
        return CoverageSummary(covered=covered, total=total)

    def enforce(
        self, profiles: Iterable[Path], requirement: CoverageRequirement
    ) -> CoverageSummary:
        """
        Merge `profiles` and check them against `requirement`.

        Raises
        ------
        CoverageConfigurationError
            If the profiles contain no coverable statement at all.
        CoverageShortfall
            If the merged percentage is below the required one.
        """
        self._logger.info(
            f"Checking coverage is at least {requirement.percent:.2f}%..."
        )
        summary = self.merge(profiles)
        if summary.total == 0:
            raise CoverageConfigurationError(
                "no coverable statements found in packages "
                f"{', '.join(requirement.packages) or '.'}"
            )

        self._logger.info(f"Coverage is {summary.percent:.2f}%")
        if summary.percent < requirement.percent:
            raise CoverageShortfall(summary.percent, requirement.percent)
        return summary
