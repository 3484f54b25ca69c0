"""
Benchmark output parsing and the regression rule.

Go benchmark result lines look like

    BenchmarkQueue/size=64-8   	 1000000	      1032 ns/op	  48 B/op	 2 allocs/op

Every (value, unit) pair is a separate measurement; repeated lines for the
same name (from `-count`) are averaged.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any

from loguru import logger as _default_logger

from go_grader.config import settings
from go_grader.errors import BenchmarkRegressionFailure
from go_grader.models import BenchmarkComparison, BenchmarkSample, BenchmarkVerdict

if TYPE_CHECKING:  # pragma: no cover
    from loguru import Logger
else:  # pragma: no cover
    Logger = Any

NO_TESTS_MARKER = "no tests to run"


def _parse_result_line(line: str) -> list[tuple[str, str, float]] | None:
    """Return [(name, unit, value), ...] for a benchmark result line."""
    fields = line.split()
    if len(fields) < 4 or not fields[0].startswith("Benchmark"):
        return None
    try:
        int(fields[1])
    except ValueError:
        return None

    measurements: list[tuple[str, str, float]] = []
    pairs = fields[2:]
    for i in range(0, len(pairs) - 1, 2):
        try:
            value = float(pairs[i])
        except ValueError:
            return None
        measurements.append((fields[0], pairs[i + 1], value))
    return measurements or None


def parse_benchmark_output(text: str) -> list[BenchmarkSample]:
    """Parse `go test -bench` output into one sample per (name, unit)."""
    values: dict[tuple[str, str], list[float]] = defaultdict(list)
    for line in text.splitlines():
        measurements = _parse_result_line(line.strip())
        if measurements is None:
            continue
        for name, unit, value in measurements:
            values[(name, unit)].append(value)

    return [
        BenchmarkSample(name=name, unit=unit, mean=sum(vs) / len(vs), runs=len(vs))
        for (name, unit), vs in values.items()
    ]


def reports_no_benchmarks(text: str) -> bool:
    """True when a benchmark-only run executed no benchmark at all."""
    return NO_TESTS_MARKER in text or not parse_benchmark_output(text)


def higher_is_better(unit: str) -> bool:
    """Throughput units (`MB/s` from `b.SetBytes`, custom `*/s` metrics)."""
    return unit.endswith("/s")


def is_regression(
    old_mean: float, new_mean: float, tolerance: float, *, unit: str = "ns/op"
) -> bool:
    """One-sided: only a slowdown beyond `tolerance` times the baseline fails."""
    if higher_is_better(unit):
        return old_mean > tolerance * new_mean
    return new_mean > tolerance * old_mean


def compare_benchmarks(
    old: Iterable[BenchmarkSample],
    new: Iterable[BenchmarkSample],
    *,
    tolerance: float | None = None,
    package: str = "",
) -> list[BenchmarkComparison]:
    """
    Pair baseline ("old") and submission ("new") samples by name and unit.

    Benchmarks present on only one side are not compared.
    """
    tolerance = settings.slowdown_tolerance if tolerance is None else tolerance
    baseline = {(s.name, s.unit): s for s in old}

    comparisons: list[BenchmarkComparison] = []
    for sample in new:
        reference = baseline.get((sample.name, sample.unit))
        if reference is None:
            continue
        verdict = (
            BenchmarkVerdict.REGRESSED
            if is_regression(reference.mean, sample.mean, tolerance, unit=sample.unit)
            else BenchmarkVerdict.OK
        )
        comparisons.append(
            BenchmarkComparison(
                package=package,
                name=sample.name,
                unit=sample.unit,
                old_mean=reference.mean,
                new_mean=sample.mean,
                verdict=verdict,
            )
        )
    return comparisons


def assert_no_regression(comparisons: Sequence[BenchmarkComparison]) -> None:
    for comparison in comparisons:
        if comparison.verdict is BenchmarkVerdict.REGRESSED:
            raise BenchmarkRegressionFailure(
                comparison.name,
                comparison.old_mean,
                comparison.new_mean,
                comparison.unit,
            )


class BenchmarkRegression:
    """Compares a submission's benchmark run against the reference solution."""

    def __init__(
        self,
        *,
        tolerance: float | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.tolerance = settings.slowdown_tolerance if tolerance is None else tolerance
        self._logger = logger or _default_logger

    def compare(
        self, package: str, baseline_output: str, submission_output: str
    ) -> list[BenchmarkComparison]:
        """Parse both outputs and judge every benchmark they have in common."""
        comparisons = compare_benchmarks(
            parse_benchmark_output(baseline_output),
            parse_benchmark_output(submission_output),
            tolerance=self.tolerance,
            package=package,
        )
        for c in comparisons:
            self._logger.debug(
                f"  {c.name}: {c.old_mean:g} -> {c.new_mean:g} {c.unit} ({c.verdict})"
            )
        if not comparisons:
            self._logger.warning(
                f"⚠️ No benchmark of {package} matched the baseline; nothing compared."
            )
        return comparisons
