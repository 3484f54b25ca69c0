"""In-memory stand-ins for the pipeline's external collaborators."""

import shlex
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from go_grader.errors import BuildError
from go_grader.models import ArtifactKind, CommandResult, GoPackage, LintVerdict

from .utils import create_command_output

MODULE = "gitlab.com/course/tasks"
NO_BENCHMARKS = "testing: warning: no tests to run\nPASS\n"


@dataclass(frozen=True)
class PackageSpec:
    import_path: str
    rel_dir: str
    name: str = "sum"
    has_tests: bool = True


class FakeToolchain:
    """Pretends to compile by writing placeholder files into the binary cache."""

    def __init__(
        self,
        packages: Sequence[PackageSpec] = (),
        *,
        fail_on: Sequence[str] = (),
        baselines: Mapping[str, str] | None = None,
        list_error: Exception | None = None,
    ) -> None:
        self.packages = list(packages)
        self.fail_on = set(fail_on)
        self.baselines = dict(baselines or {})
        self.list_error = list_error
        self.built: dict[Path, tuple[str, ArtifactKind]] = {}
        self.cover_packages: dict[str, tuple[str, ...]] = {}
        self.baseline_calls: list[tuple[str, Path]] = []

    def module_path(self, root: Path) -> str:
        return MODULE

    def list_packages(self, root: Path, pattern: str) -> list[GoPackage]:
        if self.list_error is not None:
            raise self.list_error
        return [
            GoPackage(
                import_path=spec.import_path,
                name=spec.name,
                dir=root / spec.rel_dir,
                test_go_files=[f"{spec.name}_test.go"] if spec.has_tests else [],
            )
            for spec in self.packages
        ]

    def _build(self, package: str, output: Path, kind: ArtifactKind) -> None:
        if package in self.fail_on:
            raise BuildError(package, f"{package}: syntax error: unexpected }}")
        output.write_text("#!fake binary\n", encoding="utf-8")
        self.built[output] = (package, kind)

    def build_binary(self, package: str, output: Path, *, cwd: Path) -> None:
        self._build(package, output, ArtifactKind.HELPER)

    def build_test(
        self,
        package: str,
        output: Path,
        *,
        cwd: Path,
        race: bool = False,
        cover_packages: Sequence[str] = (),
    ) -> None:
        if race:
            self._build(package, output, ArtifactKind.RACE_TEST)
        else:
            self.cover_packages[package] = tuple(cover_packages)
            self._build(package, output, ArtifactKind.TEST)

    def run_baseline_benchmarks(self, package: str, private_root: Path) -> str:
        self.baseline_calls.append((package, private_root))
        return self.baselines.get(package, NO_BENCHMARKS)

    def kinds_built(self) -> list[tuple[str, ArtifactKind]]:
        return sorted(self.built.values())


@dataclass
class ScriptedRun:
    exit_code: int = 0
    stdout: str = ""
    profile: str | None = None
    error: Exception | None = None


@dataclass
class RecordedRun:
    package: str
    kind: str
    argv: list[str]
    cwd: Path
    env: dict[str, str]


class FakeStrategy:
    """Answers test-binary runs from a script keyed by (package, run kind)."""

    name = "fake"

    def __init__(
        self,
        toolchain: FakeToolchain,
        script: Mapping[tuple[str, str], ScriptedRun] | None = None,
    ) -> None:
        self._toolchain = toolchain
        self._script = dict(script or {})
        self.calls: list[RecordedRun] = []

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str],
    ) -> CommandResult:
        package, artifact_kind = self._toolchain.built[Path(argv[0])]
        if artifact_kind is ArtifactKind.RACE_TEST:
            kind = "race"
        elif "-test.run=^$" in argv:
            kind = "benchmark"
        else:
            kind = "correctness"
        self.calls.append(RecordedRun(package, kind, list(argv), cwd, dict(env)))

        scripted = self._script.get((package, kind), ScriptedRun())
        if scripted.error is not None:
            raise scripted.error
        if kind == "benchmark" and not scripted.stdout:
            scripted = ScriptedRun(exit_code=scripted.exit_code, stdout=NO_BENCHMARKS)
        if "-test.coverprofile" in argv and scripted.profile is not None:
            profile_path = Path(argv[argv.index("-test.coverprofile") + 1])
            profile_path.write_text(scripted.profile, encoding="utf-8")
        return create_command_output(
            shlex.join(argv), scripted.exit_code, stdout=scripted.stdout
        )

    def kinds_run(self) -> list[tuple[str, str]]:
        return [(call.package, call.kind) for call in self.calls]


@dataclass
class FakeLinter:
    verdict: LintVerdict = field(default_factory=lambda: LintVerdict(passed=True))
    checked: list[tuple[Path, str]] = field(default_factory=list)

    def check(self, workspace: Path, problem_id: str) -> LintVerdict:
        self.checked.append((workspace, problem_id))
        return self.verdict
