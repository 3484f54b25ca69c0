"""
Go toolchain collaborator.

All compiler work goes through this module so that the rest of the pipeline
can be exercised against a fake toolchain.
"""

import json
import os
import re
import shlex
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger as _default_logger

from go_grader.config import Settings, settings
from go_grader.errors import BuildError, InfrastructureError
from go_grader.models import CommandResult, GoPackage, utc_now

if TYPE_CHECKING:  # pragma: no cover
    from loguru import Logger
else:  # pragma: no cover
    Logger = Any

_MODULE_RE = re.compile(r"^module\s+(\S+)", re.MULTILINE)


def decode_package_stream(payload: str) -> list[GoPackage]:
    """`go list -json` prints concatenated JSON objects, not an array."""
    decoder = json.JSONDecoder()
    packages: list[GoPackage] = []
    index = 0
    while True:
        while index < len(payload) and payload[index].isspace():
            index += 1
        if index >= len(payload):
            return packages
        obj, index = decoder.raw_decode(payload, index)
        packages.append(GoPackage.model_validate(obj))


class GoToolchain:
    """Runs `go` on the host, outside of any sandbox."""

    def __init__(
        self,
        *,
        config: Settings = settings,
        logger: Logger | None = None,
    ) -> None:
        self._config = config
        self._logger = logger or _default_logger

    def _run_go(self, args: Sequence[str], *, cwd: Path) -> CommandResult:
        command = [self._config.go_executable, *args]
        self._logger.info(f"> go {shlex.join(args)}")
        env = {**os.environ, "GOFLAGS": ""}

        start = utc_now()
        try:
            completed = subprocess.run(
                command,
                cwd=cwd,
                env=env,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise InfrastructureError(
                f"cannot run {self._config.go_executable}: {e}"
            ) from e
        end = utc_now()

        return CommandResult(
            command=shlex.join(command),
            exit_code=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
            start_time=start,
            end_time=end,
        )

    def module_path(self, root: Path) -> str:
        go_mod = root / "go.mod"
        try:
            match = _MODULE_RE.search(go_mod.read_text(encoding="utf-8"))
        except OSError as e:
            raise InfrastructureError(f"cannot read {go_mod}") from e
        if match is None:
            raise InfrastructureError(f"{go_mod} has no module directive")
        return match.group(1)

    def list_packages(self, root: Path, pattern: str) -> list[GoPackage]:
        result = self._run_go(
            ["list", "-e", "-json", "-tags", self._config.build_tags_arg, pattern],
            cwd=root,
        )
        if not result.success:
            raise InfrastructureError(
                f"go list {pattern} failed with exit code {result.exit_code}:\n"
                f"{result.stderr}"
            )
        try:
            return decode_package_stream(result.stdout)
        except ValueError as e:
            raise InfrastructureError(f"unexpected go list output: {e}") from e

    def _build(self, package: str, args: list[str], cwd: Path) -> None:
        result = self._run_go(args, cwd=cwd)
        if not result.success:
            output = (result.stdout + result.stderr).strip()
            self._logger.error(f"❌ Error building {package}:\n{output}")
            raise BuildError(package, output)

    def build_binary(self, package: str, output: Path, *, cwd: Path) -> None:
        self._build(
            package,
            [
                "build",
                "-mod",
                "readonly",
                "-tags",
                self._config.build_tags_arg,
                "-o",
                str(output),
                package,
            ],
            cwd,
        )

    def build_test(
        self,
        package: str,
        output: Path,
        *,
        cwd: Path,
        race: bool = False,
        cover_packages: Sequence[str] = (),
    ) -> None:
        args = ["test", "-mod", "readonly"]
        if race:
            args.append("-race")
        args += ["-tags", self._config.build_tags_arg, "-c", "-o", str(output)]
        if cover_packages:
            args += ["-cover", "-coverpkg", ",".join(cover_packages)]
        args.append(package)
        self._build(package, args, cwd)

    def run_baseline_benchmarks(self, package: str, private_root: Path) -> str:
        """
        Benchmark the reference solution, compiled from the private repository
        with the solution build tag.

        Raises
        ------
        InfrastructureError
            The reference solution is expected to build and pass; if it does
            not, the grader is misconfigured.
        """
        result = self._run_go(
            [
                "test",
                "-tags",
                self._config.solution_tags_arg,
                "-bench=.",
                "-run=^$",
                f"-count={self._config.benchmark_count}",
                package,
            ],
            cwd=private_root,
        )
        if not result.success:
            raise InfrastructureError(
                f"baseline benchmark failed for {package}:\n{result.stderr}"
            )
        return result.stdout
