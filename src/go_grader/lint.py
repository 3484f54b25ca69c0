import shlex
import subprocess
from pathlib import Path

from loguru import logger

from go_grader.config import Settings, settings
from go_grader.errors import InfrastructureError
from go_grader.models import LintVerdict


class GolangciLinter:
    """Runs golangci-lint over the problem's packages in the workspace."""

    def __init__(self, *, config: Settings = settings) -> None:
        self._config = config

    def check(self, workspace: Path, problem_id: str) -> LintVerdict:
        command = [
            self._config.lint_executable,
            "run",
            "--modules-download-mode",
            "readonly",
            "--build-tags",
            self._config.build_tags_arg,
            f"./{problem_id}/...",
        ]
        logger.info(f"> {shlex.join(command)}")
        try:
            completed = subprocess.run(
                command,
                cwd=workspace,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise InfrastructureError(
                f"cannot run {self._config.lint_executable}: {e}"
            ) from e

        output = (completed.stdout + completed.stderr).strip()
        for line in output.splitlines():
            logger.info(f"  | {line}")
        if completed.returncode != 0:
            return LintVerdict(
                passed=False,
                detail=output or f"exit status {completed.returncode}",
            )
        return LintVerdict(passed=True)
