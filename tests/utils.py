"""Test utilities and helper functions."""

from datetime import datetime
from pathlib import Path

from go_grader.models import CommandResult, utc_now


def create_command_output(
    command: str,
    exit_code: int,
    stdout: str = "",
    stderr: str = "",
    start_time: datetime | None = None,
    end_time: datetime | None = None,
) -> CommandResult:
    """Test helper to auto-fill required timestamps for CommandResult."""
    now = utc_now()
    start = start_time or now
    end = end_time or start
    return CommandResult(
        command=command,
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        start_time=start,
        end_time=end,
    )


def write_file(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def bench_output(*lines: str) -> str:
    """Wrap benchmark result lines the way a Go test binary prints them."""
    header = "goos: linux\ngoarch: amd64\npkg: gitlab.com/course/tasks/sum\n"
    return header + "".join(f"{line}\n" for line in lines) + "PASS\n"
