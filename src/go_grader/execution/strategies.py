"""
Interchangeable ways of running a submission-controlled binary.

All strategies share one contract, `run(argv, *, cwd, env) -> CommandResult`,
so the orchestrator never needs to know which isolation backend is in use.
"""

import os
import pwd
import shlex
import subprocess
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from docker.errors import DockerException
from loguru import logger as _default_logger

from go_grader.config import Settings, settings
from go_grader.docker.manager import DockerManager
from go_grader.errors import InfrastructureError
from go_grader.models import CommandResult, utc_now

if TYPE_CHECKING:  # pragma: no cover
    from loguru import Logger
else:  # pragma: no cover
    Logger = Any


def _run_subprocess(
    argv: Sequence[str],
    *,
    cwd: Path,
    env: Mapping[str, str],
    preexec_fn: Callable[[], None] | None = None,
) -> CommandResult:
    start = utc_now()
    completed = subprocess.run(
        list(argv),
        cwd=cwd,
        env=dict(env),
        capture_output=True,
        text=True,
        errors="replace",
        preexec_fn=preexec_fn,
        check=False,
    )
    return CommandResult(
        command=shlex.join(argv),
        exit_code=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
        start_time=start,
        end_time=utc_now(),
    )


class DirectExecution:
    """Runs the binary as the current user. Assumes the host is disposable."""

    name = "direct"

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str],
    ) -> CommandResult:
        return _run_subprocess(argv, cwd=cwd, env=env)


def drop_privileges(
    uid: int, gid: int, *, isolate_network: bool
) -> Callable[[], None]:
    """
    Build the hook that runs in the forked child before exec.

    Order matters: entering a new network namespace requires root, so it
    happens before the identity switch.
    """

    def _preexec() -> None:
        if isolate_network:
            os.unshare(os.CLONE_NEWNET)
        os.setgroups([])
        os.setgid(gid)
        os.setuid(uid)

    return _preexec


class RestrictedExecution:
    """
    Runs the binary as an unprivileged account, without network access.

    Requires the grader itself to run as root. The attenuation is applied to
    each child only; the grader keeps its own rights for bookkeeping.
    """

    name = "restricted"

    def __init__(
        self,
        *,
        config: Settings = settings,
        logger: Logger | None = None,
    ) -> None:
        try:
            account = pwd.getpwnam(config.sandbox_user)
        except KeyError as e:
            raise InfrastructureError(
                f"sandbox user {config.sandbox_user!r} does not exist"
            ) from e
        self.uid = account.pw_uid
        self.gid = account.pw_gid
        self._isolate_network = config.sandbox_isolate_network
        self._logger = logger or _default_logger

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str],
    ) -> CommandResult:
        try:
            return _run_subprocess(
                argv,
                cwd=cwd,
                env=env,
                preexec_fn=drop_privileges(
                    self.uid, self.gid, isolate_network=self._isolate_network
                ),
            )
        except subprocess.SubprocessError as e:
            raise InfrastructureError(
                f"cannot enter the restricted execution context: {e}"
            ) from e


class DockerExecution:
    """
    Runs the binary in a throwaway container.

    Run directories are bind-mounted at their host paths so that artifact,
    working directory and coverage profile paths stay valid inside the
    container.
    """

    name = "docker"

    def __init__(
        self,
        manager: DockerManager,
        *,
        writable_mounts: Sequence[Path],
        readonly_mounts: Sequence[Path],
        config: Settings = settings,
    ) -> None:
        self._manager = manager
        self._image = config.sandbox_image
        self._user = config.sandbox_user
        self._volumes = {
            **{str(p): {"bind": str(p), "mode": "ro"} for p in readonly_mounts},
            **{str(p): {"bind": str(p), "mode": "rw"} for p in writable_mounts},
        }
        try:
            self._manager.ensure_image(self._image)
        except DockerException as e:
            raise InfrastructureError(
                f"sandbox image {self._image} is unavailable"
            ) from e

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str],
    ) -> CommandResult:
        start = utc_now()
        try:
            exit_code, stdout, stderr = self._manager.run_to_completion(
                self._image,
                argv,
                volumes=self._volumes,
                working_dir=str(cwd),
                environment=env,
                user=self._user,
            )
        except DockerException as e:
            raise InfrastructureError(f"docker sandbox failed: {e}") from e
        return CommandResult(
            command=shlex.join(argv),
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            start_time=start,
            end_time=utc_now(),
        )
