"""
Docker Interaction Layer for go-grader.

This module provides a small API over `docker-py` for the one thing the
grader needs from Docker: running a submission binary to completion in a
throwaway, network-less container.
"""

from collections.abc import Mapping, Sequence

import docker
from docker import DockerClient
from docker.errors import DockerException, ImageNotFound, NotFound
from docker.models.containers import Container
from loguru import logger

from go_grader.config import settings


class DockerManager:
    """
    Manages the images and containers used by the docker sandbox backend.
    """

    @classmethod
    def get_client(cls, quiet: bool = True) -> DockerClient:
        """
        Tests the connection to Docker daemon and returns a Docker client.

        Parameters
        ----------
        quiet
            If True, suppresses debug messages.

        Raises
        ------
        DockerException
            If the Docker daemon is not running or cannot be reached.
        """

        def maybe_log(msg: str) -> None:
            if not quiet:
                logger.info(msg)

        try:
            maybe_log("Attempting to connect to Docker daemon...")

            if settings.docker_host:
                maybe_log(f"  > Using configured host: {settings.docker_host}")
                client = docker.DockerClient(base_url=settings.docker_host)
            else:
                maybe_log("  > No host configured, using auto-detection (from_env).")
                client = docker.from_env()  # type: ignore[reportUnknownMemberType]

            if not client.ping():  # type: ignore[reportUnknownMemberType]
                raise DockerException(
                    "Docker daemon responded to ping, but in a failed state."
                )

            maybe_log("✅ Docker client initialized successfully.")

            return client

        except DockerException as e:
            raise DockerException(
                "❌ Error: Docker is not running or is not configured correctly."
            ) from e

    def __init__(self, quiet_init: bool = True, client: DockerClient | None = None):
        self._client = client or self.get_client(quiet=quiet_init)

    def image_exists(self, tag: str) -> bool:
        """Check if a Docker image with the given tag exists locally."""
        try:
            self._client.images.get(tag)
            return True
        except ImageNotFound:
            return False

    def ensure_image(self, tag: str) -> None:
        """Pull `tag` unless it is already present locally."""
        if self.image_exists(tag):
            return
        logger.info(f"Pulling sandbox image {tag}...")
        self._client.images.pull(tag)  # type: ignore[reportUnknownMemberType]
        logger.debug(f"✅ Pulled {tag}")

    def run_to_completion(
        self,
        image: str,
        command: Sequence[str],
        *,
        volumes: Mapping[str, Mapping[str, str]],
        working_dir: str,
        environment: Mapping[str, str],
        user: str,
        network_disabled: bool = True,
    ) -> tuple[int, str, str]:
        """
        Run `command` in a fresh container and wait for it to exit.

        Returns
        -------
        A tuple containing (exit_code, stdout, stderr).
        """
        container: Container = self._client.containers.run(  # type: ignore[reportUnknownMemberType]
            image,
            command=list(command),
            volumes={k: dict(v) for k, v in volumes.items()},
            working_dir=working_dir,
            environment=dict(environment),
            user=user,
            network_disabled=network_disabled,
            detach=True,
        )
        logger.debug(f"Started container {container.short_id}: {list(command)}")
        try:
            status = container.wait()
            stdout = container.logs(stdout=True, stderr=False).decode(
                "utf-8", errors="replace"
            )
            stderr = container.logs(stdout=False, stderr=True).decode(
                "utf-8", errors="replace"
            )
            return int(status.get("StatusCode", 1)), stdout, stderr
        finally:
            self.cleanup_container(container)

    def cleanup_container(self, container: Container) -> None:
        """
        Stops and removes a container, handling errors gracefully.
        """
        try:
            container.reload()
            if container.status == "running":
                logger.debug(f"Stopping container: {container.short_id}")
                container.stop()
            logger.debug(f"Removing container: {container.short_id}")
            container.remove()
        except NotFound:  # pragma: no cover
            logger.debug(f"Container {container.short_id} already removed.")
        except DockerException as e:  # pragma: no cover
            logger.error(f"⚠️  Could not clean up container {container.short_id}: {e}")
