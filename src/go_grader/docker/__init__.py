"""Docker infrastructure used by the docker sandbox backend."""

from .manager import DockerManager

__all__ = ["DockerManager"]
