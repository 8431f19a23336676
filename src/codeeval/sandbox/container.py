"""Docker-backed isolation provider.

Each unit is a container created with stdin held open and attached once
for the run.  The Docker client is process-wide shared state: it is
created once by the application and reused by every request, which only
ever owns the id of its own container.
"""

from __future__ import annotations

import logging
import re
import socket
from collections.abc import Iterator

import docker
import docker.errors
import requests.exceptions
from docker.utils.socket import frames_iter

from codeeval.errors import ProviderUnavailable, ResourceExhausted, WriteFailed
from codeeval.sandbox.security import ResourceLimits

logger = logging.getLogger(__name__)

# Daemon messages that mean the host ran out of something rather than that
# Docker itself is broken.
_EXHAUSTION_RE: re.Pattern[str] = re.compile(
    r"no space left|cannot allocate|out of memory|too many|"
    r"resource temporarily unavailable|quota",
    re.IGNORECASE,
)

_DOCKER_ERRORS = (docker.errors.DockerException, requests.exceptions.RequestException)


def _provision_error(action: str, exc: Exception) -> ProviderUnavailable | ResourceExhausted:
    """Classify a Docker failure raised while creating or starting a unit."""
    message = f"error {action} container: {exc}"
    if isinstance(exc, docker.errors.APIError) and _EXHAUSTION_RE.search(str(exc)):
        return ResourceExhausted(message)
    return ProviderUnavailable(message)


class DockerAttachment:
    """The hijacked attach connection of one container.

    Output arrives multiplexed in Docker's 8-byte framed format and is split
    back into stdout/stderr by :meth:`frames`.
    """

    def __init__(self, sock) -> None:
        self._sock = sock
        # The SDK hands back a SocketIO wrapper for local transports; writes
        # and shutdowns need the underlying socket.
        self._raw = getattr(sock, "_sock", sock)
        # Reads are bounded by the request deadline, not the client timeout.
        self._raw.settimeout(None)

    def write(self, data: bytes) -> None:
        self._raw.sendall(data)

    def close_write(self) -> None:
        self._raw.shutdown(socket.SHUT_WR)

    def frames(self) -> Iterator[tuple[int, bytes]]:
        return frames_iter(self._sock, tty=False)

    def close(self) -> None:
        try:
            self._raw.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already shut down by the peer.
            pass
        self._sock.close()
        if self._raw is not self._sock:
            self._raw.close()


class DockerProvider:
    """Creates, starts, attaches to and stops sandbox containers.

    All methods block; async callers dispatch them with
    ``asyncio.to_thread``.
    """

    def __init__(self, docker_client: docker.DockerClient | None = None) -> None:
        if docker_client is None:
            try:
                docker_client = docker.from_env()
            except _DOCKER_ERRORS as exc:
                logger.error("docker client error: %s", exc)
                raise ProviderUnavailable(f"error connecting to docker: {exc}") from exc
        self._client = docker_client

    def create(self, image: str, limits: ResourceLimits) -> str:
        """Create (but do not start) a container and return its id."""
        try:
            container = self._client.containers.create(
                image=image,
                stdin_open=True,
                # Not detached: stdin, stdout and stderr are attachable and
                # stdin closes after the first attached client disconnects.
                detach=False,
                tty=False,
                **limits.to_container_config(),
            )
        except _DOCKER_ERRORS as exc:
            logger.error("docker create error: %s", exc)
            raise _provision_error("creating", exc) from exc

        logger.info("Container created: id=%s image=%s", container.short_id, image)
        return container.id

    def start(self, handle: str) -> None:
        try:
            self._client.api.start(handle)
        except _DOCKER_ERRORS as exc:
            logger.error("docker start error: %s", exc)
            raise _provision_error("starting", exc) from exc

    def attach(self, handle: str) -> DockerAttachment:
        """Attach to stdin, stdout and stderr of a running container."""
        try:
            sock = self._client.api.attach_socket(
                handle,
                params={"stdin": 1, "stdout": 1, "stderr": 1, "stream": 1},
            )
        except _DOCKER_ERRORS as exc:
            logger.error("docker attach error: %s", exc)
            raise WriteFailed("error attaching to container") from exc
        return DockerAttachment(sock)

    def stop(self, handle: str, grace_seconds: int) -> None:
        """Stop the container, then remove it.

        Raises the Docker error on failure; callers decide whether it is
        worth more than a log line.
        """
        try:
            self._client.api.stop(handle, timeout=grace_seconds)
        except docker.errors.NotFound:
            logger.info("Container already gone: id=%s", handle[:12])
            return
        self._client.api.remove_container(handle, force=True)
        logger.info("Container removed: id=%s", handle[:12])

    def health_check(self) -> bool:
        try:
            return bool(self._client.ping())
        except _DOCKER_ERRORS:
            return False

    def close(self) -> None:
        self._client.close()
