"""Shared fixtures: an in-memory isolation provider standing in for Docker."""

from __future__ import annotations

import queue
import threading
import time
import uuid
from collections.abc import Callable, Iterator

import pytest

from codeeval.config import Settings
from codeeval.sandbox.provider import STDERR, STDOUT

Script = Callable[[bytes], list[tuple[int, bytes]]]

_END = object()


def echo_script(body: bytes) -> list[tuple[int, bytes]]:
    """Pretend interpreter: ``print('hi')`` prints, anything else is echoed to stderr."""
    if body == b"print('hi')":
        return [(STDOUT, b"hi\n")]
    if not body:
        return []
    return [(STDERR, body)]


class FakeAttachment:
    """Attachment whose output is scripted.

    *early* frames are available before any input is written.  When the
    input is half-closed, *script* is called with everything written and
    its frames follow.  Unless *hang* is set, end-of-stream comes next;
    with *hang* the stream stays open until :meth:`close`.
    """

    def __init__(
        self,
        script: Script | None = echo_script,
        early: list[tuple[int, bytes]] | None = None,
        hang: bool = False,
        write_error: Exception | None = None,
        block_write: bool = False,
        drain_error: Exception | None = None,
    ) -> None:
        self.written = bytearray()
        self.write_closed = False
        self.closed = False
        self._script = script
        self._hang = hang
        self._write_error = write_error
        self._block_write = block_write
        self._drain_error = drain_error
        self._closed_event = threading.Event()
        self._frames: queue.Queue = queue.Queue()
        for frame in early or []:
            self._frames.put(frame)

    def write(self, data: bytes) -> None:
        if self._block_write:
            self._closed_event.wait()
            raise BrokenPipeError("connection closed")
        if self._write_error is not None:
            raise self._write_error
        self.written += data

    def close_write(self) -> None:
        self.write_closed = True
        if self._script is not None:
            for frame in self._script(bytes(self.written)):
                self._frames.put(frame)
        if self._drain_error is not None:
            self._frames.put(self._drain_error)
        elif not self._hang:
            self._frames.put(_END)

    def frames(self) -> Iterator[tuple[int, bytes]]:
        while True:
            item = self._frames.get()
            if item is _END:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    def close(self) -> None:
        self.closed = True
        self._closed_event.set()
        self._frames.put(_END)


class FakeProvider:
    """Records every call; hands out :class:`FakeAttachment` instances."""

    def __init__(
        self,
        attachment_factory: Callable[[], FakeAttachment] = FakeAttachment,
        create_error: Exception | None = None,
        start_error: Exception | None = None,
        attach_error: Exception | None = None,
        stop_error: Exception | None = None,
        create_delay: float = 0.0,
        attach_delay: float = 0.0,
        healthy: bool = True,
    ) -> None:
        self.attachment_factory = attachment_factory
        self.create_error = create_error
        self.start_error = start_error
        self.attach_error = attach_error
        self.stop_error = stop_error
        self.create_delay = create_delay
        self.attach_delay = attach_delay
        self.healthy = healthy
        self.created: list[tuple[str, str]] = []
        self.started: list[str] = []
        self.attachments: list[FakeAttachment] = []
        self.stopped: list[str] = []

    def create(self, image, limits) -> str:
        if self.create_delay:
            time.sleep(self.create_delay)
        if self.create_error is not None:
            raise self.create_error
        handle = uuid.uuid4().hex
        self.created.append((handle, image))
        return handle

    def start(self, handle: str) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.started.append(handle)

    def attach(self, handle: str) -> FakeAttachment:
        if self.attach_delay:
            time.sleep(self.attach_delay)
        if self.attach_error is not None:
            raise self.attach_error
        attachment = self.attachment_factory()
        self.attachments.append(attachment)
        return attachment

    def stop(self, handle: str, grace_seconds: int) -> None:
        self.stopped.append(handle)
        if self.stop_error is not None:
            raise self.stop_error

    def health_check(self) -> bool:
        return self.healthy


@pytest.fixture
def settings() -> Settings:
    return Settings(psk="secret", request_timeout_seconds=5.0, max_output_bytes=0)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
