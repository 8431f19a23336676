"""Contract between the execution core and an isolation provider.

The core never implements isolation itself.  It creates, starts, attaches
to and stops units through an :class:`IsolationProvider`, and talks to an
attached unit only through an :class:`Attachment`.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol

from codeeval.sandbox.security import ResourceLimits

# Stream identifiers yielded by Attachment.frames().
STDOUT = 1
STDERR = 2


class Attachment(Protocol):
    """Bidirectional byte streams of one attached unit."""

    def write(self, data: bytes) -> None:
        """Write all of *data* to the unit's standard input."""
        ...

    def close_write(self) -> None:
        """Half-close the input so the unit observes EOF on stdin."""
        ...

    def frames(self) -> Iterator[tuple[int, bytes]]:
        """Yield ``(stream_id, chunk)`` pairs until end-of-stream."""
        ...

    def close(self) -> None:
        """Forcibly close the connection, unblocking any pending read."""
        ...


class IsolationProvider(Protocol):
    """Creates, starts, attaches to and stops isolated execution units.

    A provider is shared process-wide.  Callers own the handles they
    create, never the provider's underlying transport.
    """

    def create(self, image: str, limits: ResourceLimits) -> str:
        ...

    def start(self, handle: str) -> None:
        ...

    def attach(self, handle: str) -> Attachment:
        ...

    def stop(self, handle: str, grace_seconds: int) -> None:
        ...

    def health_check(self) -> bool:
        ...
