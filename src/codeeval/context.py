"""Request context carrying the caller's deadline."""

from __future__ import annotations

import time
from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    """A monotonic deadline shared by provisioning and run.

    Everything executed on behalf of one request derives its own timeouts
    from :meth:`remaining`, so no step can outlive the request.
    """

    deadline: float

    @classmethod
    def with_timeout(cls, seconds: float, ceiling: float | None = None) -> RequestContext:
        """Create a context expiring *seconds* from now, capped at *ceiling*."""
        if ceiling is not None:
            seconds = min(seconds, ceiling)
        return cls(deadline=time.monotonic() + max(seconds, 0.0))

    def remaining(self) -> float:
        return max(self.deadline - time.monotonic(), 0.0)

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.deadline
