"""Request handling: provision an environment, run the program, schedule
teardown.

Teardown is fire-and-forget.  The response never waits for it, and its
failures are visible only in the logs.
"""

from __future__ import annotations

import asyncio
import logging

from codeeval.config import Settings
from codeeval.context import RequestContext
from codeeval.environments import Environment, provision
from codeeval.models.response import RunResponse
from codeeval.sandbox.provider import IsolationProvider
from codeeval.tasks import wait_background

logger = logging.getLogger(__name__)


class Janitor:
    """Runs environment cleanups as detached tasks.

    Holds a reference to every pending cleanup so it is not garbage
    collected mid-flight, and lets the application wait for stragglers on
    shutdown.
    """

    def __init__(self) -> None:
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def schedule(self, env: Environment) -> asyncio.Task:
        task = asyncio.create_task(env.cleanup(), name=f"cleanup-{env.handle[:12]}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every cleanup scheduled so far, then for late reaps and
        abandoned streams, so the provider is idle when it is closed."""
        if self._pending:
            logger.info("Waiting for %d pending cleanups", len(self._pending))
            await asyncio.wait(set(self._pending))
        await wait_background()


async def handle_request(
    env_name: str,
    body: str,
    ctx: RequestContext,
    *,
    provider: IsolationProvider,
    settings: Settings,
    janitor: Janitor,
) -> RunResponse:
    """Run *body* in a fresh *env_name* environment.

    Provisioning errors propagate without any cleanup, since no environment
    exists yet.  Once an environment exists its cleanup is scheduled exactly
    once, whatever the outcome of the run.

    Raises
    ------
    ProvisionError
        ``UnknownEnvironment``, ``ProviderUnavailable``,
        ``ResourceExhausted`` or ``ProvisionTimeout``.
    RunError
        ``WriteFailed`` or ``DrainFailed``.
    """
    env = await provision(env_name, provider, settings, ctx)
    try:
        return await env.run(ctx, body)
    finally:
        janitor.schedule(env)
