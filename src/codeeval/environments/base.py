"""Environment lifecycle: one isolated unit bound to one request."""

from __future__ import annotations

import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from codeeval.config import Settings
from codeeval.context import RequestContext
from codeeval.errors import EnvironmentStateError, ProvisionTimeout
from codeeval.models.enums import EnvironmentState
from codeeval.models.response import RunResponse
from codeeval.sandbox.provider import Attachment, IsolationProvider
from codeeval.sandbox.runner import execute
from codeeval.sandbox.security import ResourceLimits
from codeeval.tasks import track

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnvironmentSpec:
    """Everything the provider needs to provision a unit.

    Attributes
    ----------
    name:
        Registered environment name, e.g. ``python``.
    image:
        Image the unit is created from.  The image's own entrypoint reads
        the program from standard input.
    limits:
        Resource limits fixed at creation.
    """

    name: str
    image: str
    limits: ResourceLimits


class BaseEnvironment(ABC):
    """Abstract base class for language environments.

    Subclasses set ``name`` and implement :meth:`prepare`.
    """

    name: str

    @abstractmethod
    def prepare(self, settings: Settings) -> EnvironmentSpec:
        """Build the provisioning spec for this environment from *settings*."""
        ...


def _stop_quietly(provider: IsolationProvider, handle: str, grace_seconds: int) -> None:
    try:
        provider.stop(handle, grace_seconds)
    except Exception:
        logger.exception("Failed to stop container %s", handle[:12])


def _create_and_start(provider: IsolationProvider, spec: EnvironmentSpec, grace_seconds: int) -> str:
    handle = provider.create(spec.image, spec.limits)
    try:
        provider.start(handle)
    except Exception:
        # Never hand back, or leak, a unit that did not start.
        _stop_quietly(provider, handle, grace_seconds)
        raise
    return handle


def _reap_late_unit(provider: IsolationProvider, grace_seconds: int, task: asyncio.Task) -> None:
    """Stop a unit whose provisioning finished after the request gave up."""
    if task.cancelled() or task.exception() is not None:
        return
    handle = task.result()
    logger.warning("Provisioned container %s after its request gave up; stopping it", handle[:12])
    track(asyncio.create_task(
        asyncio.to_thread(_stop_quietly, provider, handle, grace_seconds),
        name=f"reap-{handle[:12]}",
    ))


def _close_late_attachment(task: asyncio.Task) -> None:
    """Close an attachment that was obtained after the run gave up."""
    if task.cancelled() or task.exception() is not None:
        return
    attachment: Attachment = task.result()
    attachment.close()


class Environment:
    """One isolated execution unit, owned exclusively by one request.

    The lifecycle is ``PROVISIONING -> IDLE -> RUNNING -> {COMPLETED |
    TIMED_OUT | FAILED} -> CLEANING -> GONE``.  :meth:`run` may be called
    exactly once; :meth:`cleanup` is idempotent and never raises.

    Callers obtain instances from :meth:`provision`, which only returns
    them once the unit has started.
    """

    def __init__(
        self,
        provider: IsolationProvider,
        name: str,
        max_output_bytes: int = 0,
        stop_grace_seconds: int = 5,
    ) -> None:
        self._provider = provider
        self._handle: str | None = None
        self._name = name
        self._max_output_bytes = max_output_bytes
        self._stop_grace_seconds = stop_grace_seconds
        self._state = EnvironmentState.PROVISIONING

    @property
    def handle(self) -> str | None:
        return self._handle

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> EnvironmentState:
        return self._state

    @classmethod
    async def provision(
        cls,
        provider: IsolationProvider,
        spec: EnvironmentSpec,
        ctx: RequestContext,
        *,
        max_output_bytes: int = 0,
        stop_grace_seconds: int = 5,
    ) -> Environment:
        """Create and start a unit for *spec* within the deadline of *ctx*.

        Raises
        ------
        ProviderUnavailable, ResourceExhausted
            If the provider cannot create or start the unit.
        ProvisionTimeout
            If the deadline elapses first.  A unit that finishes starting
            afterwards is stopped in the background, as it is when the
            caller is cancelled.
        """
        env = cls(
            provider,
            spec.name,
            max_output_bytes=max_output_bytes,
            stop_grace_seconds=stop_grace_seconds,
        )
        await env._start(spec, ctx)
        return env

    async def _start(self, spec: EnvironmentSpec, ctx: RequestContext) -> None:
        task = asyncio.create_task(
            asyncio.to_thread(_create_and_start, self._provider, spec, self._stop_grace_seconds),
            name=f"provision-{spec.name}",
        )
        try:
            done, _ = await asyncio.wait({task}, timeout=ctx.remaining())
        except asyncio.CancelledError:
            self._abandon_provisioning(task)
            raise

        if not done:
            self._abandon_provisioning(task)
            raise ProvisionTimeout(f"timed out starting {spec.name} environment")

        self._handle = task.result()
        self._state = EnvironmentState.IDLE
        logger.info("Environment ready: name=%s id=%s", spec.name, self._handle[:12])

    def _abandon_provisioning(self, task: asyncio.Task) -> None:
        self._state = EnvironmentState.GONE
        task.add_done_callback(
            functools.partial(_reap_late_unit, self._provider, self._stop_grace_seconds)
        )
        track(task)

    async def run(self, ctx: RequestContext, body: str) -> RunResponse:
        """Stream *body* into the unit and return what it printed.

        Raises
        ------
        EnvironmentStateError
            If the environment is not ``IDLE``: not yet started, already
            run, or cleaned up.
        WriteFailed, DrainFailed
            If the unit's streams could not be written or read.
        """
        if self._state is not EnvironmentState.IDLE:
            raise EnvironmentStateError(
                f"environment {self._name} cannot run in state {self._state}; "
                "environments are single-use"
            )
        self._state = EnvironmentState.RUNNING

        try:
            attach = asyncio.create_task(
                asyncio.to_thread(self._provider.attach, self._handle),
                name=f"attach-{self._handle[:12]}",
            )
            try:
                done, _ = await asyncio.wait({attach}, timeout=ctx.remaining())
            except asyncio.CancelledError:
                attach.add_done_callback(_close_late_attachment)
                track(attach)
                raise

            if not done:
                logger.info("Deadline elapsed while attaching to %s", self._handle[:12])
                attach.add_done_callback(_close_late_attachment)
                track(attach)
                self._state = EnvironmentState.TIMED_OUT
                return RunResponse(timed_out=True)

            response = await execute(attach.result(), body, ctx, self._max_output_bytes)
        except BaseException:
            self._state = EnvironmentState.FAILED
            raise

        self._state = EnvironmentState.TIMED_OUT if response.timed_out else EnvironmentState.COMPLETED
        logger.info(
            "Run finished: name=%s id=%s state=%s",
            self._name,
            self._handle[:12],
            self._state,
        )
        return response

    async def cleanup(self) -> None:
        """Stop the unit.  Best-effort: failures are logged, never raised.

        A unit that fails to stop is abandoned and left to be reaped out
        of band.
        """
        if self._handle is None or self._state in (EnvironmentState.CLEANING, EnvironmentState.GONE):
            logger.debug("Nothing to clean up for %s environment", self._name)
            return
        self._state = EnvironmentState.CLEANING
        try:
            await asyncio.to_thread(self._provider.stop, self._handle, self._stop_grace_seconds)
        except Exception:
            logger.exception("docker client stop error: id=%s", self._handle[:12])
        finally:
            self._state = EnvironmentState.GONE
