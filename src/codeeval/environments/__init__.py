"""Execution environments and the name-to-environment selector.

Use :func:`provision` to turn a requested environment name into a ready
:class:`Environment`.  New languages are added by registering another
:class:`BaseEnvironment` subclass in ``_ENVIRONMENT_MAP``.
"""

from __future__ import annotations

from codeeval.config import Settings
from codeeval.context import RequestContext
from codeeval.environments.base import BaseEnvironment, Environment, EnvironmentSpec
from codeeval.environments.python_env import PythonEnvironment
from codeeval.errors import UnknownEnvironment
from codeeval.sandbox.provider import IsolationProvider

__all__ = [
    "BaseEnvironment",
    "Environment",
    "EnvironmentSpec",
    "PythonEnvironment",
    "get_environment",
    "provision",
]

# ---------------------------------------------------------------------------
# Environment name -> environment class mapping (case-sensitive)
# ---------------------------------------------------------------------------

_ENVIRONMENT_MAP: dict[str, type[BaseEnvironment]] = {
    "python": PythonEnvironment,
    "py": PythonEnvironment,
}


def get_environment(name: str) -> BaseEnvironment:
    """Return the environment registered under *name*.

    Raises
    ------
    UnknownEnvironment
        If *name* is not registered.  No unit is created.
    """
    env_cls = _ENVIRONMENT_MAP.get(name)
    if env_cls is None:
        raise UnknownEnvironment(name)
    return env_cls()


async def provision(
    name: str,
    provider: IsolationProvider,
    settings: Settings,
    ctx: RequestContext,
) -> Environment:
    """Look up *name* and provision a fresh environment for it."""
    spec = get_environment(name).prepare(settings)
    return await Environment.provision(
        provider,
        spec,
        ctx,
        max_output_bytes=settings.max_output_bytes,
        stop_grace_seconds=settings.stop_grace_seconds,
    )
