"""Python environment."""

from __future__ import annotations

from codeeval.config import Settings
from codeeval.environments.base import BaseEnvironment, EnvironmentSpec
from codeeval.sandbox.security import ResourceLimits


class PythonEnvironment(BaseEnvironment):
    """Runs the submitted program with the image's Python interpreter.

    The image's entrypoint reads the whole program from standard input and
    executes it once EOF is seen.
    """

    name: str = "python"

    def prepare(self, settings: Settings) -> EnvironmentSpec:
        return EnvironmentSpec(
            name=self.name,
            image=settings.python_image,
            limits=ResourceLimits(
                memory_limit_mb=settings.memory_limit_mb,
                cpu_period=settings.cpu_period,
                cpu_quota=settings.cpu_quota,
                pids_limit=settings.pids_limit,
                dns_servers=tuple(settings.dns_servers),
            ),
        )
