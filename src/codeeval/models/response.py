"""Wire-level request and response models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RunResponse(BaseModel):
    """Result of exactly one run invocation.

    When ``timed_out`` is true, ``stdout`` and ``stderr`` hold only what the
    program produced before it was forcibly cut off.
    """

    model_config = ConfigDict(populate_by_name=True)

    stdout: str = Field(default="", description="Captured standard output.")
    stderr: str = Field(default="", description="Captured standard error.")
    timed_out: bool = Field(
        default=False,
        alias="timeout",
        description="True iff the deadline elapsed before the output was drained.",
    )


class EvalRequest(BaseModel):
    """Request body for ``POST /``."""

    key: str = Field(description="Preshared secret.")
    env: str = Field(description="Name of the execution environment, e.g. 'python'.")
    contents: str = Field(default="", description="Program source to execute.")


class EvalResponse(BaseModel):
    """Response body for ``POST /``."""

    response: RunResponse
