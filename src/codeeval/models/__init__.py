"""Domain models for the evaluation service."""

from codeeval.models.enums import EnvironmentState
from codeeval.models.response import EvalRequest, EvalResponse, RunResponse

__all__ = [
    "EnvironmentState",
    "EvalRequest",
    "EvalResponse",
    "RunResponse",
]
