"""Sandbox subsystem: isolation provider contract, Docker provider and the
execution runner."""

from codeeval.sandbox.container import DockerAttachment, DockerProvider
from codeeval.sandbox.provider import Attachment, IsolationProvider
from codeeval.sandbox.runner import CaptureBuffer, execute
from codeeval.sandbox.security import ResourceLimits

__all__ = [
    "Attachment",
    "CaptureBuffer",
    "DockerAttachment",
    "DockerProvider",
    "IsolationProvider",
    "ResourceLimits",
    "execute",
]
