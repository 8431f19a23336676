"""Execution runner: stream a program into an attached unit and race its
output against the request deadline.

Exactly one drain task runs per execution.  It demultiplexes the attached
output stream into separate stdout/stderr buffers while the program body is
still being written, and the runner waits on the first of two signals: the
drain reaching end-of-stream, or the deadline.  The buffers are written only
by the drain task and read only after it has finished.
"""

from __future__ import annotations

import asyncio
import logging

from codeeval.context import RequestContext
from codeeval.errors import DrainFailed, WriteFailed
from codeeval.models.response import RunResponse
from codeeval.sandbox.provider import STDERR, Attachment
from codeeval.tasks import track

logger = logging.getLogger(__name__)

_TRUNCATION_MARKER = "\n... [output truncated]\n"


class CaptureBuffer:
    """Accumulates one output stream, keeping at most *limit* bytes.

    A limit of ``0`` keeps everything.  Bytes beyond the limit are dropped
    but still consumed, so the sandboxed process never blocks on a full pipe.
    """

    def __init__(self, limit: int = 0) -> None:
        self._limit = limit
        self._chunks: list[bytes] = []
        self._size = 0
        self.truncated = False

    def write(self, data: bytes) -> None:
        if self._limit:
            room = self._limit - self._size
            if len(data) > room:
                self.truncated = True
                data = data[:room]
            if not data:
                return
        self._chunks.append(data)
        self._size += len(data)

    def getvalue(self) -> bytes:
        return b"".join(self._chunks)

    def text(self) -> str:
        """Best-effort UTF-8 decode, marking truncated output."""
        text = self.getvalue().decode("utf-8", errors="replace")
        if self.truncated:
            text += _TRUNCATION_MARKER
        return text


def _drain(attachment: Attachment, stdout: CaptureBuffer, stderr: CaptureBuffer) -> None:
    for stream, chunk in attachment.frames():
        if stream == STDERR:
            stderr.write(chunk)
        else:
            stdout.write(chunk)


def _write_program(attachment: Attachment, payload: bytes) -> None:
    attachment.write(payload)
    try:
        attachment.close_write()
    except OSError as exc:
        # The process can still finish; the deadline bounds it otherwise.
        logger.error("could not close writer: %s", exc)


def _log_abandoned_drain(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.debug("abandoned drain ended with: %s", task.exception())


async def _abort(attachment: Attachment, *tasks: asyncio.Task) -> None:
    """Force-close the attachment and join *tasks*.

    The forced close guarantees the streams end, so the join is bounded.
    """
    attachment.close()
    await asyncio.wait(tasks)
    for task in tasks:
        if not task.cancelled() and task.exception() is not None:
            logger.debug("task %s ended after forced close: %s", task.get_name(), task.exception())


def _response(stdout: CaptureBuffer, stderr: CaptureBuffer, timed_out: bool) -> RunResponse:
    return RunResponse(stdout=stdout.text(), stderr=stderr.text(), timed_out=timed_out)


async def execute(
    attachment: Attachment,
    body: str,
    ctx: RequestContext,
    max_output_bytes: int = 0,
) -> RunResponse:
    """Run *body* through *attachment* and collect its output.

    Returns a response with ``timed_out=True`` and partial output when the
    deadline of *ctx* elapses first.

    Raises
    ------
    WriteFailed
        If the program body could not be written.  The drain task is not
        awaited in that case.
    DrainFailed
        If reading the output stream failed before end-of-stream.
    """
    stdout = CaptureBuffer(max_output_bytes)
    stderr = CaptureBuffer(max_output_bytes)

    drain = asyncio.create_task(
        asyncio.to_thread(_drain, attachment, stdout, stderr),
        name="drain",
    )
    writer = asyncio.create_task(
        asyncio.to_thread(_write_program, attachment, body.encode("utf-8", errors="replace")),
        name="write",
    )

    # ---- 1. Write the program and signal EOF -------------------------------
    try:
        done, _ = await asyncio.wait({writer}, timeout=ctx.remaining())
    except asyncio.CancelledError:
        await _abort(attachment, drain, writer)
        raise

    if not done:
        logger.info("Deadline elapsed while writing program; forcing close")
        await _abort(attachment, drain, writer)
        return _response(stdout, stderr, timed_out=True)

    write_exc = writer.exception()
    if write_exc is not None:
        attachment.close()
        drain.add_done_callback(_log_abandoned_drain)
        track(drain)
        raise WriteFailed(f"error writing program to container: {write_exc}") from write_exc

    logger.debug("copied in body; waiting for response: %r", body)

    # ---- 2. Race the drain against the deadline ----------------------------
    try:
        done, _ = await asyncio.wait({drain}, timeout=ctx.remaining())
    except asyncio.CancelledError:
        await _abort(attachment, drain)
        raise

    if not done:
        logger.info("Deadline elapsed before output drained; forcing close")
        await _abort(attachment, drain)
        return _response(stdout, stderr, timed_out=True)

    attachment.close()
    drain_exc = drain.exception()
    if drain_exc is not None:
        raise DrainFailed(f"error reading program output: {drain_exc}") from drain_exc
    return _response(stdout, stderr, timed_out=False)
