"""Tests for the execution runner's write/drain/deadline race."""

from __future__ import annotations

import asyncio
import time

import pytest

from conftest import FakeAttachment
from codeeval.context import RequestContext
from codeeval.errors import DrainFailed, WriteFailed
from codeeval.sandbox.provider import STDERR, STDOUT
from codeeval.sandbox.runner import CaptureBuffer, execute

# Generous upper bound for teardown after a forced close.
_TEARDOWN_SLACK = 1.0


class TestCaptureBuffer:
    def test_unbounded_keeps_everything(self):
        buf = CaptureBuffer()
        buf.write(b"a" * 10)
        buf.write(b"b" * 10)
        assert buf.getvalue() == b"a" * 10 + b"b" * 10
        assert buf.truncated is False

    def test_limit_truncates_and_marks(self):
        buf = CaptureBuffer(limit=4)
        buf.write(b"abc")
        buf.write(b"def")
        buf.write(b"ghi")
        assert buf.getvalue() == b"abcd"
        assert buf.truncated is True
        assert buf.text().startswith("abcd")
        assert "truncated" in buf.text()

    def test_invalid_utf8_is_replaced(self):
        buf = CaptureBuffer()
        buf.write(b"ok \xff")
        assert buf.text() == "ok �"


class TestExecute:
    @pytest.mark.asyncio
    async def test_completed_run_returns_exact_output(self):
        attachment = FakeAttachment()
        resp = await execute(attachment, "print('hi')", RequestContext.with_timeout(5))
        assert resp.stdout == "hi\n"
        assert resp.stderr == ""
        assert resp.timed_out is False
        assert bytes(attachment.written) == b"print('hi')"
        assert attachment.write_closed is True

    @pytest.mark.asyncio
    async def test_streams_are_kept_apart_in_order(self):
        script = lambda body: [
            (STDOUT, b"one\n"),
            (STDERR, b"warn\n"),
            (STDOUT, b"two\n"),
            (STDERR, b"err\n"),
        ]
        attachment = FakeAttachment(script=script)
        resp = await execute(attachment, "x", RequestContext.with_timeout(5))
        assert resp.stdout == "one\ntwo\n"
        assert resp.stderr == "warn\nerr\n"

    @pytest.mark.asyncio
    async def test_output_before_input_finished_is_captured(self):
        attachment = FakeAttachment(early=[(STDOUT, b"banner\n")])
        resp = await execute(attachment, "print('hi')", RequestContext.with_timeout(5))
        assert resp.stdout == "banner\nhi\n"

    @pytest.mark.asyncio
    async def test_empty_body_signals_eof(self):
        attachment = FakeAttachment()
        resp = await execute(attachment, "", RequestContext.with_timeout(5))
        assert attachment.write_closed is True
        assert bytes(attachment.written) == b""
        assert resp.timed_out is False
        assert resp.stdout == ""

    @pytest.mark.asyncio
    async def test_deadline_returns_partial_output(self):
        attachment = FakeAttachment(
            script=lambda body: [(STDOUT, b"tick\n"), (STDOUT, b"tick\n")],
            hang=True,
        )
        started = time.monotonic()
        resp = await execute(attachment, "while True: ...", RequestContext.with_timeout(0.3))
        elapsed = time.monotonic() - started

        assert resp.timed_out is True
        assert resp.stdout == "tick\ntick\n"
        assert attachment.closed is True
        assert elapsed < 0.3 + _TEARDOWN_SLACK

    @pytest.mark.asyncio
    async def test_deadline_with_no_output(self):
        attachment = FakeAttachment(script=None, hang=True)
        resp = await execute(attachment, "import time; time.sleep(99)", RequestContext.with_timeout(0.1))
        assert resp.timed_out is True
        assert resp.stdout == ""
        assert resp.stderr == ""

    @pytest.mark.asyncio
    async def test_deadline_while_writing_is_a_timeout(self):
        attachment = FakeAttachment(block_write=True)
        resp = await execute(attachment, "x" * 100, RequestContext.with_timeout(0.2))
        assert resp.timed_out is True
        assert attachment.closed is True

    @pytest.mark.asyncio
    async def test_write_failure_raises_without_waiting_for_drain(self):
        attachment = FakeAttachment(write_error=BrokenPipeError("broken pipe"), hang=True)
        started = time.monotonic()
        with pytest.raises(WriteFailed, match="error writing program"):
            await execute(attachment, "print('hi')", RequestContext.with_timeout(5))
        assert time.monotonic() - started < 1.0
        assert attachment.closed is True

    @pytest.mark.asyncio
    async def test_drain_failure_is_a_run_error(self):
        attachment = FakeAttachment(drain_error=ConnectionResetError("reset"))
        with pytest.raises(DrainFailed, match="reset"):
            await execute(attachment, "print('hi')", RequestContext.with_timeout(5))

    @pytest.mark.asyncio
    async def test_output_cap_applies_per_stream(self):
        script = lambda body: [(STDOUT, b"x" * 100), (STDERR, b"y" * 3)]
        attachment = FakeAttachment(script=script)
        resp = await execute(attachment, "spam", RequestContext.with_timeout(5), max_output_bytes=10)
        assert resp.stdout.startswith("x" * 10)
        assert "truncated" in resp.stdout
        assert resp.stderr == "yyy"

    @pytest.mark.asyncio
    async def test_caller_cancellation_closes_and_joins(self):
        attachment = FakeAttachment(script=None, hang=True)
        task = asyncio.create_task(execute(attachment, "x", RequestContext.with_timeout(30)))
        await asyncio.sleep(0.1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert attachment.closed is True
