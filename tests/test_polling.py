"""Tests for the submit/poll state machine."""

import asyncio

import httpx
import pytest

from quickscan.core.polling import InvalidTransition, PollingEngine, PollJob, PollState, PollStatus
from quickscan.modules.providers.tls_grade import classify_status


class ScriptedJob:
    """Serves a fixed sequence of provider responses."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.submits = 0
        self.polls = 0

    async def _next(self):
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def submit(self):
        self.submits += 1
        return await self._next()

    async def poll(self):
        self.polls += 1
        return await self._next()


class RecordingSleeper:
    """No-op sleeper that records requested delays."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def run_engine(responses, max_attempts=10, interval=15.0):
    job_source = ScriptedJob(responses)
    sleeper = RecordingSleeper()
    engine = PollingEngine(interval=interval, max_attempts=max_attempts, sleep=sleeper)
    job = asyncio.run(engine.run(job_source.submit, job_source.poll, classify_status))
    return job, job_source, sleeper


class TestPollJob:
    """Tests for PollJob transitions."""

    def test_ready_is_terminal(self):
        """Test READY ends the job."""
        job = PollJob(submitted_at=0.0, interval=1.0, max_attempts=3)
        assert job.advance(PollStatus.READY, {"status": "READY"}) == PollState.READY
        assert job.is_terminal
        assert job.attempts == 1

    def test_pending_until_budget(self):
        """Test pending responses time out when the budget is spent."""
        job = PollJob(submitted_at=0.0, interval=1.0, max_attempts=2)
        assert job.advance(PollStatus.PENDING) == PollState.PENDING
        assert job.advance(PollStatus.PENDING) == PollState.TIMED_OUT
        assert "2 attempts" in job.reason

    def test_error_keeps_reason(self):
        """Test provider error reason is recorded."""
        job = PollJob(submitted_at=0.0, interval=1.0, max_attempts=3)
        job.advance(PollStatus.ERROR, reason="Unable to resolve domain name")
        assert job.state == PollState.ERRORED
        assert job.reason == "Unable to resolve domain name"

    def test_terminal_job_cannot_advance(self):
        """Test terminal states are final."""
        job = PollJob(submitted_at=0.0, interval=1.0, max_attempts=3)
        job.advance(PollStatus.READY)
        with pytest.raises(InvalidTransition):
            job.advance(PollStatus.PENDING)
        with pytest.raises(InvalidTransition):
            job.fail("late failure")


class TestPollingEngine:
    """Tests for PollingEngine."""

    def test_cached_result_on_submit(self):
        """Test a READY submit response needs no polling."""
        job, source, sleeper = run_engine([{"status": "READY", "endpoints": []}])

        assert job.state == PollState.READY
        assert job.attempts == 1
        assert source.polls == 0
        assert sleeper.calls == []

    def test_ready_after_polling(self):
        """Test the engine sleeps between pending responses."""
        job, source, sleeper = run_engine([
            {"status": "DNS"},
            {"status": "IN_PROGRESS"},
            {"status": "READY"},
        ], interval=15.0)

        assert job.state == PollState.READY
        assert job.attempts == 3
        assert source.submits == 1
        assert source.polls == 2
        assert sleeper.calls == [15.0, 15.0]

    def test_error_status(self):
        """Test ERROR status ends the job with the provider message."""
        job, source, _ = run_engine([
            {"status": "IN_PROGRESS"},
            {"status": "ERROR", "statusMessage": "Unable to connect to the server"},
        ])

        assert job.state == PollState.ERRORED
        assert job.reason == "Unable to connect to the server"

    def test_times_out_after_exact_budget(self):
        """Test an always-pending job makes exactly max_attempts calls."""
        job, source, sleeper = run_engine([{"status": "IN_PROGRESS"}] * 20, max_attempts=10)

        assert job.state == PollState.TIMED_OUT
        assert source.submits + source.polls == 10
        assert len(sleeper.calls) == 9

    def test_transport_error_ends_job(self):
        """Test a transport failure is terminal without retries."""
        job, source, _ = run_engine([
            {"status": "IN_PROGRESS"},
            httpx.ConnectError("connection reset"),
            {"status": "READY"},
        ])

        assert job.state == PollState.ERRORED
        assert job.attempts == 2
        assert "ConnectError" in job.reason
        assert len(source.responses) == 1

    def test_malformed_response_ends_job(self):
        """Test a non-object response is treated as a failure."""
        job, _, _ = run_engine(["not json object"])

        assert job.state == PollState.ERRORED
        assert job.attempts == 1

    def test_ceiling(self):
        """Test sleep ceiling is interval times the number of waits."""
        assert PollingEngine(interval=15.0, max_attempts=12).ceiling == 165.0

    def test_invalid_budget(self):
        """Test a zero attempt budget is rejected."""
        with pytest.raises(ValueError):
            PollingEngine(max_attempts=0)

    def test_cancellation_propagates(self):
        """Test cancelling the caller stops the loop."""
        async def scenario():
            async def pending():
                return {"status": "IN_PROGRESS"}

            engine = PollingEngine(interval=60.0, max_attempts=5)
            task = asyncio.ensure_future(engine.run(pending, pending, classify_status))
            await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
