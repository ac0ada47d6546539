"""
Bounded submit/poll state machine for asynchronous provider jobs.

A provider that runs its work server-side (the TLS grader) is driven
through :class:`PollingEngine`. The engine owns a :class:`PollJob`, calls
``submit`` once and then ``poll`` until the provider reports a terminal
status or the attempt budget runs out. Sleeping between attempts goes
through an injectable ``sleep`` coroutine so the loop composes with
cancellation and can be driven without real delays.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from quickscan.core.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[Any]]


class PollStatus(str, Enum):
    """Provider status as seen by the engine."""
    READY = "ready"
    ERROR = "error"
    PENDING = "pending"


class PollState(str, Enum):
    """PollJob lifecycle states."""
    PENDING = "pending"
    READY = "ready"
    ERRORED = "errored"
    TIMED_OUT = "timed_out"


TERMINAL_STATES = frozenset({PollState.READY, PollState.ERRORED, PollState.TIMED_OUT})


class InvalidTransition(RuntimeError):
    """A terminal PollJob was advanced again."""


@dataclass
class PollJob(Generic[T]):
    """
    State of one asynchronous provider job.

    Mutated only by the engine that created it; discarded once the
    caller has read the terminal state.
    """
    submitted_at: float
    interval: float
    max_attempts: int
    attempts: int = 0
    state: PollState = PollState.PENDING
    payload: Optional[T] = None
    reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def budget_exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def advance(self, status: PollStatus, payload: Optional[T] = None, reason: Optional[str] = None) -> PollState:
        """
        Record one submit/poll response and move to the next state.

        Args:
            status: Classified provider status
            payload: Provider response for this attempt
            reason: Error description for ERROR responses

        Returns:
            The new state
        """
        if self.is_terminal:
            raise InvalidTransition(f"job already {self.state.value}")

        self.attempts += 1
        self.payload = payload

        if status == PollStatus.READY:
            self.state = PollState.READY
        elif status == PollStatus.ERROR:
            self.state = PollState.ERRORED
            self.reason = reason or "provider reported an error"
        elif self.budget_exhausted:
            self.state = PollState.TIMED_OUT
            self.reason = f"still pending after {self.attempts} attempts"

        return self.state

    def fail(self, reason: str) -> PollState:
        """Transition to ERRORED after a transport failure."""
        if self.is_terminal:
            raise InvalidTransition(f"job already {self.state.value}")
        self.attempts += 1
        self.state = PollState.ERRORED
        self.reason = reason
        return self.state


class PollingEngine:
    """
    Drives a PollJob from submission to a terminal state.

    No retries beyond the bounded loop: a transport error on any attempt
    ends the job in ERRORED.
    """

    def __init__(
        self,
        interval: float = 15.0,
        max_attempts: int = 12,
        sleep: Optional[Sleeper] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize polling engine.

        Args:
            interval: Seconds to wait between attempts
            max_attempts: Attempt budget including the submit call
            sleep: Coroutine used to wait between attempts
            clock: Time source for ``submitted_at``
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.interval = interval
        self.max_attempts = max_attempts
        self.sleep = sleep or asyncio.sleep
        self.clock = clock

    @property
    def ceiling(self) -> float:
        """Upper bound on time spent sleeping for one job."""
        return self.interval * (self.max_attempts - 1)

    async def run(
        self,
        submit: Callable[[], Awaitable[T]],
        poll: Callable[[], Awaitable[T]],
        classify: Callable[[T], tuple[PollStatus, Optional[str]]],
    ) -> PollJob[T]:
        """
        Run a job to completion.

        Args:
            submit: Starts the job (or returns a cached result)
            poll: Fetches the current job status
            classify: Maps a response to ``(status, error_reason)``

        Returns:
            The terminal PollJob
        """
        job: PollJob[T] = PollJob(
            submitted_at=self.clock(),
            interval=self.interval,
            max_attempts=self.max_attempts,
        )

        while not job.is_terminal:
            call = submit if job.attempts == 0 else poll
            try:
                response = await call()
                status, reason = classify(response)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                job.fail(f"{type(e).__name__}: {e}")
                logger.debug("Poll attempt failed", attempt=job.attempts, error=str(e))
                break

            job.advance(status, response, reason)
            logger.debug(
                "Poll attempt",
                attempt=job.attempts,
                max_attempts=job.max_attempts,
                state=job.state.value,
            )

            if not job.is_terminal:
                await self.sleep(self.interval)

        return job
