from __future__ import annotations
"""Polling engine: drives an asynchronous provider job to a terminal state.

Poll, classify, sleep with capped exponential backoff, repeat, all within an
attempt budget and a wall-clock budget taken from the adapter's
``PollingPolicy``.
"""

import asyncio
import enum
import logging
import time
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass

from pixelstudio.errors import (
    ContentModerated,
    JobNotFound,
    PollingTimeout,
    ProviderFailure,
    TransientProviderError,
)
from pixelstudio.services.providers.base import (
    PollingPolicy,
    PollState,
    PollStatus,
    ProviderAdapter,
)

logger = logging.getLogger(__name__)


class TaskOutcome(str, enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    MODERATED = "moderated"
    TIMED_OUT = "timed_out"


@dataclass
class GenerationTask:
    """In-memory tracking of one unit of a batch."""
    index: int
    job_id: str | None = None
    attempts: int = 0
    waited: float = 0.0
    outcome: TaskOutcome = TaskOutcome.PENDING
    error: str | None = None
    artifact_id: str | None = None  # row created for this unit, if any

    @property
    def is_terminal(self) -> bool:
        return self.outcome is not TaskOutcome.PENDING

    def finish(self, outcome: TaskOutcome, error: str | None = None) -> None:
        """Record the terminal outcome. A terminal outcome never changes."""
        if self.is_terminal:
            raise RuntimeError(
                f"Task {self.index} already finished as {self.outcome.value}"
            )
        if outcome is TaskOutcome.PENDING:
            raise ValueError("PENDING is not a terminal outcome")
        self.outcome = outcome
        self.error = error


def backoff_delays(policy: PollingPolicy) -> Iterator[float]:
    """Yield the sleep before each poll after the first, ignoring max_wait."""
    delay = policy.initial_delay
    for _ in range(policy.max_attempts - 1):
        yield delay
        delay = min(delay * policy.backoff, policy.max_delay)


class PollingEngine:
    """Await completion of provider jobs.

    ``clock`` and ``sleep`` are injectable so tests can run the loop against
    a fake clock without real waiting.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep

    async def await_completion(
        self,
        adapter: ProviderAdapter,
        job_id: str,
        task: GenerationTask | None = None,
        policy: PollingPolicy | None = None,
    ) -> PollStatus:
        """Poll ``job_id`` until it succeeds.

        Returns the succeeded PollStatus. Raises ContentModerated,
        ProviderFailure, JobNotFound or PollingTimeout otherwise.
        """
        policy = policy or adapter.polling
        start = self._clock()
        delays = backoff_delays(policy)
        last_error: TransientProviderError | None = None

        for attempt in range(1, policy.max_attempts + 1):
            if task is not None:
                task.attempts = attempt
            try:
                status = await adapter.poll_status(job_id)
            except TransientProviderError as e:
                last_error = e
                logger.warning(
                    "%s poll %d/%d for job=%s failed transiently: %s",
                    adapter.provider_name, attempt, policy.max_attempts, job_id, e.reason,
                )
            else:
                logger.info(
                    "%s poll %d/%d job=%s status=%s",
                    adapter.provider_name, attempt, policy.max_attempts, job_id,
                    status.raw_status or status.state.value,
                )
                self._raise_if_failed(adapter, job_id, status)
                if status.state is PollState.SUCCEEDED:
                    return status

            remaining = policy.max_wait - (self._clock() - start)
            delay = next(delays, None)
            if delay is None or remaining <= 0:
                break
            await self._sleep(min(delay, remaining))
            if task is not None:
                task.waited = self._clock() - start

        elapsed = self._clock() - start
        detail = f" (last error: {last_error.reason})" if last_error else ""
        raise PollingTimeout(
            f"{adapter.provider_name} job {job_id} did not finish within "
            f"{policy.max_attempts} polls / {elapsed:.0f}s{detail}"
        )

    @staticmethod
    def _raise_if_failed(adapter: ProviderAdapter, job_id: str, status: PollStatus) -> None:
        if status.state is PollState.FAILED:
            if status.moderated:
                raise ContentModerated(status.error_detail)
            raise ProviderFailure(
                f"{adapter.provider_name} generation failed: "
                f"{status.error_detail or 'unknown error'}"
            )
        if status.state is PollState.NOT_FOUND:
            raise JobNotFound(status.error_detail or f"Job {job_id} was not found")
