"""In-process mock provider.

Serves ``mock-provider`` / ``mock-video`` and, when ``USE_MOCK_API`` is on,
every other model too. Behaves like an asynchronous provider: each submit
gets a job id that reports pending for ``polls_to_complete`` polls before
reaching its scripted outcome.
"""

from __future__ import annotations

import enum
import io
import logging
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Iterable

from pixelstudio.config import Settings
from pixelstudio.errors import ContentModerated, SubmissionRejected, TransientProviderError
from pixelstudio.schemas.generation import GenerationRequest
from pixelstudio.services.providers.base import (
    GeneratedPayload,
    JobHandle,
    PollingPolicy,
    PollState,
    PollStatus,
    ProviderAdapter,
)

logger = logging.getLogger(__name__)

# Smallest well-formed MP4 header; enough for storage and content sniffing
MOCK_MP4 = b"\x00\x00\x00\x18ftypmp42\x00\x00\x00\x00mp42isom\x00\x00\x00\x08free"


class MockOutcome(str, enum.Enum):
    SUCCEED = "succeed"
    FAIL = "fail"
    MODERATE = "moderate"          # job ends moderated
    REJECT = "reject"              # submit refused
    REJECT_MODERATED = "reject_moderated"  # submit refused by moderation
    TIMEOUT = "timeout"            # never leaves pending
    VANISH = "vanish"              # provider forgets the job
    FLAKY = "flaky"                # first poll raises a transient error, then succeeds


@dataclass
class _MockJob:
    outcome: MockOutcome
    prompt: str
    width: int
    height: int
    polls: int = 0


def render_placeholder(prompt: str, width: int = 512, height: int = 512) -> bytes:
    """Render a solid-color PNG with the prompt written on it."""
    from PIL import Image, ImageDraw, ImageFont

    img = Image.new("RGB", (width, height), color=(35, 35, 60))
    draw = ImageDraw.Draw(img)
    font = ImageFont.load_default()
    wrapped = prompt[:60] + "..." if len(prompt) > 60 else prompt
    draw.text((16, 16), wrapped, fill=(180, 180, 220), font=font)
    draw.text((16, height - 32), "[MOCK IMAGE]", fill=(100, 100, 140), font=font)

    buffer = io.BytesIO()
    img.save(buffer, "PNG")
    return buffer.getvalue()


class MockAdapter(ProviderAdapter):
    provider_name = "mock"
    credential_setting = None
    serves_any_model = True
    polling = PollingPolicy(
        initial_delay=0.01, backoff=1.0, max_delay=0.01, max_attempts=10, max_wait=5.0,
    )
    STATUS_MAP = {
        "queued": PollState.PENDING,
        "running": PollState.PENDING,
        "done": PollState.SUCCEEDED,
        "error": PollState.FAILED,
        "moderated": PollState.FAILED,
        "missing": PollState.NOT_FOUND,
    }

    def __init__(
        self,
        model: str,
        settings: Settings,
        http_client=None,
        script: Iterable[MockOutcome | str] | None = None,
        polls_to_complete: int = 2,
    ) -> None:
        super().__init__(model, settings, http_client)
        self.script = deque(MockOutcome(o) for o in (script or ()))
        self.polls_to_complete = polls_to_complete
        self.jobs: dict[str, _MockJob] = {}
        self.submitted = 0

    def _next_outcome(self) -> MockOutcome:
        return self.script.popleft() if self.script else MockOutcome.SUCCEED

    async def submit(self, request: GenerationRequest) -> JobHandle:
        self.submitted += 1
        outcome = self._next_outcome()
        if outcome is MockOutcome.REJECT:
            raise SubmissionRejected("mock API error: invalid request")
        if outcome is MockOutcome.REJECT_MODERATED:
            raise ContentModerated("prompt flagged by mock moderation")

        job_id = uuid.uuid4().hex
        self.jobs[job_id] = _MockJob(
            outcome=outcome,
            prompt=request.prompt,
            width=request.width or 512,
            height=request.height or 512,
        )
        logger.info("[MOCK] job %s submitted outcome=%s", job_id, outcome.value)
        return JobHandle(job_id=job_id, provider=self.provider_name)

    async def poll_status(self, job_id: str) -> PollStatus:
        job = self.jobs.get(job_id)
        if job is None or job.outcome is MockOutcome.VANISH:
            return self.status_from("missing", error_detail=f"Task not found: {job_id}")

        job.polls += 1
        if job.outcome is MockOutcome.FLAKY and job.polls == 1:
            raise TransientProviderError("mock poll connection reset")
        if job.outcome is MockOutcome.TIMEOUT or job.polls < self.polls_to_complete:
            return self.status_from("running" if job.polls > 1 else "queued")

        if job.outcome is MockOutcome.FAIL:
            return self.status_from("error", error_detail="mock generation failed")
        if job.outcome is MockOutcome.MODERATE:
            return self.status_from("moderated", error_detail="mock safety filter", moderated=True)
        return self.status_from("done", result_ref=job_id)

    async def fetch_result(self, result_ref: str) -> GeneratedPayload:
        job = self.jobs[result_ref]
        if self.capability.is_video:
            return GeneratedPayload(data=MOCK_MP4, content_type="video/mp4")
        return GeneratedPayload(
            data=render_placeholder(job.prompt, job.width, job.height),
            content_type="image/png",
        )
