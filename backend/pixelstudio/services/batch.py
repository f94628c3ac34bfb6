from __future__ import annotations
"""Batch orchestrator: runs the N units of one request in order.

Continue-on-error: a failing unit is logged, its orphaned metadata row (if
any) is deleted, and the next unit runs. Units never run concurrently, so
artifact order always matches unit order.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from pixelstudio.errors import (
    ContentModerated,
    GenerationError,
    PartialBatchFailure,
    PersistenceError,
    PollingTimeout,
    ProviderFailure,
)
from pixelstudio.schemas.generation import ArtifactRead, GenerationRequest
from pixelstudio.services import urls
from pixelstudio.services.persister import ArtifactPersister
from pixelstudio.services.polling import GenerationTask, PollingEngine, TaskOutcome
from pixelstudio.services.providers.base import JobHandle, ProviderAdapter

logger = logging.getLogger(__name__)


@dataclass
class BatchReport:
    """Ordered artifacts and per-unit failures of one batch."""
    requested: int
    artifacts: list[ArtifactRead] = field(default_factory=list)
    failures: list[GenerationError] = field(default_factory=list)
    tasks: list[GenerationTask] = field(default_factory=list)

    @property
    def failure_reasons(self) -> list[str]:
        return [f.reason for f in self.failures]

    @property
    def partial_failure(self) -> PartialBatchFailure | None:
        if self.artifacts and self.failures:
            return PartialBatchFailure(self.requested, self.failures)
        return None


def outcome_for(error: GenerationError) -> TaskOutcome:
    if isinstance(error, ContentModerated):
        return TaskOutcome.MODERATED
    if isinstance(error, PollingTimeout):
        return TaskOutcome.TIMED_OUT
    return TaskOutcome.FAILED


class BatchOrchestrator:
    def __init__(
        self,
        persister: ArtifactPersister,
        polling_engine: PollingEngine | None = None,
    ) -> None:
        self.persister = persister
        self.polling = polling_engine or PollingEngine()

    async def run(
        self,
        adapter: ProviderAdapter,
        request: GenerationRequest,
        set_id: str,
        user_id: str,
        report: BatchReport | None = None,
    ) -> BatchReport:
        """Run every unit; results accumulate in ``report`` as they complete.

        The caller may pass its own report so that artifacts produced before
        a request-level timeout remain visible after this coroutine is
        cancelled.
        """
        report = report or BatchReport(requested=request.quantity)
        media_type = adapter.capability.media_type

        for index in range(request.quantity):
            task = GenerationTask(index=index)
            report.tasks.append(task)
            logger.info(
                "Unit %d/%d for set %s (model=%s)",
                index + 1, request.quantity, set_id, request.model,
            )
            try:
                artifact = await self._run_unit(adapter, request, set_id, user_id, media_type, task)
            except asyncio.CancelledError:
                if task.artifact_id:
                    await asyncio.shield(self._discard(media_type, task.artifact_id, with_object=True))
                raise
            except GenerationError as e:
                if isinstance(e, PersistenceError) and e.artifact_id:
                    await self._discard(media_type, e.artifact_id)
                task.finish(outcome_for(e), e.reason)
                report.failures.append(e)
                logger.warning(
                    "Unit %d/%d for set %s failed (%s): %s",
                    index + 1, request.quantity, set_id, type(e).__name__, e.reason,
                )
                continue
            except Exception as e:
                logger.exception(
                    "Unit %d/%d for set %s raised unexpectedly", index + 1, request.quantity, set_id,
                )
                if task.artifact_id:
                    await self._discard(media_type, task.artifact_id, with_object=True)
                error = ProviderFailure(
                    f"{adapter.provider_name} generation failed unexpectedly ({type(e).__name__})"
                )
                task.finish(TaskOutcome.FAILED, error.reason)
                report.failures.append(error)
                continue

            task.finish(TaskOutcome.SUCCEEDED)
            report.artifacts.append(artifact)

        logger.info(
            "Batch for set %s finished: %d succeeded, %d failed",
            set_id, len(report.artifacts), len(report.failures),
        )
        return report

    async def _run_unit(
        self,
        adapter: ProviderAdapter,
        request: GenerationRequest,
        set_id: str,
        user_id: str,
        media_type: str,
        task: GenerationTask,
    ) -> ArtifactRead:
        submission = await adapter.submit(request)

        if isinstance(submission, JobHandle):
            task.job_id = submission.job_id
            status = await self.polling.await_completion(adapter, submission.job_id, task)
            if status.payload is not None:
                payload = status.payload
            elif status.result_ref:
                payload = await adapter.fetch_result(status.result_ref)
            else:
                raise ProviderFailure(f"{adapter.provider_name} finished without a result")
        else:
            payload = submission

        return await self.persister.store(
            set_id,
            user_id,
            request,
            media_type,
            payload,
            position=task.index,
            external_id=task.job_id,
            task=task,
        )

    async def _discard(self, media_type: str, artifact_id: str, with_object: bool = False) -> None:
        """Delete an artifact row that has no committed binary."""
        try:
            await self.persister.repository.delete_artifact(media_type, artifact_id)
            if with_object:
                for key in urls.object_keys(media_type, artifact_id):
                    await self.persister.object_store.delete(key)
        except PersistenceError as e:
            logger.error("Failed to delete orphaned %s %s: %s", media_type, artifact_id, e.reason)
