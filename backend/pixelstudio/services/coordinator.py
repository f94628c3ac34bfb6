from __future__ import annotations
"""Request coordinator: owns one generation request end to end.

State machine:
  VALIDATING → SET_CREATED → PROCESSING → COMPLETED | FAILED

A request that ends without artifacts never leaves its GenerationSet
behind, including on timeout and cancellation.
"""

import asyncio
import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from pixelstudio.config import Settings
from pixelstudio.errors import (
    ContentModerated,
    GenerationError,
    GenerationFailed,
    PersistenceError,
    ProviderFailure,
    SubmissionRejected,
)
from pixelstudio.schemas.generation import ArtifactRead, GenerationRequest
from pixelstudio.services.batch import BatchOrchestrator, BatchReport
from pixelstudio.services.model_registry import MODEL_REGISTRY, ModelRegistry
from pixelstudio.services.providers import build_adapter
from pixelstudio.services.providers.base import ProviderAdapter
from pixelstudio.services.repository import GenerationRepository

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[str, Settings, "httpx.AsyncClient | None"], ProviderAdapter]


class RequestState(str, enum.Enum):
    VALIDATING = "VALIDATING"
    SET_CREATED = "SET_CREATED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


VALID_TRANSITIONS: dict[RequestState, set[RequestState]] = {
    RequestState.VALIDATING: {RequestState.SET_CREATED, RequestState.FAILED},
    RequestState.SET_CREATED: {RequestState.PROCESSING, RequestState.FAILED},
    RequestState.PROCESSING: {RequestState.COMPLETED, RequestState.FAILED},
    RequestState.COMPLETED: set(),  # terminal
    RequestState.FAILED: set(),  # terminal
}


def most_relevant_reason(failures: list[GenerationError], media_type: str = "image") -> str:
    """Pick the reason most useful to the user when every unit failed.

    Moderation first, then an explicit provider failure or rejection, then
    the shared reason when all failures are of one kind.
    """
    generic = f"Failed to generate {media_type}s. Please try again."
    if not failures:
        return generic
    for failure in failures:
        if isinstance(failure, ContentModerated):
            return failure.reason
    for failure in failures:
        if isinstance(failure, (ProviderFailure, SubmissionRejected)):
            return failure.reason
    if len({type(f) for f in failures}) == 1:
        return failures[0].reason
    return generic


@dataclass
class CoordinatorResult:
    set_id: str
    report: BatchReport
    timed_out: bool = False

    @property
    def artifacts(self) -> list[ArtifactRead]:
        return self.report.artifacts


class RequestCoordinator:
    """Runs a single request. Create one instance per request."""

    def __init__(
        self,
        settings: Settings,
        repository: GenerationRepository,
        batch: BatchOrchestrator,
        adapter_factory: AdapterFactory = build_adapter,
        http_client: httpx.AsyncClient | None = None,
        registry: ModelRegistry = MODEL_REGISTRY,
    ) -> None:
        self.settings = settings
        self.repository = repository
        self.batch = batch
        self.adapter_factory = adapter_factory
        self.http_client = http_client
        self.registry = registry
        self.state = RequestState.VALIDATING
        self.report: BatchReport | None = None

    def _transition(self, target: RequestState) -> None:
        if target not in VALID_TRANSITIONS[self.state]:
            raise RuntimeError(f"Cannot transition from {self.state.value} to {target.value}")
        logger.info("Request state %s → %s", self.state.value, target.value)
        self.state = target

    async def run(self, user_id: str, request: GenerationRequest) -> CoordinatorResult:
        """Run the request.

        Raises the pre-batch error (validation, configuration, set creation)
        unchanged, GenerationFailed when no artifact was produced, and
        re-raises cancellation after cleanup.
        """
        try:
            cap = self.registry.validate(request)
            adapter = self.adapter_factory(request.model, self.settings, self.http_client)
        except GenerationError:
            self._transition(RequestState.FAILED)
            raise

        try:
            try:
                generation_set = await self.repository.create_set(user_id, request)
            except GenerationError:
                self._transition(RequestState.FAILED)
                raise
            self._transition(RequestState.SET_CREATED)
            return await self._process(adapter, request, user_id, generation_set.id, cap.media_type)
        finally:
            await adapter.aclose()

    async def _process(
        self,
        adapter: ProviderAdapter,
        request: GenerationRequest,
        user_id: str,
        set_id: str,
        media_type: str,
    ) -> CoordinatorResult:
        self.report = report = BatchReport(requested=request.quantity)
        self._transition(RequestState.PROCESSING)
        timed_out = False

        try:
            await asyncio.wait_for(
                self.batch.run(adapter, request, set_id, user_id, report),
                timeout=self.settings.REQUEST_TIMEOUT,
            )
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning(
                "Request for set %s timed out after %.0fs with %d artifact(s)",
                set_id, self.settings.REQUEST_TIMEOUT, len(report.artifacts),
            )
        except asyncio.CancelledError:
            if not report.artifacts:
                await asyncio.shield(self._delete_set(set_id))
            self._transition(RequestState.FAILED)
            raise

        if not report.artifacts:
            await self._delete_set(set_id)
            self._transition(RequestState.FAILED)
            if timed_out and not report.failures:
                reason = "The generation request timed out. Please try again."
            else:
                reason = most_relevant_reason(report.failures, media_type)
            raise GenerationFailed(reason, report.failures)

        self._transition(RequestState.COMPLETED)
        if report.failures:
            logger.info(
                "Set %s completed partially: %s", set_id, report.partial_failure.reason,
            )
        return CoordinatorResult(set_id=set_id, report=report, timed_out=timed_out)

    async def _delete_set(self, set_id: str) -> None:
        try:
            await self.repository.delete_set(set_id)
        except PersistenceError as e:
            logger.error("Failed to delete empty generation set %s: %s", set_id, e.reason)
