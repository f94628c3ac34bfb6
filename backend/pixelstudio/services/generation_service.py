from __future__ import annotations
"""Generation service: the single entry point for a generation request.

Charges credits, runs the request coordinator, applies the refund policy,
and shapes the outcome as ``{artifacts, set_id}`` or ``{error, set_id: ""}``.
"""

import asyncio
import logging

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pixelstudio.config import Settings
from pixelstudio.errors import GenerationError, GenerationFailed, PersistenceError
from pixelstudio.schemas.generation import GenerationRequest, GenerationResponse
from pixelstudio.services.batch import BatchOrchestrator
from pixelstudio.services.coordinator import AdapterFactory, RequestCoordinator
from pixelstudio.services.credits import CreditLedger
from pixelstudio.services.model_registry import MODEL_REGISTRY
from pixelstudio.services.object_store import LocalObjectStore, ObjectStore
from pixelstudio.services.persister import ArtifactPersister
from pixelstudio.services.polling import PollingEngine
from pixelstudio.services.providers import build_adapter
from pixelstudio.services.repository import GenerationRepository

logger = logging.getLogger(__name__)

BILLING_FULL = "full"
BILLING_PROPORTIONAL = "proportional"


class GenerationService:
    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        object_store: ObjectStore | None = None,
        adapter_factory: AdapterFactory = build_adapter,
        http_client: httpx.AsyncClient | None = None,
        polling_engine: PollingEngine | None = None,
    ) -> None:
        self.settings = settings
        self.repository = GenerationRepository(session_factory)
        self.ledger = CreditLedger(session_factory)
        self.object_store = object_store or LocalObjectStore(settings.MEDIA_VOLUME)
        self.persister = ArtifactPersister(self.repository, self.object_store, settings)
        self.adapter_factory = adapter_factory
        self.http_client = http_client
        self.polling_engine = polling_engine or PollingEngine()

    def _coordinator(self) -> RequestCoordinator:
        return RequestCoordinator(
            self.settings,
            self.repository,
            BatchOrchestrator(self.persister, self.polling_engine),
            adapter_factory=self.adapter_factory,
            http_client=self.http_client,
        )

    async def generate(self, user_id: str, request: GenerationRequest) -> GenerationResponse:
        """Run one request for ``user_id``.

        Raises ValidationError, ConfigurationError or InsufficientCredits
        before any provider call; every other failure comes back as
        ``GenerationResponse.error``.
        """
        cap = MODEL_REGISTRY.validate(request)
        unit_cost = cap.unit_cost(request.duration)
        total_cost = unit_cost * request.quantity
        await self.ledger.check_and_decrement(user_id, total_cost)

        coordinator = self._coordinator()
        try:
            result = await coordinator.run(user_id, request)
        except GenerationFailed as e:
            refunded = await self._refund_failure(user_id, total_cost)
            logger.warning("Generation for user %s failed: %s", user_id, e.reason)
            return GenerationResponse(
                error=e.reason,
                set_id="",
                failures=[f.reason for f in e.failures],
                credits_charged=total_cost - refunded,
            )
        except GenerationError:
            # Pre-batch failure: nothing reached a provider
            await self._refund(user_id, total_cost)
            raise
        except asyncio.CancelledError:
            if coordinator.report is None or not coordinator.report.artifacts:
                await asyncio.shield(self._refund_failure(user_id, total_cost))
            raise

        report = result.report
        charged = total_cost
        if report.failures and self.settings.PARTIAL_BATCH_BILLING == BILLING_PROPORTIONAL:
            refund = unit_cost * (request.quantity - len(report.artifacts))
            charged -= await self._refund(user_id, refund)

        partial = report.partial_failure
        return GenerationResponse(
            artifacts=report.artifacts,
            set_id=result.set_id,
            failures=report.failure_reasons,
            partial_failure=partial.reason if partial else None,
            credits_charged=charged,
        )

    async def _refund_failure(self, user_id: str, amount: int) -> int:
        if not self.settings.REFUND_ON_FAILURE:
            return 0
        return await self._refund(user_id, amount)

    async def _refund(self, user_id: str, amount: int) -> int:
        """Refund and return the amount actually credited back."""
        try:
            await self.ledger.refund(user_id, amount)
        except PersistenceError as e:
            logger.error("Refund of %d credits to %s failed: %s", amount, user_id, e.reason)
            return 0
        return amount
