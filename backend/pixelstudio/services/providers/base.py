"""Provider adapter contract shared by every generation service.

Each provider implements the same three steps:
  submit → (poll status until terminal) → fetch result

Synchronous providers return the generated bytes straight from ``submit``;
asynchronous ones return a ``JobHandle`` and the polling engine drives
``poll_status`` until the job is terminal. Adapters only do network I/O.
"""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Union

import httpx

from pixelstudio.config import Settings
from pixelstudio.errors import (
    AuthConfigurationError,
    ConfigurationError,
    ContentModerated,
    ProviderFailure,
    SubmissionRejected,
    TransientProviderError,
)
from pixelstudio.services.model_registry import MODEL_REGISTRY, ModelCapability

if TYPE_CHECKING:
    from pixelstudio.schemas.generation import GenerationRequest

logger = logging.getLogger(__name__)

# Moderation wording only; parameter names such as safety_tolerance must not match
_MODERATION_MARKERS = (
    "moderat",
    "nsfw",
    "content policy",
    "content_policy",
    "flagged",
    "safety system",
    "safety filter",
    "unsafe content",
)


class PollState(str, enum.Enum):
    """The four buckets every provider status must map into."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NOT_FOUND = "not_found"
    PENDING = "pending"

    @property
    def is_terminal(self) -> bool:
        return self is not PollState.PENDING


@dataclass(frozen=True)
class JobHandle:
    """External job id returned by an asynchronous provider."""
    job_id: str
    provider: str


@dataclass(frozen=True)
class GeneratedPayload:
    """Binary result ready to be persisted."""
    data: bytes
    content_type: str = "image/png"
    seed: int | None = None


Submission = Union[JobHandle, GeneratedPayload]


@dataclass(frozen=True)
class PollStatus:
    """Normalized result of one status poll."""
    state: PollState
    result_ref: str | None = None
    error_detail: str | None = None
    moderated: bool = False
    payload: GeneratedPayload | None = None  # providers that return bytes on completion
    raw_status: str | None = None


@dataclass(frozen=True)
class PollingPolicy:
    """Backoff and budget for one provider's status polling."""
    initial_delay: float = 1.0
    backoff: float = 1.5
    max_delay: float = 5.0
    max_attempts: int = 120
    max_wait: float = 300.0


class ProviderAdapter(ABC):
    """Abstract base class for all provider adapters.

    Construction validates the model/provider pairing and credentials, so a
    misconfigured provider fails before any network call.
    """

    provider_name: ClassVar[str] = "unknown"
    credential_setting: ClassVar[str | None] = None
    polling: ClassVar[PollingPolicy] = PollingPolicy()
    STATUS_MAP: ClassVar[dict[str, PollState]] = {}
    # Stand-in adapters (the mock) may serve any registered model
    serves_any_model: ClassVar[bool] = False

    def __init__(
        self,
        model: str,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        cap = MODEL_REGISTRY.get_capability(model)
        if cap is None or (cap.provider != self.provider_name and not self.serves_any_model):
            raise ConfigurationError(
                f"Model {model} is not supported by provider {self.provider_name}"
            )
        self.model = model
        self.capability: ModelCapability = cap
        self.settings = settings
        self.api_key = self._load_credential(settings)
        self._client = http_client
        self._owns_client = http_client is None

    def _load_credential(self, settings: Settings) -> str:
        if self.credential_setting is None:
            return ""
        key = getattr(settings, self.credential_setting, "")
        if not key:
            raise AuthConfigurationError(f"{self.credential_setting} is not configured")
        return key

    # ------------------------------------------------------------------
    # Capability
    # ------------------------------------------------------------------

    @abstractmethod
    async def submit(self, request: GenerationRequest) -> Submission:
        """Start one generation. Returns a job handle or the finished payload."""
        ...

    async def poll_status(self, job_id: str) -> PollStatus:
        """Query an asynchronous job. Synchronous providers never get here."""
        raise NotImplementedError(f"{self.provider_name} does not support polling")

    async def fetch_result(self, result_ref: str) -> GeneratedPayload:
        """Download a finished result. Default: ``result_ref`` is a URL."""
        return await self._download(result_ref)

    @classmethod
    def classify(cls, status: str | None) -> PollState:
        """Map a provider status string into a poll bucket.

        Unknown statuses are failures, never pending, so a new provider
        vocabulary can not keep a job polling forever.
        """
        if status is None:
            return PollState.FAILED
        return cls.STATUS_MAP.get(status, PollState.FAILED)

    def status_from(
        self,
        raw_status: str | None,
        *,
        result_ref: str | None = None,
        error_detail: str | None = None,
        moderated: bool = False,
    ) -> PollStatus:
        state = self.classify(raw_status)
        if state is PollState.FAILED and raw_status not in self.STATUS_MAP:
            error_detail = error_detail or f"unknown status: {raw_status}"
        return PollStatus(
            state=state,
            result_ref=result_ref,
            error_detail=error_detail,
            moderated=moderated,
            raw_status=raw_status,
        )

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.PROVIDER_REQUEST_TIMEOUT)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _send(self, method: str, url: str, *, context: str, **kwargs: Any) -> httpx.Response:
        """Issue a request, translating transport failures into transient errors."""
        try:
            return await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransientProviderError(f"{self.provider_name} {context} timed out") from exc
        except httpx.TransportError as exc:
            raise TransientProviderError(f"{self.provider_name} {context} failed: {exc}") from exc

    def _check(self, response: httpx.Response, context: str) -> None:
        """Raise the engine error matching a non-2xx provider response."""
        if response.is_success:
            return
        detail = self._error_detail(response)
        status = response.status_code
        logger.warning(
            "%s %s error: status=%d detail=%s",
            self.provider_name, context, status, detail[:200],
        )
        if status in (401, 403):
            raise AuthConfigurationError(
                f"{self.provider_name} refused the credentials ({status})"
            )
        if status == 429 or status >= 500:
            raise TransientProviderError(f"{self.provider_name} {context} error {status}: {detail}")
        if self._is_moderation(detail):
            raise ContentModerated(detail)
        raise SubmissionRejected(f"{self.provider_name} API error: {detail}")

    def _json(self, response: httpx.Response, context: str) -> dict[str, Any]:
        """Decode a successful response body that must be a JSON object.

        A non-JSON body (a gateway error page) is transient; JSON of the wrong
        shape is a provider failure.
        """
        try:
            data = response.json()
        except ValueError as exc:
            logger.warning(
                "%s %s returned a non-JSON body: %s",
                self.provider_name, context, response.text[:200],
            )
            raise TransientProviderError(
                f"{self.provider_name} {context} returned an unreadable response"
            ) from exc
        if not isinstance(data, dict):
            raise ProviderFailure(
                f"{self.provider_name} {context} returned an unexpected response"
            )
        return data

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text[:300] or response.reason_phrase
        if isinstance(data, dict):
            for key in ("message", "detail", "error", "failure", "name"):
                value = data.get(key)
                if isinstance(value, dict):
                    value = value.get("message") or value.get("code")
                if isinstance(value, list):
                    value = ", ".join(
                        v.get("msg", str(v)) if isinstance(v, dict) else str(v) for v in value
                    )
                if value:
                    return str(value)
        return str(data)[:300]

    @staticmethod
    def _is_moderation(detail: str) -> bool:
        lowered = detail.lower()
        return any(marker in lowered for marker in _MODERATION_MARKERS)

    async def _download(self, url: str) -> GeneratedPayload:
        """Download binary content from a result URL."""
        response = await self._send(
            "GET", url, context="download", timeout=self.settings.DOWNLOAD_TIMEOUT,
        )
        self._check(response, "download")
        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not content_type:
            content_type = "video/mp4" if self.capability.is_video else "image/png"
        return GeneratedPayload(data=response.content, content_type=content_type)
