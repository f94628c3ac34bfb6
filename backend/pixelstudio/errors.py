"""Generation error taxonomy.

Every error carries a human-readable ``reason`` that is safe to show to the
user. Per-unit errors are caught inside the batch; only pre-batch errors and
``GenerationFailed`` reach callers of the request coordinator.
"""

from __future__ import annotations


class GenerationError(Exception):
    """Base class for all generation engine errors."""

    default_reason = "Generation failed"

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or self.default_reason
        super().__init__(self.reason)


class ValidationError(GenerationError):
    """The request is malformed; no network call was made."""

    default_reason = "Invalid generation request"


class ConfigurationError(GenerationError):
    """Unsupported model/provider pairing or missing provider setup."""

    default_reason = "Generation provider is not configured"


class AuthConfigurationError(ConfigurationError):
    """Provider credentials are missing or were refused."""

    default_reason = "Generation provider credentials are missing or invalid"


class SubmissionRejected(GenerationError):
    """The provider refused the job (4xx). Not retryable."""

    default_reason = "The provider rejected the generation request"


class ContentModerated(SubmissionRejected):
    """The provider's moderation flagged the prompt or output."""

    default_reason = "Your request was flagged by content moderation"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or "Unknown reason"
        super().__init__(
            f"Your request was flagged by our content moderation system ({self.detail})"
        )


class ProviderFailure(GenerationError):
    """The provider reported the job as failed."""

    default_reason = "The provider failed to generate the result"


class JobNotFound(ProviderFailure):
    """The provider no longer knows the job id."""

    default_reason = "The generation job was not found by the provider"


class TransientProviderError(GenerationError):
    """5xx, rate limit, or transport timeout talking to a provider."""

    default_reason = "The provider is temporarily unavailable"


class PollingTimeout(GenerationError):
    """The provider never reached a terminal state within the budget."""

    default_reason = "Timed out waiting for the provider to finish"


class PersistenceError(GenerationError):
    """Writing to the relational store or the object store failed.

    ``artifact_id`` is set when a metadata row was created before the
    failure, so the caller can delete it.
    """

    default_reason = "Failed to save the generated result"

    def __init__(self, reason: str | None = None, artifact_id: str | None = None) -> None:
        self.artifact_id = artifact_id
        super().__init__(reason)


class ObjectNotFound(PersistenceError):
    default_reason = "Stored object not found"


class InsufficientCredits(GenerationError):
    default_reason = "You do not have enough credits for this generation"


class GenerationFailed(GenerationError):
    """No unit of the batch succeeded."""

    def __init__(self, reason: str | None = None, failures: list[GenerationError] | None = None) -> None:
        self.failures = list(failures or [])
        super().__init__(reason)


class PartialBatchFailure(GenerationError):
    """Attached to a non-empty result when some units failed. Never raised."""

    def __init__(self, requested: int, failures: list[GenerationError]) -> None:
        self.requested = requested
        self.failures = list(failures)
        succeeded = requested - len(self.failures)
        super().__init__(f"{succeeded} of {requested} generations succeeded")
