"""Status vocabulary of every adapter maps into exactly one poll bucket."""

import pytest

from pixelstudio.services.providers.base import PollState
from pixelstudio.services.providers.black_forest import BlackForestAdapter
from pixelstudio.services.providers.fal import FalAdapter
from pixelstudio.services.providers.luma_video import LumaVideoAdapter
from pixelstudio.services.providers.mock import MockAdapter
from pixelstudio.services.providers.replicate import ReplicateAdapter
from pixelstudio.services.providers.runway_video import RunwayVideoAdapter
from pixelstudio.services.providers.stability_video import StabilityVideoAdapter

S, F, N, P = PollState.SUCCEEDED, PollState.FAILED, PollState.NOT_FOUND, PollState.PENDING

CLASSIFICATION = [
    (BlackForestAdapter, "Ready", S),
    (BlackForestAdapter, "Pending", P),
    (BlackForestAdapter, "Queued", P),
    (BlackForestAdapter, "Processing", P),
    (BlackForestAdapter, "Error", F),
    (BlackForestAdapter, "Request Moderated", F),
    (BlackForestAdapter, "Content Moderated", F),
    (BlackForestAdapter, "Task not found", N),
    (ReplicateAdapter, "starting", P),
    (ReplicateAdapter, "processing", P),
    (ReplicateAdapter, "succeeded", S),
    (ReplicateAdapter, "failed", F),
    (ReplicateAdapter, "canceled", F),
    (FalAdapter, "IN_QUEUE", P),
    (FalAdapter, "IN_PROGRESS", P),
    (FalAdapter, "COMPLETED", S),
    (FalAdapter, "FAILED", F),
    (RunwayVideoAdapter, "PENDING", P),
    (RunwayVideoAdapter, "THROTTLED", P),
    (RunwayVideoAdapter, "RUNNING", P),
    (RunwayVideoAdapter, "SUCCEEDED", S),
    (RunwayVideoAdapter, "FAILED", F),
    (RunwayVideoAdapter, "CANCELLED", F),
    (LumaVideoAdapter, "queued", P),
    (LumaVideoAdapter, "dreaming", P),
    (LumaVideoAdapter, "completed", S),
    (LumaVideoAdapter, "failed", F),
    (StabilityVideoAdapter, "in-progress", P),
    (StabilityVideoAdapter, "complete", S),
    (StabilityVideoAdapter, "failed", F),
    (StabilityVideoAdapter, "not-found", N),
    (MockAdapter, "queued", P),
    (MockAdapter, "done", S),
    (MockAdapter, "moderated", F),
    (MockAdapter, "missing", N),
]

POLLING_ADAPTERS = sorted(
    {cls for cls, _, _ in CLASSIFICATION}, key=lambda cls: cls.provider_name,
)


@pytest.mark.parametrize(
    "adapter_cls,status,expected",
    CLASSIFICATION,
    ids=[f"{cls.provider_name}-{status}" for cls, status, _ in CLASSIFICATION],
)
def test_documented_status(adapter_cls, status, expected):
    assert adapter_cls.classify(status) is expected


@pytest.mark.parametrize("adapter_cls", POLLING_ADAPTERS, ids=lambda cls: cls.provider_name)
def test_unknown_status_is_failure(adapter_cls):
    assert adapter_cls.classify("SOMETHING_NEW") is PollState.FAILED
    assert adapter_cls.classify(None) is PollState.FAILED


@pytest.mark.parametrize("adapter_cls", POLLING_ADAPTERS, ids=lambda cls: cls.provider_name)
def test_status_map_is_complete(adapter_cls):
    buckets = set(adapter_cls.STATUS_MAP.values())
    assert PollState.SUCCEEDED in buckets
    assert PollState.FAILED in buckets
    assert PollState.PENDING in buckets


def test_unknown_status_carries_detail(settings):
    adapter = BlackForestAdapter("flux-pro", settings)
    status = adapter.status_from("Exploded")
    assert status.state is PollState.FAILED
    assert status.error_detail == "unknown status: Exploded"
    assert status.raw_status == "Exploded"
