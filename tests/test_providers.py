import asyncio
import base64
import json

import httpx
import pytest

from pixelstudio.errors import (
    AuthConfigurationError,
    ConfigurationError,
    ContentModerated,
    ProviderFailure,
    SubmissionRejected,
    TransientProviderError,
    ValidationError,
)
from pixelstudio.schemas.generation import GenerationRequest
from pixelstudio.services.providers import build_adapter
from pixelstudio.services.providers.base import GeneratedPayload, JobHandle, PollState
from pixelstudio.services.providers.black_forest import BlackForestAdapter
from pixelstudio.services.providers.fal import FalAdapter
from pixelstudio.services.providers.ideogram import IdeogramAdapter, aspect_ratio_for
from pixelstudio.services.providers.luma_video import LumaVideoAdapter
from pixelstudio.services.providers.mock import MockAdapter
from pixelstudio.services.providers.openai_images import OpenAIImageAdapter
from pixelstudio.services.providers.replicate import ReplicateAdapter
from pixelstudio.services.providers.runway_video import (
    RunwayVideoAdapter,
    runway_ratio,
    text_to_video_duration,
)
from pixelstudio.services.providers.stability import StabilityImageAdapter
from pixelstudio.services.providers.stability_video import StabilityVideoAdapter
from pixelstudio.services.providers.together import TogetherAdapter


def call(adapter_cls, model, settings, handler, method, *args):
    """Run one adapter coroutine against a mocked transport."""
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            adapter = adapter_cls(model, settings, client)
            return await getattr(adapter, method)(*args)

    return asyncio.run(scenario())


def request_for(model, **overrides):
    data = {"prompt": "a red fox in the snow", "model": model}
    data.update(overrides)
    return GenerationRequest(**data)


# ── Construction ─────────────────────────────────────────────────


def test_missing_credential_fails_before_any_call(settings):
    settings = settings.model_copy(update={"BLACK_FOREST_LABS_API_KEY": ""})
    with pytest.raises(AuthConfigurationError, match="BLACK_FOREST_LABS_API_KEY"):
        BlackForestAdapter("flux-pro", settings)


def test_model_from_another_provider_is_refused(settings):
    with pytest.raises(ConfigurationError):
        BlackForestAdapter("dall-e-3", settings)


def test_build_adapter_picks_provider(settings):
    assert isinstance(build_adapter("flux-pro", settings), BlackForestAdapter)
    assert isinstance(build_adapter("sd3-large", settings), StabilityImageAdapter)
    assert isinstance(build_adapter("stability-video", settings), StabilityVideoAdapter)
    assert isinstance(build_adapter("luma-dream-machine", settings), LumaVideoAdapter)
    with pytest.raises(ValidationError):
        build_adapter("no-such-model", settings)


def test_mock_mode_serves_every_model(settings):
    settings = settings.model_copy(update={"USE_MOCK_API": True, "RUNWAY_API_KEY": ""})
    adapter = build_adapter("runway-gen3", settings)
    assert isinstance(adapter, MockAdapter)
    assert adapter.capability.is_video


# ── Black Forest Labs ────────────────────────────────────────────


def test_bfl_submit(settings):
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["key"] = request.headers["x-key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "task-1"})

    handle = call(
        BlackForestAdapter, "flux-pro-1.1", settings, handler,
        "submit", request_for("flux-pro-1.1", width=768, seed=7),
    )

    assert handle == JobHandle(job_id="task-1", provider="black_forest_labs")
    assert seen["path"] == "/v1/flux-pro-1.1"
    assert seen["key"] == "bfl-key"
    assert seen["body"] == {"prompt": "a red fox in the snow", "width": 768, "height": 1024, "seed": 7}


def test_bfl_poll_ready(settings):
    def handler(request):
        assert request.url.params["id"] == "task-1"
        return httpx.Response(200, json={"status": "Ready", "result": {"sample": "https://bfl.example/s.png"}})

    status = call(BlackForestAdapter, "flux-pro", settings, handler, "poll_status", "task-1")
    assert status.state is PollState.SUCCEEDED
    assert status.result_ref == "https://bfl.example/s.png"


def test_bfl_poll_moderated(settings):
    def handler(request):
        return httpx.Response(200, json={
            "status": "Content Moderated",
            "details": {"Moderation Reasons": ["Derivative Works"]},
        })

    status = call(BlackForestAdapter, "flux-pro", settings, handler, "poll_status", "task-1")
    assert status.state is PollState.FAILED
    assert status.moderated
    assert status.error_detail == "Derivative Works"


def test_bfl_poll_not_found(settings):
    status = call(
        BlackForestAdapter, "flux-pro", settings,
        lambda request: httpx.Response(404, json={"detail": "missing"}),
        "poll_status", "task-1",
    )
    assert status.state is PollState.NOT_FOUND


@pytest.mark.parametrize(
    "status_code,body,error",
    [
        (401, {"detail": "bad key"}, AuthConfigurationError),
        (429, {"detail": "slow down"}, TransientProviderError),
        (503, {"detail": "overloaded"}, TransientProviderError),
        (422, {"detail": "NSFW content detected"}, ContentModerated),
        (400, {"detail": "width must be a multiple of 32"}, SubmissionRejected),
        (422, {"detail": "safety_tolerance must be between 0 and 6"}, SubmissionRejected),
    ],
)
def test_error_responses_map_to_errors(settings, status_code, body, error):
    with pytest.raises(error) as exc_info:
        call(
            BlackForestAdapter, "flux-pro", settings,
            lambda request: httpx.Response(status_code, json=body),
            "submit", request_for("flux-pro"),
        )
    assert type(exc_info.value) is error


def test_transport_failures_are_transient(settings):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    def stall(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    with pytest.raises(TransientProviderError, match="failed"):
        call(BlackForestAdapter, "flux-pro", settings, refuse, "submit", request_for("flux-pro"))
    with pytest.raises(TransientProviderError, match="timed out"):
        call(BlackForestAdapter, "flux-pro", settings, stall, "poll_status", "task-1")


def test_gateway_page_on_success_is_transient(settings):
    gateway = lambda request: httpx.Response(200, text="<html>gateway</html>")

    with pytest.raises(TransientProviderError, match="unreadable"):
        call(BlackForestAdapter, "flux-pro", settings, gateway, "submit", request_for("flux-pro"))
    with pytest.raises(TransientProviderError, match="unreadable"):
        call(BlackForestAdapter, "flux-pro", settings, gateway, "poll_status", "task-1")


@pytest.mark.parametrize(
    "adapter_cls,model,method,arg",
    [
        (ReplicateAdapter, "replicate-kandinsky-2.2", "poll_status", "pred-1"),
        (RunwayVideoAdapter, "runway-gen3", "poll_status", "task-1"),
        (OpenAIImageAdapter, "dall-e-3", "submit", None),
    ],
)
def test_non_object_json_is_provider_failure(settings, adapter_cls, model, method, arg):
    arg = arg or request_for(model)
    with pytest.raises(ProviderFailure, match="unexpected response"):
        call(
            adapter_cls, model, settings,
            lambda request: httpx.Response(200, json=["not", "an", "object"]),
            method, arg,
        )


# ── Synchronous image providers ──────────────────────────────────


def test_openai_returns_decoded_bytes(settings):
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": [{"b64_json": base64.b64encode(b"PNGDATA").decode()}]})

    payload = call(
        OpenAIImageAdapter, "dall-e-3", settings, handler,
        "submit", request_for("dall-e-3", width=1792, height=1024, quality="hd"),
    )

    assert payload == GeneratedPayload(data=b"PNGDATA", content_type="image/png")
    assert seen["body"]["size"] == "1792x1024"
    assert seen["body"]["quality"] == "hd"


def test_ideogram_downloads_first_safe_image(settings):
    def handler(request):
        if request.url.path == "/generate":
            body = json.loads(request.content)["image_request"]
            assert body["model"] == "V_2"
            assert body["aspect_ratio"] == "ASPECT_16_9"
            return httpx.Response(200, json={"data": [
                {"url": "https://ideogram.example/unsafe.png", "is_image_safe": False},
                {"url": "https://ideogram.example/safe.png", "is_image_safe": True, "seed": 7},
            ]})
        assert request.url.path == "/safe.png"
        return httpx.Response(200, content=b"SAFE", headers={"content-type": "image/png"})

    payload = call(
        IdeogramAdapter, "ideogram-v2", settings, handler,
        "submit", request_for("ideogram-v2", width=1792, height=1024),
    )
    assert payload.data == b"SAFE"
    assert payload.seed == 7


def test_ideogram_moderation(settings):
    def moderated(request):
        return httpx.Response(400, json={"error": {"code": "CONTENT_MODERATION"}})

    def all_unsafe(request):
        return httpx.Response(200, json={"data": [{"url": "https://x/1.png", "is_image_safe": False}]})

    for handler in (moderated, all_unsafe):
        with pytest.raises(ContentModerated):
            call(IdeogramAdapter, "ideogram-v2", settings, handler, "submit", request_for("ideogram-v2"))


def test_ideogram_aspect_buckets():
    assert aspect_ratio_for(None, None) == "ASPECT_1_1"
    assert aspect_ratio_for(1024, 1024) == "ASPECT_1_1"
    assert aspect_ratio_for(768, 1024) == "ASPECT_3_4"
    assert aspect_ratio_for(2048, 256) == "ASPECT_1_1"


def test_together_content_policy(settings):
    def handler(request):
        return httpx.Response(400, json={"error": {"code": "content_policy_violation"}})

    with pytest.raises(ContentModerated):
        call(TogetherAdapter, "together-flux-dev", settings, handler, "submit", request_for("together-flux-dev"))


def test_stability_image_reads_seed_header(settings):
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["accept"] = request.headers["accept"]
        seen["content_type"] = request.headers["content-type"]
        return httpx.Response(200, content=b"PNG", headers={"seed": "42", "content-type": "image/png"})

    payload = call(
        StabilityImageAdapter, "sd3-large", settings, handler,
        "submit", request_for("sd3-large", style="anime"),
    )

    assert payload.data == b"PNG"
    assert payload.seed == 42
    assert seen["path"] == "/v2beta/stable-image/generate/sd3"
    assert seen["accept"] == "image/*"
    assert seen["content_type"].startswith("multipart/form-data")


def test_stability_image_moderation(settings):
    def filtered(request):
        return httpx.Response(200, content=b"PNG", headers={"finish-reason": "CONTENT_FILTERED"})

    def forbidden(request):
        return httpx.Response(403, json={"name": "content_moderation", "errors": ["flagged"]})

    for handler in (filtered, forbidden):
        with pytest.raises(ContentModerated):
            call(StabilityImageAdapter, "stable-image-core", settings, handler, "submit", request_for("stable-image-core"))


# ── Asynchronous providers ───────────────────────────────────────


def test_fal_fetches_result_document_then_image(settings):
    paths = []

    def handler(request):
        paths.append(request.url.path)
        if request.url.host == "queue.fal.run":
            assert request.headers["authorization"] == "Key fal-key"
            return httpx.Response(200, json={"images": [{"url": "https://fal.media/out.png"}], "seed": 99})
        return httpx.Response(200, content=b"FAL", headers={"content-type": "image/png"})

    payload = call(FalAdapter, "fal-sdxl-lightning", settings, handler, "fetch_result", "req-1")

    assert paths == ["/fal-ai/fast-lightning-sdxl/requests/req-1", "/out.png"]
    assert payload.data == b"FAL"
    assert payload.seed == 99


def test_fal_completed_refers_to_request(settings):
    def handler(request):
        assert request.url.path.endswith("/requests/req-1/status")
        return httpx.Response(200, json={"status": "COMPLETED"})

    status = call(FalAdapter, "fal-stable-cascade", settings, handler, "poll_status", "req-1")
    assert status.state is PollState.SUCCEEDED
    assert status.result_ref == "req-1"


def test_replicate_poll(settings):
    def failed(request):
        return httpx.Response(200, json={"status": "failed", "error": "NSFW content detected"})

    def succeeded(request):
        return httpx.Response(200, json={"status": "succeeded", "output": ["https://r.example/1.png"]})

    status = call(ReplicateAdapter, "replicate-kandinsky-2.2", settings, failed, "poll_status", "p-1")
    assert status.state is PollState.FAILED
    assert status.moderated

    status = call(ReplicateAdapter, "replicate-kandinsky-2.2", settings, succeeded, "poll_status", "p-1")
    assert status.result_ref == "https://r.example/1.png"


def test_runway_body_and_ratio(settings):
    adapter = RunwayVideoAdapter("runway-gen3", settings)

    endpoint, body = adapter.build_body(request_for("runway-gen3", aspect_ratio="9:16", duration=5))
    assert endpoint == "text_to_video"
    assert body["model"] == "veo3.1"
    assert body["duration"] == 6
    assert body["ratio"] == "720:1280"

    endpoint, body = adapter.build_body(
        request_for("runway-gen3", source_image_url="https://example.com/in.png", duration=1)
    )
    assert endpoint == "image_to_video"
    assert body["model"] == "gen3a_turbo"
    assert body["promptImage"] == "https://example.com/in.png"
    assert body["duration"] == 2

    assert runway_ratio("1280:768") == "1280:768"
    assert runway_ratio(None) == "1280:720"
    assert [text_to_video_duration(d) for d in (None, 1, 5, 7, 10)] == [6, 4, 6, 8, 8]


def test_runway_poll(settings):
    def handler(request):
        assert request.headers["x-runway-version"] == settings.RUNWAY_API_VERSION
        return httpx.Response(200, json={"status": "succeeded", "output": ["https://runway.example/v.mp4"]})

    status = call(RunwayVideoAdapter, "runway-gen3", settings, handler, "poll_status", "t-1")
    assert status.state is PollState.SUCCEEDED
    assert status.result_ref == "https://runway.example/v.mp4"

    failed = call(
        RunwayVideoAdapter, "runway-gen3", settings,
        lambda request: httpx.Response(200, json={"status": "FAILED", "failure": "Flagged by safety system"}),
        "poll_status", "t-1",
    )
    assert failed.state is PollState.FAILED
    assert failed.moderated


def test_luma_poll_completed(settings):
    def handler(request):
        return httpx.Response(200, json={"state": "completed", "assets": {"video": "https://luma.example/v.mp4"}})

    status = call(LumaVideoAdapter, "luma-dream-machine", settings, handler, "poll_status", "g-1")
    assert status.result_ref == "https://luma.example/v.mp4"


def test_stability_video_requires_source_image(settings):
    with pytest.raises(ValidationError):
        call(
            StabilityVideoAdapter, "stability-video", settings,
            lambda request: httpx.Response(500),
            "submit", request_for("stability-video"),
        )


def test_stability_video_poll_returns_bytes(settings):
    responses = iter([httpx.Response(202, json={"status": "in-progress"}), httpx.Response(200, content=b"MP4")])

    async def scenario():
        transport = httpx.MockTransport(lambda request: next(responses))
        async with httpx.AsyncClient(transport=transport) as client:
            adapter = StabilityVideoAdapter("stability-video", settings, client)
            return await adapter.poll_status("v-1"), await adapter.poll_status("v-1")

    pending, done = asyncio.run(scenario())
    assert pending.state is PollState.PENDING
    assert done.state is PollState.SUCCEEDED
    assert done.payload == GeneratedPayload(data=b"MP4", content_type="video/mp4")
