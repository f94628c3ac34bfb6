from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from pixelstudio.api.deps import get_generation_service, get_repository
from pixelstudio.errors import AuthConfigurationError, InsufficientCredits
from pixelstudio.main import app
from pixelstudio.models import Image
from pixelstudio.schemas.generation import GenerationResponse

HEADERS = {"X-User-Id": "user-1"}
BODY = {"prompt": "A red fox in the snow", "model": "flux-pro-1.1", "quantity": 2}


@pytest.fixture()
def service():
    service = MagicMock()
    service.generate = AsyncMock(return_value=GenerationResponse(set_id="set-1", credits_charged=8))
    app.dependency_overrides[get_generation_service] = lambda: service
    yield service
    app.dependency_overrides.clear()


@pytest.fixture()
def client():
    return TestClient(app)


def test_generate(client, service):
    response = client.post("/api/generations", json=BODY, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["set_id"] == "set-1"
    user_id, request = service.generate.await_args.args
    assert user_id == "user-1"
    assert request.quantity == 2


def test_generate_requires_user(client, service):
    response = client.post("/api/generations", json=BODY)
    assert response.status_code == 401
    service.generate.assert_not_awaited()


@pytest.mark.parametrize(
    "body",
    [
        {**BODY, "quantity": 11},
        {**BODY, "quantity": 0},
        {**BODY, "prompt": "   "},
        {"model": "flux-pro"},
    ],
)
def test_malformed_request_is_422(client, service, body):
    response = client.post("/api/generations", json=body, headers=HEADERS)
    assert response.status_code == 422
    service.generate.assert_not_awaited()


@pytest.mark.parametrize(
    "error,status",
    [
        (InsufficientCredits(), 402),
        (AuthConfigurationError("FAL_API_KEY is not configured"), 400),
    ],
)
def test_pre_batch_errors_map_to_status(client, service, error, status):
    service.generate.side_effect = error
    response = client.post("/api/generations", json=BODY, headers=HEADERS)

    assert response.status_code == status
    assert response.json()["detail"] == error.reason


def test_failed_generation_is_reported_in_body(client, service):
    service.generate.return_value = GenerationResponse(
        error="Your request was flagged by our content moderation system (NSFW)",
        failures=["Your request was flagged by our content moderation system (NSFW)"],
    )
    response = client.post("/api/generations", json=BODY, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["set_id"] == ""
    assert "content moderation" in response.json()["error"]


def test_queue_generation(client):
    with patch("pixelstudio.api.generations.generate_artifacts") as task:
        task.delay.return_value = SimpleNamespace(id="task-9")
        response = client.post("/api/generations/queue", json=BODY, headers=HEADERS)

    assert response.status_code == 202
    assert response.json() == {"task_id": "task-9", "status": "queued"}
    user_id, payload = task.delay.call_args.args
    assert user_id == "user-1"
    assert payload["model"] == "flux-pro-1.1"


def test_queue_rejects_invalid_model_parameters(client):
    with patch("pixelstudio.api.generations.generate_artifacts") as task:
        response = client.post(
            "/api/generations/queue", json={**BODY, "style": "anime"}, headers=HEADERS,
        )

    assert response.status_code == 422
    task.delay.assert_not_called()


def test_list_models(client):
    response = client.get("/api/models", params={"provider": "black_forest_labs"})

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 4
    assert {m["model"] for m in data["models"]} == {
        "flux-pro", "flux-pro-1.1", "flux-dev", "flux-pro-1.1-ultra",
    }
    assert "runway" in data["providers"]


def test_get_set_orders_artifacts(client):
    def image(image_id, position):
        return Image(
            id=image_id, set_id="set-1", user_id="user-1", position=position,
            prompt="fox", title="fox", model="flux-pro", private=False, prompt_upsampling=False,
        )

    repository = MagicMock()
    repository.get_set = AsyncMock(return_value=SimpleNamespace(
        id="set-1", user_id="user-1", prompt="fox", model="flux-pro", created_at=None,
        images=[image("b", 1), image("a", 0)], videos=[],
    ))
    app.dependency_overrides[get_repository] = lambda: repository
    try:
        response = client.get("/api/sets/set-1")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    artifacts = response.json()["artifacts"]
    assert [a["id"] for a in artifacts] == ["a", "b"]
    assert artifacts[0]["url"].endswith("/a.png")


def test_get_missing_set(client):
    repository = MagicMock()
    repository.get_set = AsyncMock(return_value=None)
    app.dependency_overrides[get_repository] = lambda: repository
    try:
        response = client.get("/api/sets/nope")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 404


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_configured_providers_follow_credentials(settings):
    from pixelstudio.main import configured_providers

    ready = configured_providers(settings.model_copy(update={"FAL_API_KEY": ""}))
    assert "mock" in ready
    assert "black_forest_labs" in ready
    assert "fal" not in ready
