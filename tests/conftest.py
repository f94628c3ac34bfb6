"""Pytest configuration helpers.

Puts ``backend`` on ``sys.path`` so tests can import the ``pixelstudio``
package regardless of how pytest is invoked, and provides settings, an
in-memory database, and scripted mock adapters.
"""
import os
import sys
import tempfile

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "backend"))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# Keep the app's static media mount out of the working tree
os.environ.setdefault("MEDIA_VOLUME", tempfile.mkdtemp(prefix="pixelstudio-media-"))

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from pixelstudio.config import Settings  # noqa: E402
from pixelstudio.database import Base, make_session_factory  # noqa: E402
from pixelstudio.services.providers.mock import MockAdapter  # noqa: E402


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DB_URL="sqlite+aiosqlite://",
        MEDIA_VOLUME=str(tmp_path / "media"),
        ASSET_BASE_URL="https://cdn.example.com",
        THUMBNAIL_BASE_URL="https://thumbs.example.com",
        USE_MOCK_API=False,
        BLACK_FOREST_LABS_API_KEY="bfl-key",
        OPENAI_API_KEY="openai-key",
        REPLICATE_API_TOKEN="replicate-token",
        FAL_API_KEY="fal-key",
        IDEOGRAM_API_KEY="ideogram-key",
        TOGETHER_API_KEY="together-key",
        STABILITY_API_KEY="stability-key",
        RUNWAY_API_KEY="runway-key",
        LUMA_API_KEY="luma-key",
        REQUEST_TIMEOUT=30.0,
        REFUND_ON_FAILURE=True,
        PARTIAL_BATCH_BILLING="full",
    )


@pytest.fixture()
def database():
    """Async factory for a fresh in-memory SQLite schema.

    Call it inside the test's event loop; the engine is bound to that loop.
    """
    async def _open():
        import pixelstudio.models  # noqa: F401

        engine = create_async_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        return engine, make_session_factory(engine)

    return _open


@pytest.fixture()
def mock_factory():
    """Build adapter factories that hand out scripted MockAdapters.

    Every adapter built is appended to ``factory.built``.
    """
    def _make(script=(), polls_to_complete=2, adapter_cls=MockAdapter):
        def factory(model, settings, http_client=None):
            adapter = adapter_cls(
                model, settings, http_client,
                script=script, polls_to_complete=polls_to_complete,
            )
            factory.built.append(adapter)
            return adapter

        factory.built = []
        return factory

    return _make


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture()
def fake_clock():
    return FakeClock()
