"""Celery worker app for queued generation requests."""

import asyncio
import threading

from celery import Celery

from pixelstudio.config import get_settings

settings = get_settings()

celery_app = Celery(
    "pixelstudio",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["pixelstudio.tasks.generation_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    enable_utc=True,
    task_track_started=True,
    # Ack on receipt: a redelivered request would charge credits twice
    task_acks_late=False,
    worker_prefetch_multiplier=1,
    task_routes={"pixelstudio.tasks.generation_tasks.*": {"queue": "generation"}},
    task_time_limit=int(settings.REQUEST_TIMEOUT) + 120,
    result_expires=24 * 3600,
)

_loops = threading.local()


def run_async(coro):
    """Run ``coro`` on this worker thread's event loop.

    The loop outlives the task so the async engine's pooled connections,
    which are bound to it, stay usable by the next task on the thread.
    """
    loop = getattr(_loops, "loop", None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        _loops.loop = loop
    return loop.run_until_complete(coro)
