"""Deferred generation batches.

``TaskQueue.schedule`` checks credentials synchronously, so a missing key
reaches the caller straight away, then hands the batch to a single worker
thread and returns. Batches never run concurrently.
"""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Union

from ..adapters.base import LLMProvider
from .content_extractor import ResourceSource
from .credentials import CredentialStore, resolve_settings
from .materializer import QuestionSink
from .providers import create_provider
from .runner import BatchReport, GenerationPipeline
from .settings import PipelineSettings
from .types import Resource

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[PipelineSettings], LLMProvider]
StatusHook = Callable[[str, str], None]


@dataclass
class GenerationTask:
    resources: list[Resource]
    user_id: int
    context_id: int
    course_id: int
    batch_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "resources": [{"id": r.id, "name": r.name} for r in self.resources],
            "user_id": self.user_id,
            "context_id": self.context_id,
            "course_id": self.course_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GenerationTask":
        return cls(
            resources=[Resource(id=int(r["id"]), name=r["name"]) for r in data["resources"]],
            user_id=int(data["user_id"]),
            context_id=int(data["context_id"]),
            course_id=int(data["course_id"]),
            batch_id=data.get("batch_id") or uuid.uuid4().hex,
        )


def run_generation_batch(
    task: GenerationTask,
    settings: PipelineSettings,
    sink: QuestionSink,
    source: ResourceSource,
    provider_factory: ProviderFactory = create_provider,
    temp_root: Union[Path, None] = None,
) -> BatchReport:
    """Execute one batch with already-resolved settings."""
    provider = provider_factory(settings)
    try:
        pipeline = GenerationPipeline(provider, settings, sink, source, temp_root=temp_root)
        return pipeline.run(task.resources, task.context_id)
    finally:
        provider.close()


class TaskQueue:
    def __init__(
        self,
        site_settings: PipelineSettings,
        sink: QuestionSink,
        source: ResourceSource,
        credentials: Union[CredentialStore, None] = None,
        provider_factory: ProviderFactory = create_provider,
        on_status: Union[StatusHook, None] = None,
        temp_root: Union[Path, None] = None,
    ) -> None:
        self.site_settings = site_settings
        self.sink = sink
        self.source = source
        self.credentials = credentials
        self.provider_factory = provider_factory
        self.on_status = on_status
        self.temp_root = temp_root
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="qbank-batch")

    def _status(self, task: GenerationTask, status: str) -> None:
        if self.on_status is not None:
            self.on_status(task.batch_id, status)

    def schedule(self, task: GenerationTask) -> "Future[BatchReport]":
        settings = resolve_settings(
            self.credentials, self.site_settings, task.course_id, task.user_id
        )
        self._status(task, "queued")
        logger.info(
            "Queued batch %s: %s resource(s) for course %s",
            task.batch_id,
            len(task.resources),
            task.course_id,
        )
        return self.executor.submit(self._execute, task, settings)

    def _execute(self, task: GenerationTask, settings: PipelineSettings) -> BatchReport:
        self._status(task, "running")
        try:
            report = run_generation_batch(
                task, settings, self.sink, self.source, self.provider_factory, self.temp_root
            )
        except Exception:
            logger.exception("Batch %s failed", task.batch_id)
            self._status(task, "failed")
            raise
        self._status(task, "completed")
        return report

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)
