from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Literal, Union

from ..adapters.base import LLMProvider
from .content_extractor import ContentExtractor, ResourceSource
from .errors import QBankGenError
from .file_store import RemoteFileStore
from .generator import GenerationClient
from .materializer import ERROR_TITLE, ISSUE_TITLE, Materializer, QuestionSink
from .parser import parse_questions
from .retry import RetryController
from .settings import PipelineSettings
from .types import Category, ContentUnit, FatalError, GenerationOutcome, ParseFailure, Resource, Success

logger = logging.getLogger(__name__)

UnitStatus = Literal["success", "parse_failure", "error", "skipped"]


@dataclass
class UnitReport:
    resource_id: int
    resource_name: str
    status: UnitStatus
    question_ids: list[int] = field(default_factory=list)
    placeholder_id: Union[int, None] = None
    attempts: int = 0
    message: str = ""


@dataclass
class BatchReport:
    category: Category
    units: list[UnitReport] = field(default_factory=list)

    @property
    def created(self) -> int:
        return sum(len(u.question_ids) for u in self.units)

    @property
    def placeholders(self) -> int:
        return sum(1 for u in self.units if u.placeholder_id is not None)


def resource_names(resources: Iterable[Resource]) -> str:
    return ", ".join(r.name for r in resources)


class GenerationPipeline:
    """Runs one batch: every resource in order, one at a time.

    A resource that fails never stops the batch; it is recorded as a
    placeholder entry in the category instead.
    """

    def __init__(
        self,
        provider: LLMProvider,
        settings: PipelineSettings,
        sink: QuestionSink,
        source: ResourceSource,
        extractor: Union[ContentExtractor, None] = None,
        retry: Union[RetryController, None] = None,
        temp_root: Union[Path, None] = None,
    ) -> None:
        self.provider = provider
        self.settings = settings
        self.sink = sink
        self.client = GenerationClient(provider, settings)
        self.files = RemoteFileStore(provider)
        self.extractor = extractor or ContentExtractor(
            source, max_chars=settings.max_inline_chars, temp_root=temp_root
        )
        self.retry = retry or RetryController(settings.max_attempts, settings.retry_pause)

    def generate_for_unit(self, unit: ContentUnit) -> GenerationOutcome:
        if unit.is_inline:
            request = self.client.question_request(unit)
            return self.retry.run(request, self.client.generate, parse_questions)
        logger.info("Uploading file: %s", unit.display_name)
        with self.files.uploaded(unit.path, unit.display_name) as handle:
            request = self.client.question_request(unit, handle)
            return self.retry.run(request, self.client.generate, parse_questions)

    def process_resource(self, resource: Resource, materializer: Materializer) -> UnitReport:
        report = UnitReport(resource_id=resource.id, resource_name=resource.name, status="skipped")
        logger.info("Processing file: %s", resource.name)
        try:
            with self.extractor.extract(resource) as unit:
                if unit is None:
                    report.message = "no file associated with resource"
                    return report
                if unit.is_inline and not (unit.payload or "").strip():
                    logger.warning("No content available for %s", resource.name)
                    report.message = "file has no readable content"
                    return report
                outcome = self.generate_for_unit(unit)
        except QBankGenError as e:
            outcome = FatalError(str(e))
        except OSError as e:
            outcome = FatalError(f"Could not read {resource.name}: {e}")
        if self.retry.last_state is not None:
            report.attempts = self.retry.last_state.attempts_made

        if isinstance(outcome, Success):
            report.status = "success"
            report.question_ids = materializer.materialize(outcome.value)
        elif isinstance(outcome, ParseFailure):
            report.status = "parse_failure"
            report.message = outcome.message
            text = f"{resource.name}: {outcome.message}"
            if outcome.raw:
                text += "\n\n" + outcome.raw
            report.placeholder_id = materializer.placeholder(ISSUE_TITLE, text)
        else:
            report.status = "error"
            report.message = outcome.message
            logger.error("Error during question generation for %s: %s", resource.name, outcome.message)
            report.placeholder_id = materializer.placeholder(
                ERROR_TITLE, f"{resource.name}: Error: {outcome.message}"
            )
        return report

    def run(self, resources: list[Resource], context_id: int) -> BatchReport:
        category = self.sink.create_category(context_id, resource_names(resources))
        logger.info("Category created: %s", category.name)
        materializer = Materializer(self.sink, category)
        batch = BatchReport(category=category)
        for resource in resources:
            self.retry.last_state = None
            batch.units.append(self.process_resource(resource, materializer))
        logger.info(
            "Batch finished: %s questions created, %s placeholders",
            batch.created,
            batch.placeholders,
        )
        return batch
