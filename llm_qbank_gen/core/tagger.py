from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Protocol, Union

from ..adapters.base import LLMProvider
from .generator import GenerationClient
from .parser import parse_tags
from .retry import RetryController
from .settings import PipelineSettings
from .types import QuestionRecord, Success

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")


class TagStore(Protocol):
    def load_question(self, question_id: int) -> Union[QuestionRecord, None]: ...

    def get_tags(self, question_id: int) -> list[str]: ...

    def set_tags(self, question_id: int, tags: Iterable[str]) -> None: ...


@dataclass
class TaggingResult:
    tagged: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)


def strip_html(text: str) -> str:
    return html.unescape(_TAG_RE.sub("", text)).strip()


def tagging_text(question: QuestionRecord) -> str:
    text = strip_html(question.text)
    for answer in question.answers:
        text += "\n- " + strip_html(answer)
    return text


def tag_questions(
    question_ids: Iterable[int],
    provider: LLMProvider,
    settings: PipelineSettings,
    store: TagStore,
    retry: Union[RetryController, None] = None,
) -> TaggingResult:
    """Ask the model for English tags for every untagged question.

    Questions that already carry tags are left alone.
    """
    client = GenerationClient(provider, settings)
    retry = retry or RetryController(settings.max_attempts, settings.retry_pause)
    result = TaggingResult()
    for qid in question_ids:
        question = store.load_question(qid)
        if question is None:
            result.failed[qid] = "question not found"
            continue
        if store.get_tags(qid):
            result.skipped.append(qid)
            continue
        outcome = retry.run(client.tag_request(tagging_text(question)), client.generate, parse_tags)
        if not isinstance(outcome, Success):
            logger.warning("Could not tag question %s: %s", qid, outcome.message)
            result.failed[qid] = outcome.message
            continue
        store.set_tags(qid, outcome.value.tags)
        logger.info("Tagged question %s: %s", qid, ", ".join(outcome.value.tags))
        result.tagged.append(qid)
    return result
