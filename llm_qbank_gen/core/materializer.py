from __future__ import annotations

import logging
from typing import Iterable, Protocol

from .types import AnswerOption, Category, MultichoiceQuestion, ParsedQuestion

logger = logging.getLogger(__name__)

ISSUE_TITLE = "Issue during question generation"
ERROR_TITLE = "Error during question generation"


class QuestionSink(Protocol):
    def create_category(self, context_id: int, resource_description: str) -> Category: ...

    def create_question(self, name: str, question: MultichoiceQuestion, category: Category) -> int: ...

    def add_description(self, name: str, text: str, category: Category) -> int: ...


def to_multichoice(parsed: ParsedQuestion) -> MultichoiceQuestion:
    """Exactly one answer gets full credit, every other answer zero."""
    answers = tuple(
        AnswerOption(text=text, weight=1.0 if pos == parsed.correct_answer_index else 0.0)
        for pos, text in enumerate(parsed.answers)
    )
    return MultichoiceQuestion(stem=parsed.stem, answers=answers)


def question_name(position: int) -> str:
    return str(position).zfill(3)


class Materializer:
    def __init__(self, sink: QuestionSink, category: Category) -> None:
        self.sink = sink
        self.category = category

    def materialize(self, questions: Iterable[ParsedQuestion]) -> list[int]:
        ids = []
        for position, parsed in enumerate(questions, start=1):
            name = question_name(position)
            ids.append(self.sink.create_question(name, to_multichoice(parsed), self.category))
            logger.info("Question created: %s", name)
        return ids

    def placeholder(self, title: str, text: str) -> int:
        logger.info("Placeholder created: %s", title)
        return self.sink.add_description(title, text, self.category)
