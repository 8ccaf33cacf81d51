from __future__ import annotations

from dataclasses import dataclass
from typing import Union

QUESTION_FORMAT = (
    "Each question shall have {answer_count} answers and only 1 correct answer. "
    "Questions should be in the same language as the {source_kind}. "
    "The output shall be in JSON format, i.e., an array of objects where each object contains the stem, "
    "an array for the answers and the index of the correct answer. "
    'Name the keys "stem", "answers", "correctAnswerIndex". '
    "The output shall only contain the JSON, nothing else."
)

INLINE_TEMPLATE = (
    "You are a test item generator. "
    "Create {question_count} multiple choice questions on the content of the following document: '{filename}'. "
    + QUESTION_FORMAT
    + "\n\nContent:\n{content}"
)

ATTACHMENT_TEMPLATE = (
    "You are a test item generator. "
    "Create {question_count} multiple choice questions on the content of the attached file '{filename}'. "
    + QUESTION_FORMAT
)

TAG_SYSTEM_PROMPT = (
    "You are a tagging assistant. Your task is to extract a list of the most "
    "important tags for the given content. All tags shall be given in English. "
    'Respond with a JSON object of the form {"tags": ["tag1", "tag2"]} and nothing else.'
)


@dataclass
class QuestionPromptContext:
    filename: str
    question_count: int = 10
    answer_count: int = 4
    content: Union[str, None] = None


def render_question_prompt(ctx: QuestionPromptContext) -> str:
    if ctx.content is not None:
        return INLINE_TEMPLATE.format(
            question_count=ctx.question_count,
            answer_count=ctx.answer_count,
            filename=ctx.filename,
            source_kind="document content",
            content=ctx.content,
        )
    return ATTACHMENT_TEMPLATE.format(
        question_count=ctx.question_count,
        answer_count=ctx.answer_count,
        filename=ctx.filename,
        source_kind="file content",
    )
