"""Turn noisy model output into question records or tag sets."""

from __future__ import annotations

import json
import re
from typing import Any, Iterable, Iterator, Union

from .types import ParsedQuestion, ParsedTagSet, ParseFailure, Success

REQUIRED_QUESTION_KEYS = ("stem", "answers", "correctAnswerIndex")

_FENCE_OPEN = re.compile(r"^```(?:json)?[ \t]*\n?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\n?[ \t]*```$")
_OPENERS = {"{": "}", "[": "]"}
_NOT_FOUND = object()
_JSON_SYNTAX = re.compile(r"[{}\[\]]")


def strip_code_fence(text: str) -> str:
    """Remove one leading ```json fence and one trailing ``` fence, if present."""
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = _FENCE_OPEN.sub("", stripped, count=1)
        stripped = _FENCE_CLOSE.sub("", stripped, count=1)
    return stripped.strip()


def _balanced_end(text: str, start: int) -> int:
    """Index just past the delimiter closing text[start], or -1."""
    stack = [_OPENERS[text[start]]]
    in_string = False
    escaped = False
    for pos in range(start + 1, len(text)):
        ch = text[pos]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in ("}", "]"):
            if ch != stack[-1]:
                return -1
            stack.pop()
            if not stack:
                return pos + 1
    return -1


def _balanced_candidates(text: str) -> Iterator[tuple[str, Any]]:
    """Yield each balanced {...} or [...] substring that decodes, with its value."""
    for start, ch in enumerate(text):
        if ch not in _OPENERS:
            continue
        end = _balanced_end(text, start)
        if end == -1:
            continue
        candidate = text[start:end]
        value = _loads(candidate)
        if value is not _NOT_FOUND:
            yield candidate, value


def find_balanced_json(text: str) -> Union[str, None]:
    """Return the first balanced {...} or [...] substring that decodes as JSON."""
    for candidate, _ in _balanced_candidates(text):
        return candidate
    return None


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return _NOT_FOUND


def _json_candidates(raw: str) -> Iterator[Any]:
    stripped = strip_code_fence(raw)
    data = _loads(stripped)
    if data is not _NOT_FOUND:
        yield data
        return
    for _, value in _balanced_candidates(stripped):
        yield value


def extract_json(raw: str) -> Any:
    """Best-effort JSON extraction; returns None when nothing decodes."""
    for value in _json_candidates(raw):
        return value
    return None


def _to_question(item: Any, position: int) -> ParsedQuestion:
    if not isinstance(item, dict) or not all(key in item for key in REQUIRED_QUESTION_KEYS):
        raise ValueError(f"question {position} lacks one of {', '.join(REQUIRED_QUESTION_KEYS)}")
    stem = item["stem"]
    answers = item["answers"]
    index = item["correctAnswerIndex"]
    if not isinstance(stem, str) or not stem.strip():
        raise ValueError(f"question {position} has an empty stem")
    if not isinstance(answers, list) or len(answers) < 2:
        raise ValueError(f"question {position} needs at least two answers")
    if isinstance(index, bool) or not isinstance(index, int):
        raise ValueError(f"question {position} has a non-integer correctAnswerIndex")
    if not 0 <= index < len(answers):
        raise ValueError(f"question {position} has correctAnswerIndex {index} out of range")
    return ParsedQuestion(
        stem=stem.strip(),
        answers=tuple(str(answer) for answer in answers),
        correct_answer_index=index,
    )


def _questions_from(data: Any, raw: str) -> Union[Success, ParseFailure]:
    if not isinstance(data, list) or not data:
        return ParseFailure("Expected a non-empty JSON array of questions", raw=raw)
    try:
        questions = [_to_question(item, pos) for pos, item in enumerate(data, start=1)]
    except ValueError as e:
        return ParseFailure(f"Failed to parse response into question format: {e}", raw=raw)
    return Success(questions)


def parse_questions(raw: str) -> Union[Success, ParseFailure]:
    """First JSON candidate in ``raw`` that is a valid question array wins.

    Prose may hold bracketed fragments such as "[2]" ahead of the real
    payload; when no candidate validates, the first candidate's failure is
    reported.
    """
    first_failure = None
    for data in _json_candidates(raw):
        result = _questions_from(data, raw)
        if isinstance(result, Success):
            return result
        first_failure = first_failure or result
    return first_failure or ParseFailure("Model output contained no JSON", raw=raw)


def _clean_tags(values: Iterable[Any]) -> tuple[str, ...]:
    seen: list[str] = []
    for value in values:
        tag = str(value).strip().strip("\"'").strip()
        if tag and tag not in seen:
            seen.append(tag)
    return tuple(seen)


def _string_members(data: Any) -> list[str]:
    """Every string value in a decoded object or array, depth first; keys are skipped."""
    if isinstance(data, str):
        return [data]
    if isinstance(data, dict):
        data = list(data.values())
    if isinstance(data, list):
        return [s for item in data for s in _string_members(item)]
    return []


def parse_tags(raw: str) -> Union[Success, ParseFailure]:
    data = extract_json(raw)
    if isinstance(data, dict) and isinstance(data.get("tags"), list):
        if all(isinstance(tag, str) for tag in data["tags"]):
            tags = _clean_tags(data["tags"])
            if tags:
                return Success(ParsedTagSet(tags=tags))
    # degraded paths: strings inside other JSON, then a comma separated reply
    if isinstance(data, (dict, list)):
        tags = _clean_tags(_string_members(data))
        if tags:
            return Success(ParsedTagSet(tags=tags))
    pieces = strip_code_fence(raw).replace("\n", ",").split(",")
    tags = _clean_tags(p for p in pieces if not _JSON_SYNTAX.search(p))
    if not tags:
        return ParseFailure("Tag response contained no usable tags", raw=raw)
    return Success(ParsedTagSet(tags=tags))
