from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generic, Literal, TypeVar, Union

ScopeLevel = Literal["course", "site"]
MediaKind = Literal["inline_text", "remote_upload"]

T = TypeVar("T")


@dataclass(frozen=True)
class Credentials:
    secret: str
    model: str
    scope_level: ScopeLevel


@dataclass(frozen=True)
class AccessToken:
    token: str
    obtained_at: float = field(default_factory=time.time)
    # GigaChat tokens live for 30 minutes
    assumed_ttl: float = 30 * 60
    expires_at: Union[float, None] = None


@dataclass(frozen=True)
class Resource:
    id: int
    name: str


@dataclass
class ContentUnit:
    source_resource_id: int
    display_name: str
    media_kind: MediaKind
    extension: str
    payload: Union[str, None] = None
    path: Union[Path, None] = None

    @property
    def is_inline(self) -> bool:
        return self.media_kind == "inline_text"


@dataclass(frozen=True)
class RemoteFileHandle:
    provider_file_id: str
    purpose: str = "general"
    filename: str = ""


@dataclass(frozen=True)
class GenerationRequest:
    model: str
    prompt_text: str
    attachments: tuple[str, ...] = ()
    temperature: float = 0.7
    max_tokens: Union[int, None] = None
    system_prompt: Union[str, None] = None

    @property
    def messages(self) -> list[dict[str, str]]:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": self.prompt_text})
        return messages

    @property
    def params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"temperature": self.temperature}
        if self.max_tokens:
            params["max_tokens"] = self.max_tokens
        return params


@dataclass(frozen=True)
class ParsedQuestion:
    stem: str
    answers: tuple[str, ...]
    correct_answer_index: int


@dataclass(frozen=True)
class ParsedTagSet:
    tags: tuple[str, ...]


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True)
class ParseFailure:
    message: str
    retryable: bool = True
    raw: str = ""


@dataclass(frozen=True)
class FatalError:
    message: str


GenerationOutcome = Union[Success, ParseFailure, FatalError]


@dataclass
class RetryState:
    max_attempts: int
    attempts_made: int = 0
    last_request_payload: Union[GenerationRequest, None] = None


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    info: str
    context_id: int


@dataclass(frozen=True)
class AnswerOption:
    text: str
    weight: float


@dataclass(frozen=True)
class MultichoiceQuestion:
    stem: str
    answers: tuple[AnswerOption, ...]
    single: bool = True
    shuffle_answers: bool = True
    answer_numbering: str = "abc"


@dataclass(frozen=True)
class QuestionRecord:
    id: int
    text: str
    answers: tuple[str, ...] = ()
