from __future__ import annotations

import logging
from typing import Union

from ..adapters.base import LLMProvider
from .prompt import TAG_SYSTEM_PROMPT, QuestionPromptContext, render_question_prompt
from .settings import PipelineSettings
from .types import ContentUnit, GenerationRequest, RemoteFileHandle

logger = logging.getLogger(__name__)


class GenerationClient:
    """Builds completion requests and returns the raw model text."""

    def __init__(self, provider: LLMProvider, settings: PipelineSettings) -> None:
        self.provider = provider
        self.settings = settings

    def question_request(
        self, unit: ContentUnit, handle: Union[RemoteFileHandle, None] = None
    ) -> GenerationRequest:
        ctx = QuestionPromptContext(
            filename=unit.display_name,
            question_count=self.settings.question_count,
            content=None if handle is not None else (unit.payload or ""),
        )
        return GenerationRequest(
            model=self.provider.model,
            prompt_text=render_question_prompt(ctx),
            attachments=(handle.provider_file_id,) if handle is not None else (),
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
        )

    def tag_request(self, text: str) -> GenerationRequest:
        return GenerationRequest(
            model=self.provider.model,
            prompt_text=text,
            temperature=self.settings.tag_temperature,
            system_prompt=TAG_SYSTEM_PROMPT,
        )

    def generate(self, request: GenerationRequest) -> str:
        resp = self.provider.send(
            request.messages, params=request.params, attachments=request.attachments
        )
        logger.debug(
            "%s answered in %sms (%s tokens in, %s out)",
            self.provider.id,
            resp.get("latency_ms"),
            resp.get("tokens_in"),
            resp.get("tokens_out"),
        )
        return resp["text"]
