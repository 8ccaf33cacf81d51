"""Provider selection from pipeline settings."""

from __future__ import annotations

import os

from ..adapters.base import LLMProvider
from ..adapters.gigachat_adapter import GigaChatAdapter
from ..adapters.mock_adapter import MockAdapter
from ..adapters.openai_adapter import OpenAIAdapter
from .settings import PipelineSettings


def use_mock_providers() -> bool:
    return os.environ.get("LLM_QBANK_ENV", "real").lower() == "mock"


def create_provider(settings: PipelineSettings, use_mocks: bool = False) -> LLMProvider:
    """Create the adapter configured for this course or site."""
    if use_mocks or settings.provider == "mock":
        return MockAdapter(model=settings.resolved_model or "mock")
    if settings.provider == "gigachat":
        return GigaChatAdapter(
            model=settings.resolved_model,
            secret=settings.secret,
            timeout=settings.timeout,
            file_timeout=settings.file_timeout,
            verify_ssl=settings.verify_ssl,
        )
    if settings.provider == "openai":
        return OpenAIAdapter(
            model=settings.resolved_model,
            api_key=settings.secret,
            timeout=settings.timeout,
            file_timeout=settings.file_timeout,
        )
    raise ValueError(f"Unknown provider: {settings.provider}")
