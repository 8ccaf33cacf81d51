from __future__ import annotations

import json
import time
import uuid
from pathlib import Path
from typing import Any, Sequence, Union

from ..core.types import RemoteFileHandle
from .base import ChatResponse

MOCK_QUESTIONS = [
    {
        "stem": "Which option is marked correct by the mock provider?",
        "answers": ["This one", "Not this", "Nor this", "Neither this"],
        "correctAnswerIndex": 0,
    },
    {
        "stem": "How many answers does each generated question carry?",
        "answers": ["Two", "Three", "Four", "Five"],
        "correctAnswerIndex": 2,
    },
]


class MockAdapter:
    """Provider that returns canned responses for testing and offline runs.

    ``replies`` are consumed in order; once exhausted the adapter falls back
    to canned questions (or canned tags when asked by the tagging prompt).
    """

    default_purpose = "general"

    def __init__(self, model: str = "mock", replies: Union[Sequence[str], None] = None) -> None:
        self.id = f"mock:{model}"
        self.model = model
        self.replies = list(replies or [])
        self.calls: list[dict[str, Any]] = []
        self.files: dict[str, RemoteFileHandle] = {}
        self.deleted: list[str] = []

    def get_token(self) -> str:
        return "mock-token"

    def send(
        self,
        messages: list[dict[str, str]],
        params: Union[dict, None] = None,
        attachments: Sequence[str] = (),
    ) -> ChatResponse:
        start = time.perf_counter()
        self.calls.append(
            {"messages": messages, "params": dict(params or {}), "attachments": list(attachments)}
        )
        if self.replies:
            text = self.replies.pop(0)
        elif any(m["role"] == "system" and "tagging" in m["content"] for m in messages):
            text = json.dumps({"tags": ["mock", "generated"]})
        else:
            text = "```json\n" + json.dumps(MOCK_QUESTIONS) + "\n```"
        latency_ms = int((time.perf_counter() - start) * 1000)
        return ChatResponse(text=text, tokens_in=0, tokens_out=0, latency_ms=latency_ms)

    def upload_file(
        self, path: Path, display_name: str, purpose: Union[str, None] = None
    ) -> RemoteFileHandle:
        handle = RemoteFileHandle(
            provider_file_id=uuid.uuid4().hex,
            purpose=purpose or self.default_purpose,
            filename=display_name,
        )
        self.files[handle.provider_file_id] = handle
        return handle

    def list_files(self) -> list[RemoteFileHandle]:
        return list(self.files.values())

    def file_info(self, file_id: str) -> dict[str, Any]:
        handle = self.files[file_id]
        return {"id": handle.provider_file_id, "purpose": handle.purpose, "filename": handle.filename}

    def delete_file(self, file_id: str) -> dict[str, Any]:
        self.files.pop(file_id, None)
        self.deleted.append(file_id)
        return {"id": file_id, "deleted": True}

    def close(self) -> None:
        pass
