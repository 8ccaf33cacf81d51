from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, Sequence, TypedDict, Union

from ..core.types import RemoteFileHandle


class ChatResponse(TypedDict, total=False):
    text: str
    tokens_in: Union[int, None]
    tokens_out: Union[int, None]
    latency_ms: int


class LLMProvider(Protocol):
    id: str
    model: str

    def get_token(self) -> str: ...

    def send(
        self,
        messages: list[dict[str, str]],
        params: Union[dict, None] = None,
        attachments: Sequence[str] = (),
    ) -> ChatResponse: ...

    def upload_file(
        self, path: Path, display_name: str, purpose: Union[str, None] = None
    ) -> RemoteFileHandle: ...

    def list_files(self) -> list[RemoteFileHandle]: ...

    def file_info(self, file_id: str) -> dict[str, Any]: ...

    def delete_file(self, file_id: str) -> dict[str, Any]: ...

    def close(self) -> None: ...
