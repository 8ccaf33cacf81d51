from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Any, Sequence, Union

import httpx
import openai

from ..core.errors import ApiError, FileOperationError, InvalidResponseError, TokenError, UploadError
from ..core.types import RemoteFileHandle
from .base import ChatResponse

_STATUS_HINTS = {
    401: "check the OpenAI API key configured for this course or site",
    403: "the key has no access to this model or usage limits are exceeded",
    404: "model name is wrong or not available to this key",
    429: "rate limit exceeded, try again later",
}


def _describe(e: openai.APIStatusError, model_name: str) -> str:
    hint = _STATUS_HINTS.get(e.status_code)
    message = f"OpenAI error for model '{model_name}': {e.message}"
    if hint:
        message += f" ({hint})"
    return message


class OpenAIAdapter:
    """OpenAI chat completions and file storage through the official SDK.

    The API key is used directly as the bearer token, there is no exchange.
    """

    id = "openai"
    default_purpose = "user_data"

    def __init__(
        self,
        model: str,
        api_key: str,
        *,
        timeout: float = 30,
        file_timeout: float = 60,
        http_client: Union[httpx.Client, None] = None,
        base_url: Union[str, None] = None,
    ) -> None:
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.file_timeout = file_timeout
        if http_client is None:
            proxy = os.environ.get("HTTPS_PROXY") or os.environ.get("HTTP_PROXY")
            http_client = httpx.Client(proxy=proxy) if proxy else None
        self.client = openai.OpenAI(
            api_key=api_key,
            base_url=base_url,
            http_client=http_client,
            timeout=timeout,
            max_retries=0,
        )

    def get_token(self) -> str:
        if not self.api_key:
            raise TokenError(no_token=True)
        return self.api_key

    @staticmethod
    def _with_attachments(
        messages: list[dict[str, str]], attachments: Sequence[str]
    ) -> list[dict[str, Any]]:
        if not attachments:
            return list(messages)
        result: list[dict[str, Any]] = [dict(m) for m in messages]
        last_user = max(i for i, m in enumerate(result) if m["role"] == "user")
        parts: list[dict[str, Any]] = [{"type": "text", "text": result[last_user]["content"]}]
        parts.extend({"type": "file", "file": {"file_id": file_id}} for file_id in attachments)
        result[last_user]["content"] = parts
        return result

    def send(
        self,
        messages: list[dict[str, str]],
        params: Union[dict, None] = None,
        attachments: Sequence[str] = (),
    ) -> ChatResponse:
        self.get_token()
        payload: dict[str, Any] = {"temperature": 0.7}
        if params:
            payload.update(params)
        start = time.perf_counter()
        try:
            resp = self.client.chat.completions.create(
                model=self.model,
                messages=self._with_attachments(messages, attachments),
                timeout=self.file_timeout if attachments else self.timeout,
                **payload,
            )
        except openai.APIStatusError as e:
            raise ApiError(e.status_code, _describe(e, self.model)) from e
        except openai.APIError as e:
            raise ApiError(None, f"OpenAI API request failed for model '{self.model}': {e}") from e
        latency_ms = int((time.perf_counter() - start) * 1000)
        if not resp.choices or resp.choices[0].message.content is None:
            raise InvalidResponseError(
                f"OpenAI response for model '{self.model}' lacks choices[0].message.content"
            )
        usage = resp.usage
        return ChatResponse(
            text=resp.choices[0].message.content,
            tokens_in=usage.prompt_tokens if usage else None,
            tokens_out=usage.completion_tokens if usage else None,
            latency_ms=latency_ms,
        )

    def upload_file(
        self, path: Path, display_name: str, purpose: Union[str, None] = None
    ) -> RemoteFileHandle:
        purpose = purpose or self.default_purpose
        path = Path(path)
        if not path.is_file():
            raise UploadError(None, f"file not found: {path}")
        try:
            with path.open("rb") as fh:
                created = self.client.files.create(
                    file=(display_name, fh), purpose=purpose, timeout=self.file_timeout
                )
        except openai.APIStatusError as e:
            raise UploadError(e.status_code, e.message) from e
        except openai.APIError as e:
            raise UploadError(None, str(e)) from e
        if not created.id:
            raise UploadError(200, "response has no file id")
        return RemoteFileHandle(
            provider_file_id=created.id, purpose=purpose, filename=created.filename or display_name
        )

    def list_files(self) -> list[RemoteFileHandle]:
        try:
            page = self.client.files.list()
        except openai.APIStatusError as e:
            raise FileOperationError("list", e.status_code, e.message) from e
        except openai.APIError as e:
            raise FileOperationError("list", None, str(e)) from e
        return [
            RemoteFileHandle(provider_file_id=f.id, purpose=f.purpose, filename=f.filename)
            for f in page.data
        ]

    def file_info(self, file_id: str) -> dict[str, Any]:
        try:
            return self.client.files.retrieve(file_id).model_dump()
        except openai.APIStatusError as e:
            raise FileOperationError("info", e.status_code, e.message) from e
        except openai.APIError as e:
            raise FileOperationError("info", None, str(e)) from e

    def delete_file(self, file_id: str) -> dict[str, Any]:
        try:
            return self.client.files.delete(file_id).model_dump()
        except openai.APIStatusError as e:
            raise FileOperationError("delete", e.status_code, e.message) from e
        except openai.APIError as e:
            raise FileOperationError("delete", None, str(e)) from e

    def close(self) -> None:
        self.client.close()
