from __future__ import annotations

import logging
import mimetypes
import os
import time
from pathlib import Path
from typing import Any, Sequence, Type, Union
from urllib.parse import quote

import httpx

from ..core.errors import ApiError, FileOperationError, InvalidResponseError, UploadError
from ..core.token_provider import GIGACHAT_OAUTH_URL, GIGACHAT_SCOPE, TokenProvider
from ..core.types import RemoteFileHandle
from .base import ChatResponse

logger = logging.getLogger(__name__)

GIGACHAT_API_URL = "https://gigachat.devices.sberbank.ru/api/v1"


def _error_detail(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or "")[:200]
    return ""


class GigaChatAdapter:
    id = "gigachat"
    default_purpose = "general"

    def __init__(
        self,
        model: str,
        secret: str,
        *,
        timeout: float = 30,
        file_timeout: float = 60,
        verify_ssl: bool = True,
        scope: str = GIGACHAT_SCOPE,
        client: Union[httpx.Client, None] = None,
    ) -> None:
        self.model = model
        self.timeout = timeout
        self.file_timeout = file_timeout
        if client is None:
            proxy = os.environ.get("HTTPS_PROXY") or os.environ.get("HTTP_PROXY")
            if proxy:
                client = httpx.Client(base_url=GIGACHAT_API_URL, verify=verify_ssl, proxy=proxy)
            else:
                client = httpx.Client(base_url=GIGACHAT_API_URL, verify=verify_ssl)
        self.client = client
        self.tokens = TokenProvider(
            secret, client, oauth_url=GIGACHAT_OAUTH_URL, scope=scope, timeout=timeout
        )

    def get_token(self) -> str:
        return self.tokens.get_token()

    def _request(
        self,
        method: str,
        path: str,
        *,
        error: Type[ApiError] = ApiError,
        operation: Union[str, None] = None,
        timeout: Union[float, None] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.get_token()}", "Accept": "application/json"}
        headers.update(kwargs.pop("headers", {}))

        def fail(status: Union[int, None], detail: str) -> ApiError:
            if operation is not None:
                return FileOperationError(operation, status, detail)
            return error(status, detail)

        try:
            resp = self.client.request(
                method, path, headers=headers, timeout=timeout or self.timeout, **kwargs
            )
        except httpx.HTTPError as e:
            raise fail(None, f"{type(e).__name__}: {e}") from e
        if resp.status_code != 200:
            raise fail(resp.status_code, _error_detail(resp))
        return resp

    @staticmethod
    def _json(resp: httpx.Response, required_key: str, error: ApiError) -> Any:
        try:
            data = resp.json()
        except ValueError:
            raise error
        if not isinstance(data, dict) or required_key not in data:
            raise error
        return data

    def send(
        self,
        messages: list[dict[str, str]],
        params: Union[dict, None] = None,
        attachments: Sequence[str] = (),
    ) -> ChatResponse:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": 0.7,
        }
        if params:
            payload.update(params)
        if attachments:
            payload["attachments"] = list(attachments)
        timeout = self.file_timeout if attachments else self.timeout
        start = time.perf_counter()
        resp = self._request(
            "POST",
            "/chat/completions",
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )
        latency_ms = int((time.perf_counter() - start) * 1000)
        try:
            data = resp.json()
            text = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise InvalidResponseError(
                f"GigaChat response for model '{self.model}' lacks choices[0].message.content"
            ) from e
        if not isinstance(text, str):
            raise InvalidResponseError("GigaChat message content is not a string")
        usage = data.get("usage") or {}
        return ChatResponse(
            text=text,
            tokens_in=usage.get("prompt_tokens"),
            tokens_out=usage.get("completion_tokens"),
            latency_ms=latency_ms,
        )

    def upload_file(
        self, path: Path, display_name: str, purpose: Union[str, None] = None
    ) -> RemoteFileHandle:
        purpose = purpose or self.default_purpose
        path = Path(path)
        if not path.is_file():
            raise UploadError(None, f"file not found: {path}")
        mime = mimetypes.guess_type(display_name)[0] or "application/octet-stream"
        with path.open("rb") as fh:
            resp = self._request(
                "POST",
                "/files",
                error=UploadError,
                files={"file": (display_name, fh, mime)},
                data={"purpose": purpose},
                timeout=self.file_timeout,
            )
        data = self._json(resp, "id", UploadError(resp.status_code, "response has no file id"))
        logger.debug("Uploaded %s as %s", display_name, data["id"])
        return RemoteFileHandle(
            provider_file_id=str(data["id"]),
            purpose=data.get("purpose", purpose),
            filename=data.get("filename", display_name),
        )

    def list_files(self) -> list[RemoteFileHandle]:
        resp = self._request("GET", "/files", operation="list")
        data = self._json(resp, "data", FileOperationError("list", resp.status_code, "response has no data"))
        return [
            RemoteFileHandle(
                provider_file_id=str(entry["id"]),
                purpose=entry.get("purpose", ""),
                filename=entry.get("filename", ""),
            )
            for entry in data["data"]
            if isinstance(entry, dict) and entry.get("id")
        ]

    def file_info(self, file_id: str) -> dict[str, Any]:
        resp = self._request("GET", f"/files/{quote(file_id, safe='')}", operation="info")
        return self._json(resp, "id", FileOperationError("info", resp.status_code, "response has no id"))

    def delete_file(self, file_id: str) -> dict[str, Any]:
        resp = self._request(
            "POST", f"/files/{quote(file_id, safe='')}/delete", operation="delete"
        )
        try:
            data = resp.json()
        except ValueError:
            data = None
        if not isinstance(data, dict) or not ("deleted" in data or "id" in data):
            raise FileOperationError("delete", resp.status_code, "response has no id or deleted flag")
        return data

    def transcribe(
        self,
        file_id: str,
        model: Union[str, None] = None,
        language: Union[str, None] = None,
        response_format: str = "json",
    ) -> dict[str, Any]:
        """Transcribe a previously uploaded audio file."""
        payload: dict[str, Any] = {"file": file_id, "response_format": response_format}
        if model:
            payload["model"] = model
        if language:
            payload["language"] = language
        resp = self._request(
            "POST",
            "/transcriptions",
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=self.file_timeout,
        )
        try:
            data = resp.json()
        except ValueError as e:
            raise InvalidResponseError("Transcription response is not JSON") from e
        if not data:
            raise InvalidResponseError("Transcription response is empty")
        return data

    def close(self) -> None:
        self.client.close()
