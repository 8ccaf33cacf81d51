import sys, pathlib; sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))
import json
import uuid

import httpx
import pytest

from llm_qbank_gen.adapters.gigachat_adapter import GIGACHAT_API_URL, GigaChatAdapter
from llm_qbank_gen.core.errors import (
    ApiError,
    FileOperationError,
    InvalidResponseError,
    TokenError,
    UploadError,
)
from llm_qbank_gen.core.token_provider import GIGACHAT_OAUTH_URL, TokenProvider


def _adapter(handler):
    client = httpx.Client(base_url=GIGACHAT_API_URL, transport=httpx.MockTransport(handler))
    return GigaChatAdapter(model="GigaChat-Max", secret="c2VjcmV0", client=client)


def _routes(seen, **responses):
    """Answer OAuth with a token and everything else from ``responses``."""

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if str(request.url) == GIGACHAT_OAUTH_URL:
            return httpx.Response(200, json={"access_token": "tok-123", "expires_at": 1700000000000})
        key = f"{request.method} {request.url.path}"
        status, body = responses[key]
        return httpx.Response(status, json=body)

    return handler


def test_token_request_shape():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"access_token": "tok-123", "expires_at": 1700000000000})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    token = TokenProvider("c2VjcmV0", client).fetch()

    assert token.token == "tok-123"
    assert token.expires_at == 1700000000
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == GIGACHAT_OAUTH_URL
    assert request.headers["Authorization"] == "Basic c2VjcmV0"
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert request.content == b"scope=GIGACHAT_API_PERS"
    rq_uid = uuid.UUID(request.headers["RqUID"])
    assert rq_uid.version == 4
    assert rq_uid.variant == uuid.RFC_4122


def test_each_token_request_gets_fresh_correlation_id():
    seen = []

    def handler(request):
        seen.append(request.headers["RqUID"])
        return httpx.Response(200, json={"access_token": "t"})

    provider = TokenProvider("s", httpx.Client(transport=httpx.MockTransport(handler)))
    provider.get_token()
    provider.get_token()
    assert len(seen) == 2
    assert seen[0] != seen[1]


def test_token_error_on_non_200():
    client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(401, json={})))
    with pytest.raises(TokenError) as exc:
        TokenProvider("bad", client).get_token()
    assert exc.value.status == 401
    assert exc.value.no_token is False


def test_token_error_without_access_token():
    client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"foo": 1})))
    with pytest.raises(TokenError) as exc:
        TokenProvider("s", client).get_token()
    assert exc.value.no_token is True


def test_send_builds_chat_request_with_attachments():
    seen = []
    adapter = _adapter(
        _routes(
            seen,
            **{"POST /api/v1/chat/completions": (200, {"choices": [{"message": {"content": "[]"}}]})},
        )
    )
    resp = adapter.send(
        [{"role": "user", "content": "hi"}], params={"temperature": 0.7}, attachments=["file-1"]
    )

    assert resp["text"] == "[]"
    chat = seen[-1]
    assert chat.headers["Authorization"] == "Bearer tok-123"
    body = json.loads(chat.content)
    assert body == {
        "model": "GigaChat-Max",
        "messages": [{"role": "user", "content": "hi"}],
        "temperature": 0.7,
        "attachments": ["file-1"],
    }


def test_send_without_attachments_omits_key():
    seen = []
    adapter = _adapter(
        _routes(seen, **{"POST /api/v1/chat/completions": (200, {"choices": [{"message": {"content": "x"}}]})})
    )
    adapter.send([{"role": "user", "content": "hi"}], params={"temperature": 0.0})
    body = json.loads(seen[-1].content)
    assert "attachments" not in body
    assert body["temperature"] == 0.0


def test_send_api_error_carries_status():
    adapter = _adapter(_routes([], **{"POST /api/v1/chat/completions": (500, {"message": "boom"})}))
    with pytest.raises(ApiError) as exc:
        adapter.send([{"role": "user", "content": "hi"}])
    assert exc.value.status == 500


def test_send_invalid_envelope():
    adapter = _adapter(_routes([], **{"POST /api/v1/chat/completions": (200, {"choices": []})}))
    with pytest.raises(InvalidResponseError):
        adapter.send([{"role": "user", "content": "hi"}])


def test_timeout_is_fatal_api_error():
    def handler(request):
        if str(request.url) == GIGACHAT_OAUTH_URL:
            return httpx.Response(200, json={"access_token": "t"})
        raise httpx.ReadTimeout("timed out", request=request)

    adapter = _adapter(handler)
    with pytest.raises(ApiError) as exc:
        adapter.send([{"role": "user", "content": "hi"}])
    assert exc.value.status is None


def test_upload_is_multipart_with_purpose(tmp_path):
    image = tmp_path / "diagram.png"
    image.write_bytes(b"\x89PNG fake")
    seen = []
    adapter = _adapter(_routes(seen, **{"POST /api/v1/files": (200, {"id": "f-1", "purpose": "general"})}))

    handle = adapter.upload_file(image, "diagram.png")

    assert handle.provider_file_id == "f-1"
    assert handle.purpose == "general"
    upload = seen[-1]
    assert upload.headers["Content-Type"].startswith("multipart/form-data")
    assert b'name="purpose"' in upload.content
    assert b'filename="diagram.png"' in upload.content
    assert b"image/png" in upload.content


def test_upload_without_id_fails(tmp_path):
    f = tmp_path / "a.png"
    f.write_bytes(b"x")
    adapter = _adapter(_routes([], **{"POST /api/v1/files": (200, {"object": "file"})}))
    with pytest.raises(UploadError):
        adapter.upload_file(f, "a.png")


def test_list_info_delete():
    seen = []
    adapter = _adapter(
        _routes(
            seen,
            **{
                "GET /api/v1/files": (200, {"data": [{"id": "f-1", "purpose": "general", "filename": "a.png"}]}),
                "GET /api/v1/files/f-1": (200, {"id": "f-1", "bytes": 3}),
                "POST /api/v1/files/f-1/delete": (200, {"id": "f-1", "deleted": True}),
            },
        )
    )

    handles = adapter.list_files()
    assert [h.provider_file_id for h in handles] == ["f-1"]
    assert adapter.file_info("f-1")["bytes"] == 3
    assert adapter.delete_file("f-1")["deleted"] is True
    # a fresh token for each of the three calls
    assert sum(1 for r in seen if str(r.url) == GIGACHAT_OAUTH_URL) == 3


def test_list_without_data_fails():
    adapter = _adapter(_routes([], **{"GET /api/v1/files": (200, {"items": []})}))
    with pytest.raises(FileOperationError) as exc:
        adapter.list_files()
    assert exc.value.operation == "list"


def test_delete_error_status():
    adapter = _adapter(_routes([], **{"POST /api/v1/files/f-9/delete": (404, {"message": "nope"})}))
    with pytest.raises(FileOperationError) as exc:
        adapter.delete_file("f-9")
    assert exc.value.status == 404


def test_transcribe_uploaded_audio():
    seen = []
    adapter = _adapter(
        _routes(seen, **{"POST /api/v1/transcriptions": (200, {"text": "hello class"})})
    )

    result = adapter.transcribe("f-7", language="en")

    assert result == {"text": "hello class"}
    assert json.loads(seen[-1].content) == {"file": "f-7", "response_format": "json", "language": "en"}


def test_transcribe_empty_response():
    adapter = _adapter(_routes([], **{"POST /api/v1/transcriptions": (200, {})}))
    with pytest.raises(InvalidResponseError):
        adapter.transcribe("f-7")
