from __future__ import annotations

from typing import Union


class QBankGenError(Exception):
    """Base class for every provider and pipeline failure."""


class CredentialMissing(QBankGenError):
    def __init__(self, course_id: Union[int, None] = None) -> None:
        self.course_id = course_id
        where = f" for course {course_id}" if course_id is not None else ""
        super().__init__(f"No API credentials configured{where}")


class TokenError(QBankGenError):
    def __init__(self, status: Union[int, None] = None, no_token: bool = False) -> None:
        self.status = status
        self.no_token = no_token
        if no_token:
            message = "OAuth response did not contain an access_token"
        else:
            message = f"OAuth token request failed (status {status})"
        super().__init__(message)


class ApiError(QBankGenError):
    """Non-200 (or no) HTTP response from a provider endpoint."""

    label = "API request"

    def __init__(self, status: Union[int, None], detail: str = "") -> None:
        self.status = status
        self.detail = detail
        if status is None:
            message = f"{self.label} failed: {detail}"
        else:
            message = f"{self.label} failed with HTTP {status}"
            if detail:
                message += f": {detail}"
        super().__init__(message)


class InvalidResponseError(QBankGenError):
    pass


class UploadError(ApiError):
    label = "File upload"


class FileOperationError(ApiError):
    def __init__(self, operation: str, status: Union[int, None], detail: str = "") -> None:
        self.operation = operation
        self.label = f"File {operation}"
        super().__init__(status, detail)


class ResponseParseError(QBankGenError):
    """Model output could not be turned into the expected structure.

    Always retryable: a fresh sample from the model may well parse.
    """

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw
