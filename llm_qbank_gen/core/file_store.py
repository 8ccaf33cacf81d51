from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from ..adapters.base import LLMProvider
from .errors import QBankGenError
from .types import RemoteFileHandle

logger = logging.getLogger(__name__)


class RemoteFileStore:
    """Provider-side file storage with guaranteed release of uploads."""

    def __init__(self, provider: LLMProvider) -> None:
        self.provider = provider

    def upload(
        self, path: Path, display_name: str, purpose: Union[str, None] = None
    ) -> RemoteFileHandle:
        return self.provider.upload_file(path, display_name, purpose)

    def list(self) -> list[RemoteFileHandle]:
        return self.provider.list_files()

    def info(self, handle: RemoteFileHandle) -> dict:
        return self.provider.file_info(handle.provider_file_id)

    def delete(self, handle: RemoteFileHandle) -> dict:
        return self.provider.delete_file(handle.provider_file_id)

    @contextmanager
    def uploaded(
        self, path: Path, display_name: str, purpose: Union[str, None] = None
    ) -> Iterator[RemoteFileHandle]:
        """Upload ``path`` and delete it again however the body exits.

        A failed delete is logged and never masks the body's own outcome.
        """
        handle = self.upload(path, display_name, purpose)
        logger.info("File uploaded with ID: %s", handle.provider_file_id)
        try:
            yield handle
        finally:
            try:
                self.delete(handle)
            except QBankGenError as e:
                logger.warning("Could not delete remote file %s: %s", handle.provider_file_id, e)

    def purge(self) -> int:
        """Delete every file the provider still stores for this key."""
        deleted = 0
        for handle in self.list():
            self.delete(handle)
            deleted += 1
        return deleted
