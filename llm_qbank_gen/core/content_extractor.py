from __future__ import annotations

import logging
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Mapping, Protocol, Sequence, Union

from .types import ContentUnit, MediaKind, Resource

logger = logging.getLogger(__name__)

INLINE_TEXT_EXTENSIONS = frozenset(
    {"txt", "pdf", "doc", "docx", "rtf", "odt", "html", "htm", "xml"}
)
MAX_INLINE_CHARS = 10_000


@dataclass(frozen=True)
class StoredFile:
    name: str
    path: Path

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lstrip(".").lower()

    def copy_to(self, target: Path) -> None:
        shutil.copyfile(self.path, target)


class ResourceSource(Protocol):
    def first_file(self, resource_id: int) -> Union[StoredFile, None]: ...


class LocalResourceSource:
    """Resource ids mapped to files on local disk."""

    def __init__(self, files: Mapping[int, Sequence[Path]]) -> None:
        self.files = {rid: [Path(p) for p in paths] for rid, paths in files.items()}

    def first_file(self, resource_id: int) -> Union[StoredFile, None]:
        for path in self.files.get(resource_id, []):
            if path.is_file():
                return StoredFile(name=path.name, path=path)
        return None


def classify(extension: str) -> MediaKind:
    if extension.lower() in INLINE_TEXT_EXTENSIONS:
        return "inline_text"
    return "remote_upload"


class ContentExtractor:
    def __init__(
        self,
        source: ResourceSource,
        max_chars: int = MAX_INLINE_CHARS,
        temp_root: Union[Path, None] = None,
    ) -> None:
        self.source = source
        self.max_chars = max_chars
        self.temp_root = temp_root

    @contextmanager
    def extract(self, resource: Resource) -> Iterator[Union[ContentUnit, None]]:
        """Yield the resource's content unit, or None when it has no file.

        Inline text is read and truncated to ``max_chars``; other files are
        copied to a private temporary directory for upload. The directory is
        removed when the block exits, however it exits.
        """
        stored = self.source.first_file(resource.id)
        if stored is None:
            logger.warning("No file associated with resource %s (%s)", resource.id, resource.name)
            yield None
            return

        if self.temp_root is not None:
            self.temp_root.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix="qbank_genai_", dir=self.temp_root) as tmp:
            copy_path = Path(tmp) / f"{Path(stored.name).stem}.{stored.extension}".rstrip(".")
            stored.copy_to(copy_path)
            media_kind = classify(stored.extension)
            unit = ContentUnit(
                source_resource_id=resource.id,
                display_name=stored.name,
                media_kind=media_kind,
                extension=stored.extension,
            )
            if media_kind == "inline_text":
                text = copy_path.read_bytes().decode("utf-8", errors="replace")
                unit.payload = text[: self.max_chars]
            else:
                unit.path = copy_path
            yield unit
