from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, "").strip() or default)
    except ValueError:
        return default


@dataclass(frozen=True)
class RotationPolicy:
    max_bytes: int = 5 * 1024 * 1024
    max_age_hours: int = 24
    keep: int = 5

    @classmethod
    def from_env(cls) -> "RotationPolicy":
        return cls(
            max_bytes=_env_int("LLM_QBANK_LOG_MAX_BYTES", cls.max_bytes),
            max_age_hours=_env_int("LLM_QBANK_LOG_MAX_AGE_HOURS", cls.max_age_hours),
            keep=_env_int("LLM_QBANK_LOG_MAX_FILES", cls.keep),
        )

    def is_due(self, path: Path, now: datetime) -> bool:
        try:
            stat = path.stat()
        except FileNotFoundError:
            return False
        if self.max_bytes > 0 and stat.st_size >= self.max_bytes:
            return True
        if self.max_age_hours > 0:
            modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
            return (now - modified).total_seconds() >= self.max_age_hours * 3600
        return False


def _prune_rotated(path: Path, keep: int) -> None:
    rotated = sorted(
        path.parent.glob(f"{path.stem}.*{path.suffix}"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    for old in rotated[keep:]:
        old.unlink(missing_ok=True)


def rotate_log_if_needed(path: Path, policy: Union[RotationPolicy, None] = None) -> None:
    """Move ``path`` aside once it is too large or too old, keeping ``policy.keep`` old files."""
    policy = policy or RotationPolicy.from_env()
    now = datetime.now(timezone.utc)
    if not path.is_file() or not policy.is_due(path, now):
        return
    stamp = now.strftime("%Y%m%d-%H%M%S")
    shutil.move(str(path), str(path.with_name(f"{path.stem}.{stamp}{path.suffix}")))
    if policy.keep > 0:
        _prune_rotated(path, policy.keep)


def configure_logging(level: Union[int, str] = logging.INFO, log_path: Union[Path, None] = None) -> None:
    """Console logging, plus a rotated log file when ``log_path`` is given."""
    root = logging.getLogger("llm_qbank_gen")
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    formatter = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        rotate_log_if_needed(log_path)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
