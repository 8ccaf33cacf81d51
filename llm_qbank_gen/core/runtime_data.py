from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RuntimePaths:
    root: Path
    db_path: Path
    log_path: Path
    temp_dir: Path


def build_runtime_paths(root: Path) -> RuntimePaths:
    db_path = root / "db" / "qbank.sqlite3"
    log_path = root / "logs" / "qbank.log"
    temp_dir = root / "tmp"

    db_path.parent.mkdir(parents=True, exist_ok=True)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    temp_dir.mkdir(parents=True, exist_ok=True)

    return RuntimePaths(root=root, db_path=db_path, log_path=log_path, temp_dir=temp_dir)


def get_runtime_paths() -> RuntimePaths:
    env_path = os.environ.get("LLM_QBANK_RUNTIME_DIR", "").strip()
    if env_path:
        root = Path(env_path)
    else:
        root = Path(__file__).resolve().parents[2] / "runtime-data"

    return build_runtime_paths(root)
