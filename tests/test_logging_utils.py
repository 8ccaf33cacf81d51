import sys, pathlib; sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))
import logging

from llm_qbank_gen.core.logging_utils import RotationPolicy, configure_logging, rotate_log_if_needed


def test_rotates_oversized_log(tmp_path, monkeypatch):
    monkeypatch.setenv("LLM_QBANK_LOG_MAX_BYTES", "10")
    monkeypatch.setenv("LLM_QBANK_LOG_MAX_AGE_HOURS", "0")
    log = tmp_path / "qbank.log"
    log.write_text("x" * 50, encoding="utf-8")

    rotate_log_if_needed(log)

    assert not log.exists()
    rotated = list(tmp_path.glob("qbank.*.log"))
    assert len(rotated) == 1


def test_small_log_is_left_alone(tmp_path, monkeypatch):
    monkeypatch.setenv("LLM_QBANK_LOG_MAX_BYTES", "1000")
    monkeypatch.setenv("LLM_QBANK_LOG_MAX_AGE_HOURS", "0")
    log = tmp_path / "qbank.log"
    log.write_text("short", encoding="utf-8")

    rotate_log_if_needed(log)

    assert log.read_text(encoding="utf-8") == "short"


def test_configure_logging_writes_file(tmp_path):
    log = tmp_path / "logs" / "qbank.log"
    configure_logging(logging.INFO, log)
    logging.getLogger("llm_qbank_gen.core.runner").info("Category created: GenAI")
    for handler in logging.getLogger("llm_qbank_gen").handlers:
        handler.flush()
    assert "Category created: GenAI" in log.read_text(encoding="utf-8")
    for handler in list(logging.getLogger("llm_qbank_gen").handlers):
        logging.getLogger("llm_qbank_gen").removeHandler(handler)
        handler.close()


def test_only_newest_rotated_files_are_kept(tmp_path):
    log = tmp_path / "qbank.log"
    for name in ("qbank.20240101-000000.log", "qbank.20240102-000000.log"):
        (tmp_path / name).write_text("old", encoding="utf-8")
    log.write_text("x" * 50, encoding="utf-8")

    rotate_log_if_needed(log, RotationPolicy(max_bytes=10, max_age_hours=0, keep=2))

    assert len(list(tmp_path.glob("qbank.*.log"))) == 2
