import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import logging

import pytest
from typer.testing import CliRunner

from llm_qbank_gen.cli.main import app
from llm_qbank_gen.core.sqlite_store import connect, fetch_question_tags, fetch_questions

runner = CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("llm_qbank_gen")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def _mock_env(tmp_path, monkeypatch):
    runtime_dir = tmp_path / "runtime-data"
    monkeypatch.setenv("LLM_QBANK_RUNTIME_DIR", str(runtime_dir))
    monkeypatch.setenv("LLM_QBANK_ENV", "mock")
    monkeypatch.chdir(tmp_path)
    return runtime_dir


def test_cli_generate_and_tag_mock(tmp_path, monkeypatch):
    runtime_dir = _mock_env(tmp_path, monkeypatch)
    lecture = tmp_path / "Lecture1.txt"
    lecture.write_text("The mitochondria is the powerhouse of the cell.", encoding="utf-8")

    result = runner.invoke(app, ["generate", "7", str(lecture)])
    assert result.exit_code == 0, result.output
    assert "2 question(s) created" in result.output

    db_path = runtime_dir / "db" / "qbank.sqlite3"
    assert db_path.exists(), "Expected runtime SQLite database"
    conn = connect(db_path)
    category = conn.execute("SELECT id, info FROM categories").fetchone()
    assert category["info"] == "Generative AI-based questions on: Lecture1.txt"
    batch = conn.execute("SELECT status FROM batches").fetchone()
    assert batch["status"] == "completed"
    rows = fetch_questions(conn, category["id"])
    assert [r["name"] for r in rows] == ["001", "002"]
    conn.close()

    ids = [str(r["id"]) for r in rows]
    result = runner.invoke(app, ["tag", *ids])
    assert result.exit_code == 0, result.output
    assert "2 question(s) successfully tagged" in result.output

    conn = connect(db_path)
    assert fetch_question_tags(conn, rows[0]["id"]) == ["mock", "generated"]
    conn.close()

    result = runner.invoke(app, ["questions", str(category["id"])])
    assert result.exit_code == 0
    assert "001 [multichoice]" in result.output


def test_cli_generate_without_credentials_fails(tmp_path, monkeypatch):
    _mock_env(tmp_path, monkeypatch)
    monkeypatch.delenv("LLM_QBANK_ENV")
    monkeypatch.setenv("LLM_QBANK_PROVIDER", "gigachat")
    monkeypatch.delenv("GIGACHAT_AUTH_KEY", raising=False)
    lecture = tmp_path / "Lecture1.txt"
    lecture.write_text("text", encoding="utf-8")

    result = runner.invoke(app, ["generate", "7", str(lecture)])

    assert result.exit_code == 1


def test_cli_settings_set(tmp_path, monkeypatch):
    runtime_dir = _mock_env(tmp_path, monkeypatch)

    result = runner.invoke(app, ["settings:set", "7", "3", "--secret", "abc", "--model", "GigaChat-Pro"])

    assert result.exit_code == 0, result.output
    conn = connect(runtime_dir / "db" / "qbank.sqlite3")
    row = conn.execute("SELECT secret, model FROM course_settings").fetchone()
    conn.close()
    assert (row["secret"], row["model"]) == ("abc", "GigaChat-Pro")
