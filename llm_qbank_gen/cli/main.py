from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from ..core.credentials import resolve_settings
from ..core.errors import CredentialMissing, QBankGenError
from ..core.file_store import RemoteFileStore
from ..core.logging_utils import configure_logging
from ..core.providers import create_provider, use_mock_providers
from ..core.runtime_data import get_runtime_paths
from ..core.settings import PipelineSettings, settings_loader
from ..core.sqlite_store import (
    SqliteQuestionBank,
    connect,
    fetch_questions,
    insert_batch,
    mark_stale_batches_failed,
    insert_resource,
    update_batch_status,
    upsert_course_settings,
)
from ..core.tagger import tag_questions
from ..core.tasks import GenerationTask, TaskQueue

app = typer.Typer()

# a batch still queued or running after this long belongs to a process that died
STALE_BATCH_HOURS = 6


def _site_settings() -> PipelineSettings:
    settings = settings_loader.site_settings()
    if use_mock_providers():
        settings = settings.with_overrides(provider="mock")
    return settings


def _setup(verbose: bool = False):
    paths = get_runtime_paths()
    configure_logging(logging.DEBUG if verbose else logging.INFO, paths.log_path)
    return paths, connect(paths.db_path)


@app.command("generate")
def generate(
    course_id: int,
    files: List[Path],
    user_id: int = 0,
    context_id: Optional[int] = None,
    verbose: bool = False,
    stale_after_hours: float = STALE_BATCH_HOURS,
) -> None:
    """Generate multiple-choice questions from one or more course files."""
    paths, conn = _setup(verbose)
    stale = mark_stale_batches_failed(conn, older_than=timedelta(hours=stale_after_hours))
    if stale:
        typer.echo(f"⚠️  Marked {len(stale)} interrupted batch(es) as failed")
    bank = SqliteQuestionBank(conn, user_id=user_id)
    resources = [insert_resource(conn, course_id, f.name, f.resolve()) for f in files]
    task = GenerationTask(
        resources=resources,
        user_id=user_id,
        context_id=context_id if context_id is not None else course_id,
        course_id=course_id,
    )
    insert_batch(conn, task.batch_id, course_id, user_id, task.context_id, resources)
    queue = TaskQueue(
        _site_settings(),
        sink=bank,
        source=bank,
        credentials=bank,
        on_status=lambda batch_id, status: update_batch_status(conn, batch_id, status),
        temp_root=paths.temp_dir,
    )
    try:
        future = queue.schedule(task)
    except CredentialMissing as e:
        update_batch_status(conn, task.batch_id, "failed")
        typer.echo(f"❌ {e}. Use settings:set or set GIGACHAT_AUTH_KEY / OPENAI_API_KEY.", err=True)
        conn.close()
        raise typer.Exit(1)
    typer.echo(f"🔄 Batch {task.batch_id} queued for {len(resources)} resource(s)")
    try:
        report = future.result()
    finally:
        queue.shutdown()
        conn.close()

    typer.echo(f"📁 Category: {report.category.name} (id {report.category.id})")
    for unit in report.units:
        if unit.status == "success":
            typer.echo(f"  ✅ {unit.resource_name}: {len(unit.question_ids)} question(s)")
        elif unit.status == "skipped":
            typer.echo(f"  ⚠️  {unit.resource_name}: skipped ({unit.message})")
        else:
            typer.echo(f"  ❌ {unit.resource_name}: {unit.message}")
    typer.echo(f"🎉 {report.created} question(s) created, {report.placeholders} placeholder(s)")


@app.command("tag")
def tag(
    question_ids: List[int],
    course_id: Optional[int] = None,
    user_id: int = 0,
    verbose: bool = False,
) -> None:
    """Tag questions that have no tags yet."""
    _, conn = _setup(verbose)
    bank = SqliteQuestionBank(conn, user_id=user_id)
    try:
        settings = resolve_settings(bank, _site_settings(), course_id, user_id)
    except CredentialMissing as e:
        conn.close()
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)
    provider = create_provider(settings)
    try:
        result = tag_questions(question_ids, provider, settings, bank)
    finally:
        provider.close()
        conn.close()
    typer.echo(f"🏷️  {len(result.tagged)} question(s) successfully tagged")
    if result.skipped:
        typer.echo(f"   skipped (already tagged): {', '.join(map(str, result.skipped))}")
    for qid, message in result.failed.items():
        typer.echo(f"   ❌ {qid}: {message}")


@app.command("questions")
def questions(category_id: int) -> None:
    """List the questions of a category with their answer weights."""
    _, conn = _setup()
    rows = fetch_questions(conn, category_id)
    conn.close()
    for row in rows:
        typer.echo(f"{row['name']} [{row['qtype']}] {row['questiontext']}")
        for answer in row["answers"]:
            typer.echo(f"    {answer['fraction']:.1f}  {answer['answer']}")


@app.command("settings:set")
def settings_set(course_id: int, user_id: int, secret: str = "", model: str = "") -> None:
    """Store a per-course credential for one user."""
    _, conn = _setup()
    upsert_course_settings(conn, course_id, user_id, secret=secret, model=model)
    conn.close()
    typer.echo(f"✅ Settings stored for course {course_id}, user {user_id}")


def _file_store(course_id: Optional[int], user_id: int) -> RemoteFileStore:
    _, conn = _setup()
    try:
        settings = resolve_settings(SqliteQuestionBank(conn), _site_settings(), course_id, user_id)
    except CredentialMissing as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)
    finally:
        conn.close()
    return RemoteFileStore(create_provider(settings))


@app.command("files:list")
def files_list(course_id: Optional[int] = None, user_id: int = 0) -> None:
    """List files stored on the provider side."""
    store = _file_store(course_id, user_id)
    try:
        handles = store.list()
    except QBankGenError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)
    finally:
        store.provider.close()
    for handle in handles:
        typer.echo(f"{handle.provider_file_id}  {handle.purpose}  {handle.filename}")


@app.command("files:delete")
def files_delete(file_id: str, course_id: Optional[int] = None, user_id: int = 0) -> None:
    """Delete one provider-side file."""
    store = _file_store(course_id, user_id)
    try:
        store.provider.delete_file(file_id)
    except QBankGenError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)
    finally:
        store.provider.close()
    typer.echo(f"🗑️  Deleted {file_id}")


@app.command("files:purge")
def files_purge(course_id: Optional[int] = None, user_id: int = 0) -> None:
    """Delete every provider-side file left behind by earlier runs."""
    store = _file_store(course_id, user_id)
    try:
        deleted = store.purge()
    except QBankGenError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)
    finally:
        store.provider.close()
    typer.echo(f"🗑️  Deleted {deleted} file(s)")


if __name__ == "__main__":
    app()
