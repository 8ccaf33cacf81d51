from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Union

from .content_extractor import StoredFile
from .types import Category, MultichoiceQuestion, QuestionRecord, Resource


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    # batches run on the queue's worker thread, one at a time
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    _init_db(conn)
    return conn


def _init_db(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS course_settings (
            course_id INTEGER NOT NULL,
            user_id INTEGER NOT NULL,
            secret TEXT NOT NULL DEFAULT '',
            model TEXT NOT NULL DEFAULT '',
            updated_at TEXT NOT NULL,
            PRIMARY KEY (course_id, user_id)
        );

        CREATE TABLE IF NOT EXISTS resources (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            course_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            path TEXT
        );

        CREATE TABLE IF NOT EXISTS categories (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            context_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            info TEXT NOT NULL,
            stamp TEXT NOT NULL,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS questions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            category_id INTEGER NOT NULL REFERENCES categories(id),
            qtype TEXT NOT NULL,
            name TEXT NOT NULL,
            questiontext TEXT NOT NULL,
            defaultmark REAL NOT NULL,
            single INTEGER,
            shuffleanswers INTEGER,
            answernumbering TEXT,
            stamp TEXT NOT NULL,
            created_by INTEGER NOT NULL,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS answers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            question_id INTEGER NOT NULL REFERENCES questions(id),
            sortorder INTEGER NOT NULL,
            answer TEXT NOT NULL,
            fraction REAL NOT NULL
        );

        CREATE TABLE IF NOT EXISTS question_tags (
            question_id INTEGER NOT NULL REFERENCES questions(id),
            tag TEXT NOT NULL,
            PRIMARY KEY (question_id, tag)
        );

        CREATE TABLE IF NOT EXISTS batches (
            batch_id TEXT PRIMARY KEY,
            course_id INTEGER NOT NULL,
            user_id INTEGER NOT NULL,
            context_id INTEGER NOT NULL,
            resources_json TEXT NOT NULL,
            status TEXT NOT NULL,
            created_at TEXT NOT NULL
        );
        """
    )
    conn.commit()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def upsert_course_settings(
    conn: sqlite3.Connection, course_id: int, user_id: int, secret: str = "", model: str = ""
) -> None:
    conn.execute(
        """
        INSERT INTO course_settings (course_id, user_id, secret, model, updated_at)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(course_id, user_id) DO UPDATE SET
            secret=excluded.secret,
            model=excluded.model,
            updated_at=excluded.updated_at
        """,
        (course_id, user_id, secret, model, _now()),
    )
    conn.commit()


def fetch_course_settings(conn: sqlite3.Connection, course_id: int, user_id: int) -> dict | None:
    row = conn.execute(
        "SELECT secret, model FROM course_settings WHERE course_id = ? AND user_id = ?",
        (course_id, user_id),
    ).fetchone()
    return dict(row) if row else None


def insert_resource(conn: sqlite3.Connection, course_id: int, name: str, path: Union[Path, None]) -> Resource:
    cur = conn.execute(
        "INSERT INTO resources (course_id, name, path) VALUES (?, ?, ?)",
        (course_id, name, str(path) if path else None),
    )
    conn.commit()
    return Resource(id=cur.lastrowid, name=name)


def fetch_resource(conn: sqlite3.Connection, resource_id: int) -> dict | None:
    row = conn.execute(
        "SELECT id, course_id, name, path FROM resources WHERE id = ?", (resource_id,)
    ).fetchone()
    return dict(row) if row else None


def insert_batch(
    conn: sqlite3.Connection,
    batch_id: str,
    course_id: int,
    user_id: int,
    context_id: int,
    resources: Iterable[Resource],
    status: str = "queued",
) -> None:
    conn.execute(
        """
        INSERT OR REPLACE INTO batches
        (batch_id, course_id, user_id, context_id, resources_json, status, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            batch_id,
            course_id,
            user_id,
            context_id,
            json.dumps([{"id": r.id, "name": r.name} for r in resources], ensure_ascii=False),
            status,
            _now(),
        ),
    )
    conn.commit()


def update_batch_status(conn: sqlite3.Connection, batch_id: str, status: str) -> None:
    conn.execute("UPDATE batches SET status=? WHERE batch_id=?", (status, batch_id))
    conn.commit()


def fetch_batch(conn: sqlite3.Connection, batch_id: str) -> dict | None:
    row = conn.execute(
        """
        SELECT batch_id, course_id, user_id, context_id, resources_json, status, created_at
        FROM batches WHERE batch_id = ?
        """,
        (batch_id,),
    ).fetchone()
    if not row:
        return None
    item = dict(row)
    item["resources"] = json.loads(item.pop("resources_json"))
    return item


def mark_stale_batches_failed(
    conn: sqlite3.Connection,
    older_than: Union[timedelta, None] = None,
    statuses: Iterable[str] = ("queued", "running"),
    new_status: str = "failed",
) -> list[str]:
    """Fail unfinished batches; with ``older_than``, only those created before that cutoff."""
    status_list = list(statuses)
    if not status_list:
        return []
    placeholders = ", ".join(["?"] * len(status_list))
    query = f"SELECT batch_id FROM batches WHERE status IN ({placeholders})"
    params: list = list(status_list)
    if older_than is not None:
        query += " AND created_at < ?"
        params.append((datetime.now(timezone.utc) - older_than).isoformat())
    batch_ids = [row["batch_id"] for row in conn.execute(query, params).fetchall()]
    if batch_ids:
        conn.executemany(
            "UPDATE batches SET status = ? WHERE batch_id = ?",
            [(new_status, batch_id) for batch_id in batch_ids],
        )
        conn.commit()
    return batch_ids


def fetch_questions(conn: sqlite3.Connection, category_id: int) -> list[dict]:
    rows = conn.execute(
        """
        SELECT id, category_id, qtype, name, questiontext, defaultmark,
               single, shuffleanswers, answernumbering
        FROM questions
        WHERE category_id = ?
        ORDER BY id
        """,
        (category_id,),
    ).fetchall()
    items = []
    for row in rows:
        item = dict(row)
        item["answers"] = fetch_answers(conn, row["id"])
        items.append(item)
    return items


def fetch_answers(conn: sqlite3.Connection, question_id: int) -> list[dict]:
    rows = conn.execute(
        "SELECT answer, fraction FROM answers WHERE question_id = ? ORDER BY sortorder",
        (question_id,),
    ).fetchall()
    return [dict(row) for row in rows]


def fetch_question_tags(conn: sqlite3.Connection, question_id: int) -> list[str]:
    rows = conn.execute(
        "SELECT tag FROM question_tags WHERE question_id = ? ORDER BY rowid", (question_id,)
    ).fetchall()
    return [row["tag"] for row in rows]


class SqliteQuestionBank:
    """SQLite-backed question sink, tag store, credential store and resource source."""

    def __init__(self, conn: sqlite3.Connection, user_id: int = 0) -> None:
        self.conn = conn
        self.user_id = user_id

    # question sink

    def create_category(self, context_id: int, resource_description: str) -> Category:
        name = "GenAI (" + datetime.now().strftime("%d/%m/%Y %H:%M:%S") + ")"
        info = "Generative AI-based questions on: " + resource_description
        cur = self.conn.execute(
            """
            INSERT INTO categories (context_id, name, info, stamp, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (context_id, name, info, uuid.uuid4().hex, _now()),
        )
        self.conn.commit()
        return Category(id=cur.lastrowid, name=name, info=info, context_id=context_id)

    def create_question(self, name: str, question: MultichoiceQuestion, category: Category) -> int:
        with self.conn:
            cur = self.conn.execute(
                """
                INSERT INTO questions
                (category_id, qtype, name, questiontext, defaultmark, single, shuffleanswers,
                 answernumbering, stamp, created_by, created_at)
                VALUES (?, 'multichoice', ?, ?, 1, ?, ?, ?, ?, ?, ?)
                """,
                (
                    category.id,
                    name,
                    question.stem,
                    1 if question.single else 0,
                    1 if question.shuffle_answers else 0,
                    question.answer_numbering,
                    uuid.uuid4().hex,
                    self.user_id,
                    _now(),
                ),
            )
            question_id = cur.lastrowid
            self.conn.executemany(
                "INSERT INTO answers (question_id, sortorder, answer, fraction) VALUES (?, ?, ?, ?)",
                [
                    (question_id, pos, answer.text, answer.weight)
                    for pos, answer in enumerate(question.answers)
                ],
            )
        return question_id

    def add_description(self, name: str, text: str, category: Category) -> int:
        with self.conn:
            cur = self.conn.execute(
                """
                INSERT INTO questions
                (category_id, qtype, name, questiontext, defaultmark, stamp, created_by, created_at)
                VALUES (?, 'description', ?, ?, 0, ?, ?, ?)
                """,
                (category.id, name, text, uuid.uuid4().hex, self.user_id, _now()),
            )
        return cur.lastrowid

    # credential store

    def course_credentials(self, course_id: int, user_id: int) -> dict | None:
        return fetch_course_settings(self.conn, course_id, user_id)

    # resource source

    def first_file(self, resource_id: int) -> Union[StoredFile, None]:
        row = fetch_resource(self.conn, resource_id)
        if not row or not row["path"]:
            return None
        path = Path(row["path"])
        if not path.is_file():
            return None
        return StoredFile(name=path.name, path=path)

    # tag store

    def load_question(self, question_id: int) -> Union[QuestionRecord, None]:
        row = self.conn.execute(
            "SELECT id, questiontext FROM questions WHERE id = ?", (question_id,)
        ).fetchone()
        if not row:
            return None
        answers = tuple(a["answer"] for a in fetch_answers(self.conn, question_id))
        return QuestionRecord(id=row["id"], text=row["questiontext"], answers=answers)

    def get_tags(self, question_id: int) -> list[str]:
        return fetch_question_tags(self.conn, question_id)

    def set_tags(self, question_id: int, tags: Iterable[str]) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM question_tags WHERE question_id = ?", (question_id,))
            self.conn.executemany(
                "INSERT OR IGNORE INTO question_tags (question_id, tag) VALUES (?, ?)",
                [(question_id, tag) for tag in tags],
            )
