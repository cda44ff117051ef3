import json
import sqlite3
from contextlib import closing
from datetime import datetime, timezone

from pydantic import ValidationError

from .exceptions import StoreError
from .logger import logger
from .models import StoredForm

SCHEMA = """
CREATE TABLE IF NOT EXISTS forms (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    data TEXT NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
)
"""


def _now_iso():
    return datetime.now(timezone.utc).isoformat()


class FormStore:
    """JSON blobs in a single ``forms`` table, one statement per operation."""

    def __init__(self, path):
        self.path = path

    def _connect(self):
        connection = sqlite3.connect(self.path)
        connection.row_factory = sqlite3.Row
        return connection

    def _run(self, sql, params=()):
        try:
            with closing(self._connect()) as connection:
                with connection:
                    cursor = connection.execute(sql, params)
                    return cursor.lastrowid, cursor.rowcount
        except sqlite3.Error as exc:
            logger.exception("Form store statement failed.")
            raise StoreError(str(exc)) from exc

    def _fetch(self, sql, params=()):
        try:
            with closing(self._connect()) as connection:
                return connection.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            logger.exception("Form store query failed.")
            raise StoreError(str(exc)) from exc

    @staticmethod
    def _row_to_form(row):
        try:
            return StoredForm(
                id=row["id"],
                data=json.loads(row["data"]),
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
        except (ValueError, ValidationError) as exc:
            raise StoreError(f"Stored row {row['id']} is not a JSON object") from exc

    def initialize(self):
        try:
            with closing(self._connect()) as connection:
                connection.executescript(SCHEMA)
        except sqlite3.Error as exc:
            raise StoreError(f"Database initialization failed: {exc}") from exc

    def store(self, data):
        row_id, _ = self._run(
            "INSERT INTO forms (data, created_at, updated_at) VALUES (?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)",
            (json.dumps(data),),
        )
        now = _now_iso()
        return StoredForm(id=row_id, data=data, created_at=now, updated_at=now)

    def get(self, form_id):
        rows = self._fetch(
            "SELECT id, data, created_at, updated_at FROM forms WHERE id = ?",
            (form_id,),
        )
        if not rows:
            return None
        return self._row_to_form(rows[0])

    def list(self, limit=100, offset=0):
        rows = self._fetch(
            "SELECT id, data, created_at, updated_at FROM forms "
            "ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
            (limit, offset),
        )
        return [self._row_to_form(row) for row in rows]

    def update(self, form_id, data):
        _, changes = self._run(
            "UPDATE forms SET data = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (json.dumps(data), form_id),
        )
        if changes == 0:
            return None
        return StoredForm(id=form_id, data=data, updated_at=_now_iso())

    def delete(self, form_id):
        _, changes = self._run("DELETE FROM forms WHERE id = ?", (form_id,))
        return changes > 0
