from __future__ import annotations

import sqlite3
from pathlib import Path

from ..logging import logger
from ..models.vocabulary import ReviewLog, VocabularyItem
from ..srs import SRSState
from .base import BaseVocabularyStore
from .common import encode_examples, item_from_record

_ITEM_COLUMNS = (
    "id, expression, definition, examples, scenario, created_at, "
    "repetition, interval_days, ease_factor, next_review_date"
)


class SQLiteVocabularyStore(BaseVocabularyStore):
    """SQLite-backed vocabulary store with review history.

    - ユーザ単位で語彙アイテムを保持する（user_id + id が主キー）
    - SRS 4フィールドの更新は BEGIN IMMEDIATE で1レコードずつ原子的に行う
    - ease_factor は REAL 列に保存し、小数精度をそのまま往復させる
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._ensure_dirs()
        self._init_db()

    # --- low-level helpers ---
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10.0, isolation_level=None, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA foreign_keys=ON;")
        return conn

    def _ensure_dirs(self) -> None:
        p = Path(self.db_path)
        if p.parent and not p.parent.exists():
            p.parent.mkdir(parents=True, exist_ok=True)

    def _init_db(self) -> None:
        conn = self._connect()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS vocabulary_items (
                    user_id TEXT NOT NULL,
                    id TEXT NOT NULL,
                    expression TEXT NOT NULL,
                    definition TEXT NOT NULL DEFAULT '',
                    examples TEXT NOT NULL DEFAULT '[]',
                    scenario TEXT NOT NULL DEFAULT '',
                    created_at INTEGER NOT NULL,
                    repetition INTEGER NOT NULL DEFAULT 0,
                    interval_days INTEGER NOT NULL DEFAULT 0,
                    ease_factor REAL NOT NULL DEFAULT 2.5,
                    next_review_date INTEGER NOT NULL,
                    PRIMARY KEY (user_id, id)
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS reviews (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    item_id TEXT NOT NULL,
                    quality INTEGER NOT NULL,
                    reviewed_at INTEGER NOT NULL,
                    repetition INTEGER NOT NULL,
                    interval_days INTEGER NOT NULL,
                    ease_factor REAL NOT NULL,
                    next_review_date INTEGER NOT NULL
                );
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_items_due ON vocabulary_items(user_id, next_review_date);"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_reviews_user_time ON reviews(user_id, reviewed_at);"
            )
        finally:
            conn.close()

    # --- public API ---
    def list_items(self, user_id: str) -> list[VocabularyItem]:
        conn = self._connect()
        try:
            cur = conn.execute(
                f"SELECT {_ITEM_COLUMNS} FROM vocabulary_items WHERE user_id = ? "
                "ORDER BY created_at DESC, id ASC;",
                (user_id,),
            )
            return [item_from_record(dict(row)) for row in cur.fetchall()]
        finally:
            conn.close()

    def get_item(self, user_id: str, item_id: str) -> VocabularyItem | None:
        conn = self._connect()
        try:
            cur = conn.execute(
                f"SELECT {_ITEM_COLUMNS} FROM vocabulary_items WHERE user_id = ? AND id = ?;",
                (user_id, item_id),
            )
            row = cur.fetchone()
            return None if row is None else item_from_record(dict(row))
        finally:
            conn.close()

    def save_item(self, user_id: str, item: VocabularyItem) -> None:
        conn = self._connect()
        try:
            conn.execute(
                f"""
                INSERT OR REPLACE INTO vocabulary_items(user_id, {_ITEM_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    user_id,
                    item.id,
                    item.expression,
                    item.definition,
                    encode_examples(item.examples),
                    item.scenario,
                    int(item.created_at),
                    int(item.repetition),
                    int(item.interval),
                    float(item.ease_factor),
                    int(item.next_review_date),
                ),
            )
        finally:
            conn.close()

    def update_srs(self, user_id: str, item_id: str, state: SRSState) -> VocabularyItem | None:
        conn = self._connect()
        try:
            # BEGIN IMMEDIATE to avoid concurrent writers on the same row
            conn.execute("BEGIN IMMEDIATE;")
            cur = conn.execute(
                """
                UPDATE vocabulary_items
                SET repetition = ?, interval_days = ?, ease_factor = ?, next_review_date = ?
                WHERE user_id = ? AND id = ?;
                """,
                (
                    int(state.repetition),
                    int(state.interval),
                    float(state.ease_factor),
                    int(state.next_review_date),
                    user_id,
                    item_id,
                ),
            )
            if cur.rowcount == 0:
                conn.execute("ROLLBACK;")
                return None
            row = conn.execute(
                f"SELECT {_ITEM_COLUMNS} FROM vocabulary_items WHERE user_id = ? AND id = ?;",
                (user_id, item_id),
            ).fetchone()
            conn.execute("COMMIT;")
            return item_from_record(dict(row))
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK;")
            logger.error("sqlite_update_srs_failed", user_id=user_id, item_id=item_id)
            raise
        finally:
            conn.close()

    def delete_item(self, user_id: str, item_id: str) -> bool:
        conn = self._connect()
        try:
            cur = conn.execute(
                "DELETE FROM vocabulary_items WHERE user_id = ? AND id = ?;",
                (user_id, item_id),
            )
            return cur.rowcount > 0
        finally:
            conn.close()

    def record_review(self, user_id: str, log: ReviewLog) -> None:
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT INTO reviews(
                    user_id, item_id, quality, reviewed_at, repetition, interval_days, ease_factor, next_review_date
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    user_id,
                    log.item_id,
                    int(log.quality),
                    int(log.reviewed_at),
                    int(log.repetition),
                    int(log.interval),
                    float(log.ease_factor),
                    int(log.next_review_date),
                ),
            )
        finally:
            conn.close()

    def list_review_logs(self, user_id: str, since_ms: int | None = None) -> list[ReviewLog]:
        conn = self._connect()
        try:
            cur = conn.execute(
                """
                SELECT item_id, quality, reviewed_at, repetition, interval_days, ease_factor, next_review_date
                FROM reviews
                WHERE user_id = ? AND reviewed_at >= ?
                ORDER BY reviewed_at ASC, id ASC;
                """,
                (user_id, int(since_ms or 0)),
            )
            return [
                ReviewLog(
                    item_id=row["item_id"],
                    quality=int(row["quality"]),
                    reviewed_at=int(row["reviewed_at"]),
                    repetition=int(row["repetition"]),
                    interval=int(row["interval_days"]),
                    ease_factor=float(row["ease_factor"]),
                    next_review_date=int(row["next_review_date"]),
                )
                for row in cur.fetchall()
            ]
        finally:
            conn.close()
