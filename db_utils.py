# file: db_utils.py
import sqlite3
import os


def get_db_connection() -> sqlite3.Connection:
    """
    Возвращает НОВОЕ соединение с SQLite для журнала событий.
    Путь берется из DATABASE_FILE при каждом вызове, чтобы тесты могли его подменить.
    """
    db_file = os.getenv("DATABASE_FILE", "trades.sqlite")

    # timeout=30 sets busy_timeout; check_same_thread=False because FastAPI runs sync deps in a threadpool.
    conn = sqlite3.connect(db_file, timeout=30, check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.row_factory = sqlite3.Row
    return conn


def fetch_events(event_type: str = None, limit: int = 50) -> list:
    """Returns the most recent log events as dicts, newest first."""
    conn = get_db_connection()
    try:
        if event_type:
            rows = conn.execute(
                "SELECT * FROM trade_log WHERE event_type = ? ORDER BY id DESC LIMIT ?",
                (event_type, limit),
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM trade_log ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
    finally:
        conn.close()
    return [dict(row) for row in rows]
