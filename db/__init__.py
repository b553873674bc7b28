"""SQLite access for the item library."""
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
import sqlite3
import time
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

_DB_PATH: Path | None = None
_SCHEMA_PATH = Path(__file__).resolve().with_name("schema.sql")


def configure(path: Union[str, Path]) -> Path:
    """Set the database location and ensure its parent directory exists."""
    resolved = Path(path).expanduser()
    if not resolved.is_absolute():
        resolved = resolved.resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    global _DB_PATH
    _DB_PATH = resolved
    return resolved


def path() -> Path:
    if _DB_PATH is None:
        raise RuntimeError("Database path not configured")
    return _DB_PATH


def connect() -> sqlite3.Connection:
    conn = sqlite3.connect(path(), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute("PRAGMA busy_timeout = 5000;")
    try:
        conn.execute("PRAGMA journal_mode = WAL;")
    except sqlite3.OperationalError:
        pass
    return conn


@contextmanager
def session() -> Iterator[sqlite3.Connection]:
    """Connection that commits when the block exits cleanly."""
    conn = connect()
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def ensure_schema() -> None:
    sql = _SCHEMA_PATH.read_text()
    with session() as conn:
        conn.executescript(sql)


############################
# Items
############################

def _resolutions(conn: sqlite3.Connection, item_id: str) -> List[Dict[str, str]]:
    rows = conn.execute(
        "SELECT quality, path FROM item_resolution WHERE item_id = ? ORDER BY position",
        (item_id,),
    ).fetchall()
    return [{"quality": r["quality"], "path": r["path"]} for r in rows]


def _item_dict(conn: sqlite3.Connection, row: sqlite3.Row) -> Dict[str, Any]:
    out = {k: row[k] for k in row.keys()}
    out["resolutions"] = _resolutions(conn, row["id"])
    return out


def fetch_item(conn: sqlite3.Connection, item_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute("SELECT * FROM item WHERE id = ?", (item_id,)).fetchone()
    return _item_dict(conn, row) if row is not None else None


def fetch_items(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    """All items, newest first."""
    rows = conn.execute("SELECT * FROM item ORDER BY created_at DESC, rowid DESC").fetchall()
    return [_item_dict(conn, r) for r in rows]


def count_items(conn: sqlite3.Connection) -> int:
    return int(conn.execute("SELECT COUNT(*) AS n FROM item").fetchone()["n"])


def insert_item(
    conn: sqlite3.Connection,
    item_id: str,
    *,
    title: str,
    video_path: str,
    file_size: int,
    thumbnail_path: Optional[str] = None,
    duration: Optional[float] = None,
    resolutions: Iterable[Tuple[str, str]] = (),
) -> Optional[Dict[str, Any]]:
    """Insert an item with zero views; repeated quality labels keep the first path."""
    conn.execute(
        "INSERT INTO item (id, title, video_path, thumbnail_path, duration, file_size, views, created_at)"
        " VALUES (?, ?, ?, ?, ?, ?, 0, ?)",
        (item_id, title, video_path, thumbnail_path, duration, file_size, time.time()),
    )
    seen: set[str] = set()
    for pos, (quality, rel) in enumerate(resolutions):
        if quality in seen:
            continue
        seen.add(quality)
        conn.execute(
            "INSERT INTO item_resolution (item_id, quality, path, position) VALUES (?, ?, ?, ?)",
            (item_id, quality, rel, pos),
        )
    return fetch_item(conn, item_id)


def bump_views(conn: sqlite3.Connection, item_id: str) -> Optional[int]:
    """Atomic ``views + 1``; None when no such item."""
    cur = conn.execute("UPDATE item SET views = views + 1 WHERE id = ?", (item_id,))
    if cur.rowcount == 0:
        return None
    row = conn.execute("SELECT views FROM item WHERE id = ?", (item_id,)).fetchone()
    return int(row["views"])


__all__ = [
    "configure",
    "path",
    "connect",
    "session",
    "ensure_schema",
    "fetch_item",
    "fetch_items",
    "count_items",
    "insert_item",
    "bump_views",
]
