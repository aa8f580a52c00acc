# manages connection to the local store, provides helper methods internal to db package
import asyncio
import os
from contextlib import asynccontextmanager
from sqlite3 import Row

import aiosqlite

from utils.logger import get_logger

_logger = get_logger(__name__)

DB_PATH = os.getenv("POS_DB_PATH", "data/pos.sqlite")
DB_INIT_SCRIPTS = [
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "schema.sql"),
]

_initialized = False
_init_lock = asyncio.Lock()


async def _init_db(conn: aiosqlite.Connection) -> None:
    for script in DB_INIT_SCRIPTS:
        if not os.path.exists(script) or os.path.getsize(script) == 0:
            continue
        _logger.info(f"Applying schema script {os.path.basename(script)}...")
        with open(script, "r", encoding="utf-8") as f:
            await conn.executescript(f.read())
    await conn.commit()


async def _table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ?;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


def _ensure_parent_dir(path: str) -> None:
    parent = os.path.dirname(path)
    if parent and not os.path.isdir(parent):
        os.makedirs(parent, exist_ok=True)


@asynccontextmanager
async def connect() -> aiosqlite.Connection:
    """Async context manager yielding an aiosqlite connection with FK enabled.

    Creates the database file and its tables on first use.
    """
    global _initialized
    _ensure_parent_dir(DB_PATH)
    conn = await aiosqlite.connect(DB_PATH)
    conn.row_factory = Row
    await conn.execute("PRAGMA foreign_keys = ON;")

    if not _initialized:
        async with _init_lock:
            if not _initialized:
                if not await _table_exists(conn, "local_storage"):
                    _logger.info(f"Initializing local store at {DB_PATH}...")
                    await _init_db(conn)
                _initialized = True
    try:
        yield conn
    finally:
        await conn.close()


async def storage_get(conn: aiosqlite.Connection, key: str) -> str | None:
    """Read a value from the key/value local storage table."""
    cur = await conn.execute("SELECT value FROM local_storage WHERE key = ?;", (key,))
    row = await cur.fetchone()
    await cur.close()
    return row[0] if row else None


async def storage_set(conn: aiosqlite.Connection, key: str, value: str | None) -> None:
    """Write (or with None, remove) a key/value pair. Caller commits."""
    if value is None:
        await conn.execute("DELETE FROM local_storage WHERE key = ?;", (key,))
        return
    await conn.execute(
        """
        INSERT INTO local_storage(key, value) VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value;
        """,
        (key, value),
    )
