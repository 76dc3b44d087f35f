from __future__ import annotations

import logging
import os
import sqlite3
import uuid
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional, Sequence
from contextlib import contextmanager


logger = logging.getLogger(__name__)

DATA_DIR = Path(os.getenv("VOLUNTEER_DATA_DIR", str(Path.cwd() / "data")))

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

DEFAULT_DB_PATH = DATA_DIR / "app.db"

_DB_PATH: Path = Path(os.getenv("VOLUNTEER_DB_PATH", str(DEFAULT_DB_PATH)))


class StoreUnavailableError(RuntimeError):
    """Raised when the document store cannot be opened or queried."""


# Collection name -> columns that callers may filter, sort or write.
COLLECTION_COLUMNS: dict[str, tuple[str, ...]] = {
    "opportunities": (
        "id",
        "title",
        "ngo",
        "description",
        "long_description",
        "location",
        "date",
        "time_commitment",
        "category",
        "image_url",
        "image_hint",
    ),
    "applications": (
        "id",
        "volunteer_name",
        "volunteer_email",
        "status",
        "applied_date",
        "opportunity_id",
        "opportunity_title",
        "opportunity_ngo",
    ),
}


def set_db_path(path: Path | str) -> None:
    global _DB_PATH
    _DB_PATH = Path(path)
    _DB_PATH.parent.mkdir(parents=True, exist_ok=True)


def get_db_path() -> Path:
    return _DB_PATH


def _connect(path: Optional[Path] = None) -> sqlite3.Connection:
    target = Path(path) if path else get_db_path()
    try:
        conn = sqlite3.connect(target, check_same_thread=False)
    except sqlite3.DatabaseError as e:
        raise StoreUnavailableError(f"Cannot open database at {target}: {e}") from e
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_connection(path: Optional[Path] = None) -> Iterator[sqlite3.Connection]:
    conn = _connect(path)
    try:
        yield conn
        conn.commit()
    except (sqlite3.IntegrityError, sqlite3.ProgrammingError):
        conn.rollback()
        raise
    except sqlite3.DatabaseError as e:
        # Locked, unreadable or corrupt database file
        conn.rollback()
        raise StoreUnavailableError(str(e)) from e
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _ensure_schema_migrations_table(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            applied_at TEXT NOT NULL DEFAULT (datetime('now'))
        );
        """
    )


def _get_applied_versions(conn: sqlite3.Connection) -> set[str]:
    _ensure_schema_migrations_table(conn)
    cur = conn.execute("SELECT version FROM schema_migrations")
    return {row[0] for row in cur.fetchall()}


def _record_applied(conn: sqlite3.Connection, version: str) -> None:
    conn.execute("INSERT OR IGNORE INTO schema_migrations(version) VALUES (?)", (version,))


def _migration_files() -> Sequence[Path]:
    return sorted(p for p in MIGRATIONS_DIR.iterdir() if p.suffix == ".sql")


def run_migrations(path: Optional[Path] = None) -> None:
    """Run pending SQL migrations found in models/migrations/*.sql in sorted order."""
    with get_connection(path) as conn:
        applied = _get_applied_versions(conn)
        for sql_file in _migration_files():
            version = sql_file.stem
            if version in applied:
                continue
            sql = sql_file.read_text(encoding="utf-8")
            try:
                conn.executescript(sql)
            except sqlite3.OperationalError as e:
                # Re-adding an existing column is harmless
                if "duplicate column name" not in str(e).lower():
                    raise
            _record_applied(conn, version)
            logger.info(f"Applied migration {version}")


def init_db(path: Optional[Path] = None) -> None:
    """Initialize database by running migrations. Safe to call multiple times."""
    target = Path(path) if path else get_db_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    run_migrations(target)


def ping() -> bool:
    """Return True when the store answers a trivial query."""
    try:
        with get_connection() as conn:
            conn.execute("SELECT 1").fetchone()
        return True
    except StoreUnavailableError:
        return False


# --- Generic document helpers ---

def new_document_id() -> str:
    return uuid.uuid4().hex


def _check_columns(collection: str, columns: Sequence[str]) -> None:
    allowed = COLLECTION_COLUMNS.get(collection)
    if allowed is None:
        raise ValueError(f"Unknown collection: {collection}")
    unknown = [c for c in columns if c not in allowed]
    if unknown:
        raise ValueError(f"Unknown field(s) for {collection}: {', '.join(unknown)}")


def insert_document(collection: str, data: Mapping[str, Any], doc_id: Optional[str] = None) -> str:
    """Insert one document and return its id. The id is generated when not supplied."""
    doc_id = doc_id or new_document_id()
    fields = {k: v for k, v in data.items() if k != "id"}
    _check_columns(collection, list(fields))
    columns = ["id", *fields.keys()]
    placeholders = ", ".join("?" for _ in columns)
    with get_connection() as conn:
        conn.execute(
            f"INSERT INTO {collection}({', '.join(columns)}) VALUES({placeholders})",
            (doc_id, *fields.values()),
        )
    return doc_id


def get_document(collection: str, doc_id: str) -> Optional[sqlite3.Row]:
    _check_columns(collection, ["id"])
    with get_connection() as conn:
        cur = conn.execute(f"SELECT * FROM {collection} WHERE id = ?", (doc_id,))
        return cur.fetchone()


def query_documents(
    collection: str,
    where: Optional[tuple[str, Any]] = None,
    order_by: Optional[str] = None,
    descending: bool = False,
) -> list[sqlite3.Row]:
    """Run an equality-filtered, optionally ordered query against one collection."""
    used = [c for c in ((where[0] if where else None), order_by) if c]
    _check_columns(collection, used)
    sql = f"SELECT * FROM {collection}"
    params: tuple[Any, ...] = ()
    if where:
        sql += f" WHERE {where[0]} = ?"
        params = (where[1],)
    if order_by:
        # rowid keeps insertion order stable among equal sort keys
        sql += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}, rowid ASC"
    else:
        sql += " ORDER BY rowid ASC"
    with get_connection() as conn:
        cur = conn.execute(sql, params)
        return list(cur.fetchall())


def update_document(
    collection: str,
    doc_id: str,
    fields: Mapping[str, Any],
    expected: Optional[Mapping[str, Any]] = None,
) -> bool:
    """Update named fields of one document.

    `expected` adds equality preconditions; the update only applies when the
    stored values still match. Returns False when no row matched.
    """
    if not fields:
        return False
    expected = expected or {}
    _check_columns(collection, [*fields, *expected])
    assignments = ", ".join(f"{k} = ?" for k in fields)
    if collection == "applications":
        assignments += ", updated_at = datetime('now')"
    conditions = " AND ".join(["id = ?", *(f"{k} = ?" for k in expected)])
    with get_connection() as conn:
        cur = conn.execute(
            f"UPDATE {collection} SET {assignments} WHERE {conditions}",
            (*fields.values(), doc_id, *expected.values()),
        )
        return cur.rowcount > 0


# --- Opportunity helpers ---

def create_opportunity_db(data: Mapping[str, Any], doc_id: Optional[str] = None) -> str:
    return insert_document("opportunities", data, doc_id=doc_id)


def get_opportunity_db(opportunity_id: str) -> Optional[sqlite3.Row]:
    return get_document("opportunities", opportunity_id)


def list_opportunities_db() -> list[sqlite3.Row]:
    return query_documents("opportunities", order_by="date", descending=True)


# --- Application helpers ---

def create_application_db(data: Mapping[str, Any], doc_id: Optional[str] = None) -> str:
    return insert_document("applications", data, doc_id=doc_id)


def get_application_db(application_id: str) -> Optional[sqlite3.Row]:
    return get_document("applications", application_id)


def list_applications_db() -> list[sqlite3.Row]:
    return query_documents("applications", order_by="applied_date", descending=True)


def list_applications_by_opportunity_db(opportunity_id: str) -> list[sqlite3.Row]:
    return query_documents("applications", where=("opportunity_id", opportunity_id))


def list_applications_by_email_db(email: str) -> list[sqlite3.Row]:
    return query_documents("applications", where=("volunteer_email", email))


def update_application_status_db(
    application_id: str, status: str, expected_status: Optional[str] = None
) -> bool:
    expected = {"status": expected_status} if expected_status else None
    return update_document("applications", application_id, {"status": status}, expected=expected)


# --- Settings helpers ---
def set_setting(key: str, value: str) -> None:
    with get_connection() as conn:
        conn.execute(
            "INSERT INTO app_settings(key, value) VALUES(?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=datetime('now')",
            (key, value)
        )


def get_setting(key: str) -> Optional[str]:
    with get_connection() as conn:
        cur = conn.execute("SELECT value FROM app_settings WHERE key = ?", (key,))
        row = cur.fetchone()
        return row[0] if row else None
