"""Persistence for the magazine API: SQLite metadata and local file storage."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

_PUBLIC_COLUMNS = """
    id, client_slug, title, pdf_url, cover_url, page_count, file_size,
    is_published, sort_order, created_at, updated_at, published_at
"""


class StorageError(Exception):
    """Raised when a stored file cannot be written or resolved."""
    pass


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_dict(row: Optional[sqlite3.Row]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    data = dict(row)
    if "is_published" in data:
        data["is_published"] = bool(data["is_published"])
    return data


class MagazineDatabase:
    """Manages the SQLite database holding users and magazines.

    Magazines belong to a client (tenant) slug. Public queries only ever see
    published magazines; admin queries see everything.
    """

    def __init__(self, db_path: Path):
        """Initialize magazine database.

        Args:
            db_path: Path to SQLite database file (parent directory is created)
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection.

        Returns:
            SQLite connection with dict-like rows
        """
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT UNIQUE NOT NULL,
                    password_hash TEXT NOT NULL,
                    role TEXT DEFAULT 'admin',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS magazines (
                    id TEXT PRIMARY KEY,
                    client_slug TEXT NOT NULL,
                    title TEXT NOT NULL,
                    pdf_url TEXT NOT NULL,
                    cover_url TEXT,
                    page_count INTEGER DEFAULT 0,
                    file_size INTEGER DEFAULT 0,
                    is_published INTEGER DEFAULT 1,
                    sort_order INTEGER DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    published_at TEXT
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_magazines_client_slug
                ON magazines(client_slug)
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_magazines_published
                ON magazines(client_slug, is_published, created_at DESC)
            """)

            conn.commit()
            logger.debug(f"Database schema initialized: {self.db_path}")

    # Users

    def create_user(self, email: str, password_hash: str, role: str = "admin") -> Dict[str, Any]:
        """Insert a user, or replace the password of an existing one.

        Args:
            email: Login e-mail (stored lower-cased)
            password_hash: bcrypt hash
            role: User role

        Returns:
            The stored user row (without password hash)
        """
        email = email.lower().strip()
        now = _now()
        existing = self.get_user_by_email(email)
        with self._get_connection() as conn:
            if existing:
                conn.execute(
                    "UPDATE users SET password_hash = ?, role = ?, updated_at = ? WHERE id = ?",
                    (password_hash, role, now, existing["id"]),
                )
                user_id = existing["id"]
            else:
                user_id = str(uuid.uuid4())
                conn.execute(
                    "INSERT INTO users (id, email, password_hash, role, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (user_id, email, password_hash, role, now, now),
                )
            conn.commit()
        logger.info(f"Stored user {email}")
        user = self.get_user_by_id(user_id)
        user.pop("password_hash", None)
        return user

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?", (email.lower().strip(),)
            ).fetchone()
        return _row_to_dict(row)

    def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _row_to_dict(row)

    def update_password(self, user_id: str, password_hash: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE users SET password_hash = ?, updated_at = ? WHERE id = ?",
                (password_hash, _now(), user_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    # Magazines

    def insert_magazine(
        self,
        client_slug: str,
        title: str,
        pdf_url: str,
        cover_url: Optional[str] = None,
        page_count: int = 0,
        file_size: int = 0,
        is_published: bool = True,
    ) -> Dict[str, Any]:
        """Insert a magazine and return the stored row."""
        magazine_id = str(uuid.uuid4())
        now = _now()
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO magazines (
                    id, client_slug, title, pdf_url, cover_url, page_count, file_size,
                    is_published, sort_order, created_at, updated_at, published_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?)
                """,
                (
                    magazine_id, client_slug, title, pdf_url, cover_url, page_count,
                    file_size, int(is_published), now, now, now if is_published else None,
                ),
            )
            conn.commit()
        logger.info(f"Inserted magazine {magazine_id} for client {client_slug}")
        return self.get_magazine(magazine_id, include_unpublished=True)

    def get_magazine(self, magazine_id: str, include_unpublished: bool = False) -> Optional[Dict[str, Any]]:
        query = f"SELECT {_PUBLIC_COLUMNS} FROM magazines WHERE id = ?"
        if not include_unpublished:
            query += " AND is_published = 1"
        with self._get_connection() as conn:
            row = conn.execute(query, (magazine_id,)).fetchone()
        return _row_to_dict(row)

    def list_published(self, client_slug: str, limit: int = 50, offset: int = 0) -> Tuple[List[Dict[str, Any]], int]:
        """List published magazines of a client.

        Returns:
            (rows ordered by sort_order ASC then created_at DESC, total count)
        """
        with self._get_connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_PUBLIC_COLUMNS} FROM magazines
                WHERE client_slug = ? AND is_published = 1
                ORDER BY sort_order ASC, created_at DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                (client_slug, limit, offset),
            ).fetchall()
            total = conn.execute(
                "SELECT COUNT(*) FROM magazines WHERE client_slug = ? AND is_published = 1",
                (client_slug,),
            ).fetchone()[0]
        return [_row_to_dict(row) for row in rows], int(total)

    def latest_published(self, client_slug: str) -> Optional[Dict[str, Any]]:
        """Most recently created published magazine of a client."""
        with self._get_connection() as conn:
            row = conn.execute(
                f"""
                SELECT {_PUBLIC_COLUMNS} FROM magazines
                WHERE client_slug = ? AND is_published = 1
                ORDER BY created_at DESC, rowid DESC
                LIMIT 1
                """,
                (client_slug,),
            ).fetchone()
        return _row_to_dict(row)

    def list_all(self, client_slug: Optional[str] = None) -> List[Dict[str, Any]]:
        """List magazines including unpublished ones, optionally for one client."""
        query = f"SELECT {_PUBLIC_COLUMNS} FROM magazines"
        params: Tuple = ()
        if client_slug:
            query += " WHERE client_slug = ?"
            params = (client_slug,)
        query += " ORDER BY sort_order ASC, created_at DESC, rowid DESC"
        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_dict(row) for row in rows]

    def update_magazine(
        self, magazine_id: str, title: Optional[str] = None, is_published: Optional[bool] = None
    ) -> Optional[Dict[str, Any]]:
        """Update title and/or published flag.

        Returns:
            Updated row, or None if the magazine does not exist

        Raises:
            ValueError: If neither field is given
        """
        updates = []
        values: List[Any] = []
        if title is not None:
            updates.append("title = ?")
            values.append(title)
        if is_published is not None:
            updates.append("is_published = ?")
            values.append(int(is_published))
            if is_published:
                updates.append("published_at = COALESCE(published_at, ?)")
                values.append(_now())
        if not updates:
            raise ValueError("No updates given")

        updates.append("updated_at = ?")
        values.append(_now())
        values.append(magazine_id)
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE magazines SET {', '.join(updates)} WHERE id = ?", values
            )
            conn.commit()
            if cursor.rowcount == 0:
                return None
        return self.get_magazine(magazine_id, include_unpublished=True)

    def reorder(self, order: Iterable[Tuple[str, int]]) -> int:
        """Set sort_order for each (magazine_id, sort_order) pair.

        Returns:
            Number of magazines updated
        """
        now = _now()
        updated = 0
        with self._get_connection() as conn:
            for magazine_id, sort_order in order:
                cursor = conn.execute(
                    "UPDATE magazines SET sort_order = ?, updated_at = ? WHERE id = ?",
                    (sort_order, now, magazine_id),
                )
                updated += cursor.rowcount
            conn.commit()
        return updated

    def delete_magazine(self, magazine_id: str) -> Optional[Dict[str, Any]]:
        """Delete a magazine.

        Returns:
            The deleted row (so stored files can be removed), or None
        """
        existing = self.get_magazine(magazine_id, include_unpublished=True)
        if existing is None:
            return None
        with self._get_connection() as conn:
            conn.execute("DELETE FROM magazines WHERE id = ?", (magazine_id,))
            conn.commit()
        logger.info(f"Deleted magazine {magazine_id}")
        return existing


class FileStorage:
    """Stores uploaded PDFs and covers in a local directory served under a public URL."""

    def __init__(self, root: Path, public_url: str):
        """Initialize file storage.

        Args:
            root: Directory files are written to
            public_url: URL prefix under which ``root`` is served
        """
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_url = public_url.rstrip("/")

    def upload(self, data: bytes, original_name: str, folder: str = "uploads") -> Tuple[str, str]:
        """Write ``data`` under a fresh unique key.

        Returns:
            (key, public url)
        """
        suffix = Path(original_name).suffix.lower()
        key = f"{folder.strip('/')}/{uuid.uuid4().hex}{suffix}"
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.debug(f"Stored {len(data)} bytes as {key}")
        return key, f"{self.public_url}/{key}"

    def delete(self, key: str) -> bool:
        """Remove a stored file. Returns False if it did not exist."""
        path = self.path_for(key)
        if not path.exists():
            return False
        path.unlink()
        return True

    def key_from_url(self, url: Optional[str]) -> Optional[str]:
        """Extract the storage key from a public URL (None for foreign URLs)."""
        if not url or not url.startswith(self.public_url + "/"):
            return None
        return url[len(self.public_url) + 1:]

    def path_for(self, key: str) -> Path:
        """Resolve a key to a path inside the storage root.

        Raises:
            StorageError: If the key escapes the storage root
        """
        root = self.root.resolve()
        path = (root / key).resolve()
        if root != path and root not in path.parents:
            raise StorageError(f"Invalid storage key: {key}")
        return path
