"""SQLite-backed persistence for the one saved set of IMAP credentials."""

import logging
import sqlite3
from pathlib import Path

from inboxpeek.imap.types import EmailConfig
from inboxpeek.storage.models import ALL_TABLES, CredentialsRow

logger = logging.getLogger(__name__)

_DEFAULT_DB_PATH = Path("data/inboxpeek.db")


class CredentialStore:
    """Durably saves, loads and clears the current EmailConfig.

    The secret is stored as given; protect the database file accordingly.

    Usage::

        store = CredentialStore()
        store.save(config)
        config = store.load()   # None when nothing is saved
        store.clear()
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._path = Path(db_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._path))
        self._conn.row_factory = sqlite3.Row
        self._create_tables()

    def close(self) -> None:
        """Close the underlying database connection."""
        self._conn.close()

    # ── Write API ───────────────────────────────────────────────────────────────

    def save(self, config: EmailConfig) -> None:
        """Replace the stored credentials with ``config``."""
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO credentials (id, host, port, user, secret, secure)
                VALUES (1, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    host     = excluded.host,
                    port     = excluded.port,
                    user     = excluded.user,
                    secret   = excluded.secret,
                    secure   = excluded.secure,
                    saved_at = datetime('now')
                """,
                (config.host, config.port, config.user, config.secret, int(config.secure)),
            )
        logger.info("Saved credentials for %s@%s", config.user, config.host)

    def clear(self) -> None:
        """Forget the stored credentials. A no-op when nothing is stored."""
        with self._conn:
            self._conn.execute("DELETE FROM credentials")
        logger.info("Cleared stored credentials")

    # ── Read API ────────────────────────────────────────────────────────────────

    def get_row(self) -> CredentialsRow | None:
        row = self._conn.execute(
            "SELECT host, port, user, secret, secure, saved_at FROM credentials WHERE id = 1"
        ).fetchone()
        if row is None:
            return None
        d = dict(row)
        d["secure"] = bool(d["secure"])
        return CredentialsRow(**d)

    def load(self) -> EmailConfig | None:
        """Return the stored configuration, or None if nothing valid is stored."""
        row = self.get_row()
        if row is None:
            return None
        config = EmailConfig(
            host=row.host, port=row.port, user=row.user, secret=row.secret, secure=row.secure
        )
        return config if config.is_valid() else None

    # ── Private ─────────────────────────────────────────────────────────────────

    def _create_tables(self) -> None:
        with self._conn:
            for ddl in ALL_TABLES:
                self._conn.execute(ddl)
