"""SQLite table schemas and row types for the storage layer."""

from dataclasses import dataclass


# ── DDL ────────────────────────────────────────────────────────────────────────

# Single-row table: the CHECK pins every save to id = 1.
_CREATE_CREDENTIALS = """
CREATE TABLE IF NOT EXISTS credentials (
    id          INTEGER PRIMARY KEY CHECK (id = 1),
    host        TEXT NOT NULL,
    port        INTEGER NOT NULL DEFAULT 993,
    user        TEXT NOT NULL,
    secret      TEXT NOT NULL,
    secure      INTEGER NOT NULL DEFAULT 1,
    saved_at    TEXT NOT NULL DEFAULT (datetime('now'))
)
"""

#: All DDL statements in creation order.
ALL_TABLES: list[str] = [
    _CREATE_CREDENTIALS,
]


@dataclass(frozen=True)
class CredentialsRow:
    """The stored row from the credentials table."""

    host: str
    port: int
    user: str
    secret: str
    secure: bool
    saved_at: str
