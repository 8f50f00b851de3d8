"""Tests for CredentialStore — all tests use a temporary SQLite file."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from inboxpeek.imap.types import EmailConfig
from inboxpeek.storage.credentials import CredentialStore

CONFIG = EmailConfig(host="imap.example.com", user="me@example.com", secret="pw", port=993)


@pytest.fixture
def store(tmp_path: Path) -> Iterator[CredentialStore]:
    s = CredentialStore(db_path=tmp_path / "test.db")
    yield s
    s.close()


class TestSaveAndLoad:
    def test_empty_store_loads_none(self, store: CredentialStore) -> None:
        assert store.load() is None
        assert store.get_row() is None

    def test_round_trip(self, store: CredentialStore) -> None:
        store.save(CONFIG)
        assert store.load() == CONFIG

    def test_insecure_flag_persists(self, store: CredentialStore) -> None:
        config = EmailConfig(host="localhost", user="u", secret="s", port=143, secure=False)
        store.save(config)

        row = store.get_row()

        assert row is not None
        assert row.secure is False
        assert row.port == 143
        assert row.saved_at

    def test_save_replaces_previous(self, store: CredentialStore) -> None:
        store.save(CONFIG)
        other = EmailConfig(host="imap.other.com", user="you", secret="pw2")
        store.save(other)

        assert store.load() == other

    def test_survives_reopen(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "creds.db"
        first = CredentialStore(db_path=path)
        first.save(CONFIG)
        first.close()

        second = CredentialStore(db_path=path)
        try:
            assert second.load() == CONFIG
        finally:
            second.close()

    def test_invalid_stored_row_loads_none(self, store: CredentialStore) -> None:
        store.save(EmailConfig(host="imap.example.com", user="me", secret=""))
        assert store.load() is None


class TestClear:
    def test_clear_forgets_credentials(self, store: CredentialStore) -> None:
        store.save(CONFIG)
        store.clear()
        assert store.load() is None

    def test_clear_when_empty_is_noop(self, store: CredentialStore) -> None:
        store.clear()
        assert store.load() is None
