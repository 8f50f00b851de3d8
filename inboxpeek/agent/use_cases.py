"""Application use cases over the abstract EmailProvider contract."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from inboxpeek.imap.types import EmailConfig, MessageContent, MessageSummary, SearchFilter

if TYPE_CHECKING:
    from inboxpeek.storage.credentials import CredentialStore

logger = logging.getLogger(__name__)


# ── Provider interface ─────────────────────────────────────────────────────────


@runtime_checkable
class EmailProvider(Protocol):
    """Interface every mail backend implements for the use cases below."""

    def configure(
        self, host: str, port: int, user: str, secret: str, *, secure: bool = True
    ) -> None: ...

    async def connect(self) -> None: ...

    async def disconnect(self) -> None:
        """Log out. Must never raise."""
        ...

    async def list_unread_emails(self) -> list[MessageSummary]: ...

    async def list_emails(self, search_filter: SearchFilter | None = None) -> list[MessageSummary]: ...

    async def get_email_content(self, id: str) -> MessageContent: ...

    async def mark_as_read(self, id: str) -> None: ...


class UseCaseError(Exception):
    """Raised when a use case fails. The provider error is chained as __cause__."""


# ── Session use cases ──────────────────────────────────────────────────────────


class AuthenticateUser:
    """Configure the provider and connect to validate the credentials.

    On success the credentials are saved to the store, if one is given.
    """

    def __init__(self, provider: EmailProvider, store: CredentialStore | None = None) -> None:
        self._provider = provider
        self._store = store

    async def execute(
        self, host: str, port: int, user: str, password: str, *, secure: bool = True
    ) -> bool:
        """Return True when the login succeeded. Failures are logged, not raised."""
        config = EmailConfig(host=host, port=port, user=user, secret=password, secure=secure)
        try:
            config.validate()
            self._provider.configure(host, port, user, password, secure=secure)
            await self._provider.connect()
        except Exception as exc:  # noqa: BLE001
            logger.error("Authentication failed: %s", exc)
            return False

        if self._store is not None:
            self._store.save(config)
        return True


class LogoutUser:
    """Disconnect and forget any stored credentials."""

    def __init__(self, provider: EmailProvider, store: CredentialStore | None = None) -> None:
        self._provider = provider
        self._store = store

    async def execute(self) -> None:
        await self._provider.disconnect()
        if self._store is not None:
            self._store.clear()


# ── Mailbox use cases ──────────────────────────────────────────────────────────


class ListUnreadEmails:
    def __init__(self, provider: EmailProvider) -> None:
        self._provider = provider

    async def execute(self) -> list[MessageSummary]:
        try:
            return await self._provider.list_unread_emails()
        except Exception as exc:
            raise UseCaseError("Failed to list unread emails") from exc


class ListEmails:
    def __init__(self, provider: EmailProvider) -> None:
        self._provider = provider

    async def execute(self, search_filter: SearchFilter | None = None) -> list[MessageSummary]:
        try:
            return await self._provider.list_emails(search_filter)
        except Exception as exc:
            raise UseCaseError("Failed to list emails") from exc


class GetEmailContent:
    def __init__(self, provider: EmailProvider) -> None:
        self._provider = provider

    async def execute(self, id: str) -> MessageContent:
        try:
            return await self._provider.get_email_content(id)
        except Exception as exc:
            raise UseCaseError("Failed to get email content") from exc


class MarkEmailAsRead:
    def __init__(self, provider: EmailProvider) -> None:
        self._provider = provider

    async def execute(self, id: str) -> None:
        try:
            await self._provider.mark_as_read(id)
        except Exception as exc:
            raise UseCaseError("Failed to mark email as read") from exc
