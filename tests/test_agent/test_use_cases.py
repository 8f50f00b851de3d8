"""Tests for the application use cases — the provider and store are mocked."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from inboxpeek.agent.use_cases import (
    AuthenticateUser,
    GetEmailContent,
    ListEmails,
    ListUnreadEmails,
    LogoutUser,
    MarkEmailAsRead,
    UseCaseError,
)
from inboxpeek.imap.errors import MailConnectionError, ProtocolOperationError
from inboxpeek.imap.types import EmailConfig, MessageContent, MessageSummary, SearchFilter


def make_provider() -> MagicMock:
    provider = MagicMock()
    provider.connect = AsyncMock()
    provider.disconnect = AsyncMock()
    provider.list_unread_emails = AsyncMock(return_value=[MessageSummary(id="1")])
    provider.list_emails = AsyncMock(return_value=[MessageSummary(id="2")])
    provider.get_email_content = AsyncMock(return_value=MessageContent(id="3"))
    provider.mark_as_read = AsyncMock()
    return provider


# ── AuthenticateUser ───────────────────────────────────────────────────────────


class TestAuthenticateUser:
    @pytest.mark.asyncio
    async def test_success_configures_connects_and_saves(self) -> None:
        provider, store = make_provider(), MagicMock()

        ok = await AuthenticateUser(provider, store).execute(
            "imap.example.com", 993, "me@example.com", "pw"
        )

        assert ok is True
        provider.configure.assert_called_once_with(
            "imap.example.com", 993, "me@example.com", "pw", secure=True
        )
        provider.connect.assert_awaited_once()
        store.save.assert_called_once_with(
            EmailConfig(host="imap.example.com", user="me@example.com", secret="pw")
        )

    @pytest.mark.asyncio
    async def test_connect_failure_returns_false(self, caplog: pytest.LogCaptureFixture) -> None:
        provider, store = make_provider(), MagicMock()
        provider.connect.side_effect = MailConnectionError("Authentication failed for me")

        ok = await AuthenticateUser(provider, store).execute("h", 993, "me", "wrong")

        assert ok is False
        store.save.assert_not_called()
        assert "Authentication failed" in caplog.text

    @pytest.mark.asyncio
    async def test_incomplete_credentials_never_connect(self) -> None:
        provider = make_provider()

        ok = await AuthenticateUser(provider).execute("imap.example.com", 993, "me", "")

        assert ok is False
        provider.configure.assert_not_called()
        provider.connect.assert_not_called()

    @pytest.mark.asyncio
    async def test_works_without_store(self) -> None:
        provider = make_provider()
        assert await AuthenticateUser(provider).execute("h", 993, "u", "p") is True


class TestLogoutUser:
    @pytest.mark.asyncio
    async def test_disconnects_and_clears(self) -> None:
        provider, store = make_provider(), MagicMock()

        await LogoutUser(provider, store).execute()

        provider.disconnect.assert_awaited_once()
        store.clear.assert_called_once()


# ── Mailbox use cases ──────────────────────────────────────────────────────────


class TestMailboxUseCases:
    @pytest.mark.asyncio
    async def test_list_unread_delegates(self) -> None:
        provider = make_provider()
        result = await ListUnreadEmails(provider).execute()
        assert [m.id for m in result] == ["1"]

    @pytest.mark.asyncio
    async def test_list_emails_passes_filter(self) -> None:
        provider = make_provider()
        search_filter = SearchFilter(unread_only=True, limit=3)

        await ListEmails(provider).execute(search_filter)

        provider.list_emails.assert_awaited_once_with(search_filter)

    @pytest.mark.asyncio
    async def test_get_content_delegates(self) -> None:
        provider = make_provider()
        result = await GetEmailContent(provider).execute("3")
        assert result.id == "3"
        provider.get_email_content.assert_awaited_once_with("3")

    @pytest.mark.asyncio
    async def test_mark_read_delegates(self) -> None:
        provider = make_provider()
        await MarkEmailAsRead(provider).execute("4")
        provider.mark_as_read.assert_awaited_once_with("4")

    @pytest.mark.parametrize(
        ("use_case", "method", "args", "message"),
        [
            (ListUnreadEmails, "list_unread_emails", (), "Failed to list unread emails"),
            (ListEmails, "list_emails", (None,), "Failed to list emails"),
            (GetEmailContent, "get_email_content", ("1",), "Failed to get email content"),
            (MarkEmailAsRead, "mark_as_read", ("1",), "Failed to mark email as read"),
        ],
    )
    @pytest.mark.asyncio
    async def test_provider_errors_are_wrapped(
        self, use_case: type, method: str, args: tuple, message: str
    ) -> None:
        provider = make_provider()
        cause = ProtocolOperationError("FETCH", "NO")
        getattr(provider, method).side_effect = cause

        with pytest.raises(UseCaseError, match=message) as exc_info:
            await use_case(provider).execute(*args)

        assert exc_info.value.__cause__ is cause
