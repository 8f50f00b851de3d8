"""MailboxApp — coordinates the provider, credential store and use cases for CLI commands."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from inboxpeek.agent.use_cases import (
    AuthenticateUser,
    EmailProvider,
    GetEmailContent,
    ListEmails,
    ListUnreadEmails,
    LogoutUser,
    MarkEmailAsRead,
)
from inboxpeek.imap.errors import NotConfiguredError
from inboxpeek.imap.types import EmailConfig
from inboxpeek.storage.credentials import CredentialStore


class MailboxApp:
    """Wires one EmailProvider and one CredentialStore into the use cases.

    Both collaborators are public attributes so tests and commands can reach
    them directly.

    Usage::

        app = MailboxApp(ImapEmailProvider(), CredentialStore())
        async with app.session():
            emails = await app.list_unread.execute()
    """

    def __init__(self, provider: EmailProvider, store: CredentialStore) -> None:
        self.provider = provider
        self.store = store
        self.authenticate = AuthenticateUser(provider, store)
        self.logout = LogoutUser(provider, store)
        self.list_unread = ListUnreadEmails(provider)
        self.list_emails = ListEmails(provider)
        self.get_content = GetEmailContent(provider)
        self.mark_read = MarkEmailAsRead(provider)

    def close(self) -> None:
        """Release the credential store."""
        self.store.close()

    def resolve_config(self) -> EmailConfig | None:
        """Saved credentials win; otherwise fall back to EMAIL_* environment variables."""
        stored = self.store.load()
        if stored is not None:
            return stored
        env = EmailConfig.from_env()
        return env if env.is_valid() else None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[None]:
        """Configure the provider for the body of the block and always disconnect after.

        The provider connects lazily on its first mailbox operation.
        """
        config = self.resolve_config()
        if config is None:
            raise NotConfiguredError(
                "No credentials found. Run `inboxpeek login` or set EMAIL_HOST, "
                "EMAIL_USER and EMAIL_PASS."
            )
        self.provider.configure(
            config.host, config.port, config.user, config.secret, secure=config.secure
        )
        try:
            yield
        finally:
            await self.provider.disconnect()
