"""Session lifecycle — configure, connect, disconnect, and the implicit-reconnect guard."""

import logging
from enum import Enum

from inboxpeek.imap.errors import (
    ConnectionFailureKind,
    MailConnectionError,
    NotConfiguredError,
    classify_connection_error,
)
from inboxpeek.imap.transport import AioImapTransport, MailTransport, TransportFactory
from inboxpeek.imap.types import EmailConfig

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


_GUIDANCE: dict[ConnectionFailureKind, tuple[str, ...]] = {
    ConnectionFailureKind.AUTHENTICATION: (
        "This looks like an authentication problem. Check your user and password.",
        "Gmail and other providers require an app-specific password, not your account password.",
    ),
    ConnectionFailureKind.NETWORK: (
        "This looks like a connection problem. Check your network and the server host/port.",
    ),
    ConnectionFailureKind.UNCLASSIFIED: (),
}


class SessionManager:
    """Owns one transport and its authenticated state.

    Not shareable: each provider instance holds its own SessionManager.  A
    fresh ``configure`` is always allowed and replaces the transport.

    Usage::

        session = SessionManager()
        session.configure(EmailConfig(host="imap.example.com", user="me", secret="pw"))
        await session.connect()
        ...
        await session.disconnect()
    """

    def __init__(self, transport_factory: TransportFactory | None = None) -> None:
        self._transport_factory: TransportFactory = transport_factory or AioImapTransport
        self._config: EmailConfig | None = None
        self._transport: MailTransport | None = None
        self._state = SessionState.UNCONFIGURED

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def config(self) -> EmailConfig | None:
        return self._config

    @property
    def authenticated(self) -> bool:
        return self._transport is not None and self._transport.authenticated

    @property
    def transport(self) -> MailTransport:
        """The configured transport. Raises NotConfiguredError before configure()."""
        if self._transport is None:
            raise NotConfiguredError()
        return self._transport

    def configure(self, config: EmailConfig) -> None:
        """Store connection parameters and build a new transport. Does not connect."""
        self._config = config
        self._transport = self._transport_factory(config)
        self._state = SessionState.CONFIGURED
        logger.debug("Configured session for %s@%s:%d", config.user, config.host, config.port)

    async def connect(self) -> None:
        """Open and authenticate the transport session.

        On failure the error is classified and logged with guidance, then the
        original exception is re-raised unchanged.
        """
        transport, cfg = self._configured()
        logger.info("Connecting to %s:%d as %s...", cfg.host, cfg.port, cfg.user)
        try:
            await transport.connect()
        except Exception as exc:
            kind = classify_connection_error(exc)
            if isinstance(exc, MailConnectionError):
                exc.kind = kind
            logger.error("Failed to connect to the mail server: %s", exc)
            for hint in _GUIDANCE[kind]:
                logger.error("  %s", hint)
            raise
        self._state = SessionState.CONNECTED
        logger.info("Connected to mail server %s", cfg.host)

    async def disconnect(self) -> None:
        """Log out. Never raises — failures are logged and suppressed."""
        if self._transport is None:
            logger.debug("Disconnect requested on an unconfigured session; nothing to do")
            return
        try:
            await self._transport.logout()
            logger.info("Disconnected from mail server")
        except Exception as exc:  # noqa: BLE001
            logger.warning("Error while disconnecting from mail server: %s", exc)
        finally:
            if self._state is not SessionState.UNCONFIGURED:
                self._state = SessionState.DISCONNECTED

    async def ensure_authenticated(self) -> None:
        """Connect first if the transport is not authenticated.

        Called at the top of every mailbox operation.
        """
        transport = self.transport
        if not transport.authenticated:
            await self.connect()

    def _configured(self) -> tuple[MailTransport, EmailConfig]:
        if self._transport is None or self._config is None:
            raise NotConfiguredError()
        return self._transport, self._config
