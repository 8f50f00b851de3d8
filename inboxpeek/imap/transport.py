"""IMAP transport: the narrow protocol the core talks to, and its aioimaplib backend.

The rest of the package only ever sees ``MailTransport``.  It exposes exactly
the calls the session, search, fetch and flag components need:

* ``connect`` / ``logout`` and the ``authenticated`` flag
* ``get_mailbox_lock`` — exclusive, SELECTed access to one mailbox
* ``search`` — UIDs of all or unseen messages
* ``fetch_one`` — header metadata or the full source of one UID
* ``message_flags_add`` — the only call that changes server-side state

``AioImapTransport`` implements it on top of ``aioimaplib``.  Every fetch uses
``BODY.PEEK`` so reading never sets ``\\Seen`` as a side effect.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from aioimaplib import aioimaplib

from inboxpeek.imap.errors import MailConnectionError, ProtocolOperationError
from inboxpeek.imap.types import DEFAULT_MAILBOX, EmailConfig, FetchResult
from inboxpeek.processing.parser import parse_headers

logger = logging.getLogger(__name__)

_HEADER_FIELDS = "MESSAGE-ID SUBJECT FROM DATE"
_FETCH_HEADERS = f"(UID FLAGS INTERNALDATE BODY.PEEK[HEADER.FIELDS ({_HEADER_FIELDS})])"
_FETCH_SOURCE = "(UID FLAGS INTERNALDATE BODY.PEEK[])"

_FETCH_LINE_RE = re.compile(rb"^\d+\s+FETCH\b", re.IGNORECASE)
_FLAGS_RE = re.compile(rb"FLAGS \(([^)]*)\)", re.IGNORECASE)
_INTERNALDATE_RE = re.compile(rb'INTERNALDATE "([^"]+)"', re.IGNORECASE)

# Errors aioimaplib surfaces for a command that never got a tagged response.
_TRANSPORT_ERRORS = (aioimaplib.Error, asyncio.TimeoutError, OSError)


# ── Protocol ───────────────────────────────────────────────────────────────────


class LockLease(Protocol):
    """Handle for an acquired mailbox lock."""

    def release(self) -> None: ...


@runtime_checkable
class MailTransport(Protocol):
    """Interface for the underlying mail-access client."""

    @property
    def authenticated(self) -> bool: ...

    async def connect(self) -> None: ...

    async def logout(self) -> None: ...

    async def get_mailbox_lock(self, mailbox: str) -> LockLease: ...

    async def search(self, *, unseen: bool = False) -> list[str]: ...

    async def fetch_one(self, uid: str, *, source: bool = False) -> FetchResult | None: ...

    async def message_flags_add(self, uid: str, flags: Sequence[str]) -> None: ...


#: Builds a transport for a configuration. Injected into SessionManager.
TransportFactory = Callable[[EmailConfig], MailTransport]


@asynccontextmanager
async def with_mailbox_lock(
    transport: MailTransport,
    mailbox: str = DEFAULT_MAILBOX,
) -> AsyncIterator[LockLease]:
    """Hold exclusive access to ``mailbox`` for the body of an ``async with``.

    The lease is released exactly once on every exit path, including
    exceptions and task cancellation.

    Example::

        async with with_mailbox_lock(transport, "INBOX"):
            uids = await transport.search(unseen=True)
    """
    lease = await transport.get_mailbox_lock(mailbox)
    try:
        yield lease
    finally:
        lease.release()


class MailboxLease:
    """An acquired per-mailbox ``asyncio.Lock``. ``release()`` is idempotent."""

    def __init__(self, mailbox: str, lock: asyncio.Lock) -> None:
        self.mailbox = mailbox
        self._lock = lock
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._lock.release()
        logger.debug("Released lock on %s", self.mailbox)


# ── aioimaplib backend ─────────────────────────────────────────────────────────


def _default_client_factory(config: EmailConfig) -> Any:
    if config.secure:
        return aioimaplib.IMAP4_SSL(
            host=config.host, port=config.port, timeout=AioImapTransport.TIMEOUT
        )
    return aioimaplib.IMAP4(
        host=config.host, port=config.port, timeout=AioImapTransport.TIMEOUT
    )


class AioImapTransport:
    """``MailTransport`` backed by one aioimaplib connection.

    A new aioimaplib client is created on every ``connect`` so a transport can
    be reconnected after ``logout``.  Locks are keyed by mailbox name and live
    as long as the transport.
    """

    # Timeout for IMAP commands (seconds)
    TIMEOUT = 30

    def __init__(
        self,
        config: EmailConfig,
        client_factory: Callable[[EmailConfig], Any] | None = None,
    ) -> None:
        self._config = config
        self._client_factory = client_factory or _default_client_factory
        self._client: Any = None
        self._authenticated = False
        self._selected: str | None = None
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def authenticated(self) -> bool:
        return self._authenticated and self._client is not None

    # ── Connection ─────────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Open a new connection and log in.

        An existing connection is logged out first.  On any failure the new
        client is closed before the error propagates.
        """
        cfg = self._config
        if self._client is not None:
            logger.debug("Replacing existing connection to %s", cfg.host)
            previous = self._client
            self._reset()
            await self._close_quietly(previous)

        client = self._client_factory(cfg)
        try:
            await self._hello_and_login(client)
        except Exception:
            await self._close_quietly(client)
            raise

        self._client = client
        self._authenticated = True
        logger.debug("Logged in to %s as %s", cfg.host, cfg.user)

    async def _hello_and_login(self, client: Any) -> None:
        cfg = self._config
        try:
            await client.wait_hello_from_server()
        except _TRANSPORT_ERRORS as exc:
            raise MailConnectionError(
                f"Could not connect to {cfg.host}:{cfg.port}: {exc}"
            ) from exc

        try:
            response = await client.login(cfg.user, cfg.secret)
        except _TRANSPORT_ERRORS as exc:
            raise MailConnectionError(
                f"Network error while logging in to {cfg.host}: {exc}"
            ) from exc

        if response.result != "OK":
            raise MailConnectionError(
                f"Authentication failed for {cfg.user}: {_lines_text(response.lines)}"
            )

    async def logout(self) -> None:
        client = self._client
        if client is None:
            return
        try:
            await client.logout()
        finally:
            self._reset()

    def _reset(self) -> None:
        self._client = None
        self._authenticated = False
        self._selected = None

    @staticmethod
    async def _close_quietly(client: Any) -> None:
        try:
            await client.logout()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Ignoring error while closing IMAP client: %s", exc)

    # ── Mailbox lock ───────────────────────────────────────────────────────────

    async def get_mailbox_lock(self, mailbox: str) -> MailboxLease:
        """Acquire the lock for ``mailbox`` and SELECT it.

        If the SELECT fails (or the task is cancelled while waiting on it) the
        lock is released before the error propagates.
        """
        lock = self._locks.setdefault(mailbox, asyncio.Lock())
        await lock.acquire()
        try:
            await self._select(mailbox)
        except BaseException:
            lock.release()
            raise
        logger.debug("Acquired lock on %s", mailbox)
        return MailboxLease(mailbox, lock)

    async def _select(self, mailbox: str) -> None:
        if self._selected == mailbox:
            return
        client = self._require_client("SELECT")
        await self._checked("SELECT", client.select(mailbox))
        self._selected = mailbox

    # ── Commands ───────────────────────────────────────────────────────────────

    async def search(self, *, unseen: bool = False) -> list[str]:
        """Return matching UIDs in server order."""
        client = self._require_client("SEARCH")
        criteria = "UNSEEN" if unseen else "ALL"
        response = await self._checked("SEARCH", client.uid_search(criteria))
        return _parse_search_ids(response.lines)

    async def fetch_one(self, uid: str, *, source: bool = False) -> FetchResult | None:
        """Fetch header metadata (default) or the full source of one UID.

        Returns None when the server sends no FETCH data for the UID.
        """
        client = self._require_client("FETCH")
        items = _FETCH_SOURCE if source else _FETCH_HEADERS
        response = await self._checked("FETCH", client.uid("FETCH", uid, items))
        return _parse_fetch_response(uid, response.lines, source=source)

    async def message_flags_add(self, uid: str, flags: Sequence[str]) -> None:
        client = self._require_client("STORE")
        command = f"+FLAGS ({' '.join(flags)})"
        logger.debug("Setting flags on %s: %s", uid, command)
        await self._checked("STORE", client.uid("STORE", uid, command))

    # ── Internal helpers ───────────────────────────────────────────────────────

    def _require_client(self, operation: str) -> Any:
        if not self.authenticated:
            raise ProtocolOperationError(operation, "not connected")
        return self._client

    @staticmethod
    async def _checked(operation: str, pending: Any) -> Any:
        """Await an aioimaplib command and raise unless the server said OK."""
        try:
            response = await pending
        except _TRANSPORT_ERRORS as exc:
            raise ProtocolOperationError(operation, str(exc) or type(exc).__name__) from exc
        if response.result != "OK":
            raise ProtocolOperationError(operation, _lines_text(response.lines))
        return response


# ── Response parsing ───────────────────────────────────────────────────────────


def _lines_text(lines: Sequence[Any]) -> str:
    parts = []
    for line in lines:
        if isinstance(line, (bytes, bytearray)):
            parts.append(bytes(line).decode("utf-8", errors="replace"))
        else:
            parts.append(str(line))
    return " ".join(p.strip() for p in parts if p.strip())


def _parse_search_ids(lines: Sequence[Any]) -> list[str]:
    """Extract UIDs from a UID SEARCH response.

    aioimaplib returns the untagged result as ``b'1 2 3'`` (some servers keep
    the ``SEARCH`` keyword) followed by the tagged completion text.
    """
    ids: list[str] = []
    for line in lines:
        if isinstance(line, (bytes, bytearray)):
            text = bytes(line).decode("ascii", errors="replace")
        else:
            text = str(line)
        tokens = text.split()
        if tokens and tokens[0].upper() == "SEARCH":
            tokens = tokens[1:]
        if tokens and all(t.isdigit() for t in tokens):
            ids.extend(tokens)
    return ids


def _parse_internal_date(raw: bytes) -> datetime | None:
    # INTERNALDATE looks like "17-Jul-1996 02:44:25 -0700"
    try:
        return datetime.strptime(raw.decode("ascii").strip(), "%d-%b-%Y %H:%M:%S %z")
    except (UnicodeDecodeError, ValueError):
        logger.debug("Unparseable INTERNALDATE %r", raw)
        return None


def _parse_fetch_response(
    uid: str,
    lines: Sequence[Any],
    *,
    source: bool,
) -> FetchResult | None:
    """Turn the lines of a single-UID FETCH response into a FetchResult.

    aioimaplib delivers literal data (the ``{N}`` payloads) as ``bytearray``
    items and protocol text as ``bytes``.  The first literal is the header
    block or the full source, depending on what was requested.
    """
    meta_parts: list[bytes] = []
    literal: bytes | None = None
    found = False

    for item in lines:
        if isinstance(item, bytearray):
            if literal is None:
                literal = bytes(item)
            continue
        line = item if isinstance(item, bytes) else str(item).encode("utf-8")
        if _FETCH_LINE_RE.match(line):
            found = True
        meta_parts.append(line)

    if not found:
        return None

    meta = b" ".join(meta_parts)
    flags_match = _FLAGS_RE.search(meta)
    flags = (
        tuple(f.decode("ascii", errors="replace") for f in flags_match.group(1).split())
        if flags_match
        else None
    )
    date_match = _INTERNALDATE_RE.search(meta)
    internal_date = _parse_internal_date(date_match.group(1)) if date_match else None

    envelope = parse_headers(literal) if literal is not None else None
    return FetchResult(
        uid=uid,
        envelope=envelope,
        internal_date=internal_date,
        flags=flags,
        source=literal if source else None,
    )
