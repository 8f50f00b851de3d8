"""IMAP-backed email provider — search, fetch, and flag components over one session.

Every public operation follows the same shape:

1. ``session.ensure_authenticated()`` (implicit reconnect)
2. ``async with with_mailbox_lock(...)`` around all protocol calls
3. on failure: log with the operation name, then re-raise

Only ``FlagMutator.mark_as_read`` changes server-side state; listing and
content fetches read with ``BODY.PEEK`` and never set ``\\Seen``.
"""

import logging

from inboxpeek.imap.errors import SourceUnavailableError
from inboxpeek.imap.session import SessionManager
from inboxpeek.imap.transport import TransportFactory, with_mailbox_lock
from inboxpeek.imap.types import (
    DEFAULT_LIMIT,
    DEFAULT_MAILBOX,
    PLACEHOLDER_SENDER,
    PLACEHOLDER_SUBJECT,
    SEEN_FLAG,
    EmailConfig,
    FetchResult,
    MessageBody,
    MessageContent,
    MessageSummary,
    SearchFilter,
    as_aware,
    utc_now,
)
from inboxpeek.processing.parser import parse_source
from inboxpeek.processing.shaping import matches_sender, sort_newest_first, truncate

logger = logging.getLogger(__name__)

#: Cap on resolved results for list_unread(); the newest UIDs win.
UNREAD_LISTING_CAP = DEFAULT_LIMIT

#: Over-fetch factor when a sender filter will discard candidates.
SENDER_FILTER_OVERFETCH = 3


def _uid_order(uids: list[str]) -> list[str]:
    """Sort UIDs numerically, oldest first. UIDs grow monotonically per mailbox."""
    return sorted(uids, key=lambda u: int(u) if u.isdigit() else 0)


def _summary_from(result: FetchResult) -> MessageSummary:
    # Same precedence as full content: Date header, then INTERNALDATE, then now.
    envelope = result.envelope
    date = (envelope.date if envelope else None) or result.internal_date
    return MessageSummary(
        id=result.uid,
        message_id=envelope.message_id if envelope else None,
        subject=(envelope.subject if envelope else None) or PLACEHOLDER_SUBJECT,
        sender=(envelope.sender if envelope else None) or PLACEHOLDER_SENDER,
        date=as_aware(date) if date else utc_now(),
        seen=result.seen,
    )


# ── Fetcher ────────────────────────────────────────────────────────────────────


class MessageFetcher:
    """Resolves UIDs into MessageSummary / MessageContent records."""

    def __init__(self, session: SessionManager, mailbox: str = DEFAULT_MAILBOX) -> None:
        self._session = session
        self._mailbox = mailbox

    async def fetch_header_only(self, uid: str) -> MessageSummary | None:
        """Return header metadata for one UID, or None if the server has nothing for it."""
        try:
            await self._session.ensure_authenticated()
            transport = self._session.transport
            async with with_mailbox_lock(transport, self._mailbox):
                result = await transport.fetch_one(uid)
        except Exception as exc:
            logger.error("fetch_header_only failed for message %s: %s", uid, exc)
            raise
        return _summary_from(result) if result is not None else None

    async def read_summary(self, uid: str) -> MessageSummary | None:
        """Header-only fetch for callers already holding the mailbox lock.

        Returns None when the server sent no usable envelope for the UID.
        """
        result = await self._session.transport.fetch_one(uid)
        if result is None or result.envelope is None:
            logger.debug("No envelope returned for message %s; skipping", uid)
            return None
        return _summary_from(result)

    async def fetch_full_content(self, uid: str) -> MessageContent:
        """Fetch and parse the full source of one message.

        Raises:
            SourceUnavailableError: the server returned no raw source.
            ParseError: the source could not be parsed.
        """
        logger.info("Loading content of message %s", uid)
        try:
            await self._session.ensure_authenticated()
            transport = self._session.transport
            async with with_mailbox_lock(transport, self._mailbox):
                result = await transport.fetch_one(uid, source=True)
            if result is None or result.source is None:
                raise SourceUnavailableError(uid)
            parsed = parse_source(result.source)
        except Exception as exc:
            logger.error("get_email_content failed for message %s: %s", uid, exc)
            raise

        envelope = parsed.envelope
        date = envelope.date or result.internal_date
        return MessageContent(
            id=uid,
            message_id=envelope.message_id,
            subject=envelope.subject or PLACEHOLDER_SUBJECT,
            sender=envelope.sender or PLACEHOLDER_SENDER,
            date=as_aware(date) if date else utc_now(),
            seen=result.seen,
            body=MessageBody(text=parsed.text or "", html=parsed.html or ""),
        )


# ── Search ─────────────────────────────────────────────────────────────────────


class MessageSearchEngine:
    """Runs UNSEEN/ALL searches and resolves the newest candidates into summaries."""

    def __init__(
        self,
        session: SessionManager,
        fetcher: MessageFetcher,
        mailbox: str = DEFAULT_MAILBOX,
    ) -> None:
        self._session = session
        self._fetcher = fetcher
        self._mailbox = mailbox

    async def list_unread(self) -> list[MessageSummary]:
        """Return up to 10 unread messages, newest first."""
        summaries: list[MessageSummary] = []
        try:
            await self._session.ensure_authenticated()
            transport = self._session.transport
            logger.info("Searching for unread messages in %s", self._mailbox)
            async with with_mailbox_lock(transport, self._mailbox):
                uids = _uid_order(await transport.search(unseen=True))
                if not uids:
                    logger.info("No unread messages found")
                    return []

                window = uids[-UNREAD_LISTING_CAP:]
                if len(uids) > len(window):
                    logger.info(
                        "%d unread messages found, showing the %d most recent",
                        len(uids),
                        len(window),
                    )
                else:
                    logger.info("%d unread messages found", len(uids))

                for uid in window:
                    summary = await self._fetcher.read_summary(uid)
                    if summary is not None:
                        summaries.append(summary)
        except Exception as exc:
            logger.error("list_unread_emails failed: %s", exc)
            raise

        return sort_newest_first(summaries)

    async def list_filtered(self, search_filter: SearchFilter | None = None) -> list[MessageSummary]:
        """Return the newest ``limit`` messages matching the filter.

        ``unread_only`` is pushed into the IMAP search; sender matching runs on
        resolved headers.  With a sender filter, up to ``limit * 3`` recent
        candidates are considered; resolution stops once ``limit`` matches
        have been collected.
        """
        search_filter = search_filter or SearchFilter()
        limit = search_filter.limit
        senders = search_filter.from_addresses
        window_size = limit * SENDER_FILTER_OVERFETCH if senders else limit

        matched: list[MessageSummary] = []
        try:
            await self._session.ensure_authenticated()
            transport = self._session.transport
            async with with_mailbox_lock(transport, self._mailbox):
                uids = _uid_order(await transport.search(unseen=search_filter.unread_only))
                if not uids:
                    logger.info("No messages match the search")
                    return []

                candidates = uids[-window_size:]
                logger.info(
                    "%d messages found, resolving up to %d candidates",
                    len(uids),
                    len(candidates),
                )
                for uid in reversed(candidates):
                    summary = await self._fetcher.read_summary(uid)
                    if summary is None or not matches_sender(summary, senders):
                        continue
                    matched.append(summary)
                    if len(matched) >= limit:
                        break
        except Exception as exc:
            logger.error("list_emails failed: %s", exc)
            raise

        return truncate(sort_newest_first(matched), limit)


# ── Flags ──────────────────────────────────────────────────────────────────────


class FlagMutator:
    """The only component allowed to change message flags on the server."""

    def __init__(self, session: SessionManager, mailbox: str = DEFAULT_MAILBOX) -> None:
        self._session = session
        self._mailbox = mailbox

    async def mark_as_read(self, uid: str) -> None:
        """Set ``\\Seen`` on exactly one message."""
        try:
            await self._session.ensure_authenticated()
            transport = self._session.transport
            async with with_mailbox_lock(transport, self._mailbox):
                await transport.message_flags_add(uid, [SEEN_FLAG])
        except Exception as exc:
            logger.error("mark_as_read failed for message %s: %s", uid, exc)
            raise
        logger.info("Marked message %s as read", uid)


# ── Provider ───────────────────────────────────────────────────────────────────


class ImapEmailProvider:
    """``EmailProvider`` implementation over a single IMAP session.

    Usage::

        provider = ImapEmailProvider()
        provider.configure("imap.gmail.com", 993, "me@gmail.com", "app-password")
        await provider.connect()
        for summary in await provider.list_unread_emails():
            print(summary.subject)
        await provider.disconnect()
    """

    def __init__(
        self,
        transport_factory: TransportFactory | None = None,
        mailbox: str = DEFAULT_MAILBOX,
    ) -> None:
        self.session = SessionManager(transport_factory)
        self.fetcher = MessageFetcher(self.session, mailbox)
        self.search = MessageSearchEngine(self.session, self.fetcher, mailbox)
        self.flags = FlagMutator(self.session, mailbox)

    def configure(
        self,
        host: str,
        port: int,
        user: str,
        secret: str,
        *,
        secure: bool = True,
    ) -> None:
        self.session.configure(
            EmailConfig(host=host, port=port, user=user, secret=secret, secure=secure)
        )

    async def connect(self) -> None:
        await self.session.connect()

    async def disconnect(self) -> None:
        await self.session.disconnect()

    async def list_unread_emails(self) -> list[MessageSummary]:
        return await self.search.list_unread()

    async def list_emails(self, search_filter: SearchFilter | None = None) -> list[MessageSummary]:
        return await self.search.list_filtered(search_filter)

    async def get_email_content(self, id: str) -> MessageContent:
        return await self.fetcher.fetch_full_content(id)

    async def mark_as_read(self, id: str) -> None:
        await self.flags.mark_as_read(id)
