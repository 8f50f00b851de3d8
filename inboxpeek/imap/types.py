"""Data types shared across the IMAP session, fetch and shaping modules."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone

PLACEHOLDER_SUBJECT = "(no subject)"
PLACEHOLDER_SENDER = "(unknown sender)"

#: Default page size for listings, and the hard cap for unread listings.
DEFAULT_LIMIT = 10

DEFAULT_MAILBOX = "INBOX"
SEEN_FLAG = "\\Seen"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: datetime) -> datetime:
    """Return value as a timezone-aware datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ── Configuration ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class EmailConfig:
    """Connection parameters for one IMAP endpoint.

    Immutable: a new value is built for every ``configure`` call instead of
    mutating shared credentials in place.
    """

    host: str
    user: str
    secret: str = field(repr=False)
    port: int = 993
    secure: bool = True

    def is_valid(self) -> bool:
        """True when host, user and secret are all non-empty."""
        return bool(self.host and self.user and self.secret)

    def validate(self) -> None:
        """Raise ValueError if the configuration cannot be used to connect."""
        if not self.is_valid():
            raise ValueError(
                "Email configuration is incomplete: host, user and password are required"
            )

    @classmethod
    def from_env(cls) -> EmailConfig:
        """Build EmailConfig from EMAIL_* environment variables."""
        try:
            port = int(os.environ.get("EMAIL_PORT", "993"))
        except ValueError:
            port = 993
        return cls(
            host=os.environ.get("EMAIL_HOST", ""),
            user=os.environ.get("EMAIL_USER", ""),
            secret=os.environ.get("EMAIL_PASS", ""),
            port=port or 993,
            secure=os.environ.get("EMAIL_SECURE", "true").lower() == "true",
        )


# ── Transport records ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Envelope:
    """Header metadata for one message, as returned by a header-only fetch."""

    message_id: str | None = None
    subject: str | None = None
    sender: str | None = None
    date: datetime | None = None


@dataclass(frozen=True)
class FetchResult:
    """Everything one UID FETCH returned for a single message.

    ``envelope`` is None when the server sent no header data, ``source`` is
    None unless the full RFC 822 source was requested and delivered.
    """

    uid: str
    envelope: Envelope | None = None
    internal_date: datetime | None = None
    flags: tuple[str, ...] | None = None
    source: bytes | None = None

    @property
    def seen(self) -> bool | None:
        if self.flags is None:
            return None
        return SEEN_FLAG in self.flags


# ── Messages ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class MessageSummary:
    """Lightweight listing record.

    ``id`` is the mailbox UID and is only stable within one session;
    ``message_id`` is the globally unique Message-ID header when present.
    """

    id: str
    subject: str = PLACEHOLDER_SUBJECT
    sender: str = PLACEHOLDER_SENDER
    date: datetime = field(default_factory=utc_now)
    message_id: str | None = None
    seen: bool | None = None


@dataclass(frozen=True)
class MessageBody:
    text: str = ""
    html: str = ""


@dataclass(frozen=True)
class MessageContent(MessageSummary):
    """Full record: a summary plus the parsed text and HTML bodies."""

    body: MessageBody = field(default_factory=MessageBody)


@dataclass(frozen=True)
class SearchFilter:
    """Options for ``list_emails``.

    A single string in ``from_addresses`` is taken as one substring.  A
    non-positive ``limit`` falls back to DEFAULT_LIMIT.
    """

    unread_only: bool = False
    from_addresses: tuple[str, ...] = ()
    limit: int = DEFAULT_LIMIT

    def __post_init__(self) -> None:
        addresses = self.from_addresses
        if isinstance(addresses, str):
            addresses = (addresses,)
        object.__setattr__(self, "from_addresses", tuple(addresses))
        if not isinstance(self.limit, int) or self.limit <= 0:
            object.__setattr__(self, "limit", DEFAULT_LIMIT)
