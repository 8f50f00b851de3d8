"""Post-fetch shaping: newest-first ordering, sender filtering, truncation."""

from collections.abc import Iterable, Sequence
from typing import TypeVar

from inboxpeek.imap.types import MessageSummary, as_aware

M = TypeVar("M", bound=MessageSummary)


def sort_newest_first(messages: Iterable[M]) -> list[M]:
    """Stable sort by date, newest first. Ties keep their input order."""
    return sorted(messages, key=lambda m: as_aware(m.date), reverse=True)


def matches_sender(message: MessageSummary, substrings: Sequence[str]) -> bool:
    """True if the sender contains any substring, case-insensitively.

    An empty substring list matches every message.
    """
    if not substrings:
        return True
    sender = message.sender.lower()
    return any(s.lower() in sender for s in substrings)


def filter_by_sender(messages: Iterable[M], substrings: Sequence[str]) -> list[M]:
    """Keep messages whose sender matches any of ``substrings`` (OR semantics)."""
    return [m for m in messages if matches_sender(m, substrings)]


def truncate(messages: Sequence[M], limit: int) -> list[M]:
    """First ``limit`` messages. Apply after sorting and filtering, never before."""
    if limit <= 0:
        return []
    return list(messages[:limit])
