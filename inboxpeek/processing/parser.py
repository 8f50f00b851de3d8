"""RFC 822 parsing — header metadata, text/HTML bodies, and HTML-to-text rendering."""

import logging
from dataclasses import dataclass
from datetime import datetime
from email import policy
from email.message import EmailMessage
from email.parser import BytesHeaderParser, BytesParser
from email.utils import getaddresses, parsedate_to_datetime
from html.parser import HTMLParser

from inboxpeek.imap.errors import ParseError
from inboxpeek.imap.types import Envelope, as_aware

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedMessage:
    """A raw source split into header metadata and the two body renditions.

    ``text`` and ``html`` are empty strings when the source has no such part.
    """

    envelope: Envelope
    text: str = ""
    html: str = ""


# ── Headers ────────────────────────────────────────────────────────────────────


def _clean(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _first_address(value: object) -> str | None:
    """Return the bare address of the first mailbox in a From header."""
    raw = _clean(value)
    if raw is None:
        return None
    for _name, addr in getaddresses([raw]):
        if addr:
            return addr
    return raw


def _parse_date(value: object) -> datetime | None:
    raw = _clean(value)
    if raw is None:
        return None
    try:
        return as_aware(parsedate_to_datetime(raw))
    except (TypeError, ValueError, IndexError):
        logger.debug("Unparseable Date header %r", raw)
        return None


def _envelope_from(msg: EmailMessage) -> Envelope:
    return Envelope(
        message_id=_clean(msg.get("Message-ID")),
        subject=_clean(msg.get("Subject")),
        sender=_first_address(msg.get("From")),
        date=_parse_date(msg.get("Date")),
    )


def parse_headers(raw: bytes) -> Envelope:
    """Parse a header block (or a full source) into an Envelope.

    Missing or malformed fields come back as None; callers apply defaults.
    """
    msg = BytesHeaderParser(policy=policy.default).parsebytes(raw)
    return _envelope_from(msg)  # type: ignore[arg-type]


# ── Bodies ─────────────────────────────────────────────────────────────────────


def _part_text(part: EmailMessage) -> str:
    try:
        content = part.get_content()
    except (LookupError, UnicodeDecodeError):
        # Unknown or lying charset: decode the transfer-encoded payload by hand.
        payload = part.get_payload(decode=True) or b""
        content = payload.decode("utf-8", errors="replace")
    return content.strip() if isinstance(content, str) else ""


def parse_source(raw: bytes) -> ParsedMessage:
    """Parse a full RFC 822 source into headers plus text and HTML bodies.

    Only the first non-attachment text/plain and text/html parts are used;
    the rest of the MIME tree is ignored.

    Raises:
        ParseError: if the source cannot be parsed at all.
    """
    try:
        msg = BytesParser(policy=policy.default).parsebytes(raw)
        envelope = _envelope_from(msg)  # type: ignore[arg-type]
        text = html = ""
        for part in msg.walk():
            if part.is_multipart() or part.is_attachment():
                continue
            ctype = part.get_content_type()
            if ctype == "text/plain" and not text:
                text = _part_text(part)
            elif ctype == "text/html" and not html:
                html = _part_text(part)
    except Exception as exc:
        raise ParseError(f"Could not parse message source: {exc}") from exc

    return ParsedMessage(envelope=envelope, text=text, html=html)


# ── HTML rendering ─────────────────────────────────────────────────────────────


class _HTMLStripper(HTMLParser):
    """Collects visible text nodes, skipping script and style content."""

    _SKIP = {"script", "style", "head"}

    def __init__(self) -> None:
        super().__init__()
        self._parts: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: list) -> None:
        if tag in self._SKIP:
            self._skip_depth += 1
        elif tag in ("br", "p", "div", "tr", "li") and self._parts:
            self._parts.append("\n")

    def handle_endtag(self, tag: str) -> None:
        if tag in self._SKIP and self._skip_depth:
            self._skip_depth -= 1

    def handle_data(self, data: str) -> None:
        if self._skip_depth:
            return
        text = data.strip()
        if text:
            self._parts.append(text)

    def get_text(self) -> str:
        lines = " ".join(self._parts).split("\n")
        return "\n".join(line.strip() for line in lines if line.strip())


def html_to_text(html: str) -> str:
    """Return a readable plain-text rendering of an HTML body."""
    if "<" not in html:
        return html.strip()
    stripper = _HTMLStripper()
    try:
        stripper.feed(html)
        stripper.close()
    except Exception:  # noqa: BLE001
        return html
    return stripper.get_text()
