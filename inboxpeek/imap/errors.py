"""Exception taxonomy for the IMAP core and connection-failure classification."""

from enum import Enum


class ConnectionFailureKind(str, Enum):
    """Diagnostic category of a failed connect. Never used to recover."""

    AUTHENTICATION = "authentication"
    NETWORK = "network"
    UNCLASSIFIED = "unclassified"


class MailError(Exception):
    """Base class for all inboxpeek mail errors."""


class NotConfiguredError(MailError):
    """Raised when a connection is needed before ``configure`` was called."""

    def __init__(self, message: str = "Mail session is not configured; call configure() first") -> None:
        super().__init__(message)


class MailConnectionError(MailError):
    """Raised when the transport cannot connect or log in."""

    def __init__(
        self,
        message: str,
        kind: ConnectionFailureKind = ConnectionFailureKind.UNCLASSIFIED,
    ) -> None:
        super().__init__(message)
        self.kind = kind


class SourceUnavailableError(MailError):
    """Raised when a full-content fetch returns no raw message source."""

    def __init__(self, uid: str) -> None:
        super().__init__(f"Raw source unavailable for message {uid}")
        self.uid = uid


class ProtocolOperationError(MailError):
    """Raised when SELECT, SEARCH, FETCH or STORE fails at the protocol layer."""

    def __init__(self, operation: str, detail: str) -> None:
        super().__init__(f"IMAP {operation} failed: {detail}")
        self.operation = operation
        self.detail = detail


class ParseError(MailError):
    """Raised when a raw message source cannot be parsed."""


def classify_connection_error(exc: BaseException) -> ConnectionFailureKind:
    """Guess why a connect failed from the error text.

    Substring sniffing, case-insensitive: "auth" wins over "connect"/"network".
    Kept in one place so a structured classifier can replace it later.
    """
    message = str(exc).lower()
    if "auth" in message:
        return ConnectionFailureKind.AUTHENTICATION
    if "connect" in message or "network" in message:
        return ConnectionFailureKind.NETWORK
    return ConnectionFailureKind.UNCLASSIFIED
