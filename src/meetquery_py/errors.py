from __future__ import annotations


class MeetQueryError(Exception):
    pass


class ValidationError(MeetQueryError):
    pass


class TransportError(MeetQueryError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


class NonUniqueIdentifierError(MeetQueryError):
    """Raised when the configured key attributes cannot tell two items apart."""

    def __init__(self, *, identifier: str, attributes: tuple[str, ...], reason: str) -> None:
        super().__init__(f"{reason} (identifier={identifier!r}, attributes={list(attributes)})")
        self.identifier = identifier
        self.attributes = attributes
        self.reason = reason
