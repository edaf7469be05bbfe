"""
Exceptions Module
Errors raised by the Tally transport and report pipelines
"""

from .constants import TransportErrorKind


class TallyTransportError(Exception):
    """Failure talking to the Tally HTTP gateway"""

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def is_connection_error(self) -> bool:
        return self.kind in (TransportErrorKind.REFUSED, TransportErrorKind.RESET)

    def __repr__(self) -> str:
        return f"TallyTransportError(kind={self.kind!r}, message={self.message!r})"


class ReportError(Exception):
    """A report could not be produced from the Tally response"""
