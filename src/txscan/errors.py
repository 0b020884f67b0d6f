"""Exception types raised by txscan."""


class TxscanError(Exception):
    """Base class for txscan errors."""


class InvalidSessionIdError(TxscanError, ValueError):
    """Session id contains characters outside [A-Za-z0-9_-]."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f'Invalid session id: {session_id!r} (must be alphanumeric, dash or underscore)')


class DuplicateExtractorError(TxscanError, ValueError):
    """An extractor with the same id is already registered."""

    def __init__(self, extractor_id: str):
        self.extractor_id = extractor_id
        super().__init__(f"Extractor '{extractor_id}' is already registered")
