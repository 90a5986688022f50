"""Error taxonomy shared by the engine, the LLM client and the API layer."""

from __future__ import annotations


class ParseError(ValueError):
    """Raw measurement input could not be turned into a dataset."""

    def __init__(self, message: str, field: str = "", row: int | None = None) -> None:
        super().__init__(message)
        self.field = field
        self.row = row


class MissingColumn(ParseError):
    def __init__(self, field: str, row: int | None = None) -> None:
        where = f" (row {row})" if row is not None else ""
        super().__init__(f"Missing required column '{field}'{where}", field=field, row=row)


class InvalidValue(ParseError):
    def __init__(self, field: str, value: object = None, row: int | None = None, reason: str = "") -> None:
        where = f" in row {row}" if row is not None else ""
        detail = reason or f"expected a number, got {value!r}"
        super().__init__(f"Invalid value for '{field}'{where}: {detail}", field=field, row=row)
        self.value = value


class WrongDatasetShape(ParseError):
    pass


class CompletionError(RuntimeError):
    """The completion service did not produce a usable answer for this turn."""


class NotConfigured(CompletionError):
    pass


class Unavailable(CompletionError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class Unparseable(CompletionError):
    pass


class RetrievalError(RuntimeError):
    """Saved runs could not be read. Callers treat this as a soft failure."""


class SessionError(RuntimeError):
    pass


class SessionBusyError(SessionError):
    pass


class SessionClosedError(SessionError):
    pass


class NothingToCommitError(SessionError):
    pass
