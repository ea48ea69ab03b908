"""
Statement Parser Exceptions

Row-level errors are collected into ParseResult metadata; batch-level errors
abort the parse and are raised to the caller.
"""


class StatementParserError(Exception):
    """Base class for all statement parsing errors."""


class RowError(StatementParserError):
    """A single row or line could not be turned into a transaction."""

    def __init__(self, message: str, line: int | None = None):
        super().__init__(message)
        self.line = line


class FieldMissingError(RowError):
    """A required field (date, description, amount) is absent on a non-empty row."""


class ValueParseError(RowError):
    """A date or amount is present but matches no recognized format."""


class StatementParseError(StatementParserError):
    """The input file could not be read at all."""


class PasswordRequiredError(StatementParserError):
    """The PDF is encrypted and no working password was supplied."""

    def __init__(self, message: str = "PDF protegido por senha", password_given: bool = False):
        super().__init__(message)
        self.password_given = password_given


class NoTransactionsFoundError(StatementParserError):
    """Extraction finished without producing a single transaction."""

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result


class CategorizationUnavailable(StatementParserError):
    """The remote categorizer failed; callers fall back to local patterns."""
