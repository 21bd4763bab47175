"""Exceptions raised by the lineage core."""


class FormatError(ValueError):
    """Raised when GEDCOM text cannot be tokenized into records at all."""

    def __init__(self, message: str, line_number: int | None = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"Line {line_number}: {message}"
        super().__init__(message)
