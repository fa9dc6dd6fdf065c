"""
Exception hierarchy for kb-rag.

Errors raised by an upstream search provider are never wrapped in these
classes; they reach the caller unchanged.
"""


class KbRagError(Exception):
    """Base class for kb-rag errors."""


class SearchResultError(KbRagError, ValueError):
    """A search hit is missing required fields or carries invalid values."""


class CorpusFormatError(KbRagError, ValueError):
    """A corpus snapshot line cannot be parsed into a record."""

    def __init__(self, message: str, line_number: int = 0):
        super().__init__(message)
        self.line_number = line_number
