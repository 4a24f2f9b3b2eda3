"""Exceptions raised inside the translation pipeline.

Expected failures (bad responses, truncation, cancellation) are reported as
result values; these exceptions mark contract violations and are caught at
phase boundaries.
"""


class TranslationError(Exception):
    """Base class for translation pipeline errors."""


class ResponseFormatError(TranslationError):
    """The backend returned text that is not a usable structured response."""


class PlaceholderMismatchError(TranslationError):
    """A translated template does not carry its canonical tokens exactly once."""


class MemoryStoreError(TranslationError):
    """The persistent translation memory store could not be read or written."""
