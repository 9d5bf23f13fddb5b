# guess_the_lines/core/errors.py
from __future__ import annotations


class GuessTheLinesError(Exception):
    """Base class for errors raised by this package"""
    pass


class InvalidInput(GuessTheLinesError):
    """Input is structurally wrong (e.g. the odds feed is not a list)"""
    pass


class UpstreamFetchError(GuessTheLinesError):
    """The odds provider is unreachable, returned non-2xx, or returned bad JSON"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StoreError(GuessTheLinesError):
    """The pick store rejected a read or write"""
    pass
