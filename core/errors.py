"""Errors raised by back-office operations before anything reaches the backend."""

from typing import List


class ValidationFailure(Exception):
    """Client-side validation rejected an operation; nothing was sent."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Validation failed")
