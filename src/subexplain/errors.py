# src/subexplain/errors.py

"""
Exception types raised by :mod:`subexplain`.

Absent selections and non-finite scores are *not* errors; they resolve to an
empty explanation. The classes below cover the cases that must fail loudly.
"""

from __future__ import annotations

__all__ = [
    "SubexplainError",
    "UnknownFieldError",
    "InvalidFilterError",
    "ScorerError",
]


class SubexplainError(Exception):
    """Base class for all package errors."""


class UnknownFieldError(SubexplainError, KeyError):
    """A predicate or measure references a field id that is not known."""

    def __init__(self, fid: str, where: str = "field metadata"):
        self.fid = fid
        self.where = where
        super().__init__(f"unknown field {fid!r} (not present in {where})")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable
        return self.args[0]


class InvalidFilterError(SubexplainError, ValueError):
    """A filter payload could not be interpreted."""


class ScorerError(SubexplainError, RuntimeError):
    """The external scoring service could not be reached or answered badly."""
