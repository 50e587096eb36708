# src/subexplain/workbench/diff_modes.py

from __future__ import annotations
from enum import Enum
import logging
from typing import Optional, Union

from subexplain.forms.predicates import Filter
from subexplain.forms.subspace import EMPTY, Subspace, Subspaces

"""
Turn a single user-drawn filter into the (foreground, background) pair.

The user only ever draws one filter at a time. The diff mode decides what
the other side of the comparison is:

- ``full``      foreground = [f], background = [] (every row)
- ``other``     foreground = [f], background = ¬[f]
- ``two-group`` only the group selected by ``editing_group_idx`` is replaced

Examples
--------
>>> from subexplain.forms.predicates import IN
>>> from subexplain.workbench.diff_modes import resolve
>>> fg, bg = resolve("other", IN("region", ["west"]), 1, None)
>>> bg.reverted
True
>>> resolve("full", None, 1, None) is None
True
"""

__all__ = [
    "DiffMode",
    "resolve",
    "switch_mode",
]

logger = logging.getLogger(__name__)


class DiffMode(str, Enum):
    FULL = "full"
    OTHER = "other"
    TWO_GROUP = "two-group"

    @classmethod
    def parse(cls, value: Union[str, "DiffMode"]) -> "DiffMode":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(
                f"unknown diff mode {value!r}; expected one of {[m.value for m in cls]}"
            ) from None


def resolve(
    diff_mode: Union[str, DiffMode],
    incoming: Optional[Filter],
    editing_group_idx: int,
    previous: Optional[Subspaces],
) -> Optional[Subspaces]:
    """
    Derive the new subspace pair after the user draws (or clears) a filter.

    Parameters
    ----------
    diff_mode : {"full", "other", "two-group"}
    incoming : Filter or None
        The filter just drawn; ``None`` clears the selection.
    editing_group_idx : {1, 2}
        Group being edited in ``two-group`` mode (1 = foreground).
    previous : (Subspace, Subspace) or None
        Current pair; only consulted in ``two-group`` mode.

    Returns
    -------
    (Subspace, Subspace) or None
        ``None`` means no comparison is active.
    """
    mode = DiffMode.parse(diff_mode)

    if mode is DiffMode.FULL:
        if incoming is None:
            return None
        return Subspace((incoming,)), EMPTY

    if mode is DiffMode.OTHER:
        if incoming is None:
            return None
        return Subspace((incoming,)), Subspace((incoming,), reverted=True)

    if editing_group_idx not in (1, 2):
        raise ValueError(f"editing_group_idx must be 1 or 2, got {editing_group_idx!r}")
    groups = list(previous) if previous is not None else [EMPTY, EMPTY]
    groups[editing_group_idx - 1] = Subspace((incoming,) if incoming is not None else ())
    logger.debug("two-group edit of group %d -> %r", editing_group_idx, groups[editing_group_idx - 1])
    return groups[0], groups[1]


def switch_mode(previous: Optional[Subspaces]) -> "tuple[Optional[Subspaces], int]":
    """
    State transition applied whenever the diff mode itself changes.

    The background is reset to empty predicates and the editing group goes
    back to the foreground, so nothing derived under the old mode survives.
    An inactive comparison (``None``) stays inactive.

    >>> switch_mode(None)
    (None, 1)
    """
    if previous is None:
        return None, 1
    return (previous[0], EMPTY), 1
