# src/subexplain/workbench/membership.py

from __future__ import annotations
import logging
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union
import numpy as np
import pandas as pd

from subexplain.forms.subspace import Subspaces

"""
Row-membership evaluation for a subspace pair.

All masks are boolean NumPy arrays of shape ``(len(rows),)``; returned index
lists are 0-based row positions in row order. An empty sample has no
columns to evaluate against, so every side of it is empty.

Examples
--------
>>> import pandas as pd
>>> from subexplain.forms.predicates import IN
>>> from subexplain.forms.subspace import Subspace, EMPTY
>>> from subexplain.workbench.membership import membership
>>> df = pd.DataFrame({"k": ["a", "b", "a", "c"]})
>>> membership(df, (Subspace((IN("k", ["a"]),)), EMPTY), "other")
([0, 2], [1, 3])
"""

__all__ = [
    "as_frame",
    "membership_masks",
    "membership",
    "to_indices",
]

logger = logging.getLogger(__name__)

Rows = Union[pd.DataFrame, Sequence[Mapping[str, Any]]]


def as_frame(rows: Rows) -> pd.DataFrame:
    """
    Normalize a row sequence to a DataFrame with a ``RangeIndex``.

    DataFrames with a different index are re-indexed positionally (a copy);
    DataFrames already on a ``RangeIndex(0..n)`` are returned as-is.
    """
    if isinstance(rows, pd.DataFrame):
        if isinstance(rows.index, pd.RangeIndex) and rows.index.start == 0 and rows.index.step == 1:
            return rows
        return rows.reset_index(drop=True)
    return pd.DataFrame.from_records(list(rows))


def to_indices(mask: np.ndarray) -> List[int]:
    return np.flatnonzero(mask).tolist()


def membership_masks(
    rows: Rows,
    subspaces: Optional[Subspaces],
    diff_mode: str,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Boolean masks for the foreground and background sides.

    The ``other`` side is the negation of the foreground mask, computed in one
    pass; :meth:`Subspace.mask` negates the same conjunction for reverted
    subspaces, so both routes give identical rows.
    """
    df = as_frame(rows)
    n = len(df)
    if subspaces is None or n == 0:
        empty = np.zeros(n, dtype=bool)
        return empty, empty.copy()

    fg, bg = subspaces
    mask_a = fg.mask(df)
    if diff_mode == "two-group":
        mask_b = bg.mask(df)
    elif diff_mode == "full":
        mask_b = np.ones(n, dtype=bool)
    else:
        mask_b = ~mask_a
    return mask_a, mask_b


def membership(
    rows: Rows,
    subspaces: Optional[Subspaces],
    diff_mode: str,
) -> Tuple[List[int], List[int]]:
    """
    Row positions matching each side of the comparison.

    Parameters
    ----------
    rows : DataFrame or sequence of mappings
    subspaces : (Subspace, Subspace) or None
        ``None`` yields two empty lists.
    diff_mode : str
        ``two-group`` evaluates the background independently, ``full`` takes
        every row, anything else takes the complement of the foreground.

    Returns
    -------
    (list[int], list[int])
    """
    if subspaces is None:
        return [], []
    mask_a, mask_b = membership_masks(rows, subspaces, diff_mode)
    indices_a, indices_b = to_indices(mask_a), to_indices(mask_b)
    logger.debug("membership[%s]: |A|=%d |B|=%d of %d rows", diff_mode, len(indices_a), len(indices_b), len(mask_a))
    return indices_a, indices_b
