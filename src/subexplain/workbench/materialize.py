# src/subexplain/workbench/materialize.py

from __future__ import annotations
from typing import Optional, Sequence
import numpy as np
import pandas as pd

from subexplain.forms.subspace import Subspaces
from .config import SELECTED_FLAG
from .membership import Rows, as_frame


def _position_mask(indices: Sequence[int], n: int) -> np.ndarray:
    m = np.zeros(n, dtype=bool)
    if len(indices):
        m[np.asarray(indices, dtype=np.intp)] = True
    return m


def materialize(
    rows: Rows,
    subspaces: Optional[Subspaces],
    indices_a: Sequence[int],
    indices_b: Sequence[int],
    *,
    flag: str = SELECTED_FLAG,
) -> pd.DataFrame:
    """
    Tag every row with its side of the comparison.

    Returns the rows untouched when `subspaces` is ``None``. Otherwise returns
    a copy with column `flag`: 1 for foreground rows, 2 for background rows
    not in the foreground, 0 for the rest.

    Examples
    --------
    >>> import pandas as pd
    >>> from subexplain.forms.subspace import EMPTY
    >>> df = pd.DataFrame({"x": [10, 20, 30, 40]})
    >>> materialize(df, (EMPTY, EMPTY), [1], [1, 2])["__selected__"].tolist()
    [0, 1, 2, 0]
    """
    df = as_frame(rows)
    if subspaces is None:
        return df
    n = len(df)
    in_a = _position_mask(indices_a, n)
    in_b = _position_mask(indices_b, n)
    out = df.copy()
    out[flag] = np.where(in_a, 1, np.where(in_b, 2, 0)).astype(np.int8)
    return out
