# src/subexplain/forms/subspace.py

"""
Subspaces: conjunctions of field filters, optionally complemented.

A :class:`Subspace` is the unit the scoring service compares. Its row mask is
the AND of its filters (all rows when there are none); when ``reverted`` is
set the mask is negated as a whole. Negating the evaluated mask (rather than
each filter) keeps a reverted subspace equal to the index complement of its
un-reverted twin for every filter type, including rows with missing values.

Examples
--------
>>> import pandas as pd
>>> from subexplain.forms.predicates import IN
>>> from subexplain.forms.subspace import Subspace
>>> df = pd.DataFrame({"region": ["west", "east", "west", None]})
>>> fg = Subspace((IN("region", ["west"]),))
>>> fg.indices(df)
[0, 2]
>>> fg.complement().indices(df)
[1, 3]
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
import numpy as np
import pandas as pd

from .predicates import Filter, Predicate, conjunction, filter_from_dict

__all__ = [
    "Subspace",
    "Subspaces",
    "EMPTY",
]


@dataclass(frozen=True)
class Subspace:
    """
    Ordered, conjunctive collection of filters plus a complement flag.

    Parameters
    ----------
    predicates : tuple[Filter, ...]
        Filters that must all hold. Empty means "every row".
    reverted : bool, default False
        If True, the subspace is the complement of the conjunction.
    """
    predicates: Tuple[Filter, ...] = field(default_factory=tuple)
    reverted: bool = False

    def __post_init__(self):
        if not isinstance(self.predicates, tuple):
            object.__setattr__(self, "predicates", tuple(self.predicates))

    # ---- evaluation ----

    def as_predicate(self) -> Predicate:
        P = conjunction(self.predicates)
        return ~P if self.reverted else P

    def mask(self, df: pd.DataFrame) -> np.ndarray:
        """Boolean NumPy mask of shape ``(len(df),)``."""
        m = conjunction(self.predicates).mask(df).to_numpy(dtype=bool)
        return ~m if self.reverted else m

    def indices(self, df: pd.DataFrame) -> List[int]:
        """0-based row positions (not index labels) matching the subspace."""
        return np.flatnonzero(self.mask(df)).tolist()

    # ---- structure ----

    @property
    def is_empty(self) -> bool:
        return not self.predicates

    def fields(self) -> List[str]:
        """Field ids referenced by the filters, first-seen order, no repeats."""
        return list(dict.fromkeys(p.fid for p in self.predicates))

    def complement(self) -> "Subspace":
        return replace(self, reverted=not self.reverted)

    # ---- wire format ----

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"predicates": [p.to_dict() for p in self.predicates]}
        if self.reverted:
            out["reverted"] = True
        return out

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Subspace":
        return cls(
            tuple(filter_from_dict(p) for p in d.get("predicates") or ()),
            bool(d.get("reverted", False)),
        )

    @classmethod
    def of(cls, *filters: Union[Filter, Mapping[str, Any]], reverted: bool = False) -> "Subspace":
        return cls(tuple(filter_from_dict(f) for f in filters), reverted)

    def __repr__(self) -> str:
        body = " ∧ ".join(repr(p) for p in self.predicates) or "TRUE"
        return f"¬[{body}]" if self.reverted else f"[{body}]"


EMPTY = Subspace()

# (foreground, background)
Subspaces = Tuple[Subspace, Subspace]
