# src/subexplain/forms/predicates.py

"""
DataFrame-agnostic filters F(df) -> boolean masks.

- Composable boolean logic: AND (&), OR (|), NOT (~)
- Field filters over a single column: categorical set membership and closed ranges
- Conversion to and from the JSON wire format used by the scoring service

Examples
--------
Basic composition:

>>> import pandas as pd
>>> from subexplain.forms.predicates import SetFilter, RangeFilter
>>> df = pd.DataFrame({"region": ["west", "east", "west"], "units": [3, 8, 12]})
>>> F = SetFilter("region", ["west"]) & ~RangeFilter("units", 10, 20)
>>> F.mask(df).tolist()
[True, False, False]
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union
import numpy as np
import pandas as pd

from subexplain.errors import InvalidFilterError, UnknownFieldError

__all__ = [
    "Predicate",
    "AndPred",
    "OrPred",
    "NotPred",
    "TruePred",
    "TRUE",
    "Filter",
    "SetFilter",
    "RangeFilter",
    "conjunction",
    "filter_from_dict",
    "IN",
    "BETWEEN",
]


# =========================
# Internal helpers
# =========================

def _as_bool_series(arr: Any, index: pd.Index) -> pd.Series:
    """
    Normalize any array-like to a boolean Series aligned to a given index.

    Examples
    --------
    >>> import pandas as pd
    >>> from subexplain.forms.predicates import _as_bool_series
    >>> _as_bool_series([1, 0, 2], pd.RangeIndex(3)).tolist()
    [True, False, True]
    """
    if isinstance(arr, pd.Series):
        if arr.dtype != bool:
            arr = arr.fillna(False).astype(bool)
        return arr.reindex(index, fill_value=False)
    return pd.Series(np.asarray(arr, dtype=bool), index=index)


def _column(df: pd.DataFrame, fid: str) -> pd.Series:
    if fid not in df.columns:
        raise UnknownFieldError(fid, where="dataset columns")
    return df[fid]


# =========================
# Base predicate + combinators
# =========================

class Predicate:
    """
    Base class for predicates producing boolean masks over a DataFrame.

    Predicates are composable with bitwise operators:
    - `&` (AND) yields :class:`AndPred`
    - `|` (OR) yields :class:`OrPred`
    - `~` (NOT) yields :class:`NotPred`

    Methods
    -------
    mask(df) : pd.Series
        Return a boolean Series aligned to `df.index`.
    """
    name: str = "Predicate"

    def mask(self, df: pd.DataFrame) -> pd.Series:
        """Return a boolean Series aligned to `df.index`. Subclasses must implement."""
        raise NotImplementedError

    def __and__(self, other: "Predicate") -> "Predicate":
        return AndPred(self, other)

    def __or__(self, other: "Predicate") -> "Predicate":
        return OrPred(self, other)

    def __invert__(self) -> "Predicate":
        return NotPred(self)

    def __repr__(self) -> str:
        return getattr(self, "name", self.__class__.__name__)


@dataclass(frozen=True, repr=False)
class AndPred(Predicate):
    """Logical conjunction of two predicates."""
    a: Predicate
    b: Predicate
    name: str = "F_and"

    def mask(self, df: pd.DataFrame) -> pd.Series:
        return _as_bool_series(self.a.mask(df) & self.b.mask(df), df.index)

    def __repr__(self) -> str:
        return f"({self.a!r} ∧ {self.b!r})"


@dataclass(frozen=True, repr=False)
class OrPred(Predicate):
    """Logical disjunction of two predicates."""
    a: Predicate
    b: Predicate
    name: str = "F_or"

    def mask(self, df: pd.DataFrame) -> pd.Series:
        return _as_bool_series(self.a.mask(df) | self.b.mask(df), df.index)

    def __repr__(self) -> str:
        return f"({self.a!r} ∨ {self.b!r})"


@dataclass(frozen=True, repr=False)
class NotPred(Predicate):
    """
    Logical negation of a predicate.

    The negation is taken on the evaluated mask, so rows the inner predicate
    rejects because of missing values are *accepted* here.
    """
    a: Predicate
    name: str = "F_not"

    def mask(self, df: pd.DataFrame) -> pd.Series:
        return _as_bool_series(~self.a.mask(df), df.index)

    def __repr__(self) -> str:
        return f"(~{self.a!r})"


@dataclass(frozen=True, repr=False)
class TruePred(Predicate):
    """Predicate accepting every row; the identity of :func:`conjunction`."""
    name: str = "TRUE"

    def mask(self, df: pd.DataFrame) -> pd.Series:
        return pd.Series(np.ones(len(df), dtype=bool), index=df.index)


TRUE = TruePred()


# =========================
# Field filters
# =========================

class Filter(Predicate):
    """
    A predicate constraining a single field, as drawn by a user on a chart.

    Subclasses carry the field id in ``fid`` and know how to serialize
    themselves with :meth:`to_dict`.
    """
    fid: str
    kind: ClassVar[str]

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True, repr=False)
class SetFilter(Filter):
    """
    Membership filter: value of `fid` is one of `values`.

    Missing values never match, even if ``None``/NaN is listed in `values`.

    Examples
    --------
    >>> import pandas as pd
    >>> from subexplain.forms.predicates import SetFilter
    >>> df = pd.DataFrame({"k": ["a", "b", None, "c"]})
    >>> SetFilter("k", ["a", "c", None]).mask(df).tolist()
    [True, False, False, True]
    """
    fid: str
    values: Tuple[Any, ...] = field(default_factory=tuple)
    name: str = "SetFilter"
    kind: ClassVar[str] = "set"

    def __post_init__(self):
        if not isinstance(self.values, tuple):
            object.__setattr__(self, "values", tuple(self.values))

    def mask(self, df: pd.DataFrame) -> pd.Series:
        s = _column(df, self.fid)
        out = s.isin(set(self.values)) & s.notna()
        return _as_bool_series(out, df.index)

    def to_dict(self) -> Dict[str, Any]:
        return {"fid": self.fid, "type": self.kind, "values": list(self.values)}

    def __repr__(self) -> str:
        vals = list(self.values)
        preview = vals if len(vals) <= 5 else vals[:5] + ["…"]
        return f"({self.fid} in {preview})"


@dataclass(frozen=True, repr=False)
class RangeFilter(Filter):
    """
    Closed range filter: ``low <= x <= high`` on field `fid`.

    Non-numeric cells are coerced with :func:`pandas.to_numeric` and treated
    as missing when that fails; missing values never match.

    Examples
    --------
    >>> import pandas as pd
    >>> from subexplain.forms.predicates import RangeFilter
    >>> df = pd.DataFrame({"x": [0, 1, 2, 3, None]})
    >>> RangeFilter("x", 1, 2).mask(df).tolist()
    [False, True, True, False, False]
    """
    fid: str
    low: float
    high: float
    name: str = "RangeFilter"
    kind: ClassVar[str] = "range"

    def __post_init__(self):
        for bound in (self.low, self.high):
            if isinstance(bound, bool) or not pd.api.types.is_number(bound):
                raise InvalidFilterError(
                    f"range filter on {self.fid!r} needs numeric bounds, got {bound!r}"
                )
        if self.low > self.high:
            raise InvalidFilterError(
                f"range filter on {self.fid!r} has low > high ({self.low} > {self.high})"
            )

    def mask(self, df: pd.DataFrame) -> pd.Series:
        s = _column(df, self.fid)
        if not pd.api.types.is_numeric_dtype(s):
            s = pd.to_numeric(s, errors="coerce")
        out = (s >= self.low) & (s <= self.high)
        return _as_bool_series(out, df.index)

    def to_dict(self) -> Dict[str, Any]:
        return {"fid": self.fid, "type": self.kind, "range": [self.low, self.high]}

    def __repr__(self) -> str:
        return f"({self.fid} in [{self.low!r}, {self.high!r}])"


# =========================
# Helpers
# =========================

def conjunction(preds: Sequence[Predicate]) -> Predicate:
    """
    Fold `preds` with AND. An empty sequence yields :data:`TRUE`.

    >>> import pandas as pd
    >>> conjunction([]).mask(pd.DataFrame({"x": [1, 2]})).tolist()
    [True, True]
    """
    out: Optional[Predicate] = None
    for p in preds:
        out = p if out is None else AndPred(out, p)
    return TRUE if out is None else out


def filter_from_dict(d: Union[Filter, Mapping[str, Any]]) -> Filter:
    """
    Build a :class:`Filter` from its wire representation.

    Accepts ``{"fid", "type": "set", "values"}`` and
    ``{"fid", "type": "range", "range": [lo, hi]}``. Filters pass through.

    Raises
    ------
    InvalidFilterError
        If the payload has no ``fid``, an unknown ``type`` or a malformed range.
    """
    if isinstance(d, Filter):
        return d
    try:
        fid = d["fid"]
        kind = d.get("type")
    except (KeyError, TypeError, AttributeError) as exc:
        raise InvalidFilterError(f"filter payload needs a 'fid': {d!r}") from exc

    if kind == SetFilter.kind:
        return SetFilter(fid, tuple(d.get("values") or ()))
    if kind == RangeFilter.kind:
        rng = d.get("range")
        if rng is None or len(rng) != 2:
            raise InvalidFilterError(f"range filter on {fid!r} needs [low, high], got {rng!r}")
        return RangeFilter(fid, rng[0], rng[1])
    raise InvalidFilterError(f"unknown filter type {kind!r} on field {fid!r}")


# =========================
# Handy shorthands (readable DSL)
# =========================

def IN(fid: str, values: Iterable[Any]) -> SetFilter:
    """Shorthand for :class:`SetFilter`."""
    return SetFilter(fid, tuple(values))


def BETWEEN(fid: str, lo: float, hi: float) -> RangeFilter:
    """Shorthand for :class:`RangeFilter`."""
    return RangeFilter(fid, lo, hi)
