# src/subexplain/workbench/request.py

from __future__ import annotations
from dataclasses import dataclass, field
import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple
import numpy as np
import pandas as pd

from subexplain.forms.fields import CausalModel, FieldMeta, field_index, require_fields
from subexplain.forms.subspace import Subspace, Subspaces
from .config import AGGREGATIONS
from .membership import Rows, as_frame

"""
Assemble the payload sent to the external scoring service.

The request carries everything the scorer needs and nothing it has to look
up: the data sample, field metadata, the causal model, both subspaces and a
view projecting the main field (the single measure) over the fields the
foreground filters touch (the dimensions).
"""

__all__ = [
    "Measure",
    "View",
    "ExplainRequest",
    "fields_in_sight",
    "build_request",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Measure:
    fid: str
    op: str = "count"

    def to_dict(self) -> Dict[str, Any]:
        # "none" is unaggregated detail; the service expects null for it
        return {"fid": self.fid, "op": None if self.op == "none" else self.op}


@dataclass(frozen=True)
class View:
    dimensions: Tuple[str, ...]
    measures: Tuple[Measure, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dimensions": list(self.dimensions),
            "measures": [m.to_dict() for m in self.measures],
        }


@dataclass(frozen=True)
class ExplainRequest:
    """
    Immutable scoring request.

    Attributes
    ----------
    data : pd.DataFrame
        Dataset sample (positional index).
    fields : tuple[FieldMeta, ...]
    causal_model : CausalModel
    current, other : Subspace
        Foreground and background groups, verbatim.
    view : View
    """
    data: pd.DataFrame = field(repr=False, compare=False)
    fields: Tuple[FieldMeta, ...]
    causal_model: CausalModel
    current: Subspace
    other: Subspace
    view: View

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready body shared by every execution backend."""
        return {
            "data": _records(self.data),
            "fields": [f.to_dict() for f in self.fields],
            "causalModel": self.causal_model.to_dict(),
            "groups": {
                "current": self.current.to_dict(),
                "other": self.other.to_dict(),
            },
            "view": self.view.to_dict(),
        }


def _records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    # NaN/inf are not valid JSON; send them as null
    out = df.astype(object).where(pd.notna(df), None).to_dict(orient="records")
    for row in out:
        for k, v in row.items():
            if isinstance(v, (float, np.floating)) and not math.isfinite(v):
                row[k] = None
            elif isinstance(v, np.generic):
                row[k] = v.item()
    return out


def fields_in_sight(current: Subspace, main_fid: str) -> List[str]:
    """
    Fields referenced by the foreground filters, then the main field.

    First-seen order, no repeats.

    >>> from subexplain.forms.predicates import IN, BETWEEN
    >>> fields_in_sight(Subspace((IN("a", [1]), BETWEEN("b", 0, 1), IN("a", [2]))), "y")
    ['a', 'b', 'y']
    """
    return list(dict.fromkeys(current.fields() + [main_fid]))


def build_request(
    main_field: Optional[FieldMeta],
    aggregation: str,
    subspaces: Optional[Subspaces],
    dataset: Rows,
    field_metas: Sequence[FieldMeta],
    causal_model: Optional[CausalModel] = None,
) -> Optional[ExplainRequest]:
    """
    Build a scoring request, or ``None`` when there is nothing to explain.

    Parameters
    ----------
    main_field : FieldMeta or None
        Target field whose aggregate differs between the groups.
    aggregation : {"sum", "mean", "count", "none"}
        ``None`` is accepted as an alias of ``"none"``.
    subspaces : (Subspace, Subspace) or None
    dataset : DataFrame or sequence of mappings
    field_metas : sequence of FieldMeta
    causal_model : CausalModel, optional

    Returns
    -------
    ExplainRequest or None
        ``None`` if `subspaces`, `main_field` or the foreground is missing.

    Raises
    ------
    UnknownFieldError
        If the main field or any filter references a fid not in `field_metas`.
    ValueError
        If `aggregation` is not recognized.
    """
    if subspaces is None or main_field is None:
        return None
    current, other = subspaces
    if current is None:
        return None

    op = "none" if aggregation is None else aggregation
    if op not in AGGREGATIONS:
        raise ValueError(f"aggregation must be one of {AGGREGATIONS}, got {aggregation!r}")

    metas = field_index(field_metas)
    require_fields([main_field.fid], metas)
    require_fields(current.fields(), metas)
    if other is not None:
        require_fields(other.fields(), metas)

    in_sight = fields_in_sight(current, main_field.fid)
    view = View(
        dimensions=tuple(fid for fid in in_sight if fid != main_field.fid),
        measures=(Measure(main_field.fid, op),),
    )
    logger.debug("request view: dims=%s measure=%s(%s)", view.dimensions, op, main_field.fid)
    return ExplainRequest(
        data=as_frame(dataset),
        fields=tuple(field_metas),
        causal_model=causal_model or CausalModel(),
        current=current,
        other=other if other is not None else Subspace(),
        view=view,
    )
