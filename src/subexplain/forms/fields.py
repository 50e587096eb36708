# src/subexplain/forms/fields.py

"""
Reference data the engine reads but never owns: field metadata and the
causal model produced upstream by causal discovery.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from subexplain.errors import UnknownFieldError

__all__ = [
    "FieldMeta",
    "CausalModel",
    "field_index",
    "require_fields",
]

SEMANTIC_TYPES = ("quantitative", "nominal", "ordinal", "temporal")


@dataclass(frozen=True)
class FieldMeta:
    """
    Descriptor for one dataset column.

    Parameters
    ----------
    fid : str
        Column identifier used in rows and filters.
    name : str, optional
        Display name; :attr:`label` falls back to ``fid``.
    semantic_type : str, default "quantitative"
        One of ``quantitative``, ``nominal``, ``ordinal``, ``temporal``.
    """
    fid: str
    name: Optional[str] = None
    semantic_type: str = "quantitative"

    def __post_init__(self):
        if self.semantic_type not in SEMANTIC_TYPES:
            raise ValueError(
                f"semantic_type must be one of {SEMANTIC_TYPES}, got {self.semantic_type!r}"
            )

    @property
    def label(self) -> str:
        return self.name or self.fid

    def to_dict(self) -> Dict[str, Any]:
        return {"fid": self.fid, "name": self.name, "semanticType": self.semantic_type}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "FieldMeta":
        return cls(
            d["fid"],
            d.get("name"),
            d.get("semanticType", d.get("semantic_type", "quantitative")),
        )


@dataclass(frozen=True)
class CausalModel:
    """
    Opaque causal structure forwarded verbatim to the scorer.

    ``edges`` is the merged partial ancestral graph and ``func_deps`` the
    functional-dependency list; neither is interpreted here.
    """
    edges: Tuple[Any, ...] = field(default_factory=tuple)
    func_deps: Tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self):
        for name in ("edges", "func_deps"):
            v = getattr(self, name)
            if not isinstance(v, tuple):
                object.__setattr__(self, name, tuple(v or ()))

    def to_dict(self) -> Dict[str, Any]:
        return {"funcDeps": list(self.func_deps), "edges": list(self.edges)}


def field_index(metas: Iterable[FieldMeta]) -> Dict[str, FieldMeta]:
    """Map fid -> FieldMeta (later duplicates win)."""
    return {m.fid: m for m in metas}


def require_fields(fids: Iterable[str], metas: Union[Mapping[str, FieldMeta], Iterable[FieldMeta]]) -> None:
    """Raise :class:`UnknownFieldError` for the first fid missing from `metas`."""
    known = metas if isinstance(metas, Mapping) else field_index(metas)
    for fid in fids:
        if fid not in known:
            raise UnknownFieldError(fid)
