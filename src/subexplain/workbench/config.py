# src/subexplain/workbench/config.py

from __future__ import annotations
from dataclasses import dataclass
import os
from typing import Optional

"""
Configuration objects for the explanation workbench.

This module centralizes the user-facing selections that are not part of the
dataset itself: how the background group is derived, how the main field is
aggregated, and where scoring runs.

The primary entry point is :class:`ExplainerConfig`, a small dataclass with
sane defaults. Treat it as an immutable snapshot you pass into a session;
switch modes through the session so dependent state is reset.

Examples
--------
>>> from subexplain.workbench.config import ExplainerConfig
>>> cfg = ExplainerConfig(diff_mode="other", aggregation="mean")
>>> cfg.diff_mode
'other'
>>> cfg.execution_mode
'worker'
"""

__all__ = [
    'ExplainerConfig',
    'DIFF_MODES',
    'AGGREGATIONS',
    'EXECUTION_MODES',
    'SELECTED_FLAG',
]

DIFF_MODES = ("full", "other", "two-group")
AGGREGATIONS = ("sum", "mean", "count", "none")
EXECUTION_MODES = ("worker", "server")

# Column added to materialized rows: 0 = neither, 1 = foreground, 2 = background
SELECTED_FLAG = "__selected__"


@dataclass(frozen=True)
class ExplainerConfig:
    """
    Session-wide knobs for subspace comparison and scoring.

    Parameters
    ----------
    diff_mode : {"full", "other", "two-group"}, default="full"
        How the background subspace is derived from the user's selection:
        - ``"full"``: compare against every row.
        - ``"other"``: compare against the complement of the foreground.
        - ``"two-group"``: both groups are drawn independently.
    aggregation : {"sum", "mean", "count", "none"}, default="count"
        Aggregate applied to the main field; ``"none"`` keeps row-level detail.
    execution_mode : {"worker", "server"}, default="worker"
        Where the scorer runs. Both share one request/response contract.
    server_url : str, optional
        Endpoint used by the ``"server"`` backend.
    timeout : float, default=60.0
        Seconds to wait for the scorer before giving up on a request.
    selected_flag : str, default="__selected__"
        Name of the membership tag column on materialized rows.

    Notes
    -----
    - Validation happens in ``__post_init__``; invalid values raise ``ValueError``.
    - ``server_url`` is only checked when a server backend is actually built.
    """

    diff_mode: str = "full"
    aggregation: str = "count"
    execution_mode: str = "worker"
    server_url: Optional[str] = None
    timeout: float = 60.0
    selected_flag: str = SELECTED_FLAG

    def __post_init__(self):
        if self.diff_mode not in DIFF_MODES:
            raise ValueError(f"diff_mode must be one of {DIFF_MODES}")
        if self.aggregation not in AGGREGATIONS:
            raise ValueError(f"aggregation must be one of {AGGREGATIONS}")
        if self.execution_mode not in EXECUTION_MODES:
            raise ValueError(f"execution_mode must be one of {EXECUTION_MODES}")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if not self.selected_flag:
            raise ValueError("selected_flag must be a non-empty column name")

    @classmethod
    def from_env(cls, **overrides) -> "ExplainerConfig":
        """
        Build a config from ``SUBEXPLAIN_*`` environment variables.

        Reads ``SUBEXPLAIN_SERVER_URL``, ``SUBEXPLAIN_TIMEOUT`` and
        ``SUBEXPLAIN_EXECUTION_MODE``; keyword overrides take precedence.
        """
        env = {
            "server_url": os.getenv("SUBEXPLAIN_SERVER_URL") or None,
            "timeout": float(os.getenv("SUBEXPLAIN_TIMEOUT", "60.0")),
            "execution_mode": os.getenv("SUBEXPLAIN_EXECUTION_MODE", "worker"),
        }
        env.update(overrides)
        return cls(**env)
