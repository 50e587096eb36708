# src/subexplain/reporting.py
from __future__ import annotations

from typing import Iterable, Optional, Sequence

import pandas as pd
from rich import box
from rich.console import Console
from rich.table import Table

from subexplain.forms.fields import FieldMeta, field_index
from subexplain.workbench.scoring import CausalEffect


def effects_frame(
    effects: Iterable[CausalEffect],
    field_metas: Sequence[FieldMeta] = (),
) -> pd.DataFrame:
    """
    Ranked causal effects as a DataFrame.

    Columns: ``rank`` (1-based), ``fid``, ``name`` (display name, falling
    back to the fid) and ``responsibility``. Order is kept as given.
    """
    metas = field_index(field_metas)
    rows = [
        {
            "rank": i,
            "fid": e.fid,
            "name": metas[e.fid].label if e.fid in metas else e.fid,
            "responsibility": e.responsibility,
        }
        for i, e in enumerate(effects, start=1)
    ]
    return pd.DataFrame(rows, columns=["rank", "fid", "name", "responsibility"])


def print_effects(
    effects: Iterable[CausalEffect],
    field_metas: Sequence[FieldMeta] = (),
    *,
    title: str = "Causal effects",
    console: Optional[Console] = None,
    limit: Optional[int] = None,
) -> None:
    """Render ranked effects as a rich table."""
    console = console or Console()
    frame = effects_frame(effects, field_metas)
    if limit is not None:
        frame = frame.head(limit)

    table = Table(title=title, box=box.SIMPLE_HEAVY)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Field")
    table.add_column("Responsibility", justify="right")
    for r in frame.itertuples(index=False):
        table.add_row(str(r.rank), str(r.name), f"{r.responsibility:.4f}")
    if frame.empty:
        table.add_row("", "[dim](no explanation)[/dim]", "")
    console.print(table)
