# scripts/demo_explain.py
from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any, Dict, List, Mapping

import numpy as np
import pandas as pd
from rich.console import Console
from rich.panel import Panel

from subexplain.forms import CausalModel, FieldMeta, SetFilter
from subexplain.reporting import print_effects
from subexplain.workbench import ExplainerConfig, ExplanationSession


# ──────────────────────────────────────────────────────────────────────────────
# Toy data + a stand-in scorer (mean gap of the target per dimension level)
# ──────────────────────────────────────────────────────────────────────────────

def make_sales(n: int, seed: int) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    region = rng.choice(["west", "east", "north", "south"], size=n)
    channel = rng.choice(["online", "store"], size=n, p=[0.6, 0.4])
    discount = rng.uniform(0, 0.3, size=n).round(3)
    units = rng.poisson(20, size=n) + (region == "west") * 8
    price = rng.normal(12, 2, size=n).round(2)
    revenue = (units * price * (1 - discount)).round(2)
    return pd.DataFrame({
        "region": region,
        "channel": channel,
        "discount": discount,
        "units": units,
        "price": price,
        "revenue": revenue,
    })


def mean_gap_scorer(payload: Mapping[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
    """Toy responsibility: |corr(field, group flag)| for every non-target numeric field."""
    from subexplain.forms.subspace import Subspace

    df = pd.DataFrame(payload["data"])
    target = payload["view"]["measures"][0]["fid"]
    fg = Subspace.from_dict(payload["groups"]["current"]).mask(df)
    bg = Subspace.from_dict(payload["groups"]["other"]).mask(df)
    keep = fg | bg
    flag = pd.Series(fg[keep].astype(float))
    effects = []
    for c in df.columns:
        if c == target or not pd.api.types.is_numeric_dtype(df[c]):
            continue
        x = df.loc[keep, c].reset_index(drop=True).astype(float)
        effects.append({"fid": c, "responsibility": float(abs(x.corr(flag)))})
    return {"causalEffects": effects}


async def main() -> None:
    ap = argparse.ArgumentParser(description="Explain a foreground/background gap on toy sales data.")
    ap.add_argument("--rows", type=int, default=500)
    ap.add_argument("--seed", type=int, default=0)
    ap.add_argument("--region", default="west")
    ap.add_argument("--diff-mode", default="other", choices=["full", "other", "two-group"])
    ap.add_argument("--aggregation", default="mean", choices=["sum", "mean", "count", "none"])
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    console = Console()

    df = make_sales(args.rows, args.seed)
    metas = [
        FieldMeta("region", "Region", "nominal"),
        FieldMeta("channel", "Channel", "nominal"),
        FieldMeta("discount", "Discount"),
        FieldMeta("units", "Units"),
        FieldMeta("price", "Unit price"),
        FieldMeta("revenue", "Revenue"),
    ]
    model = CausalModel(edges=[{"src": "units", "tar": "revenue"}, {"src": "price", "tar": "revenue"}])

    session = ExplanationSession(
        df, metas, model,
        config=ExplainerConfig(diff_mode=args.diff_mode, aggregation=args.aggregation),
        worker_fn=mean_gap_scorer,
        main_field=metas[-1],
    )
    session.handle_filter(SetFilter("region", (args.region,)))
    a, b = session.indices
    console.print(Panel.fit(
        f"foreground: {session.subspaces[0]!r}  ({len(a)} rows)\n"
        f"background: {session.subspaces[1]!r}  ({len(b)} rows)",
        title=f"diff mode = {args.diff_mode}",
    ))
    await session.explain_selection()
    print_effects(session.effects, metas, title=f"What explains {args.aggregation}(revenue)?")


if __name__ == "__main__":
    asyncio.run(main())
