import asyncio
from dataclasses import replace

import pandas as pd
import pytest

from subexplain.errors import ScorerError, UnknownFieldError
from subexplain.forms import EMPTY, FieldMeta, Subspace, IN, BETWEEN
from subexplain.workbench.config import ExplainerConfig, SELECTED_FLAG
from subexplain.workbench.engine import ExplanationSession, ExplorerState, recompute
from subexplain.workbench.scoring import CausalEffect, ScorerRegistry

WEST = IN("region", ["west"])
STORE = IN("channel", ["store"])


def fixed_scorer(payload):
    return {"causalEffects": [
        {"fid": "units", "responsibility": 0.4},
        {"fid": "price", "responsibility": float("nan")},
        {"fid": "channel", "responsibility": 0.9},
    ]}


@pytest.fixture
def session(sales_df, sales_metas, revenue, causal_model):
    return ExplanationSession(sales_df, sales_metas, causal_model, worker_fn=fixed_scorer, main_field=revenue)


# -----------------------
# Pure recompute
# -----------------------

@pytest.fixture
def base_state(sales_df, sales_metas, revenue):
    return ExplorerState(dataset=sales_df, field_metas=sales_metas, main_field=revenue, selected=sales_df)

def test_recompute_indices_on_subspace_change(base_state):
    st = replace(base_state, subspaces=(Subspace((WEST,)), EMPTY))
    res = recompute(st, {"subspaces"})
    assert res.state.indices == ([1, 3, 5], list(range(10)))
    assert res.needs_reset
    assert base_state.indices == ([], [])

def test_recompute_main_field_clears_comparison(base_state, sales_metas):
    st = replace(base_state, subspaces=(Subspace((WEST,)), EMPTY), main_field=sales_metas[2])
    res = recompute(st, {"main_field"})
    assert res.state.subspaces is None
    assert res.state.indices == ([], [])
    assert res.state.selected is base_state.dataset
    assert "subspaces" in res.changed and res.needs_reset

def test_recompute_aggregation_clears_comparison(base_state):
    st = replace(base_state, subspaces=(Subspace((WEST,)), EMPTY), aggregation="sum")
    assert recompute(st, {"aggregation"}).state.subspaces is None

@pytest.mark.parametrize("prev_mode, new_mode, bg", [
    ("other", "full", Subspace((WEST,), reverted=True)),
    ("two-group", "other", Subspace((STORE,))),
    ("full", "two-group", EMPTY),
])
def test_recompute_mode_switch(base_state, prev_mode, new_mode, bg):
    st = replace(base_state, subspaces=(Subspace((WEST,)), bg), editing_group_idx=2, diff_mode=new_mode)
    res = recompute(st, {"diff_mode"})
    assert res.state.subspaces == (Subspace((WEST,)), EMPTY)
    assert res.state.editing_group_idx == 1

def test_recompute_mode_switch_rejects_unknown(base_state):
    with pytest.raises(ValueError):
        recompute(replace(base_state, diff_mode="sideways"), {"diff_mode"})

def test_recompute_index_key_follows_field_metas(base_state, sales_metas):
    st = replace(base_state, index_key=sales_metas[0])
    renamed = (FieldMeta("region", "Sales region", "nominal"),) + sales_metas[1:]
    res = recompute(replace(st, field_metas=renamed), {"field_metas"})
    assert res.state.index_key == renamed[0]
    res = recompute(replace(st, field_metas=sales_metas[1:]), {"field_metas"})
    assert res.state.index_key is None and res.needs_reset

def test_recompute_execution_mode_keeps_result(base_state):
    res = recompute(replace(base_state, execution_mode="server"), {"execution_mode"})
    assert not res.needs_reset

def test_recompute_rejects_unknown_names(base_state):
    with pytest.raises(ValueError):
        recompute(base_state, {"indices"})


# -----------------------
# Session: end-to-end
# -----------------------

@pytest.mark.asyncio
async def test_full_mode_end_to_end(session):
    session.handle_filter(WEST)
    assert session.indices == ([1, 3, 5], list(range(10)))
    assert await session.explain_selection() is True
    tags = session.selected[SELECTED_FLAG].tolist()
    assert tags == [0, 1, 0, 1, 0, 1, 0, 0, 0, 0]
    assert 2 not in tags
    assert session.effects == (CausalEffect("channel", 0.9), CausalEffect("units", 0.4))

@pytest.mark.asyncio
async def test_other_mode_end_to_end(session):
    session.set_diff_mode("other")
    session.handle_filter({"fid": "region", "type": "set", "values": ["west"]})
    a, b = session.indices
    assert b == [0, 2, 4, 6, 7, 8, 9]
    assert session.subspaces[1].reverted
    await session.explain_selection()
    assert session.selected[SELECTED_FLAG].tolist() == [2, 1, 2, 1, 2, 1, 2, 2, 2, 2]

def test_two_group_flow(session):
    session.set_diff_mode("two-group")
    session.handle_filter(WEST)
    session.set_editing_group(2)
    session.handle_filter(STORE)
    assert session.subspaces == (Subspace((WEST,)), Subspace((STORE,)))
    session.set_editing_group(1)
    session.handle_filter(IN("region", ["east"]))
    assert session.subspaces[1] == Subspace((STORE,))
    assert session.indices == ([0, 6, 9], [1, 4, 5, 7, 9])

def test_mode_switch_resets_group_and_background(session):
    session.set_diff_mode("two-group")
    session.handle_filter(WEST)
    session.set_editing_group(2)
    session.handle_filter(STORE)
    session.set_diff_mode("other")
    assert session.state.editing_group_idx == 1
    assert session.subspaces == (Subspace((WEST,)), EMPTY)

def test_clearing_filter_untags_rows(session, sales_df):
    session.handle_filter(WEST)
    session.handle_filter(None)
    assert session.subspaces is None
    assert session.indices == ([], [])
    assert session.selected is sales_df
    assert session.apply_selection() is None

@pytest.mark.asyncio
async def test_dependency_change_resets_result(session, sales_metas):
    session.handle_filter(WEST)
    await session.explain_selection()
    assert session.effects
    session.set_index_key(sales_metas[1])
    assert session.effects == ()

@pytest.mark.asyncio
async def test_main_field_change_clears_everything(session, sales_metas):
    session.handle_filter(WEST)
    await session.explain_selection()
    session.set_main_field(sales_metas[2])
    assert session.subspaces is None
    assert session.effects == ()

def test_new_dataset_recomputes_indices(session, sales_df):
    session.handle_filter(WEST)
    smaller = sales_df.iloc[:4].reset_index(drop=True)
    session.set_dataset(smaller)
    assert session.indices == ([1, 3], [0, 1, 2, 3])

@pytest.mark.asyncio
async def test_unchanged_inputs_do_not_reset(session):
    session.handle_filter(WEST)
    await session.explain_selection()
    assert session.update(diff_mode="full", aggregation=session.state.aggregation) == frozenset()
    assert session.effects

def test_filter_on_missing_column_leaves_state(session):
    session.handle_filter(WEST)
    with pytest.raises(UnknownFieldError):
        session.handle_filter(IN("colour", ["red"]))
    assert session.subspaces == (Subspace((WEST,)), EMPTY)
    assert session.indices[0] == [1, 3, 5]

@pytest.mark.asyncio
async def test_field_missing_from_metadata_fails_that_request_only(sales_df, sales_metas, revenue):
    metas = [m for m in sales_metas if m.fid != "channel"]
    s = ExplanationSession(sales_df, metas, worker_fn=fixed_scorer, main_field=revenue)
    s.handle_filter(STORE)
    with pytest.raises(UnknownFieldError):
        s.apply_selection()
    assert s.reconciler.pending is None
    assert s.effects == ()
    # later requests are unaffected
    s.handle_filter(WEST)
    assert await s.explain_selection() is True
    assert s.effects

def test_execution_mode_needs_backend(session):
    with pytest.raises(ScorerError):
        session.set_execution_mode("server")
    assert session.state.execution_mode == "worker"

@pytest.mark.asyncio
async def test_execution_mode_dispatch(sales_df, sales_metas, revenue):
    calls = []

    async def server(request):
        calls.append("server")
        return [CausalEffect("units", 1.0)]

    async def worker(request):
        calls.append("worker")
        return []

    reg = ScorerRegistry({"worker": worker, "server": server})
    s = ExplanationSession(sales_df, sales_metas, registry=reg, main_field=revenue)
    s.handle_filter(WEST)
    s.set_execution_mode("server")
    await s.explain_selection()
    assert calls == ["server"]
    assert s.effects == (CausalEffect("units", 1.0),)

@pytest.mark.asyncio
async def test_rapid_edits_only_last_result_applies(sales_df, sales_metas, revenue):
    gates = []

    def scorer(request):
        fut = asyncio.get_running_loop().create_future()
        gates.append(fut)
        return fut

    s = ExplanationSession(sales_df, sales_metas, registry=ScorerRegistry({"worker": scorer}), main_field=revenue)
    s.handle_filter(WEST)
    t1 = s.apply_selection()
    s.handle_filter(STORE)
    t2 = s.apply_selection()
    await asyncio.sleep(0)
    gates[0].set_result([CausalEffect("units", 9.0)])
    assert await t1 is False
    assert s.effects == ()
    gates[1].set_result([CausalEffect("price", 1.0)])
    assert await t2 is True
    assert s.effects == (CausalEffect("price", 1.0),)

def test_aggregation_none_alias(session):
    session.set_aggregation(None)
    assert session.state.aggregation == "none"

def test_config_defaults_flow_into_state(sales_df, sales_metas):
    s = ExplanationSession(sales_df, sales_metas, config=ExplainerConfig(diff_mode="other", aggregation="sum"))
    assert s.state.diff_mode == "other"
    assert s.state.aggregation == "sum"
    assert s.state.main_field is None
    s.handle_filter(WEST)
    assert s.build_request() is None

def test_empty_dataset_while_filter_active(session):
    session.handle_filter(WEST)
    session.set_dataset([])
    assert len(session.state.dataset) == 0
    assert session.subspaces == (Subspace((WEST,)), EMPTY)
    assert session.indices == ([], [])
    assert session.effects == ()

def test_apply_selection_needs_running_loop(session, sales_df):
    session.handle_filter(WEST)
    generation = session.reconciler.generation
    with pytest.raises(RuntimeError):
        session.apply_selection()
    assert session.reconciler.pending is None
    assert session.reconciler.generation == generation
    assert session.selected is sales_df

@pytest.mark.asyncio
async def test_scheduled_task_is_held_until_done(session):
    session.handle_filter(WEST)
    task = session.apply_selection()
    assert session.reconciler.in_flight == (task,)
    assert await task is True
    await asyncio.sleep(0)
    assert session.reconciler.in_flight == ()
