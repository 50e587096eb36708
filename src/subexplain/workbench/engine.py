# src/subexplain/workbench/engine.py

from __future__ import annotations
import asyncio
from dataclasses import dataclass, field, replace
import logging
from typing import (
    Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, NamedTuple,
    Optional, Sequence, Tuple, Union,
)
import pandas as pd

from subexplain.forms.fields import CausalModel, FieldMeta
from subexplain.forms.predicates import Filter, filter_from_dict
from subexplain.forms.subspace import EMPTY, Subspaces

from .config import ExplainerConfig
from .diff_modes import DiffMode, resolve, switch_mode
from .materialize import materialize
from .membership import Rows, as_frame, membership
from .reconciler import ScoreReconciler
from .request import ExplainRequest, build_request
from .scoring import CausalEffect, ScorerRegistry, explain

logger = logging.getLogger(__name__)

__all__ = [
    "ExplorerState",
    "Recomputed",
    "INPUTS",
    "RESULT_DEPENDENCIES",
    "recompute",
    "ExplanationSession",
]

# Fields of ExplorerState a caller may change directly
INPUTS: FrozenSet[str] = frozenset({
    "dataset",
    "field_metas",
    "causal_model",
    "main_field",
    "aggregation",
    "index_key",
    "diff_mode",
    "execution_mode",
    "editing_group_idx",
    "subspaces",
})

# Any change here invalidates the displayed explanation
RESULT_DEPENDENCIES: FrozenSet[str] = frozenset({
    "dataset",
    "causal_model",
    "main_field",
    "aggregation",
    "index_key",
    "subspaces",
})


@dataclass(frozen=True)
class ExplorerState:
    """
    Snapshot of everything the explainer view derives from.

    Inputs are set by the caller; ``indices`` and ``selected`` are derived
    by :func:`recompute` and :meth:`ExplanationSession.apply_selection`.
    """
    dataset: pd.DataFrame = field(repr=False, compare=False)
    field_metas: Tuple[FieldMeta, ...] = ()
    causal_model: CausalModel = field(default_factory=CausalModel)
    main_field: Optional[FieldMeta] = None
    aggregation: str = "count"
    index_key: Optional[FieldMeta] = None
    diff_mode: str = "full"
    execution_mode: str = "worker"
    editing_group_idx: int = 1
    subspaces: Optional[Subspaces] = None

    indices: Tuple[List[int], List[int]] = field(default_factory=lambda: ([], []), compare=False)
    selected: Optional[pd.DataFrame] = field(default=None, repr=False, compare=False)


class Recomputed(NamedTuple):
    state: ExplorerState
    changed: FrozenSet[str]
    needs_reset: bool


def recompute(state: ExplorerState, changed: Iterable[str]) -> Recomputed:
    """
    Re-derive dependent state after the inputs named in `changed` moved.

    Pure: `state` is not modified. Rules, in order:

    1. ``field_metas`` -> ``index_key`` is looked up again by fid (or dropped).
    2. ``main_field`` / ``aggregation`` -> the comparison is cleared.
    3. ``diff_mode`` -> background emptied, editing group back to 1.
    4. ``subspaces`` / ``dataset`` / ``diff_mode`` -> index sets recomputed.
    5. no active comparison -> ``selected`` is the raw dataset.

    Returns
    -------
    Recomputed
        New state, the full set of changed names (inputs plus derived), and
        whether the explanation result must be cleared.
    """
    changed = set(changed)
    unknown = changed - INPUTS
    if unknown:
        raise ValueError(f"not recomputable inputs: {sorted(unknown)}")

    upd: Dict[str, Any] = {}

    if "field_metas" in changed and state.index_key is not None:
        key = next((f for f in state.field_metas if f.fid == state.index_key.fid), None)
        if key != state.index_key:
            upd["index_key"] = key
            changed.add("index_key")

    subspaces = state.subspaces
    if changed & {"main_field", "aggregation"} and subspaces is not None:
        subspaces = None
        changed.add("subspaces")

    if "diff_mode" in changed:
        DiffMode.parse(state.diff_mode)
        new_subspaces, editing = switch_mode(subspaces)
        if new_subspaces != subspaces:
            changed.add("subspaces")
        subspaces = new_subspaces
        if editing != state.editing_group_idx:
            upd["editing_group_idx"] = editing
            changed.add("editing_group_idx")

    if subspaces is not state.subspaces:
        upd["subspaces"] = subspaces

    if changed & {"subspaces", "dataset", "diff_mode"}:
        upd["indices"] = membership(state.dataset, subspaces, state.diff_mode)

    if subspaces is None and changed & {"subspaces", "dataset"}:
        upd["selected"] = state.dataset

    new_state = replace(state, **upd) if upd else state
    return Recomputed(new_state, frozenset(changed), bool(changed & RESULT_DEPENDENCIES))


class ExplanationSession:
    """
    Stateful wrapper tying :func:`recompute` to a :class:`ScoreReconciler`.

    All setters funnel through :meth:`update`, which recomputes derived
    state and clears the explanation whenever one of its dependencies
    changed. :meth:`apply_selection` tags the rows and schedules scoring.

    Parameters
    ----------
    dataset : DataFrame or sequence of mappings
        Data sample; rows are addressed by position.
    field_metas : sequence of FieldMeta
    causal_model : CausalModel, optional
    config : ExplainerConfig, optional
    registry : ScorerRegistry, optional
        Backends per execution mode; built from `config` when omitted.
    worker_fn : callable, optional
        Synchronous scorer for the ``worker`` backend when no registry is given.
    main_field : FieldMeta, optional

    Examples
    --------
    >>> import pandas as pd
    >>> from subexplain.forms import FieldMeta, IN
    >>> df = pd.DataFrame({"region": ["west", "east"], "revenue": [3.0, 5.0]})
    >>> metas = [FieldMeta("region", semantic_type="nominal"), FieldMeta("revenue")]
    >>> s = ExplanationSession(df, metas, main_field=metas[1])
    >>> s.handle_filter(IN("region", ["west"]))
    >>> s.indices
    ([0], [0, 1])
    """

    def __init__(
        self,
        dataset: Rows,
        field_metas: Sequence[FieldMeta],
        causal_model: Optional[CausalModel] = None,
        *,
        config: Optional[ExplainerConfig] = None,
        registry: Optional[ScorerRegistry] = None,
        worker_fn: Optional[Callable[[Dict[str, Any]], Mapping[str, Any]]] = None,
        main_field: Optional[FieldMeta] = None,
    ):
        self.config = config or ExplainerConfig()
        self.registry = registry or ScorerRegistry.from_config(self.config, worker_fn)
        df = as_frame(dataset)
        self._state = ExplorerState(
            dataset=df,
            field_metas=tuple(field_metas),
            causal_model=causal_model or CausalModel(),
            main_field=main_field,
            aggregation=self.config.aggregation,
            diff_mode=self.config.diff_mode,
            execution_mode=self.config.execution_mode,
            indices=([], []),
            selected=df,
        )
        self.reconciler = ScoreReconciler(self._score, timeout=self.config.timeout)

    def _score(self, request: ExplainRequest):
        return explain(request, self._state.execution_mode, self.registry)

    # ---- read-only derived state ----

    @property
    def state(self) -> ExplorerState:
        return self._state

    @property
    def subspaces(self) -> Optional[Subspaces]:
        return self._state.subspaces

    @property
    def indices(self) -> Tuple[List[int], List[int]]:
        return self._state.indices

    @property
    def selected(self) -> pd.DataFrame:
        return self._state.selected

    @property
    def effects(self) -> Tuple[CausalEffect, ...]:
        return self.reconciler.result

    # ---- input transitions ----

    def _differs(self, name: str, value: Any) -> bool:
        current = getattr(self._state, name)
        if name == "dataset":
            # DataFrames have no scalar equality; a new frame is a new sample
            return value is not current
        return value != current

    def update(self, **inputs: Any) -> FrozenSet[str]:
        """
        Set one or more inputs and re-derive everything downstream.

        Values identical to the current ones are ignored. Returns the set of
        names that changed (including derived ones).
        """
        unknown = set(inputs) - INPUTS
        if unknown:
            raise ValueError(f"unknown inputs: {sorted(unknown)}")
        if "dataset" in inputs:
            inputs["dataset"] = as_frame(inputs["dataset"])
        if "field_metas" in inputs:
            inputs["field_metas"] = tuple(inputs["field_metas"])

        changed = {k for k, v in inputs.items() if self._differs(k, v)}
        if not changed:
            return frozenset()

        res = recompute(replace(self._state, **{k: inputs[k] for k in changed}), changed)
        self._state = res.state
        if res.needs_reset:
            self.reconciler.reset()
        logger.debug("inputs changed: %s (reset=%s)", sorted(res.changed), res.needs_reset)
        return res.changed

    def set_dataset(self, dataset: Rows) -> None:
        self.update(dataset=dataset)

    def set_field_metas(self, field_metas: Sequence[FieldMeta]) -> None:
        self.update(field_metas=field_metas)

    def set_causal_model(self, causal_model: CausalModel) -> None:
        self.update(causal_model=causal_model)

    def set_main_field(self, main_field: Optional[FieldMeta]) -> None:
        self.update(main_field=main_field)

    def set_aggregation(self, aggregation: Optional[str]) -> None:
        self.update(aggregation="none" if aggregation is None else aggregation)

    def set_index_key(self, index_key: Optional[FieldMeta]) -> None:
        self.update(index_key=index_key)

    def set_diff_mode(self, diff_mode: Union[str, DiffMode]) -> None:
        self.update(diff_mode=DiffMode.parse(diff_mode).value)

    def set_execution_mode(self, execution_mode: str) -> None:
        self.registry.get(execution_mode)
        self.update(execution_mode=execution_mode)

    def set_editing_group(self, idx: int) -> None:
        if idx not in (1, 2):
            raise ValueError(f"editing group must be 1 or 2, got {idx!r}")
        self.update(editing_group_idx=idx)

    def handle_filter(self, incoming: Union[Filter, Mapping[str, Any], None]) -> None:
        """Apply a filter drawn (or cleared, with ``None``) on the chart."""
        f = filter_from_dict(incoming) if incoming is not None else None
        st = self._state
        self.update(subspaces=resolve(st.diff_mode, f, st.editing_group_idx, st.subspaces))

    # ---- explanation ----

    def build_request(self) -> Optional[ExplainRequest]:
        st = self._state
        return build_request(
            st.main_field, st.aggregation, st.subspaces, st.dataset, st.field_metas, st.causal_model,
        )

    def apply_selection(self) -> Optional["asyncio.Task[bool]"]:
        """
        Tag rows by group and schedule a fresh score computation.

        Returns the scheduled task, or ``None`` when no comparison is active
        (rows are left untagged and nothing is scored).

        Raises
        ------
        UnknownFieldError
            If a filter or the main field is missing from the field metadata;
            the current explanation is left untouched.
        RuntimeError
            If called outside a running event loop; rows stay untagged.
        """
        st = self._state
        if st.subspaces is None:
            self._state = replace(st, selected=st.dataset)
            return None

        request = self.build_request()
        indices_a, indices_b = st.indices
        if st.diff_mode == DiffMode.FULL.value:
            # background is "all rows" here, not a group of its own to tag
            indices_b = []
        tagged = materialize(st.dataset, st.subspaces, indices_a, indices_b, flag=self.config.selected_flag)
        task = self.reconciler.schedule(request)
        self._state = replace(st, selected=tagged)
        return task

    async def explain_selection(self) -> bool:
        """:meth:`apply_selection` and wait; True if the result was updated."""
        task = self.apply_selection()
        if task is None:
            return False
        return await task
