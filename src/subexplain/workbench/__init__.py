from .config import ExplainerConfig
from .diff_modes import DiffMode, resolve, switch_mode
from .membership import membership, membership_masks
from .request import ExplainRequest, build_request, fields_in_sight
from .scoring import CausalEffect, ScorerRegistry, ServerScorer, WorkerScorer, explain
from .reconciler import ScoreReconciler, rank_effects
from .materialize import materialize
from .engine import ExplanationSession, ExplorerState, recompute

__all__ = [
    "ExplainerConfig",
    "DiffMode",
    "resolve",
    "switch_mode",
    "membership",
    "membership_masks",
    "ExplainRequest",
    "build_request",
    "fields_in_sight",
    "CausalEffect",
    "ScorerRegistry",
    "ServerScorer",
    "WorkerScorer",
    "explain",
    "ScoreReconciler",
    "rank_effects",
    "materialize",
    "ExplanationSession",
    "ExplorerState",
    "recompute",
]
