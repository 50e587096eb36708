"""
subexplain: rank the fields that explain why a target differs between two
user-drawn subspaces of a dataset.
"""

from .errors import *
from .forms import FieldMeta, CausalModel, SetFilter, RangeFilter, Subspace, filter_from_dict
from .workbench import (
    ExplainerConfig,
    ExplanationSession,
    ScoreReconciler,
    ScorerRegistry,
    build_request,
    materialize,
    membership,
    resolve,
)

__version__ = "0.1.0"
