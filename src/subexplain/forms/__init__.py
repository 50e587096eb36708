"""
Unified import layer for the data model.

This makes subexplain.forms a single access point for:
    - Field filters and their boolean algebra   (predicates)
    - Conjunctive, optionally reverted subsets  (subspace)
    - Read-only reference data                  (fields)
"""

from . import predicates
from . import subspace
from . import fields

# Re-export everything explicitly
from .predicates import *
from .subspace import *
from .fields import *
