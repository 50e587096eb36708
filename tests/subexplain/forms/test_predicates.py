import numpy as np
import pandas as pd
import pytest

from subexplain.errors import InvalidFilterError, UnknownFieldError
from subexplain.forms import (
    Predicate, TRUE, SetFilter, RangeFilter, conjunction, filter_from_dict, IN, BETWEEN,
)

# -----------------------
# Fixtures
# -----------------------

@pytest.fixture
def df_basic():
    return pd.DataFrame({
        "cat": ["x", "y", "x", None, "z"],
        "a":   [1.0, 2.0, 3.0, 4.0, np.nan],
        "s":   ["1", "2.5", "oops", "4", None],   # numbers stored as strings
    })


# -----------------------
# Field filters
# -----------------------

def test_set_filter_membership(df_basic):
    assert IN("cat", {"x", "z"}).mask(df_basic).tolist() == [True, False, True, False, True]

def test_set_filter_never_matches_missing(df_basic):
    m = SetFilter("cat", ["x", None]).mask(df_basic)
    assert m.tolist() == [True, False, True, False, False]
    m = SetFilter("a", [np.nan, 1.0]).mask(df_basic)
    assert m.tolist() == [True, False, False, False, False]

def test_range_filter_is_closed(df_basic):
    assert BETWEEN("a", 2.0, 4.0).mask(df_basic).tolist() == [False, True, True, True, False]
    assert RangeFilter("a", 2.0, 2.0).mask(df_basic).tolist() == [False, True, False, False, False]

def test_range_filter_coerces_strings(df_basic):
    assert RangeFilter("s", 2, 5).mask(df_basic).tolist() == [False, True, False, True, False]

def test_range_filter_rejects_inverted_bounds():
    with pytest.raises(InvalidFilterError):
        RangeFilter("a", 3, 1)

@pytest.mark.parametrize("low, high", [(None, 5), (0, None), ("1", "2"), (True, 2)])
def test_range_filter_rejects_non_numeric_bounds(low, high):
    with pytest.raises(InvalidFilterError):
        RangeFilter("a", low, high)

def test_range_filter_accepts_numpy_and_infinite_bounds(df_basic):
    f = RangeFilter("a", np.int64(2), np.inf)
    assert f.mask(df_basic).tolist() == [False, True, True, True, False]

def test_unknown_column_raises(df_basic):
    with pytest.raises(UnknownFieldError) as ei:
        IN("nope", [1]).mask(df_basic)
    assert ei.value.fid == "nope"
    assert isinstance(ei.value, KeyError)

def test_filters_are_hashable_and_immutable():
    f = SetFilter("cat", ["x", "y"])
    assert f.values == ("x", "y")
    assert f == SetFilter("cat", ("x", "y"))
    assert len({f, SetFilter("cat", ("x", "y"))}) == 1
    with pytest.raises(Exception):
        f.fid = "other"


# -----------------------
# Composition
# -----------------------

def test_boolean_algebra(df_basic):
    P = IN("cat", ["x"]) & BETWEEN("a", 2, 5)
    assert P.mask(df_basic).tolist() == [False, False, True, False, False]
    Q = IN("cat", ["y"]) | BETWEEN("a", 4, 4)
    assert Q.mask(df_basic).tolist() == [False, True, False, True, False]
    assert (~P).mask(df_basic).tolist() == [True, True, False, True, True]

def test_conjunction_of_nothing_is_true(df_basic):
    assert conjunction([]) is TRUE
    assert TRUE.mask(df_basic).all()
    assert TRUE.mask(df_basic.iloc[0:0]).tolist() == []

def test_conjunction_folds_left(df_basic):
    P = conjunction([IN("cat", ["x", "y"]), BETWEEN("a", 1, 2), IN("cat", ["x"])])
    assert P.mask(df_basic).tolist() == [True, False, False, False, False]

def test_mask_aligned_to_index(df_basic):
    df = df_basic.set_index(pd.Index([10, 20, 30, 40, 50]))
    m = IN("cat", ["x"]).mask(df)
    assert list(m.index) == [10, 20, 30, 40, 50]
    assert isinstance(IN("cat", ["x"]), Predicate)


# -----------------------
# Wire format
# -----------------------

def test_wire_type_is_the_filter_kind():
    assert IN("cat", ["x"]).to_dict()["type"] == SetFilter.kind == "set"
    assert BETWEEN("a", 0, 1).to_dict()["type"] == RangeFilter.kind == "range"

def test_filter_round_trip_from_wire():
    s = filter_from_dict({"fid": "cat", "type": "set", "values": ["x", "y"]})
    r = filter_from_dict({"fid": "a", "type": "range", "range": [1, 3]})
    assert s == SetFilter("cat", ("x", "y"))
    assert r == RangeFilter("a", 1, 3)
    assert r.to_dict() == {"fid": "a", "type": "range", "range": [1, 3]}
    assert filter_from_dict(s) is s

@pytest.mark.parametrize("payload", [
    {"type": "set", "values": [1]},
    {"fid": "a", "type": "bogus"},
    {"fid": "a", "type": "range", "range": [1]},
    {"fid": "a", "type": "range", "range": [None, 5]},
    {"fid": "a", "type": "range", "range": ["low", "high"]},
    {"fid": "a", "type": "range", "range": [3, 1]},
    "not-a-mapping",
])
def test_bad_wire_filters(payload):
    with pytest.raises(InvalidFilterError):
        filter_from_dict(payload)
