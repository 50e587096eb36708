import numpy as np
import pandas as pd
import pytest

from subexplain.forms import CausalModel, FieldMeta


@pytest.fixture
def sales_df():
    # 10 rows; region == "west" exactly at positions 1, 3, 5
    return pd.DataFrame({
        "region":  ["east", "west", "north", "west", "south", "west", "east", "north", "south", "east"],
        "channel": ["online", "store", "online", "online", "store", "store", "online", "store", "online", "store"],
        "units":   [10, 14, 8, 20, 11, 17, 9, 12, 7, 13],
        "price":   [9.5, 11.0, np.nan, 12.5, 10.0, 10.5, 9.0, 11.5, 8.0, 10.0],
        "revenue": [95.0, 154.0, 80.0, 250.0, 110.0, 178.5, 81.0, 138.0, 56.0, 130.0],
    })


@pytest.fixture
def sales_metas():
    return (
        FieldMeta("region", "Region", "nominal"),
        FieldMeta("channel", "Channel", "nominal"),
        FieldMeta("units", "Units"),
        FieldMeta("price", None),
        FieldMeta("revenue", "Revenue"),
    )


@pytest.fixture
def revenue(sales_metas):
    return sales_metas[-1]


@pytest.fixture
def causal_model():
    return CausalModel(
        edges=[{"src": "units", "tar": "revenue", "type": "directed"}],
        func_deps=[{"fid": "revenue", "params": [{"fid": "units"}, {"fid": "price"}]}],
    )
