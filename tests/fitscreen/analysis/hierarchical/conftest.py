import pytest
import numpy as np
import pandas as pd


@pytest.fixture
def count_arrays():
    """
    Counts for two neutral and two mutant lineages over three time points.
    The mutants grow relative to the neutrals.
    """

    bc_count = np.array([[100, 120,  50,  30],
                         [ 90, 100,  80,  60],
                         [ 70,  85, 120, 110]])

    return {"bc_count":bc_count,
            "bc_total":bc_count.sum(axis=1),
            "n_neutral":2,
            "n_mut":2}


@pytest.fixture
def tidy_counts(count_arrays):
    """
    The same counts as a tidy table.
    """

    bc_count = count_arrays["bc_count"]
    ids = ["n0", "n1", "m0", "m1"]
    neutral = [True, True, False, False]

    rows = []
    for j in range(bc_count.shape[1]):
        for t in range(bc_count.shape[0]):
            rows.append({"barcode":ids[j],
                         "time":float(t),
                         "count":int(bc_count[t, j]),
                         "neutral":neutral[j]})

    return pd.DataFrame(rows)


@pytest.fixture
def replicate_arrays(count_arrays):
    """
    Two replicates of the counts, stacked on a trailing replicate axis.
    """

    rep_a = count_arrays["bc_count"]
    rep_b = rep_a + np.array([[1, 2, 3, 4]])
    bc_count = np.stack([rep_a, rep_b], axis=-1)

    return {"bc_count":bc_count,
            "bc_total":bc_count.sum(axis=1),
            "n_neutral":2,
            "n_mut":2}
