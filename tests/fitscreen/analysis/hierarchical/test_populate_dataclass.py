import pytest
import numpy as np
import jax.numpy as jnp
from flax.struct import dataclass, field

from fitscreen.analysis.hierarchical.populate_dataclass import populate_dataclass


@dataclass(frozen=True)
class Counts:
    bc_count: jnp.ndarray
    num_time: int = field(pytree_node=False)
    num_neutral: int = field(pytree_node=False, default=1)


def test_populate_from_single_dict():
    out = populate_dataclass(Counts, {"bc_count": np.ones((3, 2)), "num_time": 3})
    assert isinstance(out.bc_count, jnp.ndarray)
    assert out.num_time == 3
    assert out.num_neutral == 1


def test_populate_from_multiple_dicts_ignores_extra():
    out = populate_dataclass(Counts, [{"bc_count": np.ones((3, 2))},
                                      {"num_time": 3, "num_neutral": 2, "unused": 1}])
    assert out.num_neutral == 2


def test_populate_duplicate_key():
    with pytest.raises(ValueError, match="duplicated"):
        populate_dataclass(Counts, [{"num_time": 3}, {"num_time": 4}])


def test_populate_missing_required():
    with pytest.raises(ValueError, match="bc_count"):
        populate_dataclass(Counts, {"num_time": 3})


def test_populate_rejects_lists():
    with pytest.raises(ValueError, match="Pytree"):
        populate_dataclass(Counts, {"bc_count": [1, 2], "num_time": 3})


def test_populate_bad_source():
    with pytest.raises(ValueError, match="dictionary"):
        populate_dataclass(Counts, ["not a dict"])
