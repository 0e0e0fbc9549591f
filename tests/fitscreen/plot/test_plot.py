import pytest
import importlib
import numpy as np
import pandas as pd
import matplotlib
matplotlib.use("Agg")
from matplotlib import pyplot as plt

from fitscreen.plot import (
    ppc_bands,
    freq_mutant_ppc,
    logfreq_ratio_neutral_ppc,
    bc_time_series,
    logfreq_ratio_time_series,
    trace_density
)
from fitscreen.errors import InsufficientColors, LabelCountMismatch


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


@pytest.fixture
def sample_matrix():
    return np.random.default_rng(0).normal(size=(500, 6))


@pytest.fixture
def sample_df():
    rng = np.random.default_rng(1)
    n = 100
    return pd.DataFrame({"s_pop[0]":rng.normal(0.1, 0.01, n),
                         "s_pop[1]":rng.normal(0.2, 0.01, n),
                         "s_mut":rng.normal(0.5, 0.01, n),
                         "f0_mut":rng.uniform(0.01, 0.02, n)})


def test_ppc_bands_draws_one_band_per_level(sample_matrix):
    fig, ax = plt.subplots()
    out = ppc_bands([0.95, 0.5], sample_matrix, ax=ax)
    assert out is ax
    assert len(ax.collections) == 2


def test_ppc_bands_creates_axes(sample_matrix):
    ax = ppc_bands([0.9], sample_matrix, time=np.linspace(0, 1, 6))
    assert len(ax.collections) == 1


def test_ppc_bands_insufficient_colors(mocker, sample_matrix):
    module = importlib.import_module("fitscreen.plot.ppc_bands")
    mock_bands = mocker.patch.object(module, "quantile_bands")
    with pytest.raises(InsufficientColors):
        ppc_bands([0.95, 0.68, 0.05], sample_matrix, colors=["red", "blue"])
    mock_bands.assert_not_called()


def test_ppc_bands_time_mismatch(sample_matrix):
    with pytest.raises(ValueError, match="time has"):
        ppc_bands([0.5], sample_matrix, time=[0, 1])


def test_freq_mutant_ppc(sample_df):
    ax = freq_mutant_ppc([0.95, 0.5], sample_df, "s_mut", "s_pop[", "f0_mut")
    assert len(ax.collections) == 2
    assert ax.get_ylabel() == "barcode frequency"


def test_logfreq_ratio_neutral_ppc(sample_df):
    ax = logfreq_ratio_neutral_ppc([0.5], sample_df)
    assert len(ax.collections) == 1

    with pytest.raises(InsufficientColors):
        logfreq_ratio_neutral_ppc([0.9, 0.5], sample_df, colors=["red"])


def test_trace_density_single_chain(sample_matrix):
    fig = trace_density(sample_matrix[:, :3], labels=["a", "b", "c"], title="fit")
    axes = fig.get_axes()
    assert len(axes) == 6
    assert axes[0].get_ylabel() == "a"
    assert fig._suptitle.get_text() == "fit"


def test_trace_density_chains():
    samples = np.random.default_rng(0).normal(size=(100, 3, 2))
    fig = trace_density(samples)
    axes = fig.get_axes()
    assert len(axes) == 4
    assert len(axes[0].get_lines()) == 3


def test_trace_density_dataframe_labels(sample_df):
    fig = trace_density(sample_df[["s_pop[0]", "s_mut"]])
    assert fig.get_axes()[2].get_ylabel() == "s_mut"


def test_trace_density_errors(sample_matrix):
    with pytest.raises(LabelCountMismatch):
        trace_density(sample_matrix[:, :3], labels=["a", "b"])

    samples = np.zeros((10, 3, 2))
    with pytest.raises(InsufficientColors):
        trace_density(samples, colors=["red", "blue"])

    with pytest.raises(ValueError, match="samples must be"):
        trace_density(np.zeros(10))


def test_trace_density_existing_figure(sample_matrix):
    fig = plt.figure()
    out = trace_density(sample_matrix[:, :2], fig=fig)
    assert out is fig
    assert len(fig.get_axes()) == 4


@pytest.fixture
def tidy_df():
    # Rows deliberately out of time order
    return pd.DataFrame({"barcode":["a", "a", "a", "b", "b", "b"],
                         "time":[2.0, 0.0, 1.0, 1.0, 2.0, 0.0],
                         "count":[30, 10, 0, 20, 40, 5],
                         "freq":[0.4, 0.1, 0.2, 0.3, 0.6, 0.05]})


def test_bc_time_series(tidy_df):
    ax = bc_time_series(tidy_df, color="black", zero_lim=0.5)

    assert len(ax.lines) == 2
    x, y = ax.lines[0].get_data()
    assert np.array_equal(x, [0.0, 1.0, 2.0])
    assert np.array_equal(y, [10, 0.5, 30])
    assert ax.lines[0].get_color() == "black"
    assert ax.get_ylabel() == "count"


def test_bc_time_series_zero_label(tidy_df):
    fig, ax = plt.subplots()
    out = bc_time_series(tidy_df, zero_lim=0.5, zero_label="LOD", ax=ax)

    assert out is ax
    assert ax.get_yticks()[0] == 0.5
    assert ax.get_yticklabels()[0].get_text() == "LOD"


def test_bc_time_series_random_colors(tidy_df):
    palette = ["red", "green", "blue"]
    ax1 = bc_time_series(tidy_df, color=palette, seed=3)
    ax2 = bc_time_series(tidy_df, color=palette, seed=3)

    colors_1 = [line.get_color() for line in ax1.lines]
    colors_2 = [line.get_color() for line in ax2.lines]
    assert colors_1 == colors_2
    assert all(c in palette for c in colors_1)


def test_bc_time_series_missing_column(tidy_df):
    with pytest.raises(ValueError, match="not_here"):
        bc_time_series(tidy_df, quant_col="not_here")


def test_logfreq_ratio_time_series(tidy_df):
    ax = logfreq_ratio_time_series(tidy_df, color="C0")

    assert len(ax.lines) == 2
    x, y = ax.lines[1].get_data()
    assert np.array_equal(x, [0.0, 1.0])
    assert np.allclose(y, np.diff(np.log([0.05, 0.3, 0.6])))

    ax = logfreq_ratio_time_series(tidy_df, log_fn=np.log2)
    _, y = ax.lines[0].get_data()
    assert np.allclose(y, np.diff(np.log2([0.1, 0.2, 0.4])))
