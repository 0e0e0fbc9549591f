import pytest
import numpy as np
import pandas as pd

from fitscreen.analysis.ppc import (
    quantile_bands,
    matrix_quantile_range,
    freq_from_posterior,
    logfreq_ratio_from_posterior,
    freq_mutant_from_df,
    logfreq_ratio_neutral_from_df,
    posterior_to_dataframe
)
from fitscreen.analysis.hierarchical.artifact import FittedPosterior


@pytest.fixture
def sample_matrix():
    rng = np.random.default_rng(0)
    return rng.normal(size=(2000, 5)) + np.arange(5)


@pytest.fixture
def posterior():
    rng = np.random.default_rng(1)
    lam = rng.uniform(1, 10, size=(50, 4, 3))
    freq = lam/lam.sum(axis=-1, keepdims=True)
    return FittedPosterior("meanfield",
                           {"freq":freq,
                            "s_pop":rng.normal(size=(50, 3)),
                            "tau":rng.uniform(size=(50,))})


def test_quantile_bands_shape(sample_matrix):
    bands = quantile_bands([0.95, 0.68, 0.05], sample_matrix)
    assert bands.shape == (5, 3, 2)
    assert np.all(bands[..., 0] <= bands[..., 1])


def test_quantile_bands_values(sample_matrix):
    bands = quantile_bands([0.5], sample_matrix)
    expected_low = np.quantile(sample_matrix, 0.25, axis=0)
    expected_high = np.quantile(sample_matrix, 0.75, axis=0)
    assert np.allclose(bands[:, 0, 0], expected_low)
    assert np.allclose(bands[:, 0, 1], expected_high)


def test_quantile_bands_nested(sample_matrix):
    """
    Wider intervals contain narrower ones.
    """
    bands = quantile_bands([0.95, 0.68, 0.05], sample_matrix)
    for i in range(bands.shape[1] - 1):
        assert np.all(bands[:, i, 0] <= bands[:, i + 1, 0])
        assert np.all(bands[:, i, 1] >= bands[:, i + 1, 1])


def test_quantile_bands_negation(sample_matrix):
    """
    Negating the samples swaps and negates the bounds of every band.
    """
    levels = [0.95, 0.9, 0.68, 0.5, 0.05]
    bands = quantile_bands(levels, sample_matrix)
    negated = quantile_bands(levels, -sample_matrix)

    assert np.allclose(negated[..., 0], -bands[..., 1])
    assert np.allclose(negated[..., 1], -bands[..., 0])


def test_quantile_bands_order_invariant(sample_matrix):
    descending = quantile_bands([0.95, 0.68, 0.05], sample_matrix)
    with pytest.warns(UserWarning, match="sorted in descending order"):
        shuffled = quantile_bands([0.05, 0.95, 0.68], sample_matrix)
    assert np.allclose(descending, shuffled)


def test_quantile_bands_no_warning_when_sorted(sample_matrix, recwarn):
    quantile_bands([0.9, 0.5], sample_matrix)
    assert len(recwarn) == 0


@pytest.mark.parametrize("levels", [[], [0.0], [1.0], [0.5, 1.2]])
def test_quantile_bands_bad_levels(sample_matrix, levels):
    with pytest.raises(ValueError, match="quantile_levels"):
        quantile_bands(levels, sample_matrix)


def test_quantile_bands_bad_matrix():
    with pytest.raises(ValueError, match="num_samples, num_time"):
        quantile_bands([0.5], np.zeros(10))

    bad = np.zeros((10, 3))
    bad[0, 0] = np.nan
    with pytest.raises(ValueError, match="NaN"):
        quantile_bands([0.5], bad)


def test_quantile_bands_derive_fn(sample_matrix):
    bands = quantile_bands([0.5], {"m":sample_matrix}, derive_fn=lambda s: s["m"])
    assert np.allclose(bands, matrix_quantile_range([0.5], sample_matrix))


def test_freq_from_posterior(posterior):
    derive = freq_from_posterior(1)
    out = derive(posterior)
    assert out.shape == (50, 4)
    assert np.array_equal(out, posterior.draws("freq")[:, :, 1])

    # artifact dictionaries and plain dicts work too
    assert np.array_equal(derive({"posterior":posterior, "mutant_ids":[]}), out)
    assert np.array_equal(derive(posterior.samples), out)


def test_freq_from_posterior_replicate():
    freq = np.random.default_rng(0).uniform(size=(10, 2, 4, 3))
    derive = freq_from_posterior(2, replicate=1)
    assert np.array_equal(derive({"freq":freq}), freq[:, 1, :, 2])


def test_logfreq_ratio_from_posterior(posterior):
    out = logfreq_ratio_from_posterior(0)(posterior)
    freq = posterior.draws("freq")[:, :, 0]
    assert out.shape == (50, 3)
    assert np.allclose(out, np.log(freq[:, 1:]) - np.log(freq[:, :-1]))

    out2 = logfreq_ratio_from_posterior(0, log_fn=np.log2)(posterior)
    assert np.allclose(out2, out/np.log(2))

    with pytest.raises(ValueError, match="positive"):
        logfreq_ratio_from_posterior(0)({"freq":np.zeros((3, 4, 2))})


@pytest.fixture
def sample_df():
    rng = np.random.default_rng(2)
    n = 200
    return pd.DataFrame({"s_pop[0]":rng.normal(0.1, 0.01, n),
                         "s_pop[1]":rng.normal(0.2, 0.01, n),
                         "s_pop[2]":rng.normal(0.3, 0.01, n),
                         "sigma_pop[0]":np.full(n, 0.1),
                         "sigma_pop[1]":np.full(n, 0.1),
                         "sigma_pop[2]":np.full(n, 0.1),
                         "s_mut":rng.normal(0.5, 0.01, n),
                         "f0_mut":rng.uniform(0.01, 0.02, n)})


def test_freq_mutant_from_df(sample_df):
    derive = freq_mutant_from_df("s_mut", "s_pop[", "f0_mut")
    out = derive(sample_df)

    assert out.shape == (200, 4)
    assert np.allclose(out[:, 0], sample_df["f0_mut"])

    s_mean = sample_df[["s_pop[0]", "s_pop[1]", "s_pop[2]"]].to_numpy()
    expected = sample_df["f0_mut"].to_numpy()[:, None] * \
               np.exp(np.cumsum(sample_df["s_mut"].to_numpy()[:, None] - s_mean, axis=1))
    assert np.allclose(out[:, 1:], expected)


def test_freq_mutant_from_df_missing_pattern(sample_df):
    with pytest.raises(ValueError, match="no columns matching"):
        freq_mutant_from_df("s_mut", "not_here[", "f0_mut")(sample_df)


def test_logfreq_ratio_neutral_from_df_sign(sample_df):
    """
    Without noise the derived quantity is the population mean fitness.
    """
    out = logfreq_ratio_neutral_from_df("s_pop[")(sample_df)
    assert out.shape == (200, 3)
    assert np.allclose(out, sample_df[["s_pop[0]", "s_pop[1]", "s_pop[2]"]].to_numpy())


def test_logfreq_ratio_neutral_from_df_noise(sample_df):
    derive = logfreq_ratio_neutral_from_df("s_pop[", "sigma_pop[", seed=0)
    out = derive(sample_df)
    assert out.shape == (200, 3)

    # same seed, same draws
    assert np.allclose(out, logfreq_ratio_neutral_from_df("s_pop[", "sigma_pop[", seed=0)(sample_df))

    # centered on the population mean fitness
    assert np.allclose(out.mean(axis=0), [0.1, 0.2, 0.3], atol=0.03)

    bands = quantile_bands([0.9], sample_df, derive_fn=derive)
    assert np.all(bands[:, 0, 0] < np.array([0.1, 0.2, 0.3]))
    assert np.all(bands[:, 0, 1] > np.array([0.1, 0.2, 0.3]))


def test_logfreq_ratio_neutral_from_df_mismatch(sample_df):
    df = sample_df.drop(columns=["sigma_pop[2]"])
    with pytest.raises(ValueError, match="sigma_pop"):
        logfreq_ratio_neutral_from_df("s_pop[", "sigma_pop[")(df)


def test_posterior_to_dataframe(posterior):
    df = posterior_to_dataframe(posterior, ["s_pop", "tau", "freq"])

    assert len(df) == 50
    assert list(df.columns[:4]) == ["s_pop[0]", "s_pop[1]", "s_pop[2]", "tau"]
    assert "freq[3,2]" in df.columns
    assert np.allclose(df["freq[3,2]"], posterior.draws("freq")[:, 3, 2])

    # feeds the table-based derive functions
    out = logfreq_ratio_neutral_from_df("s_pop[")(df)
    assert np.allclose(out, posterior.draws("s_pop"))
