
from fitscreen.errors import (
    InsufficientColors,
    LabelCountMismatch
)

import numpy as np
import pandas as pd
from matplotlib import pyplot as plt


def trace_density(samples,
                  labels=None,
                  colors=None,
                  alpha=1.0,
                  bins=30,
                  title=None,
                  fig=None):
    """
    Plot traces and density estimates side by side for each parameter.

    Parameters
    ----------
    samples : array_like or pandas.DataFrame
        (num_draws, num_params) or (num_draws, num_chains, num_params)
        samples. DataFrame columns are used as default labels.
    labels : list of str, optional
        One label per parameter.
    colors : list, optional
        One color per chain. Defaults to the matplotlib color cycle.
    alpha : float, optional
        Transparency of traces and densities.
    bins : int, optional
        Number of histogram bins for the densities.
    title : str, optional
        Figure title.
    fig : matplotlib.figure.Figure, optional
        Figure to populate. If None, a new figure is created.

    Returns
    -------
    matplotlib.figure.Figure

    Raises
    ------
    LabelCountMismatch
        If `labels` does not have one entry per parameter.
    InsufficientColors
        If fewer colors than chains are given.
    """

    if isinstance(samples, pd.DataFrame):
        if labels is None:
            labels = [str(c) for c in samples.columns]
        samples = samples.to_numpy()

    samples = np.asarray(samples, dtype=float)
    if samples.ndim == 2:
        samples = samples[:, None, :]
    if samples.ndim != 3:
        raise ValueError(
            "samples must be (num_draws, num_params) or "
            f"(num_draws, num_chains, num_params), got shape {samples.shape}."
        )

    num_draws, num_chains, num_params = samples.shape

    if labels is None:
        labels = [f"param {i}" for i in range(num_params)]
    if len(labels) != num_params:
        raise LabelCountMismatch(
            f"{len(labels)} labels given for {num_params} parameters."
        )

    if colors is None:
        colors = plt.rcParams["axes.prop_cycle"].by_key()["color"]
    if len(colors) < num_chains:
        raise InsufficientColors(
            f"{len(colors)} colors given for {num_chains} chains."
        )

    if fig is None:
        fig = plt.figure(figsize=(8, 2*num_params))
    axes = fig.subplots(num_params, 2, squeeze=False)

    iteration = np.arange(num_draws)
    for i in range(num_params):

        ax_trace = axes[i, 0]
        ax_density = axes[i, 1]

        for c in range(num_chains):
            values = samples[:, c, i]
            ax_trace.plot(iteration, values, color=colors[c], alpha=alpha)
            ax_density.hist(values,
                            bins=bins,
                            density=True,
                            histtype="step",
                            color=colors[c],
                            alpha=alpha)

        ax_trace.set_ylabel(labels[i])
        ax_density.set_ylabel(labels[i])

        if i < num_params - 1:
            ax_trace.set_xticklabels([])
        else:
            ax_trace.set_xlabel("iteration")
            ax_density.set_xlabel("parameter estimate")

    if title is not None:
        fig.suptitle(title)

    return fig
