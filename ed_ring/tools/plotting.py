"""Plotting helpers for the time series of pattern averages.

Only the functions listed in ``__all__`` are considered the public API here.
"""

import numpy as np
import matplotlib.pyplot as plt
import logging
from .checks import validate_parameters

logger = logging.getLogger(__name__)

__all__ = ["set_size", "plot_averages"]

default_params = {
    "save_plot": {"bbox_inches": "tight", "transparent": False},
}


def set_size(width_pt, fraction=1, subplots=(1, 1), height_factor=1.0):
    """Compute figure dimensions in inches from a document width.

    Parameters
    ----------
    width_pt : float
        Reference width in points.
    fraction : float, optional
        Fraction of the width to occupy. Default is ``1``.
    subplots : tuple, optional
        Number of subplot rows and columns. Default is ``(1, 1)``.
    height_factor : float, optional
        Additional multiplier applied to the computed height.

    Returns
    -------
    tuple
        Figure dimensions ``(width_in, height_in)`` in inches.
    """
    fig_width_pt = width_pt * fraction
    inches_per_pt = 1 / 72.27
    golden_ratio = (5**0.5 - 1) / 2
    fig_width_in = fig_width_pt * inches_per_pt
    fig_height_in = fig_width_in * golden_ratio * (subplots[0] / subplots[1])
    return (fig_width_in, fig_height_in * height_factor)


def plot_averages(
    filename,
    times,
    values,
    labels,
    log_scale=False,
    deviation=False,
    equilibrium=None,
    width_pt=500,
):
    """Plot the pattern averages against time and save the figure.

    Parameters
    ----------
    filename : str
        Output image path (format deduced from the extension).
    times : numpy.ndarray
        Evolution times.
    values : numpy.ndarray
        Averages ``(n_times, n_patterns)``.
    labels : list
        Averaging patterns, used as legend entries.
    log_scale : bool, optional
        Logarithmic time axis.
    deviation : bool, optional
        The values are deviations from equilibrium.
    equilibrium : numpy.ndarray, optional
        Equilibrium averages, drawn as dashed lines.
    width_pt : float, optional
        Figure width in points.
    """
    validate_parameters(filename=filename, log_scale=log_scale, deviation=deviation)
    values = np.asarray(values)
    fig, ax = plt.subplots(1, 1, figsize=set_size(width_pt))
    for ii, label in enumerate(labels):
        line = ax.plot(times, values[:, ii], label=f"<{label}>")[0]
        if equilibrium is not None and not deviation:
            ax.axhline(equilibrium[ii], color=line.get_color(), linestyle="--", linewidth=0.8)
    if log_scale:
        ax.set_xscale("log")
    ax.set_xlabel("t")
    ax.set_ylabel("deviation from equilibrium" if deviation else "average occupation")
    if len(labels) <= 12:
        ax.legend(fontsize="small")
    fig.savefig(filename, **default_params["save_plot"])
    plt.close(fig)
    logger.info(f"Plot saved to {filename}")
