# Author: Emrullah Erce Dutkan
"""
Visualization utilities for online PCA runs.

This module provides plotting functions for:
- Reconstruction error over the course of a run (convergence curves)
- Eigenvalue spectra (scree plots)
- Algorithm comparisons
"""

from typing import Dict, List, Optional, Sequence
import os

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from .output import PCAResult
from .pipeline import AlgorithmRun


def setup_style() -> None:
    """Configure matplotlib style for clean plots."""
    plt.style.use("seaborn-v0_8-whitegrid")
    plt.rcParams.update({
        "figure.figsize": (10, 6),
        "font.size": 11,
        "axes.labelsize": 12,
        "axes.titlesize": 13,
        "legend.fontsize": 10,
        "lines.linewidth": 1.5,
        "lines.markersize": 6
    })


def _finish(fig: Figure, save_path: Optional[str], show: bool) -> Figure:
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    if show:
        plt.show()
    else:
        plt.close(fig)

    return fig


def plot_error_history(
    results: Sequence[PCAResult],
    labels: Optional[Sequence[str]] = None,
    title: Optional[str] = None,
    save_path: Optional[str] = None,
    show: bool = True
) -> Figure:
    """
    Plot the relative reconstruction error recorded during streaming runs.

    Args:
        results: PCAResults fitted with evalfreq set.
        labels: Legend entries. Defaults to the algorithm names.
        title: Plot title.
        save_path: Path to save figure.
        show: Whether to display the plot.

    Returns:
        Matplotlib figure.
    """
    setup_style()
    fig, ax = plt.subplots()

    if labels is None:
        labels = [r.algorithm for r in results]

    for result, label in zip(results, labels):
        if not result.history:
            continue
        t = [h["t"] for h in result.history]
        values = [h["reconstruction_error"] for h in result.history]
        ax.plot(t, values, label=label, marker="o", markersize=3)

    ax.set_xlabel("Samples processed")
    ax.set_ylabel("Relative reconstruction error")
    ax.set_title(title or "Reconstruction Error vs Samples")
    ax.set_yscale("log")
    ax.legend(loc="best")

    return _finish(fig, save_path, show)


def plot_eigenvalues(
    result: PCAResult,
    title: Optional[str] = None,
    save_path: Optional[str] = None,
    show: bool = True
) -> Figure:
    """
    Scree plot of the eigenvalues with the cumulative share of variance.

    The cumulative curve is drawn only when the total variance is known.
    """
    setup_style()
    fig, ax = plt.subplots()

    components = np.arange(1, len(result.eigenvalues) + 1)
    ax.bar(components, result.eigenvalues, color=plt.cm.viridis(0.4), width=0.6)
    ax.set_xlabel("Component")
    ax.set_ylabel("Eigenvalue")
    ax.set_xticks(components)

    if result.total_variance:
        ax2 = ax.twinx()
        cumulative = np.cumsum(result.eigenvalues) / result.total_variance
        ax2.plot(components, cumulative, color="black", marker="o")
        ax2.set_ylabel("Cumulative explained variance")
        ax2.set_ylim(0, 1.05)
        ax2.grid(False)

    ax.set_title(title or f"Eigenvalues ({result.algorithm})")

    return _finish(fig, save_path, show)


def plot_comparison_bars(
    runs: List[AlgorithmRun],
    metrics: List[str] = None,
    title: Optional[str] = None,
    save_path: Optional[str] = None,
    show: bool = True
) -> Figure:
    """
    Plot bar chart comparing algorithms on multiple metrics.

    Args:
        runs: Output of compare_algorithms().
        metrics: AlgorithmRun fields to compare.
        title: Plot title.
        save_path: Path to save figure.
        show: Whether to display.

    Returns:
        Matplotlib figure.
    """
    if metrics is None:
        metrics = ["reconstruction_error", "runtime_seconds"]

    setup_style()

    n_metrics = len(metrics)
    fig, axes = plt.subplots(1, n_metrics, figsize=(5 * n_metrics, 5))
    if n_metrics == 1:
        axes = [axes]

    names = [r.algorithm for r in runs]
    x = np.arange(len(names))
    width = 0.6

    metric_labels = {
        "reconstruction_error": "Reconstruction Error",
        "explained_variance": "Explained Variance",
        "runtime_seconds": "Runtime (s)",
        "n_samples_seen": "Samples"
    }

    for ax, metric in zip(axes, metrics):
        values = [getattr(r, metric) or 0.0 for r in runs]
        colors = plt.cm.viridis(np.linspace(0.2, 0.8, len(names)))

        bars = ax.bar(x, values, width, color=colors)
        ax.set_ylabel(metric_labels.get(metric, metric))
        ax.set_xticks(x)
        ax.set_xticklabels(names, rotation=45, ha="right")

        # Add value labels on bars
        for bar, val in zip(bars, values):
            height = bar.get_height()
            ax.annotate(
                f"{val:.4f}" if val < 100 else f"{val:.0f}",
                xy=(bar.get_x() + bar.get_width() / 2, height),
                xytext=(0, 3),
                textcoords="offset points",
                ha="center",
                va="bottom",
                fontsize=8
            )

    if title:
        fig.suptitle(title, fontsize=14)

    return _finish(fig, save_path, show)


def create_report_figures(
    runs: List[AlgorithmRun],
    output_dir: str
) -> Dict[str, str]:
    """
    Create all report figures for a comparison and save them.

    Args:
        runs: Output of compare_algorithms().
        output_dir: Directory to save figures.

    Returns:
        Dictionary mapping figure names to file paths.
    """
    os.makedirs(output_dir, exist_ok=True)

    paths = {}

    results = [r.result for r in runs if r.result is not None and r.result.history]
    if results:
        path = os.path.join(output_dir, "reconstruction_error.png")
        plot_error_history(results, save_path=path, show=False)
        paths["reconstruction_error"] = path

    path = os.path.join(output_dir, "comparison.png")
    plot_comparison_bars(runs, save_path=path, show=False)
    paths["comparison"] = path

    for run in runs:
        if run.result is None:
            continue
        path = os.path.join(output_dir, f"eigenvalues_{run.algorithm}.png")
        plot_eigenvalues(run.result, save_path=path, show=False)
        paths[f"eigenvalues_{run.algorithm}"] = path

    return paths
