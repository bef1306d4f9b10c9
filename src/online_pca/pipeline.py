# Author: Emrullah Erce Dutkan
"""
Running and comparing PCA algorithms from a configuration.

This module provides:
- create_model(): build the algorithm named in a PCAConfig
- run_pca(): fit one configuration and optionally persist the result
- compare_algorithms(): run several algorithms on the same stream and
  summarize reconstruction error, explained variance and runtime

Results are written only after a run completes; a failed run leaves the
output directory untouched.
"""

from typing import Any, Dict, List, Optional, Sequence
from dataclasses import dataclass, replace
import logging
import os
import time

from .ccipca import CCIPCA
from .config import PCAConfig, get_default_config, validate_config
from .io import save_config, save_result
from .metrics import stream_reconstruction_error
from .normalize import build_normalizer
from .oja import OjaPCA, RSGDPCA
from .output import PCAResult
from .rsvd import RandomizedSVD
from .source import open_source
from .svrg import RSVRGPCA, SVRGPCA


logger = logging.getLogger(__name__)

MODELS = {
    "oja": OjaPCA,
    "ccipca": CCIPCA,
    "rsgd": RSGDPCA,
    "svrg": SVRGPCA,
    "rsvrg": RSVRGPCA,
    "rsvd": RandomizedSVD,
}


def create_model(config: PCAConfig):
    """
    Factory function to create the algorithm named by config.algorithm.

    Raises:
        ConfigurationError: For an unknown algorithm or invalid options.
    """
    validate_config(config)
    return MODELS[config.algorithm](config)


def run_pca(source, config: PCAConfig, outdir: Optional[str] = None) -> PCAResult:
    """
    Fit one configuration.

    Args:
        source: StreamSource, array, sparse matrix or .npy/.npz path.
        config: Run configuration.
        outdir: If given, the result CSVs and config.json are written here
            once the run has finished.

    Returns:
        PCAResult.
    """
    model = create_model(config)
    result = model.fit(source)

    if outdir is not None:
        paths = save_result(result, outdir)
        save_config(model.config.to_dict(), os.path.join(outdir, "config.json"))
        logger.info("Saved %s result to %s (%d files)", config.algorithm, outdir, len(paths))

    return result


@dataclass
class AlgorithmRun:
    """Summary of one algorithm in a comparison."""
    algorithm: str
    reconstruction_error: float
    explained_variance: Optional[float]
    runtime_seconds: float
    n_samples_seen: int
    stopped_early: bool = False
    result: Optional[PCAResult] = None


def compare_algorithms(
    source,
    algorithms: Sequence[str] = ("oja", "rsgd", "svrg", "rsvrg", "ccipca", "rsvd"),
    base_config: Optional[PCAConfig] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None
) -> List[AlgorithmRun]:
    """
    Run several algorithms on the same stream.

    Every run starts from the algorithm's defaults and takes dim, seed and
    normalization from base_config, so the normalization must be one that
    every listed algorithm supports. The
    reconstruction error is measured on the same normalized rows for all of
    them.

    Args:
        source: StreamSource, array, sparse matrix or .npy/.npz path.
        algorithms: Algorithm names.
        base_config: Shared settings. Defaults to PCAConfig().
        overrides: Per-algorithm PCAConfig field overrides.

    Returns:
        List of AlgorithmRun in the order given.
    """
    source = open_source(source)
    base_config = base_config or PCAConfig()
    overrides = overrides or {}
    _, n_columns = source.dimensions()

    runs = []
    for algorithm in algorithms:
        defaults = get_default_config(algorithm)
        config = replace(
            defaults,
            dim=base_config.dim,
            seed=base_config.seed,
            normalization=base_config.normalization,
            **overrides.get(algorithm, {})
        )
        logger.info("Running %s", algorithm)

        start_time = time.time()
        result = run_pca(source, config)
        runtime = time.time() - start_time

        normalizer = build_normalizer(config.normalization, n_columns)
        error = stream_reconstruction_error(source, normalizer, result.eigenvectors)

        runs.append(AlgorithmRun(
            algorithm=algorithm,
            reconstruction_error=error,
            explained_variance=result.explained_variance_ratio,
            runtime_seconds=runtime,
            n_samples_seen=result.n_samples_seen,
            stopped_early=result.stopped_early,
            result=result
        ))

    return runs


def format_results_table(runs: List[AlgorithmRun]) -> str:
    """Format a comparison as a text table for console output."""
    lines = []
    header = (
        f"{'Algorithm':<10} {'ReconErr':>12} {'ExpVar':>10} "
        f"{'Samples':>10} {'Time':>8}"
    )
    lines.append(header)
    lines.append("-" * len(header))

    for r in runs:
        exp_var = f"{r.explained_variance:.4f}" if r.explained_variance is not None else "-"
        line = (
            f"{r.algorithm:<10} {r.reconstruction_error:>12.6f} {exp_var:>10} "
            f"{r.n_samples_seen:>10,} {r.runtime_seconds:>7.2f}s"
        )
        if r.stopped_early:
            line += " (stopped early)"
        lines.append(line)

    return "\n".join(lines)
