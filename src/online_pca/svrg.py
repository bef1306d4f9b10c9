# Author: Emrullah Erce Dutkan
"""
Variance-reduced streaming PCA (SVRG and Riemannian SVRG).

At the start of every epoch s the current basis is frozen as a snapshot Ws
and a full pass computes the mean gradient there:

    u = mean_n grad(Ws, x_n)        at step scale stepsize / s

Each sample then contributes the corrected gradient

    grad(W, x) - grad(Ws, x) + u

whose variance shrinks as W approaches Ws. The Riemannian variant projects
every term onto the tangent space at the point it was evaluated at, so the
snapshot gradient and u are projected at Ws. The corrected gradient is handed
to the scheduling policy like any other gradient.
"""

from typing import Optional, Tuple
import logging

import numpy as np

from .config import PCAConfig
from .engine import GradientPCA, OptimizationContext
from .gradient import full_gradient, stochastic_gradient
from .manifold import tangent_projection
from .output import PCAResult


logger = logging.getLogger(__name__)


class SVRGPCA(GradientPCA):
    """
    Stochastic variance-reduced gradient PCA.

    Costs one extra pass over the stream per epoch for the full gradient.
    """

    algorithm = "svrg"

    def _start_epoch(self, ctx: OptimizationContext, source, normalizer) -> None:
        ctx.snapshot = ctx.W.copy()
        offset = self.config.offset_full if self.uses_offset else None
        rows = (normalizer(raw, n) for n, raw in enumerate(source.rows()))
        u = full_gradient(
            ctx.snapshot, rows, ctx.weights, ctx.n_features,
            self.config.stepsize / ctx.epoch, offset
        )
        if self.projected:
            u = tangent_projection(u, ctx.snapshot)
        ctx.full_gradient = u
        logger.debug("Epoch %d full gradient norm %.6g", ctx.epoch, np.linalg.norm(u))

    def _gradient_fn(self, ctx: OptimizationContext, x: np.ndarray):
        weights = ctx.weights
        n_features = ctx.n_features
        offset = self.offset
        projected = self.projected
        snapshot = ctx.snapshot
        u = ctx.full_gradient

        def gradient(point: np.ndarray, step: float) -> np.ndarray:
            G = stochastic_gradient(point, x, weights, n_features, step, offset)
            Gs = stochastic_gradient(snapshot, x, weights, n_features, step, offset)
            if projected:
                G = tangent_projection(G, point)
                Gs = tangent_projection(Gs, snapshot)
            return G - Gs + u

        return gradient


class RSVRGPCA(SVRGPCA):
    """
    Riemannian SVRG on the Stiefel manifold.

    Uses the overflow-safe gradients (offset_full for u, offset_stoch per
    sample) and may visit the rows in a fresh random order every epoch
    (perm=True, needs a source with random access).
    """

    algorithm = "rsvrg"
    projected = True
    uses_offset = True


def svrg_pca(
    X,
    k: int,
    stepsize: float = 0.1,
    numepoch: int = 5,
    scheduling: str = "robbins-monro",
    config: Optional[PCAConfig] = None
) -> Tuple[np.ndarray, PCAResult]:
    """
    Convenience function to run SVRG PCA on a dataset.

    Args:
        X: Data matrix of shape (N, M), dense or sparse, or a stream source.
        k: Number of principal components.
        stepsize: Step size.
        numepoch: Number of passes over the data.
        scheduling: Scheduling policy.
        config: Base configuration; the other arguments override it.

    Returns:
        Tuple of (components, result) where components has shape (k, M).
    """
    model = SVRGPCA(config, dim=k, stepsize=stepsize, numepoch=numepoch, scheduling=scheduling)
    result = model.fit(X)
    return result.components_, result


def rsvrg_pca(
    X,
    k: int,
    stepsize: float = 0.1,
    numepoch: int = 3,
    scheduling: str = "robbins-monro",
    config: Optional[PCAConfig] = None
) -> Tuple[np.ndarray, PCAResult]:
    """Convenience function to run Riemannian SVRG; see svrg_pca()."""
    model = RSVRGPCA(config, dim=k, stepsize=stepsize, numepoch=numepoch, scheduling=scheduling)
    result = model.fit(X)
    return result.components_, result
