# Author: Emrullah Erce Dutkan
"""
Candid covariance-free incremental PCA (CCIPCA).

Weng, Zhang and Hwang (2003). Column i of W estimates lambda_i e_i, the
i-th eigenvector scaled by its eigenvalue, without ever forming the
covariance. For global sample index k and amnesic parameter l (the
stepsize):

    w1 = (k - 1 - l) / k
    w2 = (1 + l) / k
    w_i <- w1 w_i + w2 x_i (x_i^T w_i / ||w_i||)
    x_{i+1} = x_i - (x_i^T w_i') w_i'         with w_i' = w_i / ||w_i||

The residual x_{i+1} feeds the next component (deflation). The first d
samples seed the columns directly: at k = i the column w_i is set to x_i.
There is no retraction; the columns are normalized when the result is
assembled.
"""

from typing import Optional, Tuple
import numpy as np

from .config import PCAConfig
from .engine import OptimizationContext, StreamingPCA
from .output import PCAResult


class CCIPCA(StreamingPCA):
    """
    Streaming PCA by candid covariance-free incremental updates.

    Unlike the gradient family, W is not kept orthonormal during the run and
    no scheduling policy applies; `stepsize` is the amnesic parameter.
    """

    algorithm = "ccipca"

    def _norm(self, w: np.ndarray) -> float:
        norm = np.linalg.norm(w)
        return norm if norm > 0 else self.config.epsilon

    def _setup(self, ctx: OptimizationContext) -> None:
        ctx.W = np.zeros_like(ctx.W)

    def _step(self, ctx: OptimizationContext, x: np.ndarray) -> None:
        k = ctx.t
        amnesia = self.config.stepsize
        W = ctx.W
        xi = x

        for i in range(min(ctx.W.shape[1], k)):
            if i + 1 == k:
                W[:, i] = xi
                break
            w1 = (k - 1 - amnesia) / k
            w2 = (1 + amnesia) / k
            wi = W[:, i]
            W[:, i] = w1 * wi + w2 * xi * (xi @ (wi / self._norm(wi)))
            unit = W[:, i] / self._norm(W[:, i])
            xi = xi - (xi @ unit) * unit

    def _retract(self, ctx: OptimizationContext) -> None:
        pass

    def _finalize(self, ctx: OptimizationContext) -> np.ndarray:
        norms = np.linalg.norm(ctx.W, axis=0)
        norms = np.where(norms > 0, norms, self.config.epsilon)
        return ctx.W / norms


def ccipca_pca(
    X,
    k: int,
    stepsize: float = 0.1,
    numepoch: int = 5,
    config: Optional[PCAConfig] = None
) -> Tuple[np.ndarray, PCAResult]:
    """
    Convenience function to run CCIPCA on a dataset.

    Args:
        X: Data matrix of shape (N, M), dense or sparse, or a stream source.
        k: Number of principal components.
        stepsize: Amnesic parameter.
        numepoch: Number of passes over the data.
        config: Base configuration; the other arguments override it.

    Returns:
        Tuple of (components, result) where components has shape (k, M).
    """
    model = CCIPCA(config, dim=k, stepsize=stepsize, numepoch=numepoch)
    result = model.fit(X)
    return result.components_, result
