# Author: Emrullah Erce Dutkan
"""
Oja's algorithm and Riemannian SGD for streaming PCA.

Both maximize the weighted Rayleigh quotient tr(W^T X^T X W D) / M one row at
a time. Oja's rule takes the Euclidean gradient

    W <- W + eta_t * (2/M) x (x^T W) D / (||w_i||^2 + offset)

and RSGD projects the same gradient onto the tangent space of the Stiefel
manifold at W before stepping:

    W <- W + eta_t * P_W((2/M) x (x^T W) D)

In both cases W is pulled back onto the manifold by a thin QR after every
update, and the step follows the configured scheduling policy
(Robbins-Monro, momentum, NAG or Adagrad).
"""

from typing import Optional, Tuple
import numpy as np

from .config import PCAConfig
from .engine import GradientPCA
from .output import PCAResult


class OjaPCA(GradientPCA):
    """
    Streaming PCA using Oja's rule.

    Uses the overflow-safe gradient with offset_stoch, supports all four
    scheduling policies, row scaling by mean/variance/column sums and early
    stopping on the reconstruction error.

    Attributes:
        config: Validated PCAConfig.
        result_: PCAResult of the last fit.
    """

    algorithm = "oja"
    uses_offset = True


class RSGDPCA(GradientPCA):
    """
    Riemannian stochastic gradient descent on the Stiefel manifold.

    The gradient is projected with P_W(G) = G - W sym(W^T G) before the
    scheduling policy is applied.
    """

    algorithm = "rsgd"
    projected = True


def oja_pca(
    X,
    k: int,
    stepsize: float = 0.1,
    numepoch: int = 3,
    scheduling: str = "robbins-monro",
    config: Optional[PCAConfig] = None
) -> Tuple[np.ndarray, PCAResult]:
    """
    Convenience function to run Oja's PCA on a dataset.

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
    model = OjaPCA(config, dim=k, stepsize=stepsize, numepoch=numepoch, scheduling=scheduling)
    result = model.fit(X)
    return result.components_, result


def rsgd_pca(
    X,
    k: int,
    stepsize: float = 0.1,
    numepoch: int = 5,
    scheduling: str = "robbins-monro",
    config: Optional[PCAConfig] = None
) -> Tuple[np.ndarray, PCAResult]:
    """Convenience function to run RSGD; see oja_pca()."""
    model = RSGDPCA(config, dim=k, stepsize=stepsize, numepoch=numepoch, scheduling=scheduling)
    result = model.fit(X)
    return result.components_, result
