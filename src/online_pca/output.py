# Author: Emrullah Erce Dutkan
"""
Final result assembly.

Turns a basis into eigenvalues, loadings and scores with one more pass over
the stream. For the basis W (M x d) and normalized rows x_n:

    XW      = [x_n^T W]_n            (N x d), the scores
    sigma_i = ||(XW)_i||
    lambda_i = sigma_i^2 / M        the eigenvalues
    loadings = XW / sigma            (N x d), unit columns

Components are sorted by decreasing eigenvalue.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
import logging

import numpy as np


logger = logging.getLogger(__name__)


@dataclass
class PCAResult:
    """Output of a PCA run."""
    eigenvectors: np.ndarray
    eigenvalues: np.ndarray
    loadings: np.ndarray
    scores: np.ndarray
    explained_variance_ratio: Optional[float] = None
    total_variance: Optional[float] = None
    singular_values: Optional[np.ndarray] = None
    algorithm: str = ""
    n_samples_seen: int = 0
    stopped_early: bool = False
    stop_reason: Optional[str] = None
    history: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def components_(self) -> np.ndarray:
        """
        Return the principal components as row vectors.

        Shape: (d, M), compatible with sklearn PCA API.
        """
        return self.eigenvectors.T.copy()


def assemble_result(
    W: np.ndarray,
    source,
    normalizer,
    algorithm: str = ""
) -> PCAResult:
    """
    Compute eigenvalues, loadings and scores for a final basis.

    Args:
        W: Final basis of shape (M, d).
        source: StreamSource with the raw rows.
        normalizer: RowNormalizer used during fitting.
        algorithm: Name recorded in the result.

    Returns:
        PCAResult with components sorted by decreasing eigenvalue.
    """
    n_rows, _ = source.dimensions()
    n_features = normalizer.n_features
    dim = W.shape[1]

    XW = np.zeros((n_rows, dim), dtype=np.float64)
    total = 0.0
    for n, raw in enumerate(source.rows()):
        x = normalizer(raw, n)
        XW[n] = x @ W
        total += float(x @ x)

    sigma = np.linalg.norm(XW, axis=0)
    eigenvalues = sigma ** 2 / n_features

    order = np.argsort(eigenvalues)[::-1]
    sigma = sigma[order]
    eigenvalues = eigenvalues[order]
    XW = XW[:, order]

    safe_sigma = np.where(sigma == 0, 1.0, sigma)
    loadings = XW / safe_sigma

    total_variance = total / n_features
    explained = None
    if total_variance > 0:
        explained = float(eigenvalues.sum() / total_variance)

    logger.debug("Assembled %d components, eigenvalues %s", dim, eigenvalues)

    return PCAResult(
        eigenvectors=W[:, order].copy(),
        eigenvalues=eigenvalues,
        loadings=loadings,
        scores=XW,
        explained_variance_ratio=explained,
        total_variance=total_variance,
        singular_values=sigma,
        algorithm=algorithm
    )
