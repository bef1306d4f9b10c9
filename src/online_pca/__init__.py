# Author: Emrullah Erce Dutkan
"""
Online PCA

A library for principal component analysis of matrices too large to hold in
memory, streamed one row (or one chunk of rows) at a time:
- Oja's algorithm and CCIPCA
- Riemannian SGD on the Stiefel manifold
- Variance-reduced SVRG and Riemannian SVRG
- Chunked randomized SVD with lazy row centering

Gradient-based variants support Robbins-Monro, momentum, Nesterov and
Adagrad step scheduling. Rows may be log/sqrt/Freeman-Tukey scaled, masked,
centered and rescaled by precomputed statistics before they reach the
optimizer.
"""

from .oja import OjaPCA, RSGDPCA, oja_pca, rsgd_pca
from .svrg import SVRGPCA, RSVRGPCA, svrg_pca, rsvrg_pca
from .ccipca import CCIPCA, ccipca_pca
from .rsvd import RandomizedSVD, randomized_svd_pca
from .engine import StreamingPCA, GradientPCA, OptimizationContext
from .output import PCAResult
from .normalize import RowNormalizer
from .source import StreamSource, ArraySource, NpySource, SparseNpzSource, open_source
from .monitor import ConvergenceMonitor
from .schedule import make_schedule, robbins_monro_step
from .metrics import (
    subspace_distance,
    stream_reconstruction_error,
    batch_pca_reference,
    principal_angles
)
from .config import (
    PCAConfig,
    NormalizationConfig,
    RandomizedSVDConfig,
    get_default_config,
    validate_config
)
from .exceptions import (
    OnlinePCAError,
    ConfigurationError,
    PreconditionError,
    NonFiniteBasisError
)
from .pipeline import create_model, run_pca, compare_algorithms

__version__ = "0.1.0"
__author__ = "Emrullah Erce Dutkan"

__all__ = [
    # Core algorithms
    "OjaPCA",
    "RSGDPCA",
    "SVRGPCA",
    "RSVRGPCA",
    "CCIPCA",
    "RandomizedSVD",
    "StreamingPCA",
    "GradientPCA",
    "OptimizationContext",
    # Convenience functions
    "oja_pca",
    "rsgd_pca",
    "svrg_pca",
    "rsvrg_pca",
    "ccipca_pca",
    "randomized_svd_pca",
    # Building blocks
    "PCAResult",
    "RowNormalizer",
    "ConvergenceMonitor",
    "make_schedule",
    "robbins_monro_step",
    # Streams
    "StreamSource",
    "ArraySource",
    "NpySource",
    "SparseNpzSource",
    "open_source",
    # Metrics
    "subspace_distance",
    "stream_reconstruction_error",
    "batch_pca_reference",
    "principal_angles",
    # Configuration
    "PCAConfig",
    "NormalizationConfig",
    "RandomizedSVDConfig",
    "get_default_config",
    "validate_config",
    # Errors
    "OnlinePCAError",
    "ConfigurationError",
    "PreconditionError",
    "NonFiniteBasisError",
    # Pipeline
    "create_model",
    "run_pca",
    "compare_algorithms",
]
