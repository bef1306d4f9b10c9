# Author: Emrullah Erce Dutkan
"""
Synthetic data for online PCA experiments and tests.

This module provides generators with a known principal subspace:
- Low-rank Gaussian data with specified eigenvalue decay
- Poisson count matrices shaped like gene-by-cell data

Rows of the generated matrices are the samples that the optimizers stream;
the row length is the feature count M.
"""

from typing import Tuple, Optional, Literal
import numpy as np


EigenvalueDecay = Literal["linear", "exponential", "polynomial"]


def generate_covariance_matrix(
    d: int,
    rank: int,
    noise_std: float = 0.1,
    decay: EigenvalueDecay = "exponential",
    decay_rate: float = 0.5,
    scale: float = 1.0,
    seed: Optional[int] = None
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Generate a covariance matrix with specified rank and eigenvalue decay.

    Args:
        d: Dimensionality.
        rank: Effective rank (number of dominant eigenvalues).
        noise_std: Standard deviation of isotropic noise added to all dimensions.
        decay: Type of eigenvalue decay ("linear", "exponential", "polynomial").
        decay_rate: Controls decay speed.
        scale: Largest eigenvalue.
        seed: Random seed.

    Returns:
        Tuple of:
        - Covariance matrix (d, d)
        - Eigenvectors (d, d), columns are eigenvectors
        - Eigenvalues (d,), sorted descending
    """
    rng = np.random.default_rng(seed)

    # Generate random orthonormal basis
    Q = rng.standard_normal((d, d))
    Q, _ = np.linalg.qr(Q)

    lambdas = np.full(d, noise_std ** 2)
    if decay == "linear":
        lambdas[:rank] = 1 - decay_rate * np.arange(rank) / rank
    elif decay == "exponential":
        lambdas[:rank] = np.exp(-decay_rate * np.arange(rank))
    elif decay == "polynomial":
        lambdas[:rank] = 1 / (np.arange(1, rank + 1) ** decay_rate)
    else:
        raise ValueError(f"Unknown decay type: {decay}")
    lambdas[:rank] *= scale

    # Ensure non-negative
    lambdas = np.maximum(lambdas, 1e-10)

    # Construct covariance: Sigma = Q @ diag(lambdas) @ Q^T
    Sigma = Q @ np.diag(lambdas) @ Q.T

    # Sort eigenvectors by eigenvalue (descending)
    idx = np.argsort(lambdas)[::-1]
    lambdas = lambdas[idx]
    Q = Q[:, idx]

    return Sigma, Q, lambdas


def make_low_rank_matrix(
    n: int,
    m: int,
    rank: int,
    noise_std: float = 0.1,
    decay: EigenvalueDecay = "exponential",
    decay_rate: float = 0.5,
    scale: float = 1.0,
    seed: Optional[int] = None
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Sample n zero-mean rows from a low-rank Gaussian in m dimensions.

    Args:
        n: Number of rows (samples).
        m: Row length (features).
        rank: Number of dominant directions.
        noise_std: Noise standard deviation.
        decay: Eigenvalue decay type.
        decay_rate: Eigenvalue decay rate.
        scale: Largest eigenvalue.
        seed: Random seed.

    Returns:
        Tuple of (X, eigenvectors, eigenvalues) with X of shape (n, m) and
        eigenvectors of shape (m, m), columns sorted by eigenvalue.
    """
    rng = np.random.default_rng(seed)
    _, Q, lambdas = generate_covariance_matrix(
        m, rank, noise_std, decay, decay_rate, scale,
        seed=rng.integers(0, 2**31)
    )
    L = Q * np.sqrt(lambdas)
    Z = rng.standard_normal((n, m))
    return Z @ L.T, Q, lambdas


def make_rank_one_matrix(
    n: int,
    m: int,
    signal_std: float = 3.0,
    noise_std: float = 0.05,
    seed: Optional[int] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Rows x = a u + noise along a single unit direction u.

    Args:
        n: Number of rows.
        m: Row length.
        signal_std: Standard deviation of the coefficient a.
        noise_std: Isotropic noise standard deviation.
        seed: Random seed.

    Returns:
        Tuple of (X, u) with X of shape (n, m) and u of shape (m,).
    """
    rng = np.random.default_rng(seed)
    u = rng.standard_normal(m)
    u /= np.linalg.norm(u)
    a = signal_std * rng.standard_normal(n)
    X = np.outer(a, u) + noise_std * rng.standard_normal((n, m))
    return X, u


def make_count_matrix(
    n: int,
    m: int,
    rank: int = 3,
    mean_count: float = 2.0,
    seed: Optional[int] = None
) -> np.ndarray:
    """
    Poisson counts with low-rank structure, shaped like gene-by-cell data.

    Args:
        n: Number of rows (genes).
        m: Number of columns (cells).
        rank: Number of latent programs.
        mean_count: Average count per entry.
        seed: Random seed.

    Returns:
        Non-negative float64 count matrix of shape (n, m), mostly zeros for
        small mean_count.
    """
    rng = np.random.default_rng(seed)
    programs = rng.gamma(1.0, 1.0, size=(n, rank))
    usage = rng.dirichlet(np.ones(rank), size=m)
    rates = programs @ usage.T
    rates *= mean_count / rates.mean()
    return rng.poisson(rates).astype(np.float64)
