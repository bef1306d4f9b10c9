# Author: Emrullah Erce Dutkan
import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from online_pca.datasets import make_low_rank_matrix, make_rank_one_matrix


@pytest.fixture
def low_rank():
    """100 x 10 matrix with a dominant 2-dimensional subspace."""
    X, Q, lambdas = make_low_rank_matrix(100, 10, rank=2, noise_std=0.1, seed=0)
    return X, Q[:, :2]


@pytest.fixture
def variance_reduction_data():
    X, Q, _ = make_low_rank_matrix(200, 20, rank=2, noise_std=0.1, scale=25.0, seed=0)
    return X, Q[:, :2]


@pytest.fixture
def rank_one():
    return make_rank_one_matrix(300, 10, seed=0)


@pytest.fixture
def positive_matrix():
    """Entries around 10, so an oversized step overflows on the first row."""
    rng = np.random.default_rng(0)
    return rng.uniform(5.0, 15.0, size=(20, 5))
