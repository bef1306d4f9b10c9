# Author: Emrullah Erce Dutkan
"""
Per-row normalization of raw count vectors.

A raw row of the data matrix goes through a fixed pipeline before it reaches
any optimizer:

    scale transform -> column mask -> row centering -> row variance scaling
    -> column-sum scaling

Each step after the scale transform is optional and is skipped when its
statistic was not supplied. The statistics are precomputed vectors from an
earlier full pass over the data and are never modified here.

Scale transforms:
- raw:  x
- log:  log10(x + pseudocount)
- sqrt: sqrt(x)
- ftt:  sqrt(x) + sqrt(x + 1), the Freeman-Tukey variance-stabilizing transform
"""

from typing import Optional, Sequence, Union
import numpy as np
import scipy.sparse as sp

from .config import ScaleMode


SCALE_MODES = ("raw", "log", "sqrt", "ftt")


def scale_values(x: np.ndarray, mode: ScaleMode, pseudocount: float = 1.0) -> np.ndarray:
    """
    Apply a scale transform elementwise.

    Args:
        x: Raw values.
        mode: One of "raw", "log", "sqrt", "ftt".
        pseudocount: Offset used by the log transform.

    Returns:
        Transformed float64 array (always a new array).
    """
    x = np.asarray(x, dtype=np.float64)
    if mode == "raw":
        return x.copy()
    elif mode == "log":
        return np.log10(x + pseudocount)
    elif mode == "sqrt":
        return np.sqrt(x)
    elif mode == "ftt":
        return np.sqrt(x) + np.sqrt(x + 1.0)
    else:
        raise ValueError(f"Unknown scale mode: {mode}")


def preserves_zero(mode: ScaleMode, pseudocount: float = 1.0) -> bool:
    """Whether the transform maps 0 to 0, i.e. keeps sparse input sparse."""
    if mode in ("raw", "sqrt"):
        return True
    if mode == "log":
        return pseudocount == 1.0
    return False


def scale_matrix(X, mode: ScaleMode, pseudocount: float = 1.0):
    """
    Apply a scale transform to a whole chunk.

    Sparse input stays sparse when the transform preserves zeros; otherwise
    it is densified first.
    """
    if sp.issparse(X):
        if preserves_zero(mode, pseudocount):
            X = sp.csr_matrix(X, dtype=np.float64, copy=True)
            X.data = scale_values(X.data, mode, pseudocount)
            return X
        X = X.toarray()
    return scale_values(X, mode, pseudocount)


def mask_indices(mask: Union[Sequence, np.ndarray], n_columns: int) -> np.ndarray:
    """
    Convert a column mask to sorted column indices.

    The dtype decides how the mask is read: booleans are per-column flags,
    integers are column indices, and floats (what a mask CSV file loads as)
    are 0/1 per-column flags.

    Raises:
        ValueError: If the mask does not fit the column count.
    """
    mask = np.asarray(mask).ravel()
    if np.issubdtype(mask.dtype, np.floating):
        if not np.isin(mask, (0.0, 1.0)).all():
            raise ValueError("Floating-point masks must hold 0/1 flags")
        mask = mask.astype(bool)
    elif not np.issubdtype(mask.dtype, np.integer) and mask.dtype != bool:
        raise ValueError(f"Unsupported mask dtype {mask.dtype}")
    if mask.dtype == bool:
        if mask.shape[0] != n_columns:
            raise ValueError(
                f"Boolean mask has length {mask.shape[0]}, expected {n_columns}"
            )
        return np.flatnonzero(mask)
    idx = np.unique(mask.astype(np.int64))
    if idx.size and (idx[0] < 0 or idx[-1] >= n_columns):
        raise ValueError(f"Mask indices must lie in [0, {n_columns})")
    return idx


class RowNormalizer:
    """
    Turns raw rows into analysis-ready vectors.

    Attributes:
        n_columns: Length of raw rows (M).
        n_features: Length of normalized rows (M, or the mask size).
    """

    def __init__(
        self,
        n_columns: int,
        scale: ScaleMode = "raw",
        pseudocount: float = 1.0,
        mask: Optional[np.ndarray] = None,
        rowmean: Optional[np.ndarray] = None,
        rowvar: Optional[np.ndarray] = None,
        colsum: Optional[np.ndarray] = None,
        epsilon: float = 1e-8
    ):
        """
        Initialize the normalizer.

        Args:
            n_columns: Length of raw rows.
            scale: Scale transform ("raw", "log", "sqrt", "ftt").
            pseudocount: Offset for the log transform.
            mask: Boolean mask or column indices to keep.
            rowmean: Per-row means (length N), subtracted from each entry.
            rowvar: Per-row variances (length N); rows are divided by the
                square root after centering.
            colsum: Per-column sums (length M), each entry is divided by its
                column's sum.
            epsilon: Offset for zero divisors.
        """
        if scale not in SCALE_MODES:
            raise ValueError(f"Unknown scale mode: {scale}")
        self.n_columns = n_columns
        self.scale = scale
        self.pseudocount = pseudocount
        self.epsilon = epsilon

        self.mask = None if mask is None else mask_indices(mask, n_columns)
        self.rowmean = None if rowmean is None else np.asarray(rowmean, dtype=np.float64).ravel()
        self.rowvar = None if rowvar is None else np.asarray(rowvar, dtype=np.float64).ravel()

        self.colsum = None
        if colsum is not None:
            colsum = np.asarray(colsum, dtype=np.float64).ravel()
            if colsum.shape[0] != n_columns:
                raise ValueError(
                    f"colsum has length {colsum.shape[0]}, expected {n_columns}"
                )
            if self.mask is not None:
                colsum = colsum[self.mask]
            # Empty columns would otherwise divide by zero
            self.colsum = np.where(colsum == 0, self.epsilon, colsum)

        self._rowscale = None
        if self.rowvar is not None:
            self._rowscale = np.sqrt(np.maximum(self.rowvar, 0.0)) + (self.rowvar == 0) * self.epsilon

    @property
    def n_features(self) -> int:
        """Length of the normalized vectors."""
        if self.mask is not None:
            return int(self.mask.shape[0])
        return self.n_columns

    def __call__(self, x: np.ndarray, n: int = 0) -> np.ndarray:
        """
        Normalize one raw row.

        Args:
            x: Raw row of length n_columns.
            n: Zero-based row index, used to look up row statistics.

        Returns:
            Normalized float64 vector of length n_features.
        """
        x = scale_values(np.ravel(x), self.scale, self.pseudocount)
        if x.shape[0] != self.n_columns:
            raise ValueError(f"Expected row of length {self.n_columns}, got {x.shape[0]}")

        if self.mask is not None:
            x = x[self.mask]
        if self.rowmean is not None:
            x -= self.rowmean[n]
        if self._rowscale is not None:
            x /= self._rowscale[n]
        if self.colsum is not None:
            x /= self.colsum
        return x

    def rowmean_vector(self, n_rows: int) -> np.ndarray:
        """Row means as a dense vector, zeros when centering is disabled."""
        if self.rowmean is None:
            return np.zeros(n_rows, dtype=np.float64)
        return self.rowmean[:n_rows].copy()


def build_normalizer(normalization, n_columns: int) -> RowNormalizer:
    """
    Create a RowNormalizer from a NormalizationConfig.

    Statistics given as CSV paths are loaded here.
    """
    from .io import load_vector

    def resolve(value):
        if value is None:
            return None
        if isinstance(value, str):
            return load_vector(value)
        return np.asarray(value)

    return RowNormalizer(
        n_columns=n_columns,
        scale=normalization.scale,
        pseudocount=normalization.pseudocount,
        mask=resolve(normalization.mask),
        rowmean=resolve(normalization.rowmean),
        rowvar=resolve(normalization.rowvar),
        colsum=resolve(normalization.colsum),
        epsilon=normalization.epsilon
    )
