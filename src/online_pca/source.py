# Author: Emrullah Erce Dutkan
"""
Row stream sources for online PCA.

The optimizers never hold the data matrix. They see it through a
StreamSource, which reports the matrix dimensions (N rows, M columns) and
hands out the rows sequentially, once per epoch. The codec behind a source is
opaque to the engine.

Provided sources:
- ArraySource: an in-memory dense array or scipy.sparse matrix
- NpySource: a .npy file opened as a read-only memory map
- SparseNpzSource: a scipy.sparse .npz file, loaded whole at the start of
  every pass and then handed out row by row or chunk by chunk

Sources that can seek also expose row(n), which permuted-order runs need,
and every source can hand out blocks of consecutive rows through chunks().
"""

from abc import ABC, abstractmethod
from typing import Iterator, Tuple, Union
import os

import numpy as np
import scipy.sparse as sp


class StreamSource(ABC):
    """
    Restartable, ordered stream of the rows of an N x M matrix.

    Each call to rows() starts a fresh pass from the first row.
    """

    supports_random_access = False

    @abstractmethod
    def dimensions(self) -> Tuple[int, int]:
        """Return (N, M): the number of rows and the row length."""

    @abstractmethod
    def rows(self) -> Iterator[np.ndarray]:
        """Yield the N rows in order as float64 vectors of length M."""

    def row(self, n: int) -> np.ndarray:
        """Return row n (0-indexed). Only for sources with random access."""
        raise NotImplementedError(f"{type(self).__name__} does not support random access")

    def chunks(self, chunksize: int) -> Iterator[Tuple[int, Union[np.ndarray, sp.spmatrix]]]:
        """
        Yield (start, block) pairs of up to chunksize consecutive rows.

        The default implementation buffers rows() into dense blocks.
        """
        buffer = []
        start = 0
        for x in self.rows():
            buffer.append(x)
            if len(buffer) == chunksize:
                yield start, np.vstack(buffer)
                start += len(buffer)
                buffer = []
        if buffer:
            yield start, np.vstack(buffer)


class ArraySource(StreamSource):
    """
    Stream wrapper for an in-memory matrix.

    Accepts dense arrays and scipy.sparse matrices; sparse chunks are handed
    out as CSR blocks without densifying.
    """

    supports_random_access = True

    def __init__(self, X: Union[np.ndarray, sp.spmatrix]):
        """
        Initialize array source.

        Args:
            X: Data matrix of shape (N, M).
        """
        if sp.issparse(X):
            self.X = sp.csr_matrix(X, dtype=np.float64)
        else:
            self.X = np.asarray(X, dtype=np.float64)
            if self.X.ndim != 2:
                raise ValueError(f"Expected a 2-D matrix, got shape {self.X.shape}")
        self.n, self.d = self.X.shape

    def dimensions(self) -> Tuple[int, int]:
        return self.n, self.d

    def row(self, n: int) -> np.ndarray:
        if sp.issparse(self.X):
            return self.X[n].toarray().ravel()
        return self.X[n].copy()

    def rows(self) -> Iterator[np.ndarray]:
        for n in range(self.n):
            yield self.row(n)

    def chunks(self, chunksize: int):
        for start in range(0, self.n, chunksize):
            yield start, self.X[start:start + chunksize]


class NpySource(StreamSource):
    """
    Stream rows of a .npy file through a read-only memory map.

    Only the rows being processed are paged in.
    """

    supports_random_access = True

    def __init__(self, path: str):
        """
        Initialize the source.

        Args:
            path: Path to a 2-D .npy array.
        """
        self.path = path
        data = np.load(path, mmap_mode="r")
        if data.ndim != 2:
            raise ValueError(f"Expected a 2-D array in {path}, got shape {data.shape}")
        self.n, self.d = data.shape
        del data

    def _open(self) -> np.ndarray:
        return np.load(self.path, mmap_mode="r")

    def dimensions(self) -> Tuple[int, int]:
        return self.n, self.d

    def row(self, n: int) -> np.ndarray:
        return np.array(self._open()[n], dtype=np.float64)

    def rows(self) -> Iterator[np.ndarray]:
        data = self._open()
        for n in range(self.n):
            yield np.array(data[n], dtype=np.float64)

    def chunks(self, chunksize: int):
        data = self._open()
        for start in range(0, self.n, chunksize):
            yield start, np.array(data[start:start + chunksize], dtype=np.float64)


class SparseNpzSource(StreamSource):
    """
    Stream a sparse matrix stored with scipy.sparse.save_npz.

    scipy.sparse.load_npz reads the whole matrix, so each pass holds the
    complete sparse matrix in memory while it runs. Nothing is kept between
    passes.
    """

    supports_random_access = False

    def __init__(self, path: str):
        """
        Initialize the source.

        Args:
            path: Path to a .npz file written by scipy.sparse.save_npz.
        """
        self.path = path
        self.n, self.d = sp.load_npz(path).shape

    def dimensions(self) -> Tuple[int, int]:
        return self.n, self.d

    def rows(self) -> Iterator[np.ndarray]:
        X = sp.load_npz(self.path).tocsr()
        for n in range(self.n):
            yield X[n].toarray().ravel().astype(np.float64)

    def chunks(self, chunksize: int):
        X = sp.load_npz(self.path).tocsr()
        for start in range(0, self.n, chunksize):
            yield start, X[start:start + chunksize].astype(np.float64)


def open_source(obj) -> StreamSource:
    """
    Factory function to create sources.

    Args:
        obj: A StreamSource (returned as is), a dense array, a scipy.sparse
            matrix, or a path to a .npy or .npz file.

    Returns:
        StreamSource object.
    """
    if isinstance(obj, StreamSource):
        return obj
    if isinstance(obj, (str, os.PathLike)):
        path = os.fspath(obj)
        if path.endswith(".npy"):
            return NpySource(path)
        elif path.endswith(".npz"):
            return SparseNpzSource(path)
        else:
            raise ValueError(f"Unknown input format: {path}")
    return ArraySource(obj)
