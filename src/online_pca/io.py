# Author: Emrullah Erce Dutkan
"""
Input/Output utilities for online PCA runs.

This module provides functions for:
- Loading precomputed row/column statistics and initial matrices from CSV
- Writing basis and reconstruction-error checkpoints during a run
- Saving final results and configurations
"""

from typing import Dict, Any, List, Optional
import os
import csv
import json
import tempfile
from datetime import datetime

import numpy as np


def ensure_dir(path: str) -> None:
    """Create directory if it doesn't exist."""
    os.makedirs(path, exist_ok=True)


def load_vector(path: str) -> np.ndarray:
    """
    Load a list of numbers from a CSV file.

    The file holds one value per line (or a single row); the values are
    returned as a flat float64 array.

    Args:
        path: Input CSV path.
    """
    return np.loadtxt(path, delimiter=",", dtype=np.float64, ndmin=1).ravel()


def load_matrix(path: str) -> np.ndarray:
    """
    Load a matrix from a CSV file.

    Args:
        path: Input CSV path.

    Returns:
        Two-dimensional float64 array.
    """
    return np.loadtxt(path, delimiter=",", dtype=np.float64, ndmin=2)


def _atomic_savetxt(path: str, data: np.ndarray) -> None:
    """Write a CSV next to its destination and move it into place."""
    directory = os.path.dirname(path) or "."
    fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            np.savetxt(f, np.atleast_1d(data), delimiter=",")
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


class CheckpointLogger:
    """
    Logger for intermediate bases and reconstruction errors.

    Each checkpoint writes the current basis to its own CSV file and appends
    one line to reconstruction_error.csv in the log directory.
    """

    def __init__(self, logdir: str, buffer_size: int = 1):
        """
        Initialize the logger.

        Args:
            logdir: Directory for checkpoint files.
            buffer_size: Append error entries to disk every N checkpoints.
        """
        self.logdir = logdir
        self.buffer_size = buffer_size
        self.path = os.path.join(logdir, "reconstruction_error.csv")

        self.buffer: List[Dict[str, Any]] = []
        self.fieldnames = [
            "timestamp", "t", "epoch", "row", "reconstruction_error", "relative_change"
        ]

        ensure_dir(logdir)

        # Write header if file doesn't exist
        if not os.path.exists(self.path):
            with open(self.path, "w", newline="") as f:
                writer = csv.DictWriter(f, fieldnames=self.fieldnames)
                writer.writeheader()

    def log(
        self,
        t: int,
        epoch: int,
        row: int,
        W: np.ndarray,
        reconstruction_error: Optional[float] = None,
        relative_change: Optional[float] = None
    ) -> None:
        """
        Record one checkpoint.

        Args:
            t: Global sample index.
            epoch: Current epoch.
            row: Position within the epoch.
            W: Current basis.
            reconstruction_error: Error at this checkpoint, if computed.
            relative_change: Relative change against the previous checkpoint.
        """
        _atomic_savetxt(os.path.join(self.logdir, f"W_{t}.csv"), W)

        entry = {
            "timestamp": datetime.now().isoformat(),
            "t": t,
            "epoch": epoch,
            "row": row,
            "reconstruction_error": "" if reconstruction_error is None else reconstruction_error,
            "relative_change": "" if relative_change is None else relative_change
        }
        self.buffer.append(entry)

        if len(self.buffer) >= self.buffer_size:
            self.flush()

    def flush(self) -> None:
        """Write buffered entries to disk."""
        if not self.buffer:
            return

        with open(self.path, "a", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=self.fieldnames)
            writer.writerows(self.buffer)

        self.buffer = []

    def close(self) -> None:
        """Flush remaining entries and close."""
        self.flush()


def save_result(result, outdir: str) -> Dict[str, str]:
    """
    Save a PCAResult as CSV files.

    Every file is written to a temporary name and renamed once complete, so
    an interrupted save never leaves a file that looks finished.

    Args:
        result: PCAResult to save.
        outdir: Output directory.

    Returns:
        Mapping of output name to file path.
    """
    ensure_dir(outdir)

    outputs = {
        "Eigen_vectors": result.eigenvectors,
        "Eigen_values": result.eigenvalues,
        "Loadings": result.loadings,
        "Scores": result.scores,
    }
    if result.explained_variance_ratio is not None:
        outputs["ExpVar"] = np.array([result.explained_variance_ratio])
    if result.total_variance is not None:
        outputs["TotalVar"] = np.array([result.total_variance])

    paths = {}
    for name, data in outputs.items():
        path = os.path.join(outdir, f"{name}.csv")
        _atomic_savetxt(path, data)
        paths[name] = path
    return paths


def save_config(config: Dict[str, Any], path: str) -> None:
    """
    Save configuration to JSON.

    Args:
        config: Configuration dictionary.
        path: Output JSON path.
    """
    directory = os.path.dirname(path) or "."
    ensure_dir(directory)

    fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(config, f, indent=2, default=str)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def load_config(path: str) -> Dict[str, Any]:
    """
    Load configuration from JSON.

    Args:
        path: Input JSON path.

    Returns:
        Configuration dictionary.
    """
    with open(path, "r") as f:
        return json.load(f)
