# Author: Emrullah Erce Dutkan
"""
Configuration management for online PCA runs.

This module provides dataclasses and utilities for describing a run, with
defaults that allow every algorithm to run out of the box. It also holds the
table of which input normalizations each algorithm accepts; the variants
intentionally differ here and a request for an option an algorithm does not
support is rejected rather than silently ignored.
"""

from typing import Any, Dict, Optional, Sequence, Union, Literal
from dataclasses import dataclass, field, asdict

import numpy as np

from .exceptions import ConfigurationError


ScaleMode = Literal["raw", "log", "sqrt", "ftt"]
ScheduleName = Literal["robbins-monro", "momentum", "nag", "adagrad"]

# Vectors and matrices may be given in memory or as CSV paths.
ArrayLike = Union[str, Sequence[float], np.ndarray]

ALGORITHMS = ("oja", "ccipca", "rsgd", "svrg", "rsvrg", "rsvd")
SCHEDULES = ("robbins-monro", "momentum", "nag", "adagrad")
GRADIENT_ALGORITHMS = ("oja", "rsgd", "svrg", "rsvrg")

ALGORITHM_FEATURES: Dict[str, Dict[str, Any]] = {
    "oja": {
        "scales": ("raw", "log", "ftt"),
        "normalization": ("rowmean", "rowvar", "colsum"),
        "stop_bounds": True,
        "perm": False,
        "init": True,
    },
    "rsvrg": {
        "scales": ("raw", "log", "ftt"),
        "normalization": ("rowmean", "rowvar", "colsum"),
        "stop_bounds": True,
        "perm": True,
        "init": True,
    },
    "rsgd": {
        "scales": ("raw", "log"),
        "normalization": ("rowmean", "colsum", "mask"),
        "stop_bounds": False,
        "perm": False,
        "init": True,
    },
    "svrg": {
        "scales": ("raw", "log"),
        "normalization": ("rowmean", "colsum", "mask"),
        "stop_bounds": False,
        "perm": False,
        "init": True,
    },
    "ccipca": {
        "scales": ("raw", "log"),
        "normalization": ("rowmean", "colsum", "mask"),
        "stop_bounds": False,
        "perm": False,
        "init": False,
    },
    "rsvd": {
        "scales": ("raw", "log", "sqrt"),
        "normalization": ("rowmean",),
        "stop_bounds": False,
        "perm": True,
        "init": True,
    },
}

DEFAULT_LOWER = 0.0
DEFAULT_UPPER = 1.0e38


@dataclass
class NormalizationConfig:
    """Per-row normalization applied before a row reaches the optimizer."""
    scale: ScaleMode = "raw"
    pseudocount: float = 1.0
    rowmean: Optional[ArrayLike] = None
    rowvar: Optional[ArrayLike] = None
    colsum: Optional[ArrayLike] = None
    mask: Optional[ArrayLike] = None
    epsilon: float = 1e-8

    def enabled_options(self) -> list:
        """Names of the optional normalization steps that are switched on."""
        return [
            name for name in ("rowmean", "rowvar", "colsum", "mask")
            if getattr(self, name) is not None
        ]


@dataclass
class RandomizedSVDConfig:
    """Configuration for the chunked randomized SVD."""
    oversample: int = 5
    niter: int = 3
    chunksize: int = 5000


@dataclass
class PCAConfig:
    """
    Complete configuration for one PCA run.

    The same dataclass drives every algorithm; fields that an algorithm does
    not use are ignored, except normalization options and stop bounds, which
    are checked against ALGORITHM_FEATURES by validate_config().
    """
    algorithm: str = "oja"
    dim: int = 3

    # Optimization
    stepsize: float = 0.1
    numepoch: int = 3
    scheduling: str = "robbins-monro"
    g: float = 0.9
    epsilon: float = 1e-8
    offset_full: float = 1e-20
    offset_stoch: float = 1e-6

    # Monitoring
    check_frequency: int = 1
    evalfreq: Optional[int] = None
    lower: float = DEFAULT_LOWER
    upper: float = DEFAULT_UPPER
    logdir: Optional[str] = None

    # Initialization and ordering
    init_w: Optional[ArrayLike] = None
    init_v: Optional[ArrayLike] = None
    perm: bool = False
    seed: Optional[int] = None

    normalization: NormalizationConfig = field(default_factory=NormalizationConfig)
    rsvd: RandomizedSVDConfig = field(default_factory=RandomizedSVDConfig)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        d = asdict(self)
        for key in ("init_w", "init_v"):
            if isinstance(d[key], np.ndarray):
                d[key] = d[key].tolist()
        for key in ("rowmean", "rowvar", "colsum", "mask"):
            if isinstance(d["normalization"][key], np.ndarray):
                d["normalization"][key] = d["normalization"][key].tolist()
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "PCAConfig":
        """Create from dictionary."""
        d = dict(d)
        if "normalization" in d and isinstance(d["normalization"], dict):
            d["normalization"] = NormalizationConfig(**d["normalization"])
        if "rsvd" in d and isinstance(d["rsvd"], dict):
            d["rsvd"] = RandomizedSVDConfig(**d["rsvd"])
        return cls(**d)


def validate_config(config: PCAConfig) -> PCAConfig:
    """
    Check a configuration before any data is touched.

    Raises:
        ConfigurationError: naming the offending option and value.
    """
    if config.algorithm not in ALGORITHMS:
        raise ConfigurationError(
            f"Unknown algorithm '{config.algorithm}'; choose one of {', '.join(ALGORITHMS)}"
        )
    features = ALGORITHM_FEATURES[config.algorithm]

    if config.algorithm in GRADIENT_ALGORITHMS and config.scheduling not in SCHEDULES:
        raise ConfigurationError(
            f"Specify the scheduling as {', '.join(SCHEDULES)} (got '{config.scheduling}')"
        )

    if config.dim < 1:
        raise ConfigurationError(f"dim must be positive, got {config.dim}")
    if config.numepoch < 1:
        raise ConfigurationError(f"numepoch must be positive, got {config.numepoch}")
    if config.algorithm == "ccipca":
        # stepsize is the amnesic parameter; 0 gives the plain running average
        if config.stepsize < 0:
            raise ConfigurationError(
                f"stepsize must be non-negative for ccipca, got {config.stepsize}"
            )
    elif config.stepsize <= 0:
        raise ConfigurationError(f"stepsize must be positive, got {config.stepsize}")
    if config.check_frequency < 1:
        raise ConfigurationError(
            f"check_frequency must be at least 1, got {config.check_frequency}"
        )
    if config.evalfreq is not None and config.evalfreq < 1:
        raise ConfigurationError(f"evalfreq must be at least 1, got {config.evalfreq}")

    norm = config.normalization
    if norm.scale not in features["scales"]:
        raise ConfigurationError(
            f"scale '{norm.scale}' is not available for {config.algorithm}; "
            f"choose one of {', '.join(features['scales'])}"
        )
    for option in norm.enabled_options():
        if option not in features["normalization"]:
            raise ConfigurationError(
                f"{config.algorithm} does not support the '{option}' normalization"
            )

    bounds_set = config.lower != DEFAULT_LOWER or config.upper != DEFAULT_UPPER
    if bounds_set and not features["stop_bounds"]:
        raise ConfigurationError(
            f"{config.algorithm} does not support lower/upper stopping bounds"
        )
    if config.lower > config.upper:
        raise ConfigurationError(
            f"lower ({config.lower}) must not exceed upper ({config.upper})"
        )

    if config.perm and not features["perm"]:
        raise ConfigurationError(f"{config.algorithm} does not support perm=True")

    if config.init_w is not None and config.init_v is not None:
        raise ConfigurationError(
            "init_w and init_v are mutually exclusive; specify only one of them"
        )
    if (config.init_w is not None or config.init_v is not None) and not features["init"]:
        raise ConfigurationError(
            f"{config.algorithm} does not accept an initial basis or initial loadings"
        )

    if config.algorithm == "rsvd":
        if config.rsvd.oversample < 0:
            raise ConfigurationError(
                f"oversample must be non-negative, got {config.rsvd.oversample}"
            )
        if config.rsvd.niter < 0:
            raise ConfigurationError(f"niter must be non-negative, got {config.rsvd.niter}")
        if config.rsvd.chunksize < 1:
            raise ConfigurationError(
                f"chunksize must be positive, got {config.rsvd.chunksize}"
            )

    return config


def get_default_config(algorithm: str = "oja") -> PCAConfig:
    """Get default configuration for an algorithm."""
    if algorithm == "ccipca":
        return PCAConfig(algorithm="ccipca", numepoch=5)
    if algorithm in ("rsgd", "svrg"):
        return PCAConfig(algorithm=algorithm, numepoch=5)
    if algorithm == "rsvd":
        return PCAConfig(
            algorithm="rsvd",
            normalization=NormalizationConfig(scale="sqrt")
        )
    return PCAConfig(algorithm=algorithm)
