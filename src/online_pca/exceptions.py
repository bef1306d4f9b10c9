# Author: Emrullah Erce Dutkan
"""
Exception types raised by the online PCA engine.

Configuration problems and violated preconditions are raised before any
data is read. A non-finite basis is raised during the run and aborts it;
no result files are written in that case.
"""

from typing import Optional


class OnlinePCAError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(OnlinePCAError, ValueError):
    """An option is unknown, unsupported by the algorithm, or inconsistent."""


class PreconditionError(OnlinePCAError, ValueError):
    """Matrix dimensions do not satisfy the requirements of an algorithm."""


class NonFiniteBasisError(OnlinePCAError, FloatingPointError):
    """
    The basis picked up NaN or Inf values.

    This almost always means the step size is too large for the data scale.
    """

    def __init__(
        self,
        message: str,
        epoch: int = 0,
        row: int = 0,
        t: int = 0,
        stepsize: Optional[float] = None
    ):
        super().__init__(message)
        self.epoch = epoch
        self.row = row
        self.t = t
        self.stepsize = stepsize
