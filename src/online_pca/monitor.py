# Author: Emrullah Erce Dutkan
"""
Convergence and divergence monitoring.

Two independent checks run during a streaming fit:

- Non-finite check (fatal): every `check_frequency` samples the basis is
  scanned for NaN/Inf. Finding one aborts the run with NonFiniteBasisError;
  it is the usual symptom of a step size that is too large.
- Reconstruction-error check (advisory): every `evalfreq` samples the
  relative reconstruction error is computed over a full pass and compared
  with the previous value. A relative change below `lower` (converged) or
  above `upper` (diverging) asks the driver to stop; the run still returns a
  complete result.
"""

from typing import Any, Dict, List, Optional
import logging

import numpy as np

from .config import DEFAULT_LOWER, DEFAULT_UPPER
from .exceptions import NonFiniteBasisError
from .io import CheckpointLogger
from .metrics import stream_reconstruction_error


logger = logging.getLogger(__name__)


class ConvergenceMonitor:
    """
    Periodic checks on the basis of a running optimizer.

    Attributes:
        history: One entry per evaluation with t, epoch, row, error and
            relative change.
        stop_reason: "converged" or "diverging" once a bound was crossed.
    """

    def __init__(
        self,
        check_frequency: int = 1,
        evalfreq: Optional[int] = None,
        lower: float = DEFAULT_LOWER,
        upper: float = DEFAULT_UPPER,
        checkpoint_logger: Optional[CheckpointLogger] = None,
        stepsize: Optional[float] = None,
        description: str = ""
    ):
        """
        Initialize the monitor.

        Args:
            check_frequency: Scan the basis for NaN/Inf every N samples.
            evalfreq: Evaluate the reconstruction error every N samples.
                None disables evaluation.
            lower: Stop when the relative change falls below this value.
            upper: Stop when the relative change exceeds this value.
            checkpoint_logger: Receives the basis and error at evaluations.
            stepsize: Step size of the run, reported with a non-finite basis.
            description: Configuration summary included in error messages.
        """
        self.check_frequency = check_frequency
        self.evalfreq = evalfreq
        self.lower = lower
        self.upper = upper
        self.checkpoint_logger = checkpoint_logger
        self.stepsize = stepsize
        self.description = description

        self.history: List[Dict[str, Any]] = []
        self.stop_reason: Optional[str] = None
        self._previous: Optional[float] = None

    @classmethod
    def from_config(cls, config) -> "ConvergenceMonitor":
        """Create a monitor (and checkpoint logger) from a PCAConfig."""
        checkpoint_logger = None
        if config.logdir is not None:
            checkpoint_logger = CheckpointLogger(config.logdir)
        return cls(
            check_frequency=config.check_frequency,
            evalfreq=config.evalfreq,
            lower=config.lower,
            upper=config.upper,
            checkpoint_logger=checkpoint_logger,
            stepsize=config.stepsize,
            description=(
                f"algorithm={config.algorithm}, stepsize={config.stepsize}, "
                f"scheduling={config.scheduling}"
            )
        )

    def check_finite(self, ctx, force: bool = False) -> None:
        """
        Abort if the basis holds NaN or Inf.

        Args:
            ctx: OptimizationContext of the running fit.
            force: Check regardless of check_frequency.

        Raises:
            NonFiniteBasisError: If a non-finite entry is found.
        """
        if not force and ctx.t % self.check_frequency != 0:
            return
        if not np.all(np.isfinite(ctx.W)):
            raise NonFiniteBasisError(
                f"NaN or Inf values are generated at epoch {ctx.epoch}, row {ctx.row}. "
                f"Select a smaller stepsize ({self.description})",
                epoch=ctx.epoch,
                row=ctx.row,
                t=ctx.t,
                stepsize=self.stepsize
            )

    def evaluate(self, ctx, source, normalizer) -> bool:
        """
        Evaluate the reconstruction error if one is due.

        Args:
            ctx: OptimizationContext of the running fit.
            source: StreamSource, read in full for the evaluation.
            normalizer: RowNormalizer used by the fit.

        Returns:
            True if the run should stop early.
        """
        if self.evalfreq is None or ctx.t % self.evalfreq != 0:
            return False

        error = stream_reconstruction_error(source, normalizer, ctx.W)

        relative_change = None
        if self._previous is not None:
            if self._previous > 0:
                relative_change = abs(self._previous - error) / self._previous
            else:
                relative_change = 0.0 if error == 0 else float("inf")
        self._previous = error

        self.history.append({
            "t": ctx.t,
            "epoch": ctx.epoch,
            "row": ctx.row,
            "reconstruction_error": error,
            "relative_change": relative_change
        })
        logger.debug(
            "t=%d epoch=%d row=%d reconstruction error %.6g (relative change %s)",
            ctx.t, ctx.epoch, ctx.row, error, relative_change
        )

        if self.checkpoint_logger is not None:
            self.checkpoint_logger.log(
                ctx.t, ctx.epoch, ctx.row, ctx.W,
                reconstruction_error=error,
                relative_change=relative_change
            )

        if relative_change is None:
            return False
        if relative_change < self.lower:
            self.stop_reason = "converged"
            logger.info(
                "Relative change %.3g below lower bound %.3g at t=%d, stopping",
                relative_change, self.lower, ctx.t
            )
            return True
        if relative_change > self.upper:
            self.stop_reason = "diverging"
            logger.warning(
                "Relative change %.3g above upper bound %.3g at t=%d, stopping",
                relative_change, self.upper, ctx.t
            )
            return True
        return False

    def close(self) -> None:
        """Flush the checkpoint logger."""
        if self.checkpoint_logger is not None:
            self.checkpoint_logger.close()
