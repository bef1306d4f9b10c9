# Author: Emrullah Erce Dutkan
"""
Shared driver for the streaming PCA algorithms.

Every streaming variant (Oja, RSGD, SVRG, RSVRG, CCIPCA) runs the same loop:

    for each epoch:
        epoch hook (variance-reduced variants take their snapshot here)
        for each row:
            normalize -> update -> non-finite check -> retraction
            -> callback -> reconstruction-error evaluation (may stop early)

and differs only in the update, the retraction and the epoch hook. The state
that the update mutates lives in a single OptimizationContext that is passed
to every step; nothing is kept in module-level globals.
"""

from typing import Callable, Iterator, Optional, Tuple
from dataclasses import dataclass, replace
import logging

import numpy as np

from .config import PCAConfig, get_default_config, validate_config
from .exceptions import ConfigurationError, PreconditionError
from .gradient import diagonal_weights, global_index, stochastic_gradient
from .io import load_matrix
from .manifold import retract, tangent_projection
from .monitor import ConvergenceMonitor
from .normalize import RowNormalizer, build_normalizer
from .output import PCAResult, assemble_result
from .schedule import make_schedule
from .source import StreamSource, open_source


logger = logging.getLogger(__name__)


@dataclass
class OptimizationContext:
    """
    Mutable state of one streaming fit.

    Attributes:
        W: Current basis, shape (M, d).
        weights: Diagonal of the symmetry-breaking matrix D.
        n_rows: Rows per epoch (N).
        n_features: Length of normalized rows (M).
        velocity: Momentum velocity or Adagrad accumulator; None for
            stateless schedules.
        epoch: Current epoch, 1-indexed.
        row: Position within the epoch, 1-indexed (0 before the first row).
        snapshot: Epoch-start basis Ws of variance-reduced variants.
        full_gradient: Full-pass gradient u at the snapshot.
    """
    W: np.ndarray
    weights: np.ndarray
    n_rows: int
    n_features: int
    velocity: Optional[np.ndarray] = None
    epoch: int = 1
    row: int = 0
    snapshot: Optional[np.ndarray] = None
    full_gradient: Optional[np.ndarray] = None

    @property
    def t(self) -> int:
        """Global sample index N (s - 1) + n."""
        return global_index(self.n_rows, self.epoch, self.row)


class StreamingPCA:
    """
    Base class for streaming PCA algorithms.

    Subclasses set `algorithm` and implement _step(); they may override
    _setup(), _start_epoch(), _retract() and _finalize().

    Attributes:
        config: Validated PCAConfig.
        context: OptimizationContext of the last fit.
        result_: PCAResult of the last fit.
    """

    algorithm = ""

    def __init__(self, config: Optional[PCAConfig] = None, **kwargs):
        """
        Initialize the algorithm.

        Args:
            config: Run configuration. Defaults to get_default_config().
            **kwargs: Overrides for top-level PCAConfig fields.
        """
        if config is None:
            config = get_default_config(self.algorithm)
        config = replace(config, algorithm=self.algorithm, **kwargs)
        self.config = validate_config(config)
        self.rng = np.random.default_rng(self.config.seed)
        self.context: Optional[OptimizationContext] = None
        self.result_: Optional[PCAResult] = None

    def _initial_basis(self, source: StreamSource, normalizer: RowNormalizer) -> np.ndarray:
        """
        Starting basis: identity columns, a supplied basis, or X^T V for
        supplied loadings V.
        """
        config = self.config
        n_rows, _ = source.dimensions()
        n_features = normalizer.n_features
        dim = config.dim

        if config.init_w is not None:
            W = config.init_w
            W = load_matrix(W) if isinstance(W, str) else np.array(W, dtype=np.float64, ndmin=2)
            if W.shape[0] != n_features or W.shape[1] < dim:
                raise ConfigurationError(
                    f"init_w has shape {W.shape}, expected ({n_features}, {dim})"
                )
            return W[:, :dim].copy()

        if config.init_v is not None:
            V = config.init_v
            V = load_matrix(V) if isinstance(V, str) else np.array(V, dtype=np.float64, ndmin=2)
            if V.shape[0] != n_rows or V.shape[1] < dim:
                raise ConfigurationError(
                    f"init_v has shape {V.shape}, expected ({n_rows}, {dim})"
                )
            W = np.zeros((n_features, dim), dtype=np.float64)
            for n, raw in enumerate(source.rows()):
                W += np.outer(normalizer(raw, n), V[n, :dim])
            return W

        return np.eye(n_features, dim, dtype=np.float64)

    def _iter_rows(self, source: StreamSource) -> Iterator[Tuple[int, np.ndarray]]:
        """Yield (row index, raw row) for one epoch, permuted if configured."""
        if self.config.perm:
            n_rows, _ = source.dimensions()
            for n in self.rng.permutation(n_rows):
                yield int(n), source.row(int(n))
        else:
            yield from enumerate(source.rows())

    def _setup(self, ctx: OptimizationContext) -> None:
        pass

    def _start_epoch(self, ctx: OptimizationContext, source: StreamSource,
                     normalizer: RowNormalizer) -> None:
        pass

    def _step(self, ctx: OptimizationContext, x: np.ndarray) -> None:
        raise NotImplementedError

    def _retract(self, ctx: OptimizationContext) -> None:
        ctx.W = retract(ctx.W)

    def _finalize(self, ctx: OptimizationContext) -> np.ndarray:
        return ctx.W

    def fit(
        self,
        source,
        callback: Optional[Callable[[OptimizationContext], None]] = None
    ) -> PCAResult:
        """
        Run the algorithm over a stream.

        Args:
            source: StreamSource, array, sparse matrix or .npy/.npz path.
            callback: Called with the context after every processed sample.

        Returns:
            PCAResult; also stored as self.result_.

        Raises:
            NonFiniteBasisError: If the basis picks up NaN/Inf values.
        """
        config = self.config
        source = open_source(source)
        n_rows, n_columns = source.dimensions()

        if config.perm and not source.supports_random_access:
            raise ConfigurationError(
                f"perm=True needs a source with random access, got {type(source).__name__}"
            )

        normalizer = build_normalizer(config.normalization, n_columns)
        for name in ("rowmean", "rowvar"):
            stat = getattr(normalizer, name)
            if stat is not None and stat.shape[0] < n_rows:
                raise ConfigurationError(
                    f"{name} has {stat.shape[0]} entries for {n_rows} rows"
                )
        if not 0 < config.dim <= normalizer.n_features:
            raise PreconditionError(
                f"dim={config.dim} must lie in [1, {normalizer.n_features}]"
            )

        ctx = OptimizationContext(
            W=self._initial_basis(source, normalizer),
            weights=diagonal_weights(config.dim),
            n_rows=n_rows,
            n_features=normalizer.n_features
        )
        self._setup(ctx)
        self.context = ctx

        monitor = ConvergenceMonitor.from_config(config)
        stop = False
        logger.info(
            "Starting %s on %d x %d matrix (dim=%d, numepoch=%d)",
            self.algorithm, n_rows, n_columns, config.dim, config.numepoch
        )
        try:
            # Overflow is reported through the non-finite check instead
            with np.errstate(over="ignore", invalid="ignore"):
                for epoch in range(1, config.numepoch + 1):
                    ctx.epoch = epoch
                    ctx.row = 0
                    logger.info("Epoch %d/%d", epoch, config.numepoch)
                    self._start_epoch(ctx, source, normalizer)

                    for n, raw in self._iter_rows(source):
                        ctx.row += 1
                        self._step(ctx, normalizer(raw, n))
                        monitor.check_finite(ctx)
                        self._retract(ctx)
                        if callback is not None:
                            callback(ctx)
                        if monitor.evaluate(ctx, source, normalizer):
                            stop = True
                            break
                    if stop:
                        break

                monitor.check_finite(ctx, force=True)
        finally:
            monitor.close()

        result = assemble_result(self._finalize(ctx), source, normalizer, self.algorithm)
        result.n_samples_seen = ctx.t
        result.stopped_early = stop
        result.stop_reason = monitor.stop_reason
        result.history = monitor.history
        self.result_ = result
        logger.info("Finished %s after %d samples", self.algorithm, ctx.t)
        return result


class GradientPCA(StreamingPCA):
    """
    Gradient-ascent family on the Stiefel manifold.

    Subclasses choose whether gradients are projected onto the tangent space
    (Riemannian variants) and whether the overflow-safe gradient offset is
    used. The scheduling policy comes from the configuration.
    """

    projected = False
    uses_offset = False

    def __init__(self, config: Optional[PCAConfig] = None, **kwargs):
        super().__init__(config, **kwargs)
        self.schedule = make_schedule(self.config.scheduling, self.config.g, self.config.epsilon)

    @property
    def offset(self) -> Optional[float]:
        return self.config.offset_stoch if self.uses_offset else None

    def _setup(self, ctx: OptimizationContext) -> None:
        ctx.W = retract(ctx.W)
        ctx.velocity = self.schedule.init_velocity(ctx.W.shape)

    def _gradient_fn(self, ctx: OptimizationContext, x: np.ndarray):
        """Gradient of sample x as a function of (point, step)."""
        weights = ctx.weights
        n_features = ctx.n_features
        offset = self.offset
        projected = self.projected

        def gradient(point: np.ndarray, step: float) -> np.ndarray:
            G = stochastic_gradient(point, x, weights, n_features, step, offset)
            if projected:
                G = tangent_projection(G, point)
            return G

        return gradient

    def _step(self, ctx: OptimizationContext, x: np.ndarray) -> None:
        increment, ctx.velocity = self.schedule.apply(
            self._gradient_fn(ctx, x), ctx.W, ctx.velocity, self.config.stepsize, ctx.t
        )
        ctx.W = ctx.W + increment
