# Author: Emrullah Erce Dutkan
"""
Parameter-update scheduling policies.

A policy turns a gradient into a basis increment. All policies share one
method,

    apply(gradient_fn, W, velocity, stepsize, t) -> (increment, velocity)

where gradient_fn(point, step) evaluates the gradient at `point` with step
scale `step`. Passing a function rather than a gradient lets NAG evaluate at
its look-ahead point and lets variance-reduced and Riemannian variants plug
their corrected or projected gradients into any policy.

The velocity (or Adagrad accumulator) is owned by the caller and threaded
through explicitly; the policies themselves hold only constants.

Policies:
- robbins-monro: step decays as stepsize / t, no velocity
- momentum:      v <- g v + grad(W)
- nag:           v <- g v + grad(W - g v)
- adagrad:       per-element step stepsize / (sqrt(sum of squared grads) + eps)
"""

from typing import Callable, Optional, Tuple
import numpy as np

from .exceptions import ConfigurationError


GradientFn = Callable[[np.ndarray, float], np.ndarray]


def robbins_monro_step(stepsize: float, t: int) -> float:
    """
    Robbins-Monro step size at global sample index t (1-indexed).

    Depends only on the absolute index, so a restarted epoch reproduces the
    same sequence.
    """
    if t < 1:
        raise ValueError(f"Sample index must be >= 1, got {t}")
    return stepsize / t


class RobbinsMonro:
    """Plain SGD with a 1/t decaying step. Stateless."""

    name = "robbins-monro"

    def init_velocity(self, shape: Tuple[int, int]) -> None:
        return None

    def apply(
        self,
        gradient_fn: GradientFn,
        W: np.ndarray,
        velocity: Optional[np.ndarray],
        stepsize: float,
        t: int
    ) -> Tuple[np.ndarray, None]:
        return gradient_fn(W, robbins_monro_step(stepsize, t)), None


class Momentum:
    """Heavy-ball momentum with constant decay g."""

    name = "momentum"

    def __init__(self, g: float = 0.9):
        self.g = g

    def init_velocity(self, shape: Tuple[int, int]) -> np.ndarray:
        return np.zeros(shape, dtype=np.float64)

    def apply(self, gradient_fn, W, velocity, stepsize, t):
        velocity = self.g * velocity + gradient_fn(W, stepsize)
        return velocity, velocity


class NesterovMomentum:
    """Nesterov accelerated gradient: the gradient is taken at W - g v."""

    name = "nag"

    def __init__(self, g: float = 0.9):
        self.g = g

    def init_velocity(self, shape: Tuple[int, int]) -> np.ndarray:
        return np.zeros(shape, dtype=np.float64)

    def apply(self, gradient_fn, W, velocity, stepsize, t):
        lookahead = W - self.g * velocity
        velocity = self.g * velocity + gradient_fn(lookahead, stepsize)
        return velocity, velocity


class Adagrad:
    """
    Adagrad with an elementwise accumulator of squared gradients.

    The gradient function returns step-scaled gradients, so the step is
    divided out before accumulating.
    """

    name = "adagrad"

    def __init__(self, epsilon: float = 1e-8):
        self.epsilon = epsilon

    def init_velocity(self, shape: Tuple[int, int]) -> np.ndarray:
        return np.zeros(shape, dtype=np.float64)

    def apply(self, gradient_fn, W, velocity, stepsize, t):
        grad = gradient_fn(W, stepsize) / stepsize
        velocity = velocity + grad * grad
        increment = stepsize * grad / (np.sqrt(velocity) + self.epsilon)
        return increment, velocity


def make_schedule(name: str, g: float = 0.9, epsilon: float = 1e-8):
    """
    Create a scheduling policy by name.

    Args:
        name: One of "robbins-monro", "momentum", "nag", "adagrad".
        g: Decay for momentum and nag.
        epsilon: Denominator offset for adagrad.

    Raises:
        ConfigurationError: For an unknown name.
    """
    if name == "robbins-monro":
        return RobbinsMonro()
    elif name == "momentum":
        return Momentum(g)
    elif name == "nag":
        return NesterovMomentum(g)
    elif name == "adagrad":
        return Adagrad(epsilon)
    else:
        raise ConfigurationError(
            f"Specify the scheduling as robbins-monro, momentum, nag or adagrad (got '{name}')"
        )
