from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import jax
import jax.numpy as jnp
import numpy as np
import optax

from ..core.context import RegistrationContext
from ..utils.logging import format_duration, progress_iter
from .base import OptimizerBase


LOG = logging.getLogger(__name__)

CostFn = Callable[[Sequence[Any], jnp.ndarray], jnp.ndarray]


def summed_metric_cost(metrics: Sequence[Any], params: jnp.ndarray) -> jnp.ndarray:
    """Sum of `value(params)` over every metric in the set."""
    total = jnp.float32(0.0)
    for m in metrics:
        total = total + m.value(params)
    return total


class OptaxStrategy:
    """Optimizer strategy that delegates the update rule to an optax transformation.

    Gradients are divided by the per-parameter scales before the update, so a
    larger scale means a smaller effective step for that parameter. The
    position is kept on the host in float64; gradients are taken on a float32
    copy and the updates are accumulated into the float64 position.
    """

    def __init__(
        self,
        initial_position,
        *,
        transform: optax.GradientTransformation | None = None,
        learning_rate: float = 0.1,
        method: str = "sgd",
        coordinator: OptimizerBase | None = None,
    ):
        self._position = np.asarray(initial_position, dtype=np.float64).reshape(-1)
        self._scales = jnp.ones(self._position.shape, dtype=jnp.float32)
        self.learning_rate = float(learning_rate)
        self._transform = transform
        self.method = str(method).lower()
        self.coordinator = coordinator if coordinator is not None else OptimizerBase()
        self.loss_history: List[float] = []
        self.level_stats: List[Dict[str, Any]] = []

    @property
    def number_of_parameters(self) -> int:
        return int(self._position.shape[0])

    def get_current_position(self) -> np.ndarray:
        return self._position.copy()

    def set_current_position(self, params) -> None:
        p = np.asarray(params, dtype=np.float64).reshape(-1)
        if p.shape != self._position.shape:
            raise ValueError(f"Position shape {p.shape} does not match {self._position.shape}")
        self._position = p

    def get_scales(self) -> jnp.ndarray:
        return self._scales

    def set_scales(self, scales) -> None:
        s = jnp.asarray(scales, dtype=jnp.float32).reshape(-1)
        if s.shape != self._position.shape:
            raise ValueError(f"Scales shape {s.shape} does not match {self._position.shape}")
        if not bool(jnp.all(s > 0.0)):
            raise ValueError("Scales must be strictly positive")
        self._scales = s

    def _make_transform(self) -> optax.GradientTransformation:
        if self._transform is not None:
            return self._transform
        if self.method == "sgd":
            return optax.sgd(self.learning_rate)
        if self.method == "adam":
            return optax.adam(self.learning_rate)
        raise ValueError(f"Unknown optimizer method: {self.method}")

    def optimize(
        self,
        ctx: RegistrationContext,
        iterations: int,
        cost_fn: CostFn = summed_metric_cost,
    ) -> Dict[str, Any]:
        """Run `iterations` updates at the current level and return a summary."""
        tx = self._make_transform()
        opt_state = tx.init(jnp.asarray(self._position, dtype=jnp.float32))
        metrics = list(ctx.metrics)
        resample = self.coordinator.new_samples_every_iteration
        # Re-traced per level since the metric set and its samples are closed over
        value_and_grad = jax.value_and_grad(lambda p: cost_fn(metrics, p))
        level_losses: List[float] = []
        refreshes = 0
        start = time.perf_counter()
        for _ in progress_iter(range(int(iterations)), total=int(iterations), desc=f"Level {ctx.level}"):
            if resample:
                refreshes += self.coordinator.select_new_samples(ctx)
            params = jnp.asarray(self._position, dtype=jnp.float32)
            loss, grad = value_and_grad(params)
            grad = grad / self._scales
            updates, opt_state = tx.update(grad, opt_state, params)
            self._position = self._position + np.asarray(updates, dtype=np.float64)
            level_losses.append(float(loss))
        self.loss_history.extend(level_losses)
        stat = {
            "level": ctx.level,
            "iterations": int(iterations),
            "resampled": resample,
            "refreshes": refreshes,
            "loss_first": level_losses[0] if level_losses else None,
            "loss_last": level_losses[-1] if level_losses else None,
            "time": time.perf_counter() - start,
        }
        self.level_stats.append(stat)
        LOG.debug("Level %d optimized in %s", ctx.level, format_duration(stat["time"]))
        return stat


class FrozenStrategy:
    """Read-only strategy holding a fixed position; cannot be repositioned."""

    def __init__(self, position):
        self._position = np.asarray(position, dtype=np.float64).reshape(-1)
        self._scales: Optional[jnp.ndarray] = None

    def get_current_position(self) -> np.ndarray:
        return self._position.copy()

    def set_scales(self, scales) -> None:
        self._scales = jnp.asarray(scales, dtype=jnp.float32)

    def get_scales(self) -> Optional[jnp.ndarray]:
        return self._scales
