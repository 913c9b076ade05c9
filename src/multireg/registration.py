from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import numpy as np

from .core.context import DEFAULT_COMPONENT_LABEL, RegistrationContext
from .core.errors import ConfigurationError
from .optimizer.base import OptimizerBase
from .optimizer.strategies import OptaxStrategy
from .utils.config import Configuration
from .utils.logging import LoggingSink, format_duration, progress_iter


LOG = logging.getLogger(__name__)


@dataclass
class RegistrationResult:
    parameters: np.ndarray
    checksum: int
    loss_history: List[float] = field(default_factory=list)
    levels: List[Dict[str, Any]] = field(default_factory=list)


class MultiResolutionRegistration:
    """Coarse-to-fine driver that calls the coordinator hooks in order.

    Per level: `before_each_resolution`, per-level sample counts and scales,
    `strategy.optimize`, `after_each_resolution`. After the last level:
    `after_registration`, which emits the result checksum.
    """

    def __init__(
        self,
        strategy: OptaxStrategy,
        metrics: Sequence[Any],
        config: Configuration | None = None,
        *,
        sink: Any = None,
        component_label: str = DEFAULT_COMPONENT_LABEL,
    ):
        self.strategy = strategy
        self.coordinator: OptimizerBase = strategy.coordinator
        self.metrics = list(metrics)
        self.config = config if config is not None else Configuration()
        self.sink = sink if sink is not None else LoggingSink()
        self.component_label = component_label
        self._base_ctx = RegistrationContext(
            config=self.config,
            metrics=self.metrics,
            optimizer=self.strategy,
            sink=self.sink,
            component_label=component_label,
        )

    def context(self, level: int) -> RegistrationContext:
        return self._base_ctx.at_level(level)

    def number_of_resolutions(self) -> int:
        n = self.config.read_int("NumberOfResolutions", default=1)
        if n is None or n < 1:
            raise ConfigurationError(f"NumberOfResolutions must be >= 1, got {n}")
        return n

    def _prepare_level(self, ctx: RegistrationContext) -> None:
        label, level = ctx.component_label, ctx.level
        n_samples = self.config.read_int("NumberOfSpatialSamples", label, level, default=None)
        if n_samples is not None:
            for m in self.metrics:
                if hasattr(m, "number_of_samples"):
                    m.number_of_samples = n_samples
        lr = self.config.read_float("LearningRate", label, level, default=None)
        if lr is not None:
            self.strategy.learning_rate = lr
        amp = self.config.read_float("SinusScalesAmplitude", label, level, default=None)
        freq = self.config.read_float("SinusScalesFrequency", label, level, default=None)
        if (amp is None) != (freq is None):
            LOG.warning(
                "Level %d: SinusScalesAmplitude and SinusScalesFrequency must be given together; ignoring",
                level,
            )
        elif amp is not None:
            self.coordinator.set_sinus_scales(ctx, amp, freq, self.strategy.number_of_parameters)

    def run(self) -> RegistrationResult:
        n_levels = self.number_of_resolutions()
        wall_start = time.perf_counter()
        for level in progress_iter(range(n_levels), total=n_levels, desc="Registration: levels"):
            ctx = self.context(level)
            self.coordinator.before_each_resolution(ctx)
            self._prepare_level(ctx)
            iters = self.config.read_int(
                "MaximumNumberOfIterations", ctx.component_label, level, default=100
            )
            stat = self.strategy.optimize(ctx, iters)
            self.coordinator.after_each_resolution(ctx)
            self._log_level_summary(stat, n_levels, time.perf_counter() - wall_start)

        final_ctx = self.context(n_levels - 1)
        checksum = self.coordinator.after_registration(final_ctx)
        LOG.info("Registration completed in %s over %d level(s)", format_duration(time.perf_counter() - wall_start), n_levels)
        return RegistrationResult(
            parameters=self.strategy.get_current_position(),
            checksum=checksum,
            loss_history=list(self.strategy.loss_history),
            levels=list(self.strategy.level_stats),
        )

    def _log_level_summary(self, stat: Dict[str, Any], n_levels: int, elapsed: float) -> None:
        parts: List[str] = [f"Level {int(stat['level']) + 1}/{n_levels}"]
        parts.append(f"iters {stat['iterations']}")
        if stat.get("resampled"):
            parts.append(f"resampled x{stat.get('refreshes', 0)}")
        lf = stat.get("loss_first"); ll = stat.get("loss_last")
        if (lf is not None) and (ll is not None):
            parts.append(f"loss {lf:.3e}->{ll:.3e}")
        parts.append(f"time {format_duration(stat.get('time'))}")
        parts.append(f"elapsed {format_duration(elapsed)}")
        LOG.info(" | ".join(parts))


def register(
    metrics: Sequence[Any],
    initial_position,
    config: Configuration | None = None,
    *,
    sink: Any = None,
    transform=None,
) -> RegistrationResult:
    """Convenience wrapper: optax SGD strategy plus the multi-resolution driver."""
    config = config if config is not None else Configuration()
    lr = config.read_float("LearningRate", DEFAULT_COMPONENT_LABEL, 0, default=0.1)
    strategy = OptaxStrategy(initial_position, transform=transform, learning_rate=lr)
    return MultiResolutionRegistration(strategy, metrics, config, sink=sink).run()
