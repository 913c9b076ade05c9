"""Per-resolution optimizer coordination.

`OptimizerBase` sits between a pluggable optimizer strategy and the
multi-resolution controller. The controller calls `before_each_resolution`
at the start of every level and `after_registration` once the run is done;
strategies call `select_new_samples` once per iteration when the level asks
for fresh samples, and `set_sinus_scales` when they want a synthetic
per-parameter scale vector.
"""

from __future__ import annotations

import enum
import logging
from typing import Optional

import jax.numpy as jnp

from ..core.context import RegistrationContext, supports
from ..core.errors import UnsupportedOperationError
from .checksum import format_checksum_line, parameters_checksum
from .scales import sinus_scales


LOG = logging.getLogger(__name__)

NEW_SAMPLES_EVERY_ITERATION = "NewSamplesEveryIteration"


class ResolutionState(enum.Enum):
    IDLE = "idle"
    LEVEL_ACTIVE = "level_active"
    FINISHED = "finished"


class OptimizerBase:
    def __init__(self) -> None:
        self._new_samples_every_iteration = False
        self._level: Optional[int] = None
        self.state = ResolutionState.IDLE
        self.last_checksum: Optional[int] = None

    @property
    def new_samples_every_iteration(self) -> bool:
        return self._new_samples_every_iteration

    @property
    def current_level(self) -> Optional[int]:
        return self._level

    def before_each_resolution(self, ctx: RegistrationContext) -> bool:
        """Fix the resample flag for `ctx.level`; configuration errors propagate."""
        if self.state is ResolutionState.FINISHED:
            raise UnsupportedOperationError(
                "before_each_resolution called after the registration finished"
            )
        level = int(ctx.level)
        self._new_samples_every_iteration = False
        self._level = None
        self.state = ResolutionState.IDLE
        self._new_samples_every_iteration = bool(
            ctx.config.read_bool(
                NEW_SAMPLES_EVERY_ITERATION, ctx.component_label, level, 0, default=False
            )
        )
        self._level = level
        self.state = ResolutionState.LEVEL_ACTIVE
        LOG.debug(
            "Level %d: %s=%s", level, NEW_SAMPLES_EVERY_ITERATION, self._new_samples_every_iteration
        )
        return self._new_samples_every_iteration

    def after_each_resolution(self, ctx: RegistrationContext) -> None:
        if self.state is ResolutionState.LEVEL_ACTIVE:
            self.state = ResolutionState.IDLE

    def after_registration(self, ctx: RegistrationContext) -> int:
        """Fingerprint the final position and report it on `ctx.sink`."""
        optimizer = ctx.optimizer
        if not supports(optimizer, "get_current_position"):
            raise UnsupportedOperationError(
                f"{type(optimizer).__name__} does not provide get_current_position"
            )
        final = optimizer.get_current_position()
        crc = parameters_checksum(final)
        line = format_checksum_line(crc)
        ctx.sink.write_line(line)
        LOG.debug("Checksum over %d parameter(s): %d", int(jnp.size(final)), crc)
        self.last_checksum = crc
        self.state = ResolutionState.FINISHED
        return crc

    def select_new_samples(self, ctx: RegistrationContext) -> int:
        """Ask every metric that can resample to draw a new sample subset.

        Metrics without `select_new_samples` are skipped. Returns how many
        metrics were refreshed.
        """
        if self.state is not ResolutionState.LEVEL_ACTIVE:
            raise UnsupportedOperationError(
                f"select_new_samples requires an active resolution level (state: {self.state.value})"
            )
        refreshed = 0
        for i, metric in enumerate(ctx.metrics):
            if supports(metric, "select_new_samples"):
                metric.select_new_samples()
                refreshed += 1
            else:
                LOG.debug("Metric %d (%s) does not resample; skipped", i, type(metric).__name__)
        return refreshed

    def set_sinus_scales(
        self, ctx: RegistrationContext, amplitude: float, frequency: float, number_of_parameters: int
    ) -> jnp.ndarray:
        scales = sinus_scales(amplitude, frequency, number_of_parameters)
        optimizer = ctx.optimizer
        if not supports(optimizer, "set_scales"):
            raise UnsupportedOperationError(
                f"{type(optimizer).__name__} does not provide set_scales"
            )
        optimizer.set_scales(scales)
        return scales

    def set_current_position_public(self, ctx: RegistrationContext, params) -> None:
        optimizer = ctx.optimizer
        if not supports(optimizer, "set_current_position"):
            raise UnsupportedOperationError(
                f"The optimizer {type(optimizer).__name__} does not implement "
                "set_current_position; publishing a new current position is not supported"
            )
        optimizer.set_current_position(params)
