"""Explicit registration context and collaborator capabilities.

Hooks receive a `RegistrationContext` instead of reaching into shared state.
Collaborators are duck-typed; `supports` resolves an optional capability at
call time so heterogeneous metric and optimizer sets can be mixed freely.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

import jax.numpy as jnp

from ..utils.config import Configuration
from ..utils.logging import LoggingSink


DEFAULT_COMPONENT_LABEL = "Optimizer0"


@runtime_checkable
class ReportSink(Protocol):
    def write_line(self, text: str) -> None: ...


@runtime_checkable
class SampledMetric(Protocol):
    def select_new_samples(self) -> None: ...


@runtime_checkable
class OptimizerStrategy(Protocol):
    def get_current_position(self) -> jnp.ndarray: ...

    def set_scales(self, scales: jnp.ndarray) -> None: ...


def supports(obj: Any, capability: str) -> bool:
    """True if `obj` exposes `capability` as a callable."""
    return callable(getattr(obj, capability, None))


@dataclass
class RegistrationContext:
    level: int = 0
    config: Configuration = field(default_factory=Configuration)
    metrics: Sequence[Any] = ()
    optimizer: Optional[OptimizerStrategy] = None
    sink: ReportSink = field(default_factory=LoggingSink)
    component_label: str = DEFAULT_COMPONENT_LABEL

    def __post_init__(self) -> None:
        if int(self.level) < 0:
            raise ValueError(f"Resolution level must be non-negative, got {self.level}")
        self.level = int(self.level)

    def at_level(self, level: int) -> "RegistrationContext":
        return replace(self, level=int(level))
