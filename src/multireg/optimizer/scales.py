from __future__ import annotations

import math

import jax.numpy as jnp


def sinus_scales(amplitude: float, frequency: float, number_of_parameters: int) -> jnp.ndarray:
    """Per-parameter scales varying periodically over the parameter index.

    scale[i] = amplitude ** sin(i / n * 2*pi * frequency), so scale[0] == 1 and the
    values sweep between 1/amplitude and amplitude with period n / frequency.
    """
    amplitude = float(amplitude)
    frequency = float(frequency)
    n = int(number_of_parameters)
    if not (amplitude > 0.0 and math.isfinite(amplitude)):
        raise ValueError(f"amplitude must be positive and finite, got {amplitude}")
    if not (frequency > 0.0 and math.isfinite(frequency)):
        raise ValueError(f"frequency must be positive and finite, got {frequency}")
    if n < 0:
        raise ValueError(f"number_of_parameters must be >= 0, got {n}")
    if n == 0:
        return jnp.zeros((0,), dtype=jnp.float32)
    x = jnp.arange(n, dtype=jnp.float32) / jnp.float32(n) * (2.0 * math.pi * frequency)
    return jnp.power(jnp.float32(amplitude), jnp.sin(x))
