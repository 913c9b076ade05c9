"""Least-squares point-set metrics.

Parameters are either a translation (``d`` values) or an affine map
(``d*d`` matrix entries, row-major, followed by ``d`` translations). Both
metrics return the mean squared residual over the points they use; the
random-subset variant only evaluates a sample of correspondences and can be
told to draw a fresh sample.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import jax
import jax.numpy as jnp


def transform_points(points: jnp.ndarray, params: jnp.ndarray) -> jnp.ndarray:
    """Apply a translation or affine parameter vector to (n, d) points."""
    points = jnp.asarray(points, dtype=jnp.float32)
    params = jnp.asarray(params, dtype=jnp.float32)
    d = int(points.shape[1])
    n_params = int(params.shape[0])
    if n_params == d:
        return points + params[None, :]
    if n_params == d * d + d:
        A = params[: d * d].reshape(d, d)
        t = params[d * d:]
        return points @ A.T + t[None, :]
    raise ValueError(f"Expected {d} or {d * d + d} parameters for {d}-D points, got {n_params}")


def identity_parameters(dim: int, kind: str = "translation") -> jnp.ndarray:
    if kind == "translation":
        return jnp.zeros((dim,), dtype=jnp.float32)
    if kind == "affine":
        return jnp.concatenate([jnp.eye(dim, dtype=jnp.float32).ravel(), jnp.zeros((dim,), jnp.float32)])
    raise ValueError(f"Unknown transform kind: {kind}")


def _check_pair(fixed: jnp.ndarray, moving: jnp.ndarray) -> None:
    if fixed.ndim != 2 or fixed.shape != moving.shape:
        raise ValueError(
            f"fixed and moving must be matching (n, d) arrays, got {fixed.shape} and {moving.shape}"
        )


class FullSetMetric:
    """Mean squared distance over every correspondence. Does not resample."""

    def __init__(self, fixed, moving):
        self.fixed = jnp.asarray(fixed, dtype=jnp.float32)
        self.moving = jnp.asarray(moving, dtype=jnp.float32)
        _check_pair(self.fixed, self.moving)

    @property
    def dim(self) -> int:
        return int(self.fixed.shape[1])

    def value(self, params: jnp.ndarray) -> jnp.ndarray:
        r = transform_points(self.moving, params) - self.fixed
        return jnp.mean(jnp.sum(r * r, axis=1))


@dataclass
class SampleState:
    key: jax.Array
    indices: jnp.ndarray


class RandomSubsetMetric:
    """Mean squared distance over a random subset of correspondences."""

    def __init__(self, fixed, moving, number_of_samples: int = 64, seed: int = 0):
        self.fixed = jnp.asarray(fixed, dtype=jnp.float32)
        self.moving = jnp.asarray(moving, dtype=jnp.float32)
        _check_pair(self.fixed, self.moving)
        self.refresh_count = 0
        self._number_of_samples = self._clip_samples(number_of_samples)
        key, sub = jax.random.split(jax.random.PRNGKey(int(seed)))
        self._state = SampleState(key=key, indices=self._draw(sub))

    @property
    def dim(self) -> int:
        return int(self.fixed.shape[1])

    @property
    def number_of_points(self) -> int:
        return int(self.fixed.shape[0])

    @property
    def number_of_samples(self) -> int:
        return self._number_of_samples

    @number_of_samples.setter
    def number_of_samples(self, n: int) -> None:
        n = self._clip_samples(n)
        if n != self._number_of_samples:
            self._number_of_samples = n
            key, sub = jax.random.split(self._state.key)
            self._state = SampleState(key=key, indices=self._draw(sub))

    @property
    def samples(self) -> jnp.ndarray:
        return self._state.indices

    def _clip_samples(self, n: Optional[int]) -> int:
        n = int(n) if n is not None else self.number_of_points
        if n <= 0:
            raise ValueError(f"number_of_samples must be positive, got {n}")
        return min(n, self.number_of_points)

    def _draw(self, key: jax.Array) -> jnp.ndarray:
        return jax.random.choice(key, self.number_of_points, (self._number_of_samples,), replace=False)

    def select_new_samples(self) -> None:
        key, sub = jax.random.split(self._state.key)
        self._state = SampleState(key=key, indices=self._draw(sub))
        self.refresh_count += 1

    def value(self, params: jnp.ndarray) -> jnp.ndarray:
        idx = self._state.indices
        r = transform_points(self.moving[idx], params) - self.fixed[idx]
        return jnp.mean(jnp.sum(r * r, axis=1))
