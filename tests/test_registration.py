import sys
import numpy as np
import pytest
import jax.numpy as jnp

from multireg.core.errors import ConfigurationError
from multireg.metrics.sampled import (
    FullSetMetric,
    RandomSubsetMetric,
    identity_parameters,
    transform_points,
)
from multireg.optimizer.checksum import parameters_checksum
from multireg.optimizer.strategies import OptaxStrategy
from multireg.registration import MultiResolutionRegistration, register
from multireg.utils.config import Configuration
from multireg.utils.logging import ListSink


if sys.version_info < (3, 8):
    pytest.skip("Requires Python 3.8+ for package code", allow_module_level=True)


def make_case(n=60, dim=2, shift=(1.5, -0.75), seed=0, noise=0.0):
    rng = np.random.default_rng(seed)
    moving = rng.normal(scale=5.0, size=(n, dim)).astype(np.float32)
    fixed = moving + np.asarray(shift, dtype=np.float32)[None, :dim]
    if noise:
        fixed = fixed + rng.normal(scale=noise, size=fixed.shape).astype(np.float32)
    return fixed, moving


def test_transform_points_translation_and_affine():
    pts = jnp.array([[1.0, 2.0], [3.0, 4.0]])
    assert np.asarray(transform_points(pts, jnp.array([1.0, -1.0]))) == pytest.approx([[2.0, 1.0], [4.0, 3.0]])
    ident = identity_parameters(2, "affine")
    assert np.asarray(transform_points(pts, ident)) == pytest.approx(np.asarray(pts))
    with pytest.raises(ValueError):
        transform_points(pts, jnp.zeros((5,)))


def test_multires_translation_recovers_shift_and_reports_checksum():
    fixed, moving = make_case()
    cfg = Configuration({
        "NumberOfResolutions": 2,
        "MaximumNumberOfIterations": [40, 20],
        "LearningRate": 0.1,
        "NewSamplesEveryIteration": ["true", "false"],
        "NumberOfSpatialSamples": [16, 32],
    })
    sampled = RandomSubsetMetric(fixed, moving, number_of_samples=64, seed=1)
    sink = ListSink()
    strategy = OptaxStrategy(identity_parameters(2), learning_rate=0.1)
    result = MultiResolutionRegistration(strategy, [sampled], cfg, sink=sink).run()

    assert np.asarray(result.parameters) == pytest.approx([1.5, -0.75], abs=1e-3)
    # Level 0 refreshes every iteration, level 1 never does
    assert [s["refreshes"] for s in result.levels] == [40, 0]
    assert sampled.refresh_count == 40
    assert sampled.number_of_samples == 32
    assert len(result.loss_history) == 60
    assert result.loss_history[-1] < result.loss_history[0]
    assert result.checksum == parameters_checksum(result.parameters)
    assert sink.lines == [f"Registration result checksum: {result.checksum}"]
    assert strategy.coordinator.last_checksum == result.checksum


def test_mixed_metric_set_only_resamples_stochastic_members():
    fixed, moving = make_case(noise=0.05, seed=2)
    sampled = RandomSubsetMetric(fixed, moving, number_of_samples=10, seed=3)
    full = FullSetMetric(fixed, moving)
    cfg = Configuration({"MaximumNumberOfIterations": 5, "NewSamplesEveryIteration": True})
    result = register([sampled, full], identity_parameters(2), cfg, sink=ListSink())
    assert result.levels[0]["refreshes"] == 5
    assert sampled.refresh_count == 5


def test_run_is_reproducible_for_fixed_seed():
    fixed, moving = make_case(noise=0.1, seed=4)
    cfg = Configuration({"MaximumNumberOfIterations": 15, "NewSamplesEveryIteration": "true", "NumberOfSpatialSamples": 12})

    def run():
        m = RandomSubsetMetric(fixed, moving, number_of_samples=12, seed=7)
        return register([m], identity_parameters(2), cfg, sink=ListSink())

    a, b = run(), run()
    assert a.checksum == b.checksum
    assert np.array_equal(np.asarray(a.parameters), np.asarray(b.parameters))


def test_sinus_scales_applied_per_level():
    fixed, moving = make_case(dim=2)
    cfg = Configuration({
        "MaximumNumberOfIterations": 3,
        "Optimizer0": {"SinusScalesAmplitude": 2.0, "SinusScalesFrequency": 1.0},
    })
    strategy = OptaxStrategy(identity_parameters(2, "affine"), learning_rate=1e-3)
    MultiResolutionRegistration(strategy, [FullSetMetric(fixed, moving)], cfg, sink=ListSink()).run()
    scales = np.asarray(strategy.get_scales())
    assert scales.shape == (6,)
    assert scales[0] == pytest.approx(1.0)
    assert np.all(scales > 0.0)


def test_adam_method_uses_per_level_learning_rate():
    fixed, moving = make_case()
    cfg = Configuration({"NumberOfResolutions": 2, "MaximumNumberOfIterations": [150, 100], "LearningRate": [0.1, 0.01]})
    strategy = OptaxStrategy(identity_parameters(2), method="adam")
    result = MultiResolutionRegistration(strategy, [FullSetMetric(fixed, moving)], cfg, sink=ListSink()).run()
    assert strategy.learning_rate == pytest.approx(0.01)
    assert np.asarray(result.parameters) == pytest.approx([1.5, -0.75], abs=5e-2)


def test_invalid_number_of_resolutions_is_fatal():
    fixed, moving = make_case()
    with pytest.raises(ConfigurationError):
        register([FullSetMetric(fixed, moving)], identity_parameters(2), Configuration({"NumberOfResolutions": 0}))


def test_bad_resample_flag_aborts_before_any_checksum():
    fixed, moving = make_case()
    sink = ListSink()
    cfg = Configuration({"NumberOfResolutions": 2, "MaximumNumberOfIterations": 2, "NewSamplesEveryIteration": ["false", "often"]})
    with pytest.raises(ConfigurationError):
        register([FullSetMetric(fixed, moving)], identity_parameters(2), cfg, sink=sink)
    assert sink.lines == []
