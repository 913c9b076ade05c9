from __future__ import annotations

import argparse
import json
import logging
import os

import numpy as np

from ..core.context import DEFAULT_COMPONENT_LABEL
from ..core.errors import MultiregError
from ..data.io_hdf5 import load_points, save_result
from ..metrics.sampled import FullSetMetric, RandomSubsetMetric, identity_parameters
from ..optimizer.strategies import OptaxStrategy
from ..registration import MultiResolutionRegistration
from ..utils.config import Configuration, dump_config
from ..utils.logging import LoggingSink, log_jax_env, setup_logging


def _parse_overrides(items: list[str]) -> dict:
    out: dict = {}
    for kv in items:
        if "=" not in kv:
            raise SystemExit(f"--set must be k=v, got: {kv}")
        k, v = kv.split("=", 1)
        v = v.strip()
        if "," in v:
            out[k.strip()] = [s.strip() for s in v.split(",")]
        else:
            out[k.strip()] = v
    return out


def apply_overrides(config: Configuration, overrides: dict, label: str = DEFAULT_COMPONENT_LABEL) -> None:
    """Write `--set` overrides into `config`.

    `Section.Key` targets that section only. A bare `Key` is set at the top
    level and also inside `label` when that section already defines it, since
    the section value would otherwise win.
    """
    for key, value in overrides.items():
        scope, _, name = key.rpartition(".")
        if scope:
            config.set_parameter(name, value, scope)
            continue
        if config.has_parameter(name, label):
            config.set_parameter(name, value, label)
        config.set_parameter(name, value)


def main() -> None:
    p = argparse.ArgumentParser(description="Multi-resolution point-set registration")
    p.add_argument("--data", required=True, help="Input .npz/.h5 with `fixed` and `moving` (n, d) arrays")
    p.add_argument("--config", default=None, help="JSON or YAML parameter map")
    p.add_argument("--set", action="append", default=[], help="Parameter override k=v or Section.k=v (lists as a,b,c), repeatable")
    p.add_argument("--transform", choices=["translation", "affine"], default="translation")
    p.add_argument("--optimizer", choices=["sgd", "adam"], default="sgd")
    p.add_argument("--full-metric", action="store_true", help="Add a deterministic all-points metric term")
    p.add_argument("--seed", type=int, default=0)
    p.add_argument("--out", required=True, help="Output .h5 with final parameters and checksum")
    p.add_argument("--progress", action="store_true", help="Show tqdm progress bars")
    p.add_argument("--log-level", default="INFO")
    args = p.parse_args()

    setup_logging(args.log_level); log_jax_env()
    if args.progress:
        os.environ["MULTIREG_PROGRESS"] = "1"

    overrides = _parse_overrides(args.set)
    try:
        config = Configuration.from_file(args.config) if args.config else Configuration()
        apply_overrides(config, overrides)
        logging.debug("Configuration: %s", json.dumps(dump_config(config), default=str))

        pts = load_points(args.data)
        fixed = np.asarray(pts["fixed"], dtype=np.float32)
        moving = np.asarray(pts["moving"], dtype=np.float32)
        n_samples = config.read_int("NumberOfSpatialSamples", default=64)
        metrics = [RandomSubsetMetric(fixed, moving, number_of_samples=n_samples, seed=args.seed)]
        if args.full_metric:
            metrics.append(FullSetMetric(fixed, moving))

        lr = config.read_float("LearningRate", default=0.1)
        strategy = OptaxStrategy(
            identity_parameters(fixed.shape[1], args.transform), learning_rate=lr, method=args.optimizer
        )
        result = MultiResolutionRegistration(strategy, metrics, config, sink=LoggingSink()).run()
    except (MultiregError, OSError, KeyError, ValueError) as exc:
        raise SystemExit(f"Registration failed: {exc}")

    save_result(args.out, result, config=dump_config(config))
    logging.info("Final parameters %s (checksum %d)", np.array2string(np.asarray(result.parameters), precision=6), result.checksum)


if __name__ == "__main__":  # pragma: no cover
    main()
