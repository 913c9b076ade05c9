"""HDF5 IO for registration results and point-set inputs.

Results live under /entry/result: the final parameter vector, the loss
history, the checksum (with its format version) and the configuration used,
stored as JSON text.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

import h5py
import numpy as np

from ..optimizer.checksum import CHECKSUM_FORMAT_VERSION, parameters_checksum


LOG = logging.getLogger(__name__)


def _attr_to_str(v: Any, default: str | None = None) -> str | None:
    """Convert an HDF5 attribute (bytes, numpy scalar or str) to a Python string."""
    if v is None:
        return default
    if isinstance(v, bytes):
        return v.decode("utf-8", errors="ignore")
    if isinstance(v, np.ndarray):
        if v.shape == ():
            return _attr_to_str(v.item(), default)
        if v.size >= 1:
            return _attr_to_str(v.flat[0], default)
        return default
    return str(v)


def _write_string_attr(obj: h5py.Group | h5py.Dataset, key: str, value: str) -> None:
    obj.attrs[key] = np.array(value, dtype=h5py.string_dtype(encoding="utf-8"))


def save_result(path: str, result: Any, *, config: Optional[Dict[str, Any]] = None) -> None:
    """Write a `RegistrationResult` (or a dict with the same keys) to HDF5."""
    if isinstance(result, dict):
        params = result["parameters"]
        loss = result.get("loss_history", [])
        checksum = result.get("checksum")
    else:
        params = result.parameters
        loss = result.loss_history
        checksum = result.checksum
    params = np.asarray(params, dtype=np.float64).reshape(-1)
    if checksum is None:
        checksum = parameters_checksum(params)
    d = os.path.dirname(os.path.abspath(path))
    os.makedirs(d, exist_ok=True)
    with h5py.File(path, "w") as f:
        entry = f.require_group("entry")
        res = entry.require_group("result")
        res.create_dataset("parameters", data=params)
        res.create_dataset("loss_history", data=np.asarray(loss, dtype=np.float64))
        res.attrs["checksum"] = np.uint32(int(checksum))
        res.attrs["checksum_format_version"] = np.int32(CHECKSUM_FORMAT_VERSION)
        if config is not None:
            _write_string_attr(res, "config_json", json.dumps(config, sort_keys=True, default=str))
    LOG.info("Saved registration result to %s", path)


def load_result(path: str) -> Dict[str, Any]:
    """Read a result written by `save_result`.

    Returns a dict with parameters, loss_history, checksum, checksum_format_version
    and config (None if absent).
    """
    out: Dict[str, Any] = {}
    with h5py.File(path, "r") as f:
        if "entry/result" not in f:
            raise KeyError(f"Could not find /entry/result in {path}")
        res = f["entry/result"]
        out["parameters"] = res["parameters"][...]
        out["loss_history"] = res["loss_history"][...] if "loss_history" in res else np.zeros((0,))
        out["checksum"] = int(res.attrs["checksum"]) if "checksum" in res.attrs else None
        out["checksum_format_version"] = int(res.attrs.get("checksum_format_version", CHECKSUM_FORMAT_VERSION))
        cfg_txt = _attr_to_str(res.attrs.get("config_json"))
        out["config"] = json.loads(cfg_txt) if cfg_txt else None
    return out


def load_points(path: str) -> Dict[str, np.ndarray]:
    """Load `fixed` and `moving` (n, d) point arrays from .npz or HDF5."""
    if path.endswith(".npz"):
        with np.load(path) as z:
            data = {k: np.asarray(z[k]) for k in ("fixed", "moving") if k in z}
    else:
        with h5py.File(path, "r") as f:
            data = {k: f[k][...] for k in ("fixed", "moving") if k in f}
    missing = [k for k in ("fixed", "moving") if k not in data]
    if missing:
        raise KeyError(f"{path} is missing point arrays: {', '.join(missing)}")
    return data
