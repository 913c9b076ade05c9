from __future__ import annotations

import argparse
import logging

import numpy as np

from ..data.io_hdf5 import load_result
from ..optimizer.checksum import CHECKSUM_FORMAT_VERSION, format_checksum_line, parameters_checksum
from ..utils.logging import setup_logging


def load_parameters(path: str) -> np.ndarray:
    if path.endswith(".npy"):
        return np.load(path).reshape(-1)
    if path.endswith((".h5", ".hdf5", ".nxs")):
        return np.asarray(load_result(path)["parameters"]).reshape(-1)
    with open(path, "r") as f:
        text = f.read()
    return np.array([float(tok) for tok in text.split()], dtype=np.float64)


def main() -> None:
    p = argparse.ArgumentParser(description="Print the registration result checksum of a parameter vector")
    p.add_argument("--params", required=True, help="Parameters as .npy, whitespace separated text, or a result .h5")
    p.add_argument("--verify", type=int, default=None, help="Expected checksum; exit non-zero on mismatch")
    p.add_argument("--show-format", action="store_true", help="Also print the checksum format version")
    args = p.parse_args()

    setup_logging("WARNING")
    try:
        params = load_parameters(args.params)
        crc = parameters_checksum(params)
    except (OSError, KeyError, ValueError) as exc:
        raise SystemExit(f"Could not checksum parameters from {args.params}: {exc}")
    print(format_checksum_line(crc))
    if args.show_format:
        print(f"Checksum format version: {CHECKSUM_FORMAT_VERSION}")
    if args.verify is not None and int(args.verify) != crc:
        logging.error("Checksum mismatch: expected %d, got %d", int(args.verify), crc)
        raise SystemExit(1)


if __name__ == "__main__":  # pragma: no cover
    main()
