"""Deterministic fingerprint of a final parameter vector.

Format (version 1):

- each parameter is multiplied by 1e6 and rounded half away from zero;
- the integers are stored as little-endian signed 64-bit values, in order;
- the buffer is hashed with the standard CRC-32 (zlib: reflected polynomial
  0xEDB88320, initial value 0, final xor 0xFFFFFFFF).

Changing any of these changes every checksum and must bump the version.
"""

from __future__ import annotations

import zlib
from typing import Any

import numpy as np


CHECKSUM_FORMAT_VERSION = 1
QUANTIZATION_SCALE = 1e6
CHECKSUM_DTYPE = np.dtype("<i8")
CHECKSUM_LINE_PREFIX = "Registration result checksum:"


def quantize_parameters(params: Any) -> np.ndarray:
    """Round parameters to six decimals and return them as little-endian int64."""
    p = np.asarray(params, dtype=np.float64).reshape(-1)
    scaled = p * QUANTIZATION_SCALE
    if not np.all(np.isfinite(scaled)):
        raise ValueError("Cannot fingerprint non-finite parameters")
    rounded = np.sign(scaled) * np.floor(np.abs(scaled) + 0.5)
    # -0.0 and 0.0 must encode identically
    return (rounded + 0.0).astype(CHECKSUM_DTYPE)


def parameters_checksum(params: Any) -> int:
    """CRC-32 of the quantized parameter buffer; 0 for an empty vector."""
    buf = quantize_parameters(params).tobytes()
    return zlib.crc32(buf, 0) & 0xFFFFFFFF


def format_checksum_line(crc: int) -> str:
    return f"{CHECKSUM_LINE_PREFIX} {int(crc) & 0xFFFFFFFF:d}"
