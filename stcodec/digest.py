"""BLAKE3 digests of tensor contents (CLI inspect/diff; not stored in files)."""

from __future__ import annotations

from typing import Any

import blake3
import numpy as np

from .evaluation import contiguous


def tensor_digest(tensor: Any) -> str:
    """Return the BLAKE3-256 hex digest of *tensor*'s little-endian bytes.

    Equal digests mean equal dtype width and equal raw bytes; shape and
    dtype tag are not part of the digest.
    """
    arr = contiguous(np.asarray(tensor))
    return blake3.blake3(arr.reshape(-1).view(np.uint8)).hexdigest()
