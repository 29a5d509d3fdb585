"""safetensors writer: offset assignment and stream output.

Tensors are packed back to back in name order, so the same input always
produces the same bytes.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import numpy as np

from .dtypes import from_numpy
from .errors import (
    EmptyTensorError,
    InvalidMetadataValueError,
    InvalidTensorNameError,
    NotOpenError,
    StreamError,
    WriteFailedError,
)
from .evaluation import materialize
from .format import DEFAULT_ALIGNMENT, METADATA_KEY
from .header import TensorInfo, build_header, pack_header_length
from .streams import Writer

logger = logging.getLogger("stcodec")


# ── Layout planning ─────────────────────────────────────────────────────────


def plan_layout(arrays: Mapping[str, np.ndarray]) -> list[TensorInfo]:
    """Assign each array a payload byte range.

    Arrays are walked in sorted name order; the i-th range starts where the
    (i-1)-th ended.  Zero-byte arrays are rejected since the format cannot
    tell them apart from absent entries.
    """
    layout: list[TensorInfo] = []
    offset = 0
    for name in sorted(arrays):
        arr = arrays[name]
        if arr.nbytes == 0:
            raise EmptyTensorError(
                f"cannot serialize an empty tensor: {name!r} "
                f"(shape {list(arr.shape)})"
            )
        layout.append(TensorInfo(
            name=name,
            dtype=from_numpy(arr.dtype),
            shape=tuple(int(d) for d in arr.shape),
            data_offsets=(offset, offset + arr.nbytes),
        ))
        offset += arr.nbytes
    return layout


def _check_names(tensors: Mapping[str, Any]) -> None:
    for name in tensors:
        if not isinstance(name, str):
            raise InvalidTensorNameError(
                f"tensor names must be strings, got {type(name).__name__}"
            )
        if name == METADATA_KEY:
            raise InvalidTensorNameError(f"{METADATA_KEY!r} is a reserved name")


def _check_metadata(metadata: Mapping[str, str]) -> None:
    for key, value in metadata.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise InvalidMetadataValueError(
                f"metadata must map str to str, got {key!r}: {value!r}"
            )


def _raw_bytes(arr: np.ndarray) -> memoryview:
    return memoryview(arr.reshape(-1).view(np.uint8))


# ── Stream output ───────────────────────────────────────────────────────────


def write_tensors(
    writer: Writer,
    tensors: Mapping[str, Any],
    metadata: Optional[Mapping[str, str]] = None,
    *,
    alignment: int = DEFAULT_ALIGNMENT,
    max_workers: Optional[int] = None,
) -> list[TensorInfo]:
    """Encode *tensors* and *metadata* to *writer*; return the layout used.

    All tensors are materialized in a single batch before any offset is
    computed or any byte written.  Validation failures leave *writer*
    untouched; a failure while writing leaves it partially written.
    """
    label = writer.label()
    if not writer.good() or not writer.is_open():
        raise NotOpenError(f"failed to open {label}")

    metadata = dict(metadata or {})
    _check_names(tensors)
    _check_metadata(metadata)

    arrays = materialize(tensors, max_workers=max_workers)
    layout = plan_layout(arrays)
    header = build_header(layout, metadata, alignment=alignment)
    payload_size = layout[-1].data_offsets[1] if layout else 0
    logger.debug("writing %s: %d tensors, header=%d bytes, payload=%d bytes",
                 label, len(layout), len(header), payload_size)

    try:
        writer.write(pack_header_length(header))
        writer.write(header)
        for info in layout:
            writer.write(_raw_bytes(arrays[info.name]))
    except StreamError:
        raise
    except OSError as exc:
        raise WriteFailedError(f"{label}: write failed: {exc}") from exc
    return layout
