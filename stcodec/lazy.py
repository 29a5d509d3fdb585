"""Lazily materialized tensors backed by a shared reader."""

from __future__ import annotations

import logging
import threading
from typing import Optional

import numpy as np

from .dtypes import to_numpy
from .errors import InvalidOffsetsError
from .format import DType, shape_nbytes
from .header import TensorInfo
from .streams import Reader

logger = logging.getLogger("stcodec")


class LazyTensor:
    """Handle to one tensor's payload bytes, read on first use.

    ``shape``, ``dtype`` and ``nbytes`` come from the header and never touch
    the stream.  :meth:`evaluate` performs the read; concurrent callers
    share a single read and every later call returns the cached array.

    The handle keeps *reader* alive; closing the reader before the handle is
    forced makes :meth:`evaluate` raise :class:`~stcodec.errors.NotOpenError`.
    The returned array is a read-only view of the bytes read.
    """

    __slots__ = ("_reader", "_info", "_offset", "_array", "_lock")

    def __init__(self, reader: Reader, info: TensorInfo, offset: int) -> None:
        self._reader = reader
        self._info = info
        self._offset = offset
        self._array: Optional[np.ndarray] = None
        self._lock = threading.Lock()

    # ── Metadata (no I/O) ────────────────────────────────────────────────

    @property
    def name(self) -> str:
        return self._info.name

    @property
    def info(self) -> TensorInfo:
        return self._info

    @property
    def dtype(self) -> DType:
        return self._info.dtype

    @property
    def numpy_dtype(self) -> np.dtype:
        return to_numpy(self._info.dtype)

    @property
    def shape(self) -> tuple[int, ...]:
        return self._info.shape

    @property
    def ndim(self) -> int:
        return len(self._info.shape)

    @property
    def nbytes(self) -> int:
        return self._info.nbytes

    @property
    def offset(self) -> int:
        """Absolute stream offset of the first payload byte."""
        return self._offset

    @property
    def materialized(self) -> bool:
        return self._array is not None

    # ── Materialization ──────────────────────────────────────────────────

    def evaluate(self) -> np.ndarray:
        if self._array is not None:
            return self._array
        with self._lock:
            if self._array is None:
                self._array = self._load()
        return self._array

    numpy = evaluate

    def _load(self) -> np.ndarray:
        np_dtype = self.numpy_dtype
        expected = shape_nbytes(self.shape, self.dtype)
        if expected != self.nbytes:
            raise InvalidOffsetsError(
                f"{self._reader.label()}: tensor {self.name!r}: shape needs "
                f"{expected} bytes, header gives {self.nbytes}"
            )
        if self.nbytes == 0:
            try:
                return np.empty(self.shape, dtype=np_dtype)
            except ValueError as exc:
                raise InvalidOffsetsError(
                    f"{self._reader.label()}: tensor {self.name!r}: {exc}"
                ) from None
        logger.debug("reading %r from %s: offset=%d length=%d",
                     self.name, self._reader.label(), self._offset, self.nbytes)
        raw = self._reader.read_exact_at(self._offset, self.nbytes)
        return np.frombuffer(raw, dtype=np_dtype).reshape(self.shape)

    def __array__(self, dtype=None, copy=None):
        arr = self.evaluate()
        if dtype is not None and np.dtype(dtype) != arr.dtype:
            return arr.astype(dtype)
        if copy:
            return arr.copy()
        return arr

    def __repr__(self) -> str:
        state = "materialized" if self.materialized else "pending"
        return (
            f"LazyTensor(name={self.name!r}, dtype={self.dtype.name}, "
            f"shape={list(self.shape)}, {state})"
        )
