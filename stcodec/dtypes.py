"""Mapping between format tags, :class:`DType` and numpy dtypes."""

from __future__ import annotations

import ml_dtypes
import numpy as np

from .errors import UnknownTypeError, UnsupportedTypeError
from .format import DTYPE_TAGS, TAG_DTYPES, DType

# Little-endian on disk regardless of host byte order.
_NUMPY_DTYPES: dict[DType, np.dtype] = {
    DType.F32: np.dtype("<f4"),
    DType.BF16: np.dtype(ml_dtypes.bfloat16),
    DType.F16: np.dtype("<f2"),
    DType.I8: np.dtype("i1"),
    DType.I16: np.dtype("<i2"),
    DType.I32: np.dtype("<i4"),
    DType.I64: np.dtype("<i8"),
    DType.U8: np.dtype("u1"),
    DType.U16: np.dtype("<u2"),
    DType.U32: np.dtype("<u4"),
    DType.U64: np.dtype("<u8"),
    DType.BOOL: np.dtype("?"),
    DType.C64: np.dtype("<c8"),
}


def _native(dt: np.dtype) -> np.dtype:
    return dt if dt.isnative else dt.newbyteorder("=")


# Keyed on the native-order dtype so lookups ignore byte order.
_FROM_NUMPY: dict[np.dtype, DType] = {
    _native(dt): d for d, dt in _NUMPY_DTYPES.items()
}


def to_tag(dtype: DType) -> str:
    try:
        return DTYPE_TAGS[DType(dtype)]
    except (ValueError, KeyError):
        raise UnsupportedTypeError(f"no format tag for dtype {dtype!r}") from None


def from_tag(tag: str) -> DType:
    dtype = TAG_DTYPES.get(tag) if isinstance(tag, str) else None
    if dtype is None:
        raise UnknownTypeError(f"unknown dtype tag {tag!r}")
    return dtype


def to_numpy(dtype: DType) -> np.dtype:
    """Return the little-endian numpy dtype backing *dtype*."""
    try:
        return _NUMPY_DTYPES[DType(dtype)]
    except (ValueError, KeyError):
        raise UnsupportedTypeError(f"no numpy dtype for {dtype!r}") from None


def from_numpy(dtype) -> DType:
    """Return the :class:`DType` for a numpy dtype-like, ignoring byte order."""
    try:
        np_dtype = np.dtype(dtype)
    except TypeError:
        raise UnsupportedTypeError(f"not a numpy dtype: {dtype!r}") from None
    result = _FROM_NUMPY.get(_native(np_dtype))
    if result is None:
        raise UnsupportedTypeError(
            f"numpy dtype {np_dtype} cannot be stored "
            f"(supported: {', '.join(DTYPE_TAGS.values())})"
        )
    return result
