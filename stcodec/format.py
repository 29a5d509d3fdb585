"""safetensors container constants, dtype tables, and size helpers."""

import struct
from enum import IntEnum

# ── Layout ──────────────────────────────────────────────────────────────────
#
#   [8 B  header_length (u64 LE)]
#   [L B  UTF-8 JSON object]
#   [rest raw tensor payload, ranges relative to payload start]

HEADER_LENGTH_FMT = "<Q"
HEADER_LENGTH_SIZE = 8

assert struct.calcsize(HEADER_LENGTH_FMT) == HEADER_LENGTH_SIZE

METADATA_KEY = "__metadata__"
FILE_EXTENSION = ".safetensors"

# Header is right-padded with spaces so the payload starts on this boundary.
DEFAULT_ALIGNMENT = 8

# ── Safety limits ──────────────────────────────────────────────────────────

MAX_HEADER_LENGTH = 100_000_000      # exclusive

# ── Dtype enum ─────────────────────────────────────────────────────────────


class DType(IntEnum):
    F32 = 0
    BF16 = 1
    F16 = 2
    I8 = 3
    I16 = 4
    I32 = 5
    I64 = 6
    U8 = 7
    U16 = 8
    U32 = 9
    U64 = 10
    BOOL = 11
    C64 = 12    # not in upstream safetensors yet


DTYPE_TAGS: dict[DType, str] = {d: d.name for d in DType}

TAG_DTYPES: dict[str, DType] = {tag: d for d, tag in DTYPE_TAGS.items()}

DTYPE_SIZES: dict[DType, int] = {
    DType.F32: 4,  DType.BF16: 2, DType.F16: 2,
    DType.I8: 1,   DType.I16: 2,  DType.I32: 4,  DType.I64: 8,
    DType.U8: 1,   DType.U16: 2,  DType.U32: 4,  DType.U64: 8,
    DType.BOOL: 1, DType.C64: 8,
}


# ── Shape utilities ────────────────────────────────────────────────────────


def shape_numel(shape) -> int:
    n = 1
    for d in shape:
        if d < 0:
            raise ValueError(f"negative dimension: {d}")
        n *= d
    return n


def shape_nbytes(shape, dtype: DType) -> int:
    """Bytes occupied by a dense tensor of *shape* and *dtype*."""
    return shape_numel(shape) * DTYPE_SIZES[dtype]
