"""Parse, validate and serialize the length-prefixed JSON header."""

from __future__ import annotations

import json
import logging
import struct
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

from .dtypes import from_tag, to_tag
from .errors import (
    DuplicateKeyError,
    InvalidHeaderLengthError,
    InvalidMetadataError,
    InvalidOffsetsError,
    MalformedEntryError,
    MissingFieldError,
    NotOpenError,
    ReadUnderrunError,
    UnknownTypeError,
)
from .format import (
    DEFAULT_ALIGNMENT,
    HEADER_LENGTH_FMT,
    HEADER_LENGTH_SIZE,
    MAX_HEADER_LENGTH,
    METADATA_KEY,
    DType,
    shape_nbytes,
    shape_numel,
)
from .streams import Reader

logger = logging.getLogger("stcodec")

_REQUIRED_FIELDS = ("dtype", "shape", "data_offsets")

_U64_MAX = (1 << 64) - 1
_DIM_MAX = (1 << 63) - 1      # numpy index range


# ── TensorInfo / FileHeader ─────────────────────────────────────────────────


@dataclass(frozen=True)
class TensorInfo:
    """One header entry.  ``data_offsets`` is relative to the payload start."""

    name: str
    dtype: DType
    shape: tuple[int, ...]
    data_offsets: tuple[int, int]

    @property
    def nbytes(self) -> int:
        start, end = self.data_offsets
        return end - start

    @property
    def numel(self) -> int:
        return shape_numel(self.shape)

    def to_json(self) -> dict[str, Any]:
        return {
            "dtype": to_tag(self.dtype),
            "shape": list(self.shape),
            "data_offsets": list(self.data_offsets),
        }


@dataclass(frozen=True)
class FileHeader:
    """Decoded header.  ``tensors`` keeps header order and is read-only."""

    header_length: int
    tensors: Mapping[str, TensorInfo] = field(default_factory=dict)
    metadata: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tensors", MappingProxyType(dict(self.tensors)))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def payload_offset(self) -> int:
        return HEADER_LENGTH_SIZE + self.header_length

    def absolute_offset(self, name: str) -> int:
        return self.payload_offset + self.tensors[name].data_offsets[0]

    @property
    def payload_size(self) -> int:
        return max((t.data_offsets[1] for t in self.tensors.values()), default=0)


# ── Decode ──────────────────────────────────────────────────────────────────


def _reject_duplicates(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    obj: dict[str, Any] = {}
    for key, value in pairs:
        if key in obj:
            raise DuplicateKeyError(f"duplicate key {key!r}")
        obj[key] = value
    return obj


def _is_uint(value: Any, limit: int = _U64_MAX) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value <= limit
    )


def _parse_entry(name: str, entry: Any, label: str) -> TensorInfo:
    if not isinstance(entry, dict):
        raise MalformedEntryError(
            f"{label}: tensor {name!r}: entry is {type(entry).__name__}, "
            f"expected object"
        )
    for key in _REQUIRED_FIELDS:
        if key not in entry:
            raise MissingFieldError(f"{label}: tensor {name!r}: missing {key!r}")

    tag = entry["dtype"]
    if not isinstance(tag, str):
        raise MalformedEntryError(f"{label}: tensor {name!r}: dtype must be a string")
    shape = entry["shape"]
    if not isinstance(shape, list) or not all(_is_uint(d, _DIM_MAX) for d in shape):
        raise MalformedEntryError(
            f"{label}: tensor {name!r}: shape must be a list of "
            f"non-negative integers, got {shape!r}"
        )
    offsets = entry["data_offsets"]
    if (
        not isinstance(offsets, list)
        or len(offsets) != 2
        or not all(_is_uint(o) for o in offsets)
    ):
        raise MalformedEntryError(
            f"{label}: tensor {name!r}: data_offsets must be two "
            f"non-negative integers, got {offsets!r}"
        )

    try:
        dtype = from_tag(tag)
    except UnknownTypeError as exc:
        raise UnknownTypeError(f"{label}: tensor {name!r}: {exc}") from None

    return TensorInfo(
        name=name,
        dtype=dtype,
        shape=tuple(shape),
        data_offsets=(offsets[0], offsets[1]),
    )


def _parse_metadata(value: Any, label: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MalformedEntryError(f"{label}: {METADATA_KEY} must be an object")
    for key, item in value.items():
        if not isinstance(item, str):
            raise MalformedEntryError(
                f"{label}: {METADATA_KEY}[{key!r}] must be a string, "
                f"got {type(item).__name__}"
            )
    return dict(value)


def parse_header(
    raw: bytes, label: str = "<header>"
) -> tuple[dict[str, TensorInfo], dict[str, str]]:
    """Decode header text into ``(entries, metadata)``.

    Any key repeated in the top-level object or in the metadata object is
    rejected with :class:`DuplicateKeyError`.
    """
    try:
        text = bytes(raw).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidMetadataError(f"{label}: header is not UTF-8: {exc}") from None
    try:
        obj = json.loads(text, object_pairs_hook=_reject_duplicates)
    except DuplicateKeyError as exc:
        raise DuplicateKeyError(f"{label}: {exc}") from None
    except (ValueError, RecursionError) as exc:
        raise InvalidMetadataError(f"{label}: invalid JSON header: {exc}") from None
    if not isinstance(obj, dict):
        raise InvalidMetadataError(
            f"{label}: JSON header must be an object, got {type(obj).__name__}"
        )

    entries: dict[str, TensorInfo] = {}
    metadata: dict[str, str] = {}
    for name, entry in obj.items():
        if name == METADATA_KEY:
            metadata = _parse_metadata(entry, label)
            continue
        entries[name] = _parse_entry(name, entry, label)
    return entries, metadata


def validate_layout(
    header: FileHeader,
    stream_size: Optional[int] = None,
    label: str = "<header>",
) -> None:
    """Check every byte range against its shape, its neighbours and EOF.

    Gaps between ranges are tolerated; overlaps are not.
    """
    ranges: list[tuple[int, int, str]] = []
    for name, info in header.tensors.items():
        start, end = info.data_offsets
        if start > end:
            raise InvalidOffsetsError(
                f"{label}: tensor {name!r}: start offset ({start}) > end ({end})"
            )
        expected = shape_nbytes(info.shape, info.dtype)
        if expected != end - start:
            raise InvalidOffsetsError(
                f"{label}: tensor {name!r}: dtype {info.dtype.name} x shape "
                f"{list(info.shape)} = {expected} bytes, but data span is "
                f"{end - start} bytes"
            )
        if stream_size is not None and header.payload_offset + end > stream_size:
            raise InvalidOffsetsError(
                f"{label}: tensor {name!r}: data extends past end of stream "
                f"(offset {header.payload_offset + end} > size {stream_size})"
            )
        ranges.append((start, end, name))

    ranges.sort()
    prev_end, prev_name = 0, None
    for start, end, name in ranges:
        if start == end:
            continue
        if prev_name is not None and start < prev_end:
            raise InvalidOffsetsError(
                f"{label}: tensors {prev_name!r} and {name!r} overlap"
            )
        prev_end, prev_name = end, name


def read_header(reader: Reader, *, validate: bool = True) -> FileHeader:
    """Read the length prefix and header from the start of *reader*.

    No payload byte is read.
    """
    label = reader.label()
    if not reader.good() or not reader.is_open():
        raise NotOpenError(f"failed to open {label}")

    raw_len = reader.read(HEADER_LENGTH_SIZE)
    if len(raw_len) != HEADER_LENGTH_SIZE:
        raise InvalidHeaderLengthError(
            f"{label}: truncated header length ({len(raw_len)} of "
            f"{HEADER_LENGTH_SIZE} bytes)"
        )
    (header_length,) = struct.unpack(HEADER_LENGTH_FMT, raw_len)
    if header_length <= 0 or header_length >= MAX_HEADER_LENGTH:
        raise InvalidHeaderLengthError(
            f"{label}: invalid JSON header length {header_length} "
            f"(must be in (0, {MAX_HEADER_LENGTH}))"
        )

    raw = reader.read(header_length)
    if len(raw) != header_length:
        raise ReadUnderrunError(
            f"{label}: truncated JSON header ({len(raw)} of "
            f"{header_length} bytes)"
        )

    entries, metadata = parse_header(raw, label)
    header = FileHeader(header_length=header_length, tensors=entries,
                        metadata=metadata)
    if validate:
        validate_layout(header, reader.size(), label)
    logger.debug("parsed header of %s: %d bytes, %d tensors, %d metadata keys",
                 label, header_length, len(entries), len(metadata))
    return header


# ── Encode ──────────────────────────────────────────────────────────────────


def build_header(
    layout: Iterable[TensorInfo],
    metadata: Optional[Mapping[str, str]] = None,
    *,
    alignment: int = DEFAULT_ALIGNMENT,
) -> bytes:
    """Serialize *layout* and *metadata* to header bytes.

    The metadata object is always emitted, possibly empty, ahead of the
    tensor entries.  Trailing spaces pad the header so that
    ``8 + len(result)`` is a multiple of *alignment*.
    """
    if alignment < 1:
        raise ValueError(f"alignment must be >= 1, got {alignment}")
    obj: dict[str, Any] = {METADATA_KEY: dict(metadata or {})}
    for info in layout:
        obj[info.name] = info.to_json()
    raw = json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    pad = -(HEADER_LENGTH_SIZE + len(raw)) % alignment
    return raw + b" " * pad


def pack_header_length(header: bytes) -> bytes:
    return struct.pack(HEADER_LENGTH_FMT, len(header))
