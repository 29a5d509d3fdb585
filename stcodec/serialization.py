"""High-level load/save entry points and :class:`TensorFile`."""

from __future__ import annotations

import logging
import os
from typing import Any, Iterator, Mapping, Optional, Union

import numpy as np

from .format import DEFAULT_ALIGNMENT, FILE_EXTENSION
from .header import FileHeader, read_header
from .lazy import LazyTensor
from .streams import BytesReader, BytesWriter, FileReader, FileWriter, Reader, Writer
from .writer import write_tensors

logger = logging.getLogger("stcodec")

PathLike = Union[str, "os.PathLike[str]"]


# ── Decode ──────────────────────────────────────────────────────────────────


def _lazy_tensors(reader: Reader, header: FileHeader) -> dict[str, LazyTensor]:
    return {
        name: LazyTensor(reader, info, header.absolute_offset(name))
        for name, info in header.tensors.items()
    }


def load(
    reader: Reader, *, validate: bool = True
) -> tuple[dict[str, LazyTensor], dict[str, str]]:
    """Decode the header from *reader* and return lazy tensors plus metadata.

    No payload byte is read here; each :class:`LazyTensor` reads its own
    range when forced.  *reader* must stay open while handles are in use.
    """
    header = read_header(reader, validate=validate)
    return _lazy_tensors(reader, header), dict(header.metadata)


def load_file(
    path: PathLike, *, validate: bool = True
) -> tuple[dict[str, LazyTensor], dict[str, str]]:
    reader = FileReader(path)
    try:
        return load(reader, validate=validate)
    except BaseException:
        reader.close()
        raise


def load_bytes(
    data: bytes, *, validate: bool = True
) -> tuple[dict[str, LazyTensor], dict[str, str]]:
    return load(BytesReader(data), validate=validate)


# ── Encode ──────────────────────────────────────────────────────────────────


def save(
    writer: Writer,
    tensors: Mapping[str, Any],
    metadata: Optional[Mapping[str, str]] = None,
    *,
    alignment: int = DEFAULT_ALIGNMENT,
    max_workers: Optional[int] = None,
) -> None:
    write_tensors(writer, tensors, metadata,
                  alignment=alignment, max_workers=max_workers)


def save_bytes(
    tensors: Mapping[str, Any],
    metadata: Optional[Mapping[str, str]] = None,
    *,
    alignment: int = DEFAULT_ALIGNMENT,
    max_workers: Optional[int] = None,
) -> bytes:
    writer = BytesWriter()
    write_tensors(writer, tensors, metadata,
                  alignment=alignment, max_workers=max_workers)
    return writer.getvalue()


def normalize_path(path: PathLike) -> str:
    """Append ``.safetensors`` unless *path* already ends with it."""
    path = os.fspath(path)
    if not path.endswith(FILE_EXTENSION):
        path += FILE_EXTENSION
    return path


def save_file(
    tensors: Mapping[str, Any],
    path: PathLike,
    metadata: Optional[Mapping[str, str]] = None,
    *,
    alignment: int = DEFAULT_ALIGNMENT,
    max_workers: Optional[int] = None,
) -> str:
    """Write *tensors* to *path* (suffix normalized) and return the final path.

    The file is written in place; on failure it is left partially written.
    """
    path = normalize_path(path)
    with FileWriter(path) as writer:
        write_tensors(writer, tensors, metadata,
                      alignment=alignment, max_workers=max_workers)
    logger.debug("saved %d tensors to %s", len(tensors), path)
    return path


# ── TensorFile ──────────────────────────────────────────────────────────────


class TensorFile:
    """Read tensors from a safetensors file or reader.

    Usage::

        with TensorFile("model.safetensors") as f:
            print(f.metadata)
            for name in f.keys():
                arr = f.get_tensor(name)

    Only the header is read on open; tensor bytes are read on demand and
    cached per tensor.
    """

    def __init__(self, source: Union[PathLike, Reader], *, validate: bool = True) -> None:
        if isinstance(source, Reader):
            self._reader = source
        else:
            self._reader = FileReader(source)
        try:
            self._header = read_header(self._reader, validate=validate)
        except BaseException:
            self._reader.close()
            raise
        self._tensors = _lazy_tensors(self._reader, self._header)

    # ── Header ───────────────────────────────────────────────────────────

    @property
    def header(self) -> FileHeader:
        return self._header

    @property
    def metadata(self) -> dict[str, str]:
        return dict(self._header.metadata)

    def keys(self) -> list[str]:
        return list(self._tensors)

    def __contains__(self, name: object) -> bool:
        return name in self._tensors

    def __len__(self) -> int:
        return len(self._tensors)

    def __iter__(self) -> Iterator[str]:
        return iter(self._tensors)

    # ── Tensors ──────────────────────────────────────────────────────────

    def get_lazy(self, name: str) -> LazyTensor:
        try:
            return self._tensors[name]
        except KeyError:
            raise KeyError(f"tensor {name!r} not found in {self._reader.label()}") from None

    def get_tensor(self, name: str) -> np.ndarray:
        return self.get_lazy(name).evaluate()

    def tensors(self) -> dict[str, LazyTensor]:
        return dict(self._tensors)

    # ── Lifecycle ────────────────────────────────────────────────────────

    def close(self) -> None:
        self._reader.close()

    def __enter__(self) -> TensorFile:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
