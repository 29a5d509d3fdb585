"""Byte-stream readers and writers consumed by the codec.

Readers offer both a sequential cursor (``read``) used while parsing the
header and positional reads (``read_at``) used by lazy tensors.  Positional
reads must be safe to issue from several threads at distinct offsets.
"""

from __future__ import annotations

import io
import os
import threading
from abc import ABC, abstractmethod
from typing import Optional

from .errors import NotOpenError, ReadUnderrunError, WriteFailedError


# ── Reader protocol ─────────────────────────────────────────────────────────


class Reader(ABC):
    """Abstract readable byte stream."""

    def __init__(self) -> None:
        self._pos = 0

    @abstractmethod
    def label(self) -> str:
        """Human-readable name used in error messages."""

    @abstractmethod
    def is_open(self) -> bool: ...

    def good(self) -> bool:
        return self.is_open()

    @abstractmethod
    def size(self) -> Optional[int]:
        """Return total size in bytes, or None if unknown."""

    @abstractmethod
    def read_at(self, offset: int, length: int) -> bytes:
        """Read up to *length* bytes starting at *offset*.

        Returns fewer bytes only at end of stream.
        """

    @abstractmethod
    def close(self) -> None: ...

    def tell(self) -> int:
        return self._pos

    def seek(self, offset: int) -> None:
        self._pos = offset

    def read(self, length: int) -> bytes:
        """Sequential read from the cursor; short only at end of stream."""
        data = self.read_at(self._pos, length)
        self._pos += len(data)
        return data

    def read_exact_at(self, offset: int, length: int) -> bytes:
        data = self.read_at(offset, length)
        if len(data) != length:
            raise ReadUnderrunError(
                f"{self.label()}: short read at offset {offset} "
                f"(wanted {length} bytes, got {len(data)})"
            )
        return data

    def __enter__(self) -> Reader:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


class FileReader(Reader):
    """Local file reader using pread where available."""

    def __init__(self, path: str | os.PathLike) -> None:
        super().__init__()
        self.path = os.fspath(path)
        try:
            self._fd = open(self.path, "rb")  # noqa: SIM115
        except OSError as exc:
            raise NotOpenError(f"failed to open {self.path}: {exc}") from exc
        try:
            self._size = os.fstat(self._fd.fileno()).st_size
        except OSError as exc:
            self._fd.close()
            raise NotOpenError(f"failed to open {self.path}: {exc}") from exc
        self._lock = threading.Lock()

    def label(self) -> str:
        return self.path

    def is_open(self) -> bool:
        return not self._fd.closed

    def size(self) -> int:
        return self._size

    def read_at(self, offset: int, length: int) -> bytes:
        if not self.is_open():
            raise NotOpenError(f"{self.path}: read from closed file")
        # Never request past EOF; the caller reports the short read.
        if offset >= self._size or length <= 0:
            return b""
        length = min(length, self._size - offset)
        try:
            if hasattr(os, "pread"):
                chunks = []
                pos, remaining = offset, length
                while remaining > 0:
                    chunk = os.pread(self._fd.fileno(), remaining, pos)
                    if not chunk:
                        break
                    chunks.append(chunk)
                    pos += len(chunk)
                    remaining -= len(chunk)
                return b"".join(chunks)
            with self._lock:
                self._fd.seek(offset)
                return self._fd.read(length)
        except OSError as exc:
            raise ReadUnderrunError(
                f"{self.path}: read failed at offset {offset}: {exc}"
            ) from exc

    def close(self) -> None:
        self._fd.close()


class BytesReader(Reader):
    """Reader over an in-memory buffer."""

    def __init__(self, data: bytes | bytearray | memoryview,
                 label: str = "<bytes>") -> None:
        super().__init__()
        self._data = memoryview(data).cast("B")
        self._label = label
        self._closed = False

    def label(self) -> str:
        return self._label

    def is_open(self) -> bool:
        return not self._closed

    def size(self) -> int:
        return len(self._data)

    def read_at(self, offset: int, length: int) -> bytes:
        if self._closed:
            raise NotOpenError(f"{self._label}: read from closed buffer")
        if offset >= len(self._data) or length <= 0:
            return b""
        return bytes(self._data[offset : offset + length])

    def close(self) -> None:
        self._closed = True


# ── Writer protocol ─────────────────────────────────────────────────────────


class Writer(ABC):
    """Abstract writable byte stream."""

    @abstractmethod
    def label(self) -> str: ...

    @abstractmethod
    def is_open(self) -> bool: ...

    def good(self) -> bool:
        return self.is_open()

    @abstractmethod
    def write(self, data) -> None:
        """Write all of *data* (any bytes-like object)."""

    @abstractmethod
    def close(self) -> None: ...

    def __enter__(self) -> Writer:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


class FileWriter(Writer):
    def __init__(self, path: str | os.PathLike) -> None:
        self.path = os.fspath(path)
        try:
            self._fd: Optional[io.BufferedWriter] = open(self.path, "wb")  # noqa: SIM115
        except OSError:
            # surfaced as NotOpenError by the codec
            self._fd = None

    def label(self) -> str:
        return self.path

    def is_open(self) -> bool:
        return self._fd is not None and not self._fd.closed

    def write(self, data) -> None:
        if not self.is_open():
            raise NotOpenError(f"{self.path}: write to closed file")
        try:
            self._fd.write(data)
        except OSError as exc:
            raise WriteFailedError(f"{self.path}: write failed: {exc}") from exc

    def close(self) -> None:
        if self._fd is not None:
            self._fd.close()


class BytesWriter(Writer):
    """Writer collecting output in memory; see :meth:`getvalue`."""

    def __init__(self, label: str = "<bytes>") -> None:
        self._buf = io.BytesIO()
        self._label = label

    def label(self) -> str:
        return self._label

    def is_open(self) -> bool:
        return not self._buf.closed

    def write(self, data) -> None:
        if not self.is_open():
            raise NotOpenError(f"{self._label}: write to closed buffer")
        self._buf.write(data)

    def getvalue(self) -> bytes:
        return self._buf.getvalue()

    def close(self) -> None:
        self._buf.close()
