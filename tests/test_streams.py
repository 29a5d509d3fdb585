"""Reader/writer stream tests."""

import os

import pytest

import stcodec.streams as streams
from stcodec.errors import NotOpenError, ReadUnderrunError
from stcodec.streams import BytesReader, FileReader


@pytest.fixture
def data_file(tmp_path):
    path = tmp_path / "blob.bin"
    path.write_bytes(bytes(range(32)))
    return path


def test_file_reader_positional(data_file):
    with FileReader(data_file) as r:
        assert r.size() == 32
        assert r.read_at(4, 4) == bytes([4, 5, 6, 7])
        assert r.read(3) == bytes([0, 1, 2])
        assert r.tell() == 3


def test_reads_stop_at_eof(data_file):
    with FileReader(data_file) as r:
        assert r.read_at(30, 100) == bytes([30, 31])
        assert r.read_at(32, 4) == b""
        assert r.read_at(2**64, 8) == b""
        assert r.read_at(0, 0) == b""
        with pytest.raises(ReadUnderrunError, match="short read"):
            r.read_exact_at(0, 2**40)

    r = BytesReader(bytes(range(8)))
    assert r.read_at(6, 10) == bytes([6, 7])
    assert r.read_at(2**64, 8) == b""


def test_closed_file_reader(data_file):
    r = FileReader(data_file)
    r.close()
    assert not r.good()
    with pytest.raises(NotOpenError):
        r.read_at(0, 1)


def test_missing_file(tmp_path):
    with pytest.raises(NotOpenError, match="failed to open"):
        FileReader(tmp_path / "missing.bin")


def test_fstat_failure_closes_handle(data_file, monkeypatch):
    opened = []
    real_open = open

    def tracking_open(*args, **kwargs):
        f = real_open(*args, **kwargs)
        opened.append(f)
        return f

    def failing_fstat(fd):
        raise OSError(5, "Input/output error")

    monkeypatch.setattr(streams, "open", tracking_open, raising=False)
    monkeypatch.setattr(streams.os, "fstat", failing_fstat)
    with pytest.raises(NotOpenError, match="failed to open"):
        FileReader(data_file)
    assert len(opened) == 1
    assert opened[0].closed


@pytest.mark.skipif(not hasattr(os, "pread"), reason="needs os.pread")
def test_read_error_reports_requested_offset(data_file, monkeypatch):
    calls = []

    def flaky_pread(fd, length, offset):
        calls.append(offset)
        if len(calls) == 1:
            return b"\x00" * 2
        raise OSError(5, "Input/output error")

    r = FileReader(data_file)
    monkeypatch.setattr(streams.os, "pread", flaky_pread)
    with pytest.raises(ReadUnderrunError, match="at offset 10:"):
        r.read_at(10, 8)
    assert calls == [10, 12]
    r.close()
