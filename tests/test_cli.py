"""CLI tests – drive main() in-process and check exit codes and output."""

import numpy as np
import pytest

from stcodec import load_file, save_file
from stcodec.cli import main


@pytest.fixture
def golden(tmp_path):
    assert main(["make-test-vector", str(tmp_path / "golden")]) == 0
    return tmp_path / "golden.safetensors"


def test_make_test_vector(tmp_path, capsys):
    assert main(["make-test-vector", str(tmp_path / "tv")]) == 0
    out = capsys.readouterr().out
    assert "tv.safetensors" in out

    tensors, metadata = load_file(tmp_path / "tv.safetensors")
    assert metadata == {"version": "1"}
    np.testing.assert_array_equal(tensors["w"].evaluate(), [[0, 1], [2, 3]])


def test_inspect(golden, capsys):
    assert main(["inspect", str(golden), "--digest"]) == 0
    out = capsys.readouterr().out
    assert "version = '1'" in out
    assert "F32" in out
    assert "[2, 2]" in out
    assert "[0, 16)" in out
    assert "BLAKE3" in out


def test_inspect_alias_and_limit(tmp_path, capsys):
    path = save_file(
        {f"t{i}": np.full((2,), i, dtype=np.uint8) for i in range(5)},
        tmp_path / "many",
    )
    assert main(["info", path, "--max-tensors", "2"]) == 0
    out = capsys.readouterr().out
    assert "showing 2" in out
    assert "3 more" in out


def test_validate_full(golden, capsys):
    assert main(["validate", str(golden), "--full"]) == 0
    assert "1 tensors (full verify)" in capsys.readouterr().out


def test_validate_corrupt(tmp_path, capsys):
    bad = tmp_path / "bad.safetensors"
    bad.write_bytes(b"\x00" * 8 + b"{}")
    assert main(["validate", str(bad)]) == 1
    assert "invalid JSON header length 0" in capsys.readouterr().err


def test_missing_file(tmp_path, capsys):
    assert main(["inspect", str(tmp_path / "nope.safetensors")]) == 1
    assert "failed to open" in capsys.readouterr().err


def test_diff_identical(golden, tmp_path, capsys):
    assert main(["make-test-vector", str(tmp_path / "copy")]) == 0
    capsys.readouterr()
    assert main(["diff", str(golden), str(tmp_path / "copy.safetensors")]) == 0
    assert "identical (1 tensors)" in capsys.readouterr().out


def test_diff_content_and_names(golden, tmp_path, capsys):
    other = save_file(
        {"w": np.arange(4, 8, dtype="<f4").reshape(2, 2),
         "extra": np.ones((1,), dtype=np.int8)},
        tmp_path / "other",
        {"version": "2"},
    )
    assert main(["diff", str(golden), other]) == 1
    out = capsys.readouterr().out
    assert "w: content" in out
    assert "Only in second (1)" in out
    assert "extra" in out
    assert "Metadata differs" in out


def test_convert_npz(tmp_path, capsys):
    src = tmp_path / "arrays.npz"
    np.savez(src, a=np.arange(3, dtype=np.int32),
             b=np.ones((2, 2), dtype=np.float32))
    assert main(["convert-npz", str(src), str(tmp_path / "out"), "--workers", "2"]) == 0
    assert "Converted 2 tensors" in capsys.readouterr().out

    tensors, metadata = load_file(tmp_path / "out.safetensors")
    assert metadata == {"source_format": "npz"}
    np.testing.assert_array_equal(tensors["a"].evaluate(), [0, 1, 2])
    assert tensors["b"].shape == (2, 2)


def test_extract(golden, tmp_path):
    out = tmp_path / "w.npy"
    assert main(["extract", str(golden), "w", str(out)]) == 0
    arr = np.load(out)
    assert arr.dtype == np.float32
    np.testing.assert_array_equal(arr, [[0, 1], [2, 3]])


def test_extract_missing_tensor(golden, tmp_path, capsys):
    assert main(["extract", str(golden), "nope", str(tmp_path / "x.npy")]) == 1
    assert "'nope' not found" in capsys.readouterr().err


def test_no_command(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--version"])
    assert excinfo.value.code == 0
    assert "stcodec" in capsys.readouterr().out


def test_inspect_max_tensors_zero(tmp_path, capsys):
    path = save_file(
        {f"t{i}": np.full((2,), i, dtype=np.uint8) for i in range(3)},
        tmp_path / "three",
    )
    assert main(["inspect", path, "--max-tensors", "0"]) == 0
    out = capsys.readouterr().out
    assert "showing 0" in out
    assert "3 more" in out
