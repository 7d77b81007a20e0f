"""Tests for image reading and writing"""

import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from opencv_ffi import EntryNotFound, Mat, UnknownError
from opencv_ffi.imgcodecs import ImreadModes, imdecode, imencode, imread, imwrite

from conftest import FakeMat


class TestImread:
    """Test loading images from files"""

    def test_read(self, ctx, lib, tmp_path):
        """Test a decodable file"""
        path = tmp_path / "frame.png"
        path.write_bytes(b"FAKEIMG")
        with imread(path, ImreadModes.GRAYSCALE) as img:
            assert img.shape == (2, 3, 3)
        assert lib.calls[-1] == ("Image_IMRead", str(path), 0)

    def test_missing_file(self, ctx, lib, tmp_path):
        """Test that a missing file is reported before any native call"""
        with pytest.raises(EntryNotFound) as info:
            imread(tmp_path / "nope.png")
        assert info.value.path == tmp_path / "nope.png"
        assert lib.calls == []

    def test_undecodable_file(self, ctx, lib, tmp_path):
        """Test a file the codecs cannot read"""
        path = tmp_path / "broken.png"
        path.write_bytes(b"garbage")
        with pytest.raises(UnknownError):
            imread(path)
        assert lib.live(FakeMat) == []


class TestImwrite:
    """Test saving images"""

    def test_write(self, ctx, tmp_path):
        """Test a successful write"""
        path = tmp_path / "out.png"
        with Mat.from_numpy(np.zeros((2, 2, 3), dtype=np.uint8), ctx) as img:
            imwrite(path, img)
        assert path.read_bytes() == b"FAKEIMG"

    def test_write_failure(self, ctx, lib, tmp_path):
        """Test a write the native side refuses"""
        lib.fail_on("Image_IMWrite", "could not find a writer for the specified extension")
        with Mat.from_numpy(np.zeros((2, 2), dtype=np.uint8), ctx) as img:
            with pytest.raises(UnknownError) as info:
                imwrite(tmp_path / "out.xyz", img)
        assert "writer" in info.value.message


class TestMemoryCodecs:
    """Test in-memory encoding and decoding"""

    def test_encode_copies_and_frees(self, ctx, lib):
        """Test that the native buffer is copied out and released"""
        with Mat.from_numpy(np.full((1, 2), 9, dtype=np.uint8), ctx) as img:
            data = imencode(".png", img)
        assert data == b".png\x09\x09"
        assert lib.kept() == 0

    def test_decode(self, ctx):
        """Test decoding an encoded buffer"""
        with imdecode(b".png-data") as img:
            assert not img.empty()

    def test_decode_garbage(self, ctx, lib):
        """Test a buffer that is not an image"""
        with pytest.raises(UnknownError):
            imdecode(b"not an image")
        assert lib.live(FakeMat) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
