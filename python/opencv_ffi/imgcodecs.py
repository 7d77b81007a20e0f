"""
Image file reading and writing (``cv::imgcodecs``).
"""

import os
from enum import IntEnum
from typing import Optional

from .context import Context, resolve
from .core import Mat, mat_ptr
from .errors import EntryNotFound, UnknownError
from .marshal import PathLike, path_to_cstring, to_cstring


class ImreadModes(IntEnum):
    UNCHANGED = -1
    GRAYSCALE = 0
    COLOR = 1
    ANYDEPTH = 2
    ANYCOLOR = 4
    LOAD_GDAL = 8
    REDUCED_GRAYSCALE_2 = 16
    REDUCED_COLOR_2 = 17
    REDUCED_GRAYSCALE_4 = 32
    REDUCED_COLOR_4 = 33
    REDUCED_GRAYSCALE_8 = 64
    REDUCED_COLOR_8 = 65
    IGNORE_ORIENTATION = 128


def imread(path: PathLike, flags: ImreadModes = ImreadModes.COLOR, ctx: Optional[Context] = None) -> Mat:
    """Load an image from a file.

    Raises ``EntryNotFound`` when nothing exists at ``path`` and
    ``UnknownError`` when the file exists but could not be decoded.
    """
    ctx = resolve(ctx)
    ctx.require("imgcodecs")
    c_path = path_to_cstring(ctx, path)
    if not os.path.exists(path):
        raise EntryNotFound(path)
    mat = Mat._adopt(ctx, ctx.lib.Image_IMRead(c_path, int(flags)))
    if mat.empty():
        mat.close()
        raise UnknownError(ctx.last_error() or f"unable to decode image {os.fspath(path)!r}")
    return mat


def imwrite(path: PathLike, img: Mat) -> None:
    """Save an image; the format is chosen from the file extension."""
    img_ptr = mat_ptr(img, "img")
    ctx = img.ctx
    ctx.require("imgcodecs")
    c_path = path_to_cstring(ctx, path)
    if not ctx.lib.Image_IMWrite(c_path, img_ptr):
        raise UnknownError(ctx.last_error() or f"unable to write image {os.fspath(path)!r}")


def imencode(ext: str, img: Mat) -> bytes:
    """Encode ``img`` into an in-memory file of type ``ext`` (e.g. ``".png"``)."""
    img_ptr = mat_ptr(img, "img")
    ctx = img.ctx
    ctx.require("imgcodecs")
    c_ext = to_cstring(ctx, ext)
    buf = ctx.lib.Image_IMEncode(c_ext, img_ptr)
    ctx.check()
    try:
        return bytes(ctx.ffi.buffer(buf.data, buf.length))
    finally:
        ctx.lib.ByteArray_Release(buf)


def imdecode(data: bytes, flags: ImreadModes = ImreadModes.COLOR, ctx: Optional[Context] = None) -> Mat:
    """Decode an image from an in-memory buffer."""
    ctx = resolve(ctx)
    ctx.require("imgcodecs")
    raw = ctx.ffi.from_buffer("char[]", data)
    buf = ctx.ffi.new("ByteArray *", {"data": raw, "length": len(raw)})
    ptr = ctx.lib.Image_IMDecode(buf[0], int(flags))
    ctx.check()
    mat = Mat._adopt(ctx, ptr)
    if mat.empty():
        mat.close()
        raise UnknownError("unable to decode image buffer")
    return mat
