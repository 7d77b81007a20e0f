"""
Core types: the owned ``Mat`` handle and the small value structs passed
by value across the boundary.
"""

from enum import IntEnum
from typing import NamedTuple, Optional, Tuple

import numpy as np

from .context import Context, resolve
from .errors import enum_from_primitive
from .handle import NativeHandle, borrow


class MatType(IntEnum):
    """OpenCV element types, ``depth + (channels - 1) * 8``."""

    CV_8UC1 = 0
    CV_8SC1 = 1
    CV_16UC1 = 2
    CV_16SC1 = 3
    CV_32SC1 = 4
    CV_32FC1 = 5
    CV_64FC1 = 6
    CV_8UC2 = 8
    CV_8SC2 = 9
    CV_16UC2 = 10
    CV_16SC2 = 11
    CV_32SC2 = 12
    CV_32FC2 = 13
    CV_64FC2 = 14
    CV_8UC3 = 16
    CV_8SC3 = 17
    CV_16UC3 = 18
    CV_16SC3 = 19
    CV_32SC3 = 20
    CV_32FC3 = 21
    CV_64FC3 = 22
    CV_8UC4 = 24
    CV_8SC4 = 25
    CV_16UC4 = 26
    CV_16SC4 = 27
    CV_32SC4 = 28
    CV_32FC4 = 29
    CV_64FC4 = 30

    @property
    def depth(self) -> int:
        return self.value & 7

    @property
    def channels(self) -> int:
        return 1 + (self.value >> 3)


_DEPTH_DTYPES = {
    0: np.dtype(np.uint8),
    1: np.dtype(np.int8),
    2: np.dtype(np.uint16),
    3: np.dtype(np.int16),
    4: np.dtype(np.int32),
    5: np.dtype(np.float32),
    6: np.dtype(np.float64),
}
_DTYPE_DEPTHS = {dtype: depth for depth, dtype in _DEPTH_DTYPES.items()}


class Size(NamedTuple):
    width: int
    height: int

    def as_c(self, ctx: Context):
        return ctx.ffi.new("Size *", (self.width, self.height))[0]


class Point(NamedTuple):
    x: int
    y: int

    def as_c(self, ctx: Context):
        return ctx.ffi.new("Point *", (self.x, self.y))[0]


class Rect(NamedTuple):
    x: int
    y: int
    width: int
    height: int

    def as_c(self, ctx: Context):
        return ctx.ffi.new("Rect *", (self.x, self.y, self.width, self.height))[0]


class Scalar(NamedTuple):
    val1: float = 0.0
    val2: float = 0.0
    val3: float = 0.0
    val4: float = 0.0

    def as_c(self, ctx: Context):
        return ctx.ffi.new("Scalar *", tuple(self))[0]

    @classmethod
    def from_c(cls, value) -> "Scalar":
        return cls(value.val1, value.val2, value.val3, value.val4)


class Mat(NativeHandle):
    """An owned ``cv::Mat``.

    ``Mat()`` creates an empty matrix; the classmethods build populated ones.
    Results of other native calls are adopted with ``Mat._adopt``.
    """

    _release = "Mat_Close"

    def __init__(self, ctx: Optional[Context] = None):
        ctx = resolve(ctx)
        super().__init__(ctx, ctx.lib.Mat_New())

    @classmethod
    def with_size(cls, rows: int, cols: int, mat_type: MatType, ctx: Optional[Context] = None) -> "Mat":
        """Zero-filled matrix of the given size and element type."""
        ctx = resolve(ctx)
        return cls._adopt(ctx, ctx.lib.Mat_NewWithSize(rows, cols, int(mat_type)))

    @classmethod
    def from_numpy(cls, array, ctx: Optional[Context] = None) -> "Mat":
        """Copy a 2-D (rows, cols) or 3-D (rows, cols, channels) array into a new Mat."""
        ctx = resolve(ctx)
        arr = np.ascontiguousarray(array)
        if arr.ndim == 2:
            rows, cols = arr.shape
            channels = 1
        elif arr.ndim == 3:
            rows, cols, channels = arr.shape
        else:
            raise ValueError(f"expected a 2-D or 3-D array, got {arr.ndim} dimensions")
        if not 1 <= channels <= 4:
            raise ValueError(f"expected 1 to 4 channels, got {channels}")
        depth = _DTYPE_DEPTHS.get(arr.dtype)
        if depth is None:
            raise TypeError(f"unsupported dtype {arr.dtype}")
        mat_type = depth + (channels - 1) * 8

        data = ctx.ffi.from_buffer("char[]", arr)
        buf = ctx.ffi.new("ByteArray *", {"data": data, "length": arr.nbytes})
        return cls._adopt(ctx, ctx.lib.Mat_NewFromBytes(rows, cols, mat_type, buf[0]))

    def clone(self) -> "Mat":
        return Mat._adopt(self._ctx, self._ctx.lib.Mat_Clone(self.ptr))

    def region(self, rect: Rect) -> "Mat":
        """A new Mat header viewing ``rect`` of this one's pixels."""
        ptr = self._ctx.lib.Mat_Region(self.ptr, Rect(*rect).as_c(self._ctx))
        self._ctx.check()
        return Mat._adopt(self._ctx, ptr)

    @property
    def rows(self) -> int:
        return self._ctx.lib.Mat_Rows(self.ptr)

    @property
    def cols(self) -> int:
        return self._ctx.lib.Mat_Cols(self.ptr)

    @property
    def channels(self) -> int:
        return self._ctx.lib.Mat_Channels(self.ptr)

    @property
    def dims(self) -> int:
        return self._ctx.lib.Mat_Dims(self.ptr)

    @property
    def total(self) -> int:
        return self._ctx.lib.Mat_Total(self.ptr)

    @property
    def mat_type(self) -> MatType:
        return enum_from_primitive(MatType, self._ctx.lib.Mat_Type(self.ptr))

    def empty(self) -> bool:
        return bool(self._ctx.lib.Mat_Empty(self.ptr))

    @property
    def shape(self) -> Tuple[int, ...]:
        """Numpy-style shape; channels are appended only when there are several."""
        lib = self._ctx.lib
        ptr = self.ptr
        dims = lib.Mat_Dims(ptr)
        if dims > 2:
            shape = tuple(lib.Mat_SizeAt(ptr, i) for i in range(dims))
        else:
            shape = (lib.Mat_Rows(ptr), lib.Mat_Cols(ptr))
        channels = lib.Mat_Channels(ptr)
        if channels > 1:
            shape += (channels,)
        return shape

    def to_numpy(self) -> np.ndarray:
        """Copy the pixels out into a new numpy array."""
        dtype = _DEPTH_DTYPES[self.mat_type.depth]
        if self.empty():
            return np.empty((0,), dtype=dtype)
        if not self._ctx.lib.Mat_IsContinuous(self.ptr):
            with self.clone() as dense:
                return dense.to_numpy()
        data = self._ctx.lib.Mat_DataPtr(self.ptr)
        flat = np.frombuffer(self._ctx.ffi.buffer(data.data, data.length), dtype=dtype)
        return flat.copy().reshape(self.shape)


def mat_ptr(mat: Mat, what: str = "mat"):
    return borrow(mat, Mat, what)


def opencv_version(ctx: Optional[Context] = None) -> str:
    """Version string of the linked OpenCV library."""
    ctx = resolve(ctx)
    ctx.require("version")
    return ctx.version
