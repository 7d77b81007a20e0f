"""
GPU matrices (``cv::cuda``).
"""

from typing import Optional

from .context import Context, resolve
from .core import Mat, mat_ptr
from .handle import NativeHandle


class GpuMat(NativeHandle):
    """An owned ``cv::cuda::GpuMat`` living in device memory."""

    _release = "GpuMat_Close"

    def __init__(self, ctx: Optional[Context] = None):
        ctx = resolve(ctx)
        ctx.require("cuda")
        super().__init__(ctx, ctx.lib.GpuMat_New())

    @classmethod
    def from_mat(cls, mat: Mat) -> "GpuMat":
        mat_ptr(mat, "mat")
        gpu = cls(mat.ctx)
        try:
            gpu.upload(mat)
        except BaseException:
            gpu.close()
            raise
        return gpu

    def upload(self, mat: Mat) -> None:
        self._ctx.lib.GpuMat_Upload(self.ptr, mat_ptr(mat, "mat"))
        self._ctx.check()

    def download(self) -> Mat:
        dst = Mat(self._ctx)
        try:
            self._ctx.lib.GpuMat_Download(self.ptr, dst.ptr)
            self._ctx.check()
        except BaseException:
            dst.close()
            raise
        return dst

    def empty(self) -> bool:
        return bool(self._ctx.lib.GpuMat_Empty(self.ptr))


def cuda_device_count(ctx: Optional[Context] = None) -> int:
    """Number of CUDA devices OpenCV can use; 0 when built without CUDA."""
    ctx = resolve(ctx)
    ctx.require("cuda")
    count = ctx.lib.GetCudaEnabledDeviceCount()
    ctx.check()
    return count
