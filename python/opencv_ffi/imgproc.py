"""
Image processing (``cv::imgproc``): colour conversion, resizing, blurring
and drawing. Functions that produce an image return a new owned ``Mat``;
drawing functions modify their argument in place.
"""

from enum import IntEnum
from typing import Optional, Tuple

from .core import Mat, Point, Rect, Scalar, Size, mat_ptr
from .marshal import ascii_cstring


class ColorConversion(IntEnum):
    BGR2BGRA = 0
    BGRA2BGR = 1
    BGR2RGBA = 2
    RGBA2BGR = 3
    BGR2RGB = 4
    BGRA2RGBA = 5
    BGR2GRAY = 6
    RGB2GRAY = 7
    GRAY2BGR = 8
    GRAY2BGRA = 9
    BGRA2GRAY = 10
    RGBA2GRAY = 11
    BGR2HSV = 40
    RGB2HSV = 41
    HSV2BGR = 54
    HSV2RGB = 55


class Interpolation(IntEnum):
    NEAREST = 0
    LINEAR = 1
    CUBIC = 2
    AREA = 3
    LANCZOS4 = 4


class BorderType(IntEnum):
    CONSTANT = 0
    REPLICATE = 1
    REFLECT = 2
    WRAP = 3
    DEFAULT = 4


class HersheyFont(IntEnum):
    SIMPLEX = 0
    PLAIN = 1
    DUPLEX = 2
    COMPLEX = 3
    TRIPLEX = 4
    COMPLEX_SMALL = 5
    SCRIPT_SIMPLEX = 6
    SCRIPT_COMPLEX = 7


def _output_like(src: Mat) -> Mat:
    src.ctx.require("imgproc")
    return Mat(src.ctx)


def _run(ctx, dst: Mat, fn, *args) -> Mat:
    try:
        fn(*args)
        ctx.check()
    except BaseException:
        dst.close()
        raise
    return dst


def cvt_color(src: Mat, code: ColorConversion) -> Mat:
    src_ptr = mat_ptr(src, "src")
    dst = _output_like(src)
    return _run(src.ctx, dst, src.ctx.lib.CvtColor, src_ptr, dst.ptr, int(code))


def resize(
    src: Mat,
    size: Size = Size(0, 0),
    fx: float = 0.0,
    fy: float = 0.0,
    interpolation: Interpolation = Interpolation.LINEAR,
) -> Mat:
    """Resize to ``size``, or by ``fx``/``fy`` when ``size`` is (0, 0)."""
    src_ptr = mat_ptr(src, "src")
    ctx = src.ctx
    dst = _output_like(src)
    return _run(ctx, dst, ctx.lib.Resize, src_ptr, dst.ptr, Size(*size).as_c(ctx), fx, fy, int(interpolation))


def gaussian_blur(
    src: Mat,
    ksize: Size,
    sigma_x: float,
    sigma_y: float = 0.0,
    border: BorderType = BorderType.DEFAULT,
) -> Mat:
    src_ptr = mat_ptr(src, "src")
    ctx = src.ctx
    dst = _output_like(src)
    return _run(
        ctx, dst, ctx.lib.GaussianBlur, src_ptr, dst.ptr, Size(*ksize).as_c(ctx), sigma_x, sigma_y, int(border)
    )


def rectangle(img: Mat, rect: Tuple[int, int, int, int], color: Scalar, thickness: int = 1) -> None:
    img_ptr = mat_ptr(img, "img")
    ctx = img.ctx
    ctx.require("imgproc")
    ctx.lib.Rectangle(img_ptr, Rect(*rect).as_c(ctx), Scalar(*color).as_c(ctx), thickness)
    ctx.check()


def put_text(
    img: Mat,
    text: str,
    org: Tuple[int, int],
    font: HersheyFont = HersheyFont.SIMPLEX,
    font_scale: float = 1.0,
    color: Optional[Scalar] = None,
    thickness: int = 1,
) -> None:
    """Draw ``text`` at ``org``. The Hershey fonts only cover ASCII."""
    img_ptr = mat_ptr(img, "img")
    ctx = img.ctx
    ctx.require("imgproc")
    c_text = ascii_cstring(ctx, text)
    color = Scalar() if color is None else Scalar(*color)
    ctx.lib.PutText(
        img_ptr, c_text, Point(*org).as_c(ctx), int(font), font_scale, color.as_c(ctx), thickness
    )
    ctx.check()
