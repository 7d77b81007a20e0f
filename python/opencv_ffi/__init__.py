"""
opencv_ffi: cffi bindings for a subset of OpenCV.

The compiled extension ``opencv_ffi._opencv_sys`` is produced by
``python -m opencv_ffi.build``. Importing this package does not load it;
the first wrapper call does, through ``default_context()``.
"""

from .context import Context, default_context, set_default_context
from .core import Mat, MatType, Point, Rect, Scalar, Size, opencv_version
from .errors import (
    BuildError,
    CvError,
    DisposedHandle,
    EntryNotFound,
    EnumFromPrimitiveConversionError,
    FeatureNotEnabled,
    InvalidCascadeModel,
    InvalidPath,
    InvalidString,
    UnicodeChars,
    UnknownError,
)
from . import cuda, dnn, features2d, highgui, imgcodecs, imgproc, objdetect

__version__ = "0.3.0"

__all__ = [
    "Context",
    "default_context",
    "set_default_context",
    "Mat",
    "MatType",
    "Point",
    "Rect",
    "Scalar",
    "Size",
    "opencv_version",
    "BuildError",
    "CvError",
    "DisposedHandle",
    "EntryNotFound",
    "EnumFromPrimitiveConversionError",
    "FeatureNotEnabled",
    "InvalidCascadeModel",
    "InvalidPath",
    "InvalidString",
    "UnicodeChars",
    "UnknownError",
    "cuda",
    "dnn",
    "features2d",
    "highgui",
    "imgcodecs",
    "imgproc",
    "objdetect",
]
