"""
Error types for opencv-ffi.

Every native failure is translated into a ``CvError`` subclass at the
boundary; code above the wrappers never inspects native error
representations. Build-time failures use ``BuildError`` and are fatal.
"""

import os
from typing import Union


class CvError(Exception):
    """Base class for every runtime error raised by the wrappers."""


class InvalidString(CvError):
    """Text could not be marshaled to a NUL-terminated native string."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"invalid string: {text!r}")


class InvalidPath(CvError):
    """Path is not representable in the native string encoding."""

    def __init__(self, path: Union[str, bytes, os.PathLike]):
        self.path = path
        super().__init__(f"invalid path: {path!r}")


class InvalidCascadeModel(CvError):
    """A cascade classifier model failed to load."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"error loading cascade: {path!r}")


class EntryNotFound(CvError):
    """There is no entry at the given path."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"EntryNotFound: {path!r}")


class EnumFromPrimitiveConversionError(CvError):
    """A native numeric code has no matching wrapper enum member."""

    def __init__(self, value: int):
        self.value = value
        super().__init__(f"failed to convert from primitive: {value}")


class UnknownError(CvError):
    """The native library reported a failure, usually with a message."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Unknown error: {message!r}")


class UnicodeChars(CvError):
    """Text holds characters the native call can only render as ASCII."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"Non ascii characters found in string: {text!r}")


class DisposedHandle(CvError):
    """An operation was attempted on a wrapper that was already closed."""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"{kind} has already been disposed")


class FeatureNotEnabled(CvError):
    """The extension module was built without the requested OpenCV module."""

    def __init__(self, module: str):
        self.module = module
        super().__init__(
            f"OpenCV module '{module}' is not part of this build. "
            f"Rebuild with: python -m opencv_ffi.build --features {module}"
        )


class BuildError(RuntimeError):
    """Fatal build-time configuration or discovery failure."""


def enum_from_primitive(enum_cls, value: int):
    """Convert a native code into ``enum_cls`` or raise ``EnumFromPrimitiveConversionError``."""
    try:
        return enum_cls(value)
    except ValueError:
        raise EnumFromPrimitiveConversionError(value) from None
