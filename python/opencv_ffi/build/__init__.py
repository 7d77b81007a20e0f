"""
Build tooling: finds or builds OpenCV, generates the cffi bindings and
compiles the ``opencv_ffi._opencv_sys`` extension.

Run ``python -m opencv_ffi.build --help`` for the command line.
"""

from .acquire import NativeLibrary, acquire
from .bindgen import generate_bindings
from .features import Features
from .settings import NativeBuildConfig, native_build_config

__all__ = [
    "Features",
    "NativeBuildConfig",
    "NativeLibrary",
    "acquire",
    "generate_bindings",
    "native_build_config",
]
