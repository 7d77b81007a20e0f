"""
Native library context.

A ``Context`` pairs the cffi ``ffi`` object with the compiled shim ``lib``
and holds the process-wide initialization state. Every wrapper keeps the
context it was created with, so handles from different contexts never mix.
"""

import logging
import weakref
from typing import Iterable, Optional

from .errors import FeatureNotEnabled, UnknownError

logger = logging.getLogger(__name__)

# One exported symbol per shim module, used to probe what the extension was built with.
MODULE_SYMBOLS = {
    "core": "Mat_New",
    "dnn": "Net_ReadNet",
    "features2d": "ORB_Create",
    "highgui": "Window_New",
    "imgcodecs": "Image_IMRead",
    "imgproc": "CvtColor",
    "objdetect": "CascadeClassifier_New",
    "cuda": "GpuMat_New",
    "version": "openCVVersion",
}


class Context:
    """Explicit native state threaded through every wrapper."""

    def __init__(self, ffi, lib, modules: Optional[Iterable[str]] = None):
        self.ffi = ffi
        self.lib = lib
        # None means: probe the extension for each module's symbol
        self._modules = None if modules is None else frozenset(modules)
        self._initialized = False
        self._version: Optional[str] = None
        # open HighGUI windows by name
        self.windows = weakref.WeakValueDictionary()

    @classmethod
    def load(cls) -> "Context":
        """Import the compiled extension module and wrap it."""
        try:
            from ._opencv_sys import ffi, lib
        except ImportError as e:
            raise ImportError(
                "opencv_ffi: the native extension is not built. "
                "Run: python -m opencv_ffi.build --features <modules>"
            ) from e
        return cls(ffi, lib)

    def initialize(self) -> "Context":
        """Idempotent one-time setup; safe to call before every use."""
        if self._initialized:
            return self
        self.lib.Error_Clear()
        if self.has("version"):
            self._version = self.ffi.string(self.lib.openCVVersion()).decode("ascii")
        self._initialized = True
        logger.debug("Initialized OpenCV context (version %s)", self._version)
        return self

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def version(self) -> Optional[str]:
        return self._version

    def has(self, module: str) -> bool:
        if self._modules is not None:
            return module in self._modules
        symbol = MODULE_SYMBOLS.get(module)
        return symbol is not None and hasattr(self.lib, symbol)

    def require(self, module: str) -> None:
        if not self.has(module):
            raise FeatureNotEnabled(module)

    def last_error(self) -> Optional[str]:
        """Read and clear the thread-local native error message."""
        raw = self.lib.Error_Last()
        if raw == self.ffi.NULL:
            return None
        message = self.ffi.string(raw).decode("utf-8", errors="replace")
        self.lib.Error_Clear()
        return message

    def check(self) -> None:
        """Raise ``UnknownError`` if the last native call reported one."""
        message = self.last_error()
        if message is not None:
            raise UnknownError(message)


_default: Optional[Context] = None


def default_context() -> Context:
    """Load the compiled extension on first use and reuse it afterwards."""
    global _default
    if _default is None:
        _default = Context.load()
    return _default.initialize()


def set_default_context(ctx: Optional[Context]) -> None:
    """Replace the context used when a wrapper is created without one."""
    global _default
    _default = ctx


def resolve(ctx: Optional[Context]) -> Context:
    if ctx is None:
        return default_context()
    return ctx.initialize()
