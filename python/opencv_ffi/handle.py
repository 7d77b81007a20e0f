"""
Owned native handles.

A ``NativeHandle`` exclusively owns one opaque pointer returned by a shim
constructor and releases it with the paired ``*_Close`` function exactly
once: on ``close()``, at the end of a ``with`` block, or when the wrapper is
garbage collected, whichever comes first.

Wrappers are single-owner objects. Sharing one wrapper between threads is
undefined unless OpenCV documents the underlying call as thread-safe.
"""

import weakref
from typing import Type, TypeVar

from .errors import DisposedHandle, UnknownError

H = TypeVar("H", bound="NativeHandle")


class NativeHandle:
    """Base class for every wrapper that owns a native object."""

    # Name of the shim function that releases this kind of handle
    _release = ""

    def __init__(self, ctx, ptr):
        if ptr == ctx.ffi.NULL:
            message = ctx.last_error() or f"{type(self).__name__} construction returned a null handle"
            raise UnknownError(message)
        self._ctx = ctx
        self._ptr = ptr
        # finalize must not reference self, or the wrapper would never be collected
        self._finalizer = weakref.finalize(self, getattr(ctx.lib, self._release), ptr)
        self._on_adopt()

    @classmethod
    def _adopt(cls: Type[H], ctx, ptr) -> H:
        """Take ownership of a handle produced by some other native call."""
        obj = cls.__new__(cls)
        NativeHandle.__init__(obj, ctx, ptr)
        return obj

    def _on_adopt(self) -> None:
        pass

    @property
    def ctx(self):
        return self._ctx

    @property
    def ptr(self):
        """The raw handle; raises ``DisposedHandle`` once the wrapper is closed."""
        if not self._finalizer.alive:
            raise DisposedHandle(type(self).__name__)
        return self._ptr

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    def close(self) -> None:
        """Release the native object. Calling it again is a no-op."""
        self._finalizer()

    def __enter__(self: H) -> H:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<{type(self).__name__} {state}>"


def borrow(obj, kind: Type[NativeHandle], what: str = "argument"):
    """Return the raw handle of ``obj`` for the duration of one native call.

    Only wrappers of exactly the expected kind are accepted, so a handle can
    never reach a native function written for another object kind.
    """
    if not isinstance(obj, kind):
        raise TypeError(f"{what} must be a {kind.__name__}, got {type(obj).__name__}")
    return obj.ptr
