"""
Simple GUI display (``cv::highgui``).
"""

import weakref
from enum import IntEnum
from typing import Optional

from .context import Context, resolve
from .core import Mat, mat_ptr
from .errors import DisposedHandle
from .marshal import to_cstring


class WindowFlags(IntEnum):
    NORMAL = 0x00000000
    AUTOSIZE = 0x00000001
    FREERATIO = 0x00000100
    OPENGL = 0x00001000


class _NamedWindow:
    """The native window behind every ``Window`` opened under one name."""

    def __init__(self, ctx: Context, name: str, flags: WindowFlags):
        c_name = to_cstring(ctx, name)
        ctx.lib.Window_New(c_name, int(flags))
        ctx.check()
        self.c_name = c_name
        self.finalizer = weakref.finalize(self, ctx.lib.Window_Close, c_name)


class Window:
    """A named HighGUI window, destroyed exactly once on ``close()``,
    ``with`` exit or garbage collection.

    HighGUI keys windows by name, so the window owns its encoded name in
    place of a native handle. Windows opened under the same name in one
    context share the native window: closing any of them closes all of
    them, and ``flags`` only apply to the first one opened.
    """

    def __init__(self, name: str, flags: WindowFlags = WindowFlags.AUTOSIZE, ctx: Optional[Context] = None):
        ctx = resolve(ctx)
        ctx.require("highgui")
        shared = ctx.windows.get(name)
        if shared is None or not shared.finalizer.alive:
            shared = _NamedWindow(ctx, name, flags)
            ctx.windows[name] = shared
        self._ctx = ctx
        self._name = name
        self._shared = shared

    @property
    def name(self) -> str:
        return self._name

    @property
    def closed(self) -> bool:
        return not self._shared.finalizer.alive

    def show(self, img: Mat) -> None:
        if self.closed:
            raise DisposedHandle(f"Window {self._name!r}")
        self._ctx.lib.Window_IMShow(self._shared.c_name, mat_ptr(img, "img"))
        self._ctx.check()

    def close(self) -> None:
        self._shared.finalizer()

    def __enter__(self) -> "Window":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def wait_key(delay: int = 0, ctx: Optional[Context] = None) -> int:
    """Wait ``delay`` milliseconds (0 = forever) for a key; -1 when none was pressed."""
    ctx = resolve(ctx)
    ctx.require("highgui")
    return ctx.lib.Window_WaitKey(delay)
