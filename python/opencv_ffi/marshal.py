"""
Marshaling between Python values and the shim calling convention.

Strings and paths become NUL-terminated ``char[]`` buffers. Variable length
arguments travel as pointer/length pairs (``CStrings``, ``Mats``) whose
buffers are pinned by a ``with`` block for exactly the duration of the call
that consumes them.
"""

import os
from typing import Callable, Iterable, List, Union

from .errors import InvalidPath, InvalidString, UnicodeChars, UnknownError

PathLike = Union[str, bytes, os.PathLike]


def to_cstring(ctx, text: str):
    """Copy ``text`` into a new NUL-terminated buffer owned by Python."""
    if not isinstance(text, str):
        raise TypeError(f"expected str, got {type(text).__name__}")
    if "\0" in text:
        raise InvalidString(text)
    try:
        data = text.encode("utf-8")
    except UnicodeEncodeError:
        raise InvalidString(text) from None
    return ctx.ffi.new("char[]", data)


def ascii_cstring(ctx, text: str):
    """Like ``to_cstring`` for calls that can only render ASCII."""
    if isinstance(text, str) and not text.isascii():
        raise UnicodeChars(text)
    return to_cstring(ctx, text)


def path_to_cstring(ctx, path: PathLike):
    raw = os.fspath(path)
    if isinstance(raw, bytes):
        data = raw
    else:
        try:
            data = raw.encode("utf-8")
        except UnicodeEncodeError:
            # undecodable file names surface as lone surrogates
            raise InvalidPath(path) from None
    if b"\0" in data:
        raise InvalidString(os.fsdecode(data))
    return ctx.ffi.new("char[]", data)


def take_cstrings(ctx, cstrings) -> List[str]:
    """Copy a natively allocated ``CStrings`` into Python and free it."""
    try:
        return [
            ctx.ffi.string(cstrings.strs[i]).decode("utf-8", errors="replace")
            for i in range(cstrings.length)
        ]
    finally:
        ctx.lib.CStrings_Close(cstrings)


class StringTable:
    """A ``CStrings`` argument built from Python strings.

    Every string is validated before anything is handed to native code.
    The buffers and the pointer table stay referenced until the ``with``
    block exits::

        with StringTable(ctx, names) as cnames:
            lib.Net_ForwardLayers(net, mats, cnames)
    """

    def __init__(self, ctx, strings: Iterable[str]):
        self._buffers = [to_cstring(ctx, s) for s in strings]
        self._table = ctx.ffi.new("const char *[]", self._buffers)
        self._struct = ctx.ffi.new("CStrings *", {"strs": self._table, "length": len(self._buffers)})

    def __len__(self) -> int:
        return len(self._buffers)

    def __enter__(self):
        return self._struct[0]

    def __exit__(self, exc_type, exc, tb) -> None:
        self._struct = None
        self._table = None
        self._buffers = []


class MatSlots:
    """Pre-sized ``Mats`` output array for the callee to fill.

    After the call each populated slot is adopted into its own owned
    wrapper with ``adopt_all``. Slots still holding a handle when the
    ``with`` block exits (because the call or a later step failed) are
    released so nothing leaks.
    """

    def __init__(self, ctx, count: int):
        self._ctx = ctx
        self._count = count
        self._slots = ctx.ffi.new("Mat[]", count)
        self._mats = ctx.ffi.new("Mats *", {"mats": self._slots, "length": count})

    @property
    def mats(self):
        """Pointer to the ``Mats`` struct, for the ``Mats*`` out parameter."""
        return self._mats

    def adopt_all(self, adopt: Callable) -> list:
        ffi = self._ctx.ffi
        owned = []
        missing = []
        for i in range(self._count):
            ptr = self._slots[i]
            if ptr == ffi.NULL:
                missing.append(i)
                continue
            self._slots[i] = ffi.NULL
            owned.append(adopt(self._ctx, ptr))
        if missing:
            for handle in owned:
                handle.close()
            raise UnknownError(f"native call left output slots {missing} empty")
        return owned

    def __enter__(self) -> "MatSlots":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        ffi = self._ctx.ffi
        for i in range(self._count):
            if self._slots[i] != ffi.NULL:
                self._ctx.lib.Mat_Close(self._slots[i])
                self._slots[i] = ffi.NULL
