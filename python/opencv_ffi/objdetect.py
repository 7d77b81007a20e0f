"""
Object detection (``cv::objdetect``).
"""

import logging
import os
from typing import List, Optional

from .context import Context, resolve
from .core import Rect, Size, mat_ptr
from .errors import InvalidCascadeModel
from .handle import NativeHandle
from .marshal import PathLike, path_to_cstring

logger = logging.getLogger(__name__)


def _take_rects(ctx, rects) -> List[Rect]:
    try:
        return [
            Rect(rects.rects[i].x, rects.rects[i].y, rects.rects[i].width, rects.rects[i].height)
            for i in range(rects.length)
        ]
    finally:
        ctx.lib.Rects_Close(rects)


class CascadeClassifier(NativeHandle):
    """Cascade classifier class for object detection."""

    _release = "CascadeClassifier_Close"

    def __init__(self, ctx: Optional[Context] = None):
        ctx = resolve(ctx)
        ctx.require("objdetect")
        super().__init__(ctx, ctx.lib.CascadeClassifier_New())

    @classmethod
    def from_file(cls, path: PathLike, ctx: Optional[Context] = None) -> "CascadeClassifier":
        """Create a classifier and load ``path`` into it."""
        ctx = resolve(ctx)
        ctx.require("objdetect")
        c_path = path_to_cstring(ctx, path)
        classifier = cls(ctx)
        try:
            classifier._load(c_path, path)
        except BaseException:
            classifier.close()
            raise
        return classifier

    def load(self, path: PathLike) -> None:
        """Loads the classifier model from a file."""
        self._load(path_to_cstring(self._ctx, path), path)

    def _load(self, c_path, path: PathLike) -> None:
        if not self._ctx.lib.CascadeClassifier_Load(self.ptr, c_path):
            message = self._ctx.last_error()
            if message:
                logger.debug("Cascade load failed: %s", message)
            raise InvalidCascadeModel(os.fspath(path))

    def detect_multi_scale(
        self,
        img,
        scale: float = 1.1,
        min_neighbors: int = 3,
        flags: int = 0,
        min_size: Size = Size(0, 0),
        max_size: Size = Size(0, 0),
    ) -> List[Rect]:
        """Detects objects of different sizes in the input image.

        The detected objects are returned as a list of rectangles.
        """
        img_ptr = mat_ptr(img, "img")
        ctx = self._ctx
        rects = ctx.lib.CascadeClassifier_DetectMultiScaleWithParams(
            self.ptr,
            img_ptr,
            scale,
            min_neighbors,
            flags,
            Size(*min_size).as_c(ctx),
            Size(*max_size).as_c(ctx),
        )
        found = _take_rects(ctx, rects)
        ctx.check()
        return found
